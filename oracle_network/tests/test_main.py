"""Tests for the command line interface."""

import pytest
from conftest import new_address

from oracle_network.main import from_fixed, main, to_fixed
from oracle_network.src.errors import InvalidInput

NOW = 1_700_000_000


class TestFixedPoint:
    """Test decimal to fixed point conversion."""

    def test_to_fixed(self) -> None:
        """Decimal strings scale by the feed's decimals, truncating."""
        assert to_fixed("0.1234", 8) == 12_340_000
        assert to_fixed("101", 2) == 10_100
        assert to_fixed("1.239", 2) == 123
        assert to_fixed("1e20", 18) == 10**38

    @pytest.mark.parametrize("value", ["abc", "", "inf", "NaN", "1e999999", "1e90"])
    def test_to_fixed_invalid(self, value: str) -> None:
        """Non-numeric or unrepresentable strings raise InvalidInput."""
        with pytest.raises(InvalidInput):
            to_fixed(value, 8)

    def test_from_fixed(self) -> None:
        """Fixed point integers format as decimals."""
        assert from_fixed(12_340_000, 8) == "0.12340000"


class TestCommands:
    """Test a full round through the CLI."""

    def test_round_through_cli(self, tmp_path, capsys) -> None:
        """Init, register, submit, resolve and read a price."""
        state = str(tmp_path / "state.cbor")
        admin = new_address()
        providers = [new_address() for _ in range(3)]

        def run(*args: str) -> int:
            return main(["--state", state, "--now", str(NOW), "--caller", admin, *args])

        assert run("init") == 0
        assert run("create-feed", "XLMUSD", "xlm", "usd", "8") == 0
        for provider in providers:
            assert run("register", provider, "10000000") == 0
        assert run("open-round", "XLMUSD") == 0
        for provider, price in zip(providers, ("0.1200", "0.1210", "0.1220")):
            assert run("submit", provider, "XLMUSD", price) == 0
        assert run("resolve", "XLMUSD") == 0

        capsys.readouterr()
        assert run("price", "XLMUSD") == 0
        out = capsys.readouterr().out
        assert "price: 12100000" in out
        assert "price_decimal: 0.12100000" in out

    def test_error_exit_code(self, tmp_path, capsys) -> None:
        """Engine errors print the error name and code and exit 1."""
        state = tmp_path / "state.cbor"
        code = main(["--state", str(state), "--caller", new_address(), "enforce-heartbeats"])

        assert code == 1
        assert "error: NotInitialized (code 4)" in capsys.readouterr().err
        assert not state.exists()

    def test_failed_command_keeps_state(self, tmp_path) -> None:
        """A failing mutation does not rewrite the state file."""
        state = tmp_path / "state.cbor"
        admin = new_address()
        assert main(["--state", str(state), "--caller", admin, "init"]) == 0
        before = state.read_bytes()

        assert main(["--state", str(state), "--caller", new_address(), "pause"]) == 1
        assert state.read_bytes() == before

    def test_corrupt_state_file(self, tmp_path, capsys) -> None:
        """An unreadable state file is reported as InvalidInput."""
        state = tmp_path / "state.cbor"
        state.write_bytes(b"\xff\x00garbage")

        assert main(["--state", str(state), "--caller", new_address(), "stats"]) == 1
        assert "error: InvalidInput (code 5)" in capsys.readouterr().err
        assert state.read_bytes() == b"\xff\x00garbage"

    def test_now_from_environment(self, tmp_path, monkeypatch) -> None:
        """ORACLE_NOW sets the clock when --now is absent."""
        state = tmp_path / "state.cbor"
        monkeypatch.setenv("ORACLE_NOW", str(NOW))

        assert main(["--state", str(state), "--caller", new_address(), "init"]) == 0

    def test_invalid_now_environment(self, tmp_path, monkeypatch, capsys) -> None:
        """A non-integer ORACLE_NOW is reported as InvalidInput."""
        state = tmp_path / "state.cbor"
        monkeypatch.setenv("ORACLE_NOW", "soon")

        assert main(["--state", str(state), "--caller", new_address(), "init"]) == 1
        assert "error: InvalidInput (code 5)" in capsys.readouterr().err
        assert not state.exists()
