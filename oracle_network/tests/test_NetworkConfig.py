"""Unit tests for NetworkConfig."""

import pytest
from conftest import new_address

from oracle_network.src.errors import InvalidInput, NotInitialized
from oracle_network.src.KeyedStore import CONFIG_KEY, KeyedStore
from oracle_network.src.NetworkConfig import (
    DEFAULT_MIN_ORACLES,
    NetworkConfig,
    load_config,
    validate_network_params,
    validate_reputation_params,
)


class TestNetworkConfig:
    """Test configuration defaults and overrides."""

    def test_defaults_validate(self) -> None:
        """The default configuration is valid."""
        cfg = NetworkConfig(admin=new_address())
        cfg.validate()
        assert cfg.min_oracles == DEFAULT_MIN_ORACLES

    def test_effective_overrides(self) -> None:
        """Zero overrides fall back to the network defaults."""
        cfg = NetworkConfig(admin="x")
        assert cfg.effective_min_oracles(0) == cfg.min_oracles
        assert cfg.effective_min_oracles(5) == 5
        assert cfg.effective_staleness(0) == cfg.staleness_secs
        assert cfg.effective_staleness(60) == 60

    def test_from_env(self) -> None:
        """ORACLE_* variables override defaults."""
        cfg = NetworkConfig.from_env(
            "x", {"ORACLE_MIN_ORACLES": "5", "ORACLE_REP_REWARD": "7", "OTHER": "1"}
        )
        assert cfg.min_oracles == 5
        assert cfg.rep_reward == 7
        assert cfg.admin == "x"

    def test_from_env_not_integer(self) -> None:
        """Non-integer values raise InvalidInput."""
        with pytest.raises(InvalidInput, match="ORACLE_MIN_STAKE"):
            NetworkConfig.from_env("x", {"ORACLE_MIN_STAKE": "lots"})


class TestValidation:
    """Test parameter validation."""

    @pytest.mark.parametrize(
        "params",
        [
            (0, 21, 300, 3600, 1500, 0, 600),
            (5, 4, 300, 3600, 1500, 0, 600),
            (3, 21, 0, 3600, 1500, 0, 600),
            (3, 21, 300, 3600, 0, 0, 600),
            (3, 21, 300, 3600, 10_001, 0, 600),
            (3, 21, 300, 3600, 1500, -1, 600),
        ],
    )
    def test_invalid_network_params(self, params: tuple) -> None:
        """Out-of-range network parameters are rejected."""
        with pytest.raises(InvalidInput):
            validate_network_params(*params)

    @pytest.mark.parametrize(
        "params",
        [(500, 0, 5, 20, 10), (1001, 1000, 5, 20, 10), (500, 1000, 1001, 20, 10), (500, 1000, 5, -1, 10)],
    )
    def test_invalid_reputation_params(self, params: tuple) -> None:
        """Out-of-range reputation parameters are rejected."""
        with pytest.raises(InvalidInput):
            validate_reputation_params(*params)

    def test_load_config(self) -> None:
        """Loading from an empty store raises NotInitialized."""
        store = KeyedStore()
        with pytest.raises(NotInitialized):
            load_config(store)
        cfg = NetworkConfig(admin="x")
        store.set(CONFIG_KEY, cfg)
        assert load_config(store) == cfg
