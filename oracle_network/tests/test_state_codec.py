"""Unit tests for CBOR state snapshots."""

import cbor2
import pytest
from conftest import FEED_ID

from oracle_network.src import state_codec
from oracle_network.src.errors import InvalidInput
from oracle_network.src.KeyedStore import KeyedStore
from oracle_network.src.OracleNetwork import OracleNetwork


class TestStateCodec:
    """Test encoding and decoding of store snapshots."""

    def test_restores_network(self, live_network: OracleNetwork, admin: str, providers: list[str], clock) -> None:
        """A decoded snapshot serves the same records."""
        live_network.open_round(admin, FEED_ID)
        for provider in providers[:3]:
            live_network.submit_price(provider, FEED_ID, 100_000_000, 9000)
        live_network.resolve_round(admin, FEED_ID)

        restored = OracleNetwork(state_codec.loads(state_codec.dumps(live_network.store)), clock=clock)

        assert restored.get_config() == live_network.get_config()
        assert restored.get_price(FEED_ID) == live_network.get_price(FEED_ID)
        assert restored.get_oracle(providers[0]) == live_network.get_oracle(providers[0])
        assert restored.get_current_round(FEED_ID) == live_network.get_current_round(FEED_ID)
        assert restored.list_oracles() == providers

    def test_canonical_bytes(self) -> None:
        """Insertion order does not change the encoding."""
        first = KeyedStore()
        first.set(("a",), 1)
        first.set(("b", "x", 2), [1, 2])
        second = KeyedStore()
        second.set(("b", "x", 2), [1, 2])
        second.set(("a",), 1)

        assert state_codec.dumps(first) == state_codec.dumps(second)

    def test_unknown_object_rejected(self) -> None:
        """Values that are not known records cannot be encoded."""
        store = KeyedStore({("x",): object()})
        with pytest.raises(cbor2.CBOREncodeError):
            state_codec.dumps(store)

    def test_file_round_trip(self, network: OracleNetwork, tmp_path) -> None:
        """Snapshots are saved to and loaded from files; missing files are empty."""
        path = tmp_path / "state.cbor"
        assert len(state_codec.load(path)) == 0

        state_codec.save(network.store, path)
        assert state_codec.dumps(state_codec.load(path)) == state_codec.dumps(network.store)

    def test_records_use_private_tag(self, network: OracleNetwork) -> None:
        """Records are wrapped in the record tag, decodable by plain cbor2."""
        raw = cbor2.loads(state_codec.dumps(network.store))
        tagged = [value for _, value in raw if isinstance(value, cbor2.CBORTag)]

        assert tagged
        assert {tag.tag for tag in tagged} == {state_codec.RECORD_TAG}
        assert state_codec.RECORD_TAG != 27

    @pytest.mark.parametrize(
        "data",
        [
            b"\xff\x00",
            cbor2.dumps([[["x"], cbor2.CBORTag(state_codec.RECORD_TAG, ["Unknown", {}])]]),
            cbor2.dumps([[["x"], cbor2.CBORTag(state_codec.RECORD_TAG, ["PriceRound", {"bogus": 1}])]]),
            cbor2.dumps(42),
        ],
    )
    def test_corrupt_snapshot(self, data: bytes) -> None:
        """Undecodable snapshots raise InvalidInput."""
        with pytest.raises(InvalidInput):
            state_codec.loads(data)
