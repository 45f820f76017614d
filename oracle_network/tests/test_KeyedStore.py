"""Unit tests for KeyedStore."""

import pytest

from oracle_network.src.KeyedStore import KeyedStore


class TestKeyedStore:
    """Test basic store access."""

    def test_get_set_delete(self) -> None:
        """Values are stored under tuple keys."""
        store = KeyedStore()
        store.set(("FEED", "XLMUSD"), 1)

        assert store.has(("FEED", "XLMUSD"))
        assert store.get(("FEED", "XLMUSD")) == 1
        assert store.get(("FEED", "BTCUSD"), "missing") == "missing"
        assert len(store) == 1

        store.delete(("FEED", "XLMUSD"))
        assert not store.has(("FEED", "XLMUSD"))

    def test_values_are_copied(self) -> None:
        """Changing a value after set or after get leaves the stored value alone."""
        store = KeyedStore()
        record = {"reputation": 500}
        store.set(("ORA", "a"), record)
        record["reputation"] = 1

        fetched = store.get(("ORA", "a"))
        fetched["reputation"] = 99_999

        assert store.get(("ORA", "a")) == {"reputation": 500}
        assert store.items()[0][1] == {"reputation": 500}


class TestTransactions:
    """Test all-or-nothing transactions."""

    def test_commit(self) -> None:
        """Writes persist when the block succeeds."""
        store = KeyedStore()
        with store.transaction():
            store.set(("a",), 1)
        assert store.get(("a",)) == 1
        assert store.depth == 0
        assert store.journal == {}

    def test_rollback_restores_touched_keys(self) -> None:
        """An exception restores overwritten, created and deleted keys."""
        store = KeyedStore({("list",): [1, 2], ("gone",): "x"})
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.set(("list",), [1, 2, 3])
                store.set(("list",), [])
                store.set(("new",), True)
                store.delete(("gone",))
                raise RuntimeError("boom")

        assert store.get(("list",)) == [1, 2]
        assert store.get(("gone",)) == "x"
        assert not store.has(("new",))
        assert store.depth == 0
        assert store.journal == {}

    def test_journal_only_holds_touched_keys(self) -> None:
        """The journal grows with the keys written, not with the store size."""
        store = KeyedStore({("SUB", "XLMUSD", i): [i] for i in range(500)})
        with store.transaction():
            store.set(("SUB", "XLMUSD", 501), [])
            store.set(("ROUND", "XLMUSD"), 501)
            store.set(("ROUND", "XLMUSD"), 502)
            assert len(store.journal) == 2

    def test_nested_joins_outer(self) -> None:
        """A failing outer transaction also undoes nested writes."""
        store = KeyedStore()
        with pytest.raises(ValueError):
            with store.transaction():
                with store.transaction():
                    store.set(("inner",), 1)
                assert store.depth == 1
                raise ValueError("outer")

        assert not store.has(("inner",))
