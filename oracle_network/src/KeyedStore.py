"""KeyedStore: In-memory keyed storage with all-or-nothing transactions.

Records are addressed by composite tuple keys such as ``("ORA", address)`` or
``("SUB", feed_id, round_id)``. Components receive the store they operate on
instead of reaching for module-level state.

Values are copied on ``set`` and on ``get``: a record handed out by the store
can be changed freely without touching stored state, and a change only lands
once it is written back with ``set``.

Inside a transaction every write first journals the previous value of its
key. If any exception escapes the ``with`` block, the journaled keys are
restored, so a failed operation leaves every record exactly as it was. Only
the keys an operation touches are journaled.

.. code-block:: python

    >>> store = KeyedStore()
    >>> store.set(("FEED", "XLMUSD"), {"decimals": 8})
    >>> try:
    ...     with store.transaction():
    ...         store.set(("FEED", "XLMUSD"), {"decimals": 7})
    ...         raise RuntimeError("boom")
    ... except RuntimeError:
    ...     pass
    >>> store.get(("FEED", "XLMUSD"))
    {'decimals': 8}
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from typing import Any, Iterator

Key = tuple

# Key prefixes
CONFIG_KEY: Key = ("NET_CFG",)
PAUSED_KEY: Key = ("PAUSED",)
ORACLE_LIST_KEY: Key = ("ORA_LST",)
FEED_LIST_KEY: Key = ("FEED_LST",)
EVENTS_KEY: Key = ("EVENTS",)
ORACLE_PFX = "ORA"
FEED_PFX = "FEED"
ROUND_PFX = "ROUND"
SUB_PFX = "SUB"
PRICE_PFX = "PRICE"
HIST_PFX = "HIST"

# Journal marker for keys that did not exist before the transaction.
_ABSENT = object()


class KeyedStore:
    """Map-like record store with journaled transactions.

    :ivar depth: Current transaction nesting depth.
    :ivar journal: Previous values of the keys written in the current
        transaction.
    """

    def __init__(self, data: dict[Key, Any] | None = None) -> None:
        """Initialize the store.

        :param data: Optional initial contents (e.g. a decoded snapshot).
        """
        self._data: dict[Key, Any] = dict(data) if data else {}
        self.depth = 0
        self.journal: dict[Key, Any] = {}

    def _record_prior(self, key: Key) -> None:
        if self.depth > 0 and key not in self.journal:
            self.journal[key] = self._data.get(key, _ABSENT)

    def get(self, key: Key, default: Any = None) -> Any:
        """Get a copy of the value stored under ``key``, or ``default``."""
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: Key, value: Any) -> None:
        """Store a copy of ``value`` under ``key``, replacing any previous value."""
        self._record_prior(key)
        self._data[key] = copy.deepcopy(value)

    def has(self, key: Key) -> bool:
        """Check whether ``key`` holds a value."""
        return key in self._data

    def delete(self, key: Key) -> None:
        """Remove ``key`` if present."""
        if key in self._data:
            self._record_prior(key)
            del self._data[key]

    def keys(self) -> list[Key]:
        """Return all keys currently stored."""
        return list(self._data.keys())

    def items(self) -> list[tuple[Key, Any]]:
        """Return a list of ``(key, value)`` pairs with copied values."""
        return [(key, copy.deepcopy(value)) for key, value in self._data.items()]

    def __len__(self) -> int:
        return len(self._data)

    @contextmanager
    def transaction(self) -> Iterator[KeyedStore]:
        """Run a block of writes atomically.

        Nested transactions join the outermost one; only the outermost
        transaction rolls back or clears the journal.

        :returns: Context manager yielding the store itself.
        """
        if self.depth > 0:
            self.depth += 1
            try:
                yield self
            finally:
                self.depth -= 1
            return

        self.journal = {}
        self.depth = 1
        try:
            yield self
        except BaseException:
            for key, prior in self.journal.items():
                if prior is _ABSENT:
                    self._data.pop(key, None)
                else:
                    self._data[key] = prior
            raise
        finally:
            self.depth = 0
            self.journal = {}
