"""PriceStore: Latest resolved price and bounded history per feed.

The latest ``ResolvedPrice`` of a feed is overwritten on every resolution; a
compact history entry is appended and the oldest entries are evicted beyond
MAX_HISTORY_LEN (FIFO). Reads through :meth:`PriceStore.get_fresh` reject
prices older than the feed's staleness threshold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import FeedNotFound, NoResolvedPrice, StalePrice
from .KeyedStore import HIST_PFX, PRICE_PFX, KeyedStore
from .NetworkConfig import MAX_HISTORY_LEN

logger = logging.getLogger(__name__)


@dataclass
class ResolvedPrice:
    """The resolved (aggregated) price for a feed.

    :ivar feed_id: Feed identifier.
    :ivar round_id: Round that produced this price.
    :ivar price: Aggregated price (weighted median).
    :ivar timestamp: Resolution timestamp.
    :ivar num_included: Submissions included.
    :ivar num_rejected: Submissions rejected as outliers.
    :ivar spread_bps: (max - min included) in bps of the price.
    :ivar confidence: Weighted confidence (bps).
    """

    feed_id: str
    round_id: int
    price: int
    timestamp: int
    num_included: int
    num_rejected: int
    spread_bps: int
    confidence: int


@dataclass
class PriceHistoryEntry:
    """A compact historical price entry."""

    round_id: int
    price: int
    timestamp: int
    num_oracles: int


class PriceStore:
    """Stores resolved prices and their history.

    :ivar store: Keyed store holding price records.
    :ivar max_history: Maximum history entries kept per feed.
    """

    def __init__(self, store: KeyedStore, max_history: int = MAX_HISTORY_LEN) -> None:
        self.store = store
        self.max_history = max_history

    def publish(self, resolved: ResolvedPrice) -> None:
        """Store a resolved price and append it to the feed's history."""
        self.store.set((PRICE_PFX, resolved.feed_id), resolved)

        history = list(self.store.get((HIST_PFX, resolved.feed_id), []))
        history.append(
            PriceHistoryEntry(
                round_id=resolved.round_id,
                price=resolved.price,
                timestamp=resolved.timestamp,
                num_oracles=resolved.num_included,
            )
        )
        if len(history) > self.max_history:
            history = history[-self.max_history:]
        self.store.set((HIST_PFX, resolved.feed_id), history)

    def get_latest(self, feed_id: str) -> ResolvedPrice:
        """Get the latest resolved price without a staleness check.

        :raises NoResolvedPrice: If the feed has never been resolved.
        """
        resolved = self.store.get((PRICE_PFX, feed_id))
        if resolved is None:
            raise NoResolvedPrice(f"No resolved price for feed {feed_id!r}")
        return resolved

    def get_fresh(self, feed_id: str, staleness_secs: int, now: int) -> ResolvedPrice:
        """Get the latest resolved price if it is not stale.

        :param feed_id: Feed to query.
        :param staleness_secs: Maximum allowed age in seconds.
        :param now: Current timestamp.
        :raises NoResolvedPrice: If the feed has never been resolved.
        :raises StalePrice: If the price is older than ``staleness_secs``.
        """
        resolved = self.get_latest(feed_id)
        age = now - resolved.timestamp
        if age > staleness_secs:
            logger.debug(f"{feed_id}: price from round {resolved.round_id} is stale ({age}s)")
            raise StalePrice(
                f"Price for {feed_id!r} is {age}s old (limit {staleness_secs}s)"
            )
        return resolved

    def get_history(self, feed_id: str) -> list[PriceHistoryEntry]:
        """Get the bounded price history of a feed, oldest first.

        :raises FeedNotFound: If the feed has no history.
        """
        history = self.store.get((HIST_PFX, feed_id))
        if history is None:
            raise FeedNotFound(f"No price history for feed {feed_id!r}")
        return list(history)
