"""FeedRegistry: Catalog of price feeds.

Feeds are created and updated by the admin and are never deleted; a feed is
retired by setting ``is_active`` to False. Per-feed overrides of 0 mean "use
the network default" and are resolved when read, not when stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import FeedAlreadyExists, FeedNotFound, InvalidInput, MaxFeedsReached
from .FeedPair import FeedPair
from .KeyedStore import FEED_LIST_KEY, FEED_PFX, KeyedStore
from .NetworkConfig import MAX_FEEDS

logger = logging.getLogger(__name__)

# Prices are stored as 128-bit integers, so 10**decimals must stay well inside it.
MAX_DECIMALS = 18


@dataclass
class PriceFeed:
    """A price feed definition.

    :ivar feed_id: Unique feed identifier (e.g. "XLMUSD").
    :ivar base_asset: Base asset symbol.
    :ivar quote_asset: Quote asset symbol.
    :ivar decimals: Fixed point scale of prices (8 means price * 10^8).
    :ivar is_active: Whether rounds may be opened and resolved.
    :ivar staleness_override_secs: Custom staleness (0 = network default).
    :ivar min_oracles_override: Custom minimum oracles (0 = network default).
    :ivar created_at: Creation timestamp.
    """

    feed_id: str
    base_asset: str
    quote_asset: str
    decimals: int
    is_active: bool = True
    staleness_override_secs: int = 0
    min_oracles_override: int = 0
    created_at: int = 0

    @property
    def pair(self) -> FeedPair:
        """Asset pair priced by this feed."""
        return FeedPair(self.base_asset, self.quote_asset)

    @property
    def feed_hash(self) -> bytes:
        """keccak256 key consumers use to address this feed."""
        return self.pair.compute_feed_hash(self.feed_id)


class FeedRegistry:
    """Registry of price feeds backed by a keyed store.

    :ivar store: Keyed store holding feed records.
    """

    def __init__(self, store: KeyedStore) -> None:
        self.store = store

    def _key(self, feed_id: str) -> tuple:
        return (FEED_PFX, feed_id)

    def feed_ids(self) -> list[str]:
        """List feed ids in creation order."""
        return list(self.store.get(FEED_LIST_KEY, []))

    def get(self, feed_id: str) -> PriceFeed:
        """Get a feed record.

        :raises FeedNotFound: If the feed is unknown.
        """
        feed = self.store.get(self._key(feed_id))
        if feed is None:
            raise FeedNotFound(f"Feed {feed_id!r} not found")
        return feed

    def create(
        self,
        feed_id: str,
        base_asset: str,
        quote_asset: str,
        decimals: int,
        now: int,
    ) -> PriceFeed:
        """Create a new feed.

        :param feed_id: Unique feed identifier.
        :param base_asset: Base asset symbol.
        :param quote_asset: Quote asset symbol.
        :param decimals: Fixed point scale of prices.
        :param now: Current timestamp.
        :returns: The new feed record.
        :raises InvalidInput: If the id, symbols or decimals are invalid.
        :raises MaxFeedsReached: If the catalog holds MAX_FEEDS feeds.
        :raises FeedAlreadyExists: If the id is taken.
        """
        if not feed_id or not feed_id.strip():
            raise InvalidInput("feed_id must not be empty")
        if not 0 <= decimals <= MAX_DECIMALS:
            raise InvalidInput(f"decimals must be in [0, {MAX_DECIMALS}]")
        pair = FeedPair(base_asset, quote_asset)

        feeds = self.feed_ids()
        if len(feeds) >= MAX_FEEDS:
            raise MaxFeedsReached(f"Feed catalog is full ({MAX_FEEDS} feeds)")
        if feed_id in feeds:
            raise FeedAlreadyExists(f"Feed {feed_id!r} already exists")

        feed = PriceFeed(
            feed_id=feed_id,
            base_asset=pair.base,
            quote_asset=pair.quote,
            decimals=decimals,
            created_at=now,
        )
        self.store.set(self._key(feed_id), feed)
        feeds.append(feed_id)
        self.store.set(FEED_LIST_KEY, feeds)

        logger.info(f"Feed {feed_id} created for {pair} ({decimals} decimals)")
        return feed

    def update(
        self,
        feed_id: str,
        is_active: bool,
        staleness_override_secs: int,
        min_oracles_override: int,
    ) -> PriceFeed:
        """Overwrite a feed's activity flag and overrides.

        :raises InvalidInput: If an override is negative.
        :raises FeedNotFound: If the feed is unknown.
        """
        if staleness_override_secs < 0 or min_oracles_override < 0:
            raise InvalidInput("overrides must not be negative")
        feed = self.get(feed_id)
        feed.is_active = is_active
        feed.staleness_override_secs = staleness_override_secs
        feed.min_oracles_override = min_oracles_override
        self.store.set(self._key(feed_id), feed)

        logger.info(
            f"Feed {feed_id} updated (active={is_active}, "
            f"staleness_override={staleness_override_secs}s, "
            f"min_oracles_override={min_oracles_override})"
        )
        return feed

    def count_active(self) -> int:
        """Count active feeds."""
        return sum(1 for feed_id in self.feed_ids() if self.get(feed_id).is_active)
