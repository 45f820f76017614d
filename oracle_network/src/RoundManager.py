"""RoundManager: Submission round lifecycle per feed.

Each feed has at most one current round. A round moves through:

    NoRound -> Open -> Resolved

and the next ``open_round`` starts a fresh round with the following id. A new
round may replace the current one only once it is resolved or its submission
window has elapsed. Round ids are never reused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import RoundNotOpen
from .KeyedStore import ROUND_PFX, SUB_PFX, KeyedStore

logger = logging.getLogger(__name__)


@dataclass
class PriceRound:
    """A price round for a feed.

    :ivar round_id: Round number, starting at 1.
    :ivar feed_id: Feed this round belongs to.
    :ivar opened_at: When the round was opened.
    :ivar closes_at: When the submission window closes.
    :ivar resolved: Whether the round has been resolved.
    """

    round_id: int
    feed_id: str
    opened_at: int
    closes_at: int
    resolved: bool = False

    def is_open(self, now: int) -> bool:
        """Check whether submissions are accepted at ``now``."""
        return not self.resolved and now <= self.closes_at


class RoundManager:
    """Opens and closes rounds for feeds.

    :ivar store: Keyed store holding round records.
    """

    def __init__(self, store: KeyedStore) -> None:
        self.store = store

    def _key(self, feed_id: str) -> tuple:
        return (ROUND_PFX, feed_id)

    def current(self, feed_id: str) -> PriceRound | None:
        """Get the current round of a feed, or None."""
        return self.store.get(self._key(feed_id))

    def get_current(self, feed_id: str) -> PriceRound:
        """Get the current round of a feed.

        :raises RoundNotOpen: If the feed never had a round.
        """
        round_ = self.current(feed_id)
        if round_ is None:
            raise RoundNotOpen(f"No round for feed {feed_id!r}")
        return round_

    def get_unresolved(self, feed_id: str) -> PriceRound:
        """Get the current round, which must not be resolved.

        :raises RoundNotOpen: If there is no round or it is resolved.
        """
        round_ = self.get_current(feed_id)
        if round_.resolved:
            raise RoundNotOpen(f"Round {round_.round_id} of {feed_id!r} is already resolved")
        return round_

    def open(self, feed_id: str, window_secs: int, now: int) -> PriceRound:
        """Open the next round of a feed.

        The caller is responsible for checking the feed is active.

        :param feed_id: Feed to open a round for.
        :param window_secs: Length of the submission window.
        :param now: Current timestamp.
        :returns: The new round.
        :raises RoundNotOpen: If the current round is unresolved and its
            window has not elapsed.
        """
        previous = self.current(feed_id)
        if previous is None:
            round_id = 1
        else:
            if not previous.resolved and now < previous.closes_at:
                raise RoundNotOpen(
                    f"Round {previous.round_id} of {feed_id!r} still open "
                    f"until {previous.closes_at}"
                )
            if not previous.resolved:
                logger.warning(
                    f"{feed_id}: round {previous.round_id} expired unresolved, superseding"
                )
            round_id = previous.round_id + 1

        round_ = PriceRound(
            round_id=round_id,
            feed_id=feed_id,
            opened_at=now,
            closes_at=now + window_secs,
        )
        self.store.set(self._key(feed_id), round_)
        self.store.set((SUB_PFX, feed_id, round_id), [])

        logger.info(f"{feed_id}: round {round_id} opened (closes at {round_.closes_at})")
        return round_

    def mark_resolved(self, round_: PriceRound) -> None:
        """Mark a round as resolved."""
        round_.resolved = True
        self.store.set(self._key(round_.feed_id), round_)

    def resolved_count(self, feed_id: str) -> int:
        """Number of rounds of a feed that are no longer pending.

        Counts the current round if resolved, otherwise every earlier round.
        """
        round_ = self.current(feed_id)
        if round_ is None:
            return 0
        if round_.resolved:
            return round_.round_id
        return round_.round_id - 1
