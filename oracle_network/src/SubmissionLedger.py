"""SubmissionLedger: Price observations collected per (feed, round).

A provider may submit at most once per round. Submitting also counts as a
liveness proof and refreshes the provider's heartbeat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import (
    DuplicateSubmission,
    InvalidPrice,
    OracleInactive,
    RoundNotOpen,
    SubmissionWindowClosed,
)
from .KeyedStore import SUB_PFX, KeyedStore
from .NetworkConfig import BPS_DENOMINATOR
from .ProviderRegistry import I128_MAX, ProviderRegistry
from .RoundManager import RoundManager

logger = logging.getLogger(__name__)


@dataclass
class PriceSubmission:
    """A single price submission from an oracle for a round.

    :ivar oracle: Submitting provider.
    :ivar price: Price scaled by the feed's decimals.
    :ivar timestamp: Submission timestamp.
    :ivar confidence: Self-reported confidence (0-10000 bps).
    """

    oracle: str
    price: int
    timestamp: int
    confidence: int


def clamp_confidence(confidence: int) -> int:
    """Clamp a confidence value into [0, 10000]."""
    return max(0, min(confidence, BPS_DENOMINATOR))


class SubmissionLedger:
    """Records provider submissions for open rounds.

    :ivar store: Keyed store holding submission lists.
    :ivar registry: Provider registry used for eligibility checks.
    :ivar rounds: Round manager used to find the open round.
    """

    def __init__(
        self,
        store: KeyedStore,
        registry: ProviderRegistry,
        rounds: RoundManager,
    ) -> None:
        self.store = store
        self.registry = registry
        self.rounds = rounds

    def get(self, feed_id: str, round_id: int) -> list[PriceSubmission] | None:
        """Get the submissions of a round, or None if the round never existed."""
        subs = self.store.get((SUB_PFX, feed_id, round_id))
        return None if subs is None else list(subs)

    def get_required(self, feed_id: str, round_id: int) -> list[PriceSubmission]:
        """Get the submissions of a round.

        :raises RoundNotOpen: If the round never existed.
        """
        subs = self.get(feed_id, round_id)
        if subs is None:
            raise RoundNotOpen(f"No submissions recorded for {feed_id!r} round {round_id}")
        return subs

    def submit(
        self,
        address: str,
        feed_id: str,
        price: int,
        confidence: int,
        now: int,
    ) -> PriceSubmission:
        """Record a price submission for the feed's current round.

        :param address: Submitting provider.
        :param feed_id: Target feed.
        :param price: Price scaled by the feed's decimals (> 0).
        :param confidence: Self-reported confidence, clamped to [0, 10000].
        :param now: Current timestamp.
        :returns: The recorded submission.
        :raises OracleNotRegistered: If the provider is unknown.
        :raises OracleInactive: If the provider is inactive.
        :raises InvalidPrice: If price is not positive.
        :raises RoundNotOpen: If there is no unresolved round.
        :raises SubmissionWindowClosed: If ``now`` is past the window.
        :raises DuplicateSubmission: If the provider already submitted.
        """
        provider = self.registry.get(address)
        if not provider.is_active:
            raise OracleInactive(f"Oracle {address} is inactive")

        if price <= 0 or price > I128_MAX:
            raise InvalidPrice(f"Invalid price {price}")

        round_ = self.rounds.get_unresolved(feed_id)
        if now > round_.closes_at:
            raise SubmissionWindowClosed(
                f"Round {round_.round_id} of {feed_id!r} closed at {round_.closes_at}"
            )

        subs = self.get(feed_id, round_.round_id) or []
        if any(sub.oracle == address for sub in subs):
            raise DuplicateSubmission(
                f"Oracle {address} already submitted for {feed_id!r} round {round_.round_id}"
            )

        submission = PriceSubmission(
            oracle=address,
            price=price,
            timestamp=now,
            confidence=clamp_confidence(confidence),
        )
        subs.append(submission)
        self.store.set((SUB_PFX, feed_id, round_.round_id), subs)

        provider.total_submissions += 1
        provider.last_heartbeat = now
        self.registry.save(provider)

        logger.debug(
            f"{feed_id}: round {round_.round_id} submission from {address} "
            f"price={price} confidence={submission.confidence}"
        )
        return submission
