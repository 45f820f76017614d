"""OracleNetwork: Public operations of the decentralized price oracle.

This module wires the registries, round manager, submission ledger,
aggregator, reputation engine and price store together behind one facade.

Architecture:
    - All records live in one injected KeyedStore
    - Every mutating operation runs inside a store transaction: it either
      applies all of its writes or none of them
    - Callers are passed in explicitly and checked with AccessControl
    - Time comes from an injected clock returning integer seconds
    - Resolution is caller-triggered; there is no background scheduling
    - Records returned to callers are copies; changing them does not change
      network state
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable

from .AccessControl import Permission, authorize, normalize_identity
from .errors import AGGREGATION_ERRORS, AlreadyInitialized, FeedInactive, Paused
from .FeedRegistry import FeedRegistry, PriceFeed
from .KeyedStore import CONFIG_KEY, EVENTS_KEY, PAUSED_KEY, KeyedStore
from .NetworkConfig import (
    NetworkConfig,
    load_config,
    validate_network_params,
    validate_reputation_params,
)
from .PriceAggregator import FALLBACK_WEIGHT, PriceAggregator
from .PriceStore import PriceHistoryEntry, PriceStore, ResolvedPrice
from .ProviderRegistry import OracleProvider, OracleStats, ProviderRegistry
from .ReputationEngine import ReputationEngine
from .RoundManager import PriceRound, RoundManager
from .SubmissionLedger import PriceSubmission, SubmissionLedger

logger = logging.getLogger(__name__)

# Number of events retained in the event log.
MAX_EVENTS = 1000


@dataclass
class NetworkEvent:
    """A state change notification.

    :ivar topic: Event topic (e.g. "round").
    :ivar action: Event action (e.g. "resolve").
    :ivar data: Event payload.
    :ivar timestamp: When the event was emitted.
    """

    topic: str
    action: str
    data: Any
    timestamp: int


@dataclass
class NetworkStats:
    """Network-wide statistics."""

    total_oracles: int
    active_oracles: int
    total_feeds: int
    active_feeds: int
    total_rounds_resolved: int


def system_clock() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


class OracleNetwork:
    """Facade over the oracle network components.

    :ivar store: Keyed store holding all network state.
    :ivar clock: Callable returning the current timestamp.
    :ivar providers: Provider registry.
    :ivar feeds: Feed registry.
    :ivar rounds: Round manager.
    :ivar ledger: Submission ledger.
    :ivar reputation: Reputation engine.
    :ivar prices: Resolved-price store.

    .. code-block:: python

        >>> network = OracleNetwork()
        >>> network.initialize(admin)
        >>> network.create_feed(admin, "XLMUSD", "XLM", "USD", 8)
        >>> for oracle in oracles:
        ...     network.register_oracle(oracle, 10_000_000)
        >>> network.open_round(admin, "XLMUSD")
        1
    """

    def __init__(
        self,
        store: KeyedStore | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the facade.

        :param store: Keyed store to operate on (default: a new empty store).
        :param clock: Callable returning the current timestamp in seconds
            (default: system time).
        """
        self.store = store if store is not None else KeyedStore()
        self.clock = clock or system_clock

        self.providers = ProviderRegistry(self.store)
        self.feeds = FeedRegistry(self.store)
        self.rounds = RoundManager(self.store)
        self.ledger = SubmissionLedger(self.store, self.providers, self.rounds)
        self.reputation = ReputationEngine(self.providers)
        self.prices = PriceStore(self.store)

    # Internal helpers

    def _now(self) -> int:
        return int(self.clock())

    def _config(self) -> NetworkConfig:
        return load_config(self.store)

    def _require_not_paused(self) -> None:
        if self.store.get(PAUSED_KEY, False):
            raise Paused("Oracle network is paused")

    def _require_admin(self, caller: str) -> NetworkConfig:
        cfg = self._config()
        authorize(caller, Permission.ADMIN, admin=cfg.admin)
        return cfg

    def _emit(self, topic: str, action: str, data: Any) -> None:
        events = list(self.store.get(EVENTS_KEY, []))
        events.append(NetworkEvent(topic, action, data, self._now()))
        self.store.set(EVENTS_KEY, events[-MAX_EVENTS:])
        logger.debug(f"event {topic}/{action}: {data}")

    # Initialization and admin

    def initialize(self, admin: str, config: NetworkConfig | None = None) -> NetworkConfig:
        """Initialize the network with an admin and optional custom config.

        :param admin: Admin identity.
        :param config: Optional configuration; its ``admin`` is replaced.
        :returns: The stored configuration.
        :raises AlreadyInitialized: If the network is already initialized.
        :raises InvalidInput: If the admin or configuration is invalid.
        """
        with self.store.transaction():
            if self.store.has(CONFIG_KEY):
                raise AlreadyInitialized("Oracle network is already initialized")
            admin = normalize_identity(admin)
            cfg = NetworkConfig(admin=admin) if config is None else replace(config, admin=admin)
            cfg.validate()

            self.store.set(CONFIG_KEY, cfg)
            self.store.set(PAUSED_KEY, False)
            self._emit("init", "network", admin)

        logger.info(f"Oracle network initialized (admin={admin})")
        return cfg

    def set_paused(self, caller: str, paused: bool) -> None:
        """Pause or unpause the network (admin only)."""
        with self.store.transaction():
            self._require_admin(caller)
            self.store.set(PAUSED_KEY, paused)
            self._emit("admin", "pause", paused)
        logger.info(f"Oracle network {'paused' if paused else 'unpaused'}")

    def is_paused(self) -> bool:
        """Check whether the network is paused."""
        return bool(self.store.get(PAUSED_KEY, False))

    def update_config(
        self,
        caller: str,
        min_oracles: int,
        max_oracles: int,
        submission_window_secs: int,
        staleness_secs: int,
        outlier_threshold_bps: int,
        min_stake: int,
        heartbeat_interval: int,
    ) -> NetworkConfig:
        """Update network parameters (admin only).

        :raises Unauthorized: If the caller is not the admin.
        :raises InvalidInput: If a parameter is out of range.
        """
        with self.store.transaction():
            cfg = self._require_admin(caller)
            validate_network_params(
                min_oracles,
                max_oracles,
                submission_window_secs,
                staleness_secs,
                outlier_threshold_bps,
                min_stake,
                heartbeat_interval,
            )
            cfg.min_oracles = min_oracles
            cfg.max_oracles = max_oracles
            cfg.submission_window_secs = submission_window_secs
            cfg.staleness_secs = staleness_secs
            cfg.outlier_threshold_bps = outlier_threshold_bps
            cfg.min_stake = min_stake
            cfg.heartbeat_interval = heartbeat_interval
            self.store.set(CONFIG_KEY, cfg)
            self._emit("admin", "config", min_oracles)
        logger.info(f"Network config updated: {cfg}")
        return cfg

    def update_reputation_config(
        self,
        caller: str,
        rep_initial: int,
        rep_max: int,
        rep_reward: int,
        rep_penalty: int,
        rep_miss_penalty: int,
    ) -> NetworkConfig:
        """Update reputation parameters (admin only).

        :raises Unauthorized: If the caller is not the admin.
        :raises InvalidInput: If a parameter is out of range.
        """
        with self.store.transaction():
            cfg = self._require_admin(caller)
            validate_reputation_params(
                rep_initial, rep_max, rep_reward, rep_penalty, rep_miss_penalty
            )
            cfg.rep_initial = rep_initial
            cfg.rep_max = rep_max
            cfg.rep_reward = rep_reward
            cfg.rep_penalty = rep_penalty
            cfg.rep_miss_penalty = rep_miss_penalty
            self.store.set(CONFIG_KEY, cfg)

            # Existing scores must stay within the new ceiling.
            for address in self.providers.addresses():
                provider = self.providers.get(address)
                if provider.reputation > rep_max:
                    provider.reputation = rep_max
                    self.providers.save(provider)
        logger.info(
            f"Reputation config updated: initial={rep_initial}, max={rep_max}, "
            f"reward={rep_reward}, penalty={rep_penalty}, miss={rep_miss_penalty}"
        )
        return cfg

    # Oracle providers

    def register_oracle(self, provider: str, stake: int) -> OracleProvider:
        """Register the calling provider with a stake.

        :raises Paused: If the network is paused.
        :raises InsufficientStake: If stake is below the minimum.
        :raises MaxOraclesReached: If the roster is full.
        :raises OracleAlreadyRegistered: If already registered.
        """
        with self.store.transaction():
            self._require_not_paused()
            provider = normalize_identity(provider)
            cfg = self._config()
            record = self.providers.register(provider, stake, cfg, self._now())
            self._emit("oracle", "register", provider)
        return record

    def deactivate_oracle(self, caller: str, provider: str) -> OracleProvider:
        """Deactivate a provider (the provider itself or the admin).

        :raises Unauthorized: If the caller is neither.
        :raises OracleNotRegistered: If the provider is unknown.
        """
        with self.store.transaction():
            cfg = self._config()
            provider = normalize_identity(provider)
            authorize(caller, Permission.SELF_OR_ADMIN, admin=cfg.admin, subject=provider)
            record = self.providers.deactivate(provider)
            self._emit("oracle", "deactiv", provider)
        return record

    def reactivate_oracle(self, caller: str, provider: str) -> OracleProvider:
        """Reactivate a provider (the provider itself or the admin).

        :raises Paused: If the network is paused.
        :raises OracleNotRegistered: If the provider is unknown.
        :raises ReputationTooLow: If reputation is below half the initial score.
        """
        with self.store.transaction():
            self._require_not_paused()
            cfg = self._config()
            provider = normalize_identity(provider)
            authorize(caller, Permission.SELF_OR_ADMIN, admin=cfg.admin, subject=provider)
            record = self.providers.reactivate(provider, cfg, self._now())
            self._emit("oracle", "reactiv", provider)
        return record

    def add_stake(self, provider: str, amount: int) -> OracleProvider:
        """Add stake for the calling provider.

        :raises Paused: If the network is paused.
        :raises InvalidInput: If amount is not positive.
        """
        with self.store.transaction():
            self._require_not_paused()
            self._config()
            provider = normalize_identity(provider)
            return self.providers.add_stake(provider, amount)

    def heartbeat(self, provider: str) -> OracleProvider:
        """Record a liveness proof for the calling provider.

        :raises Paused: If the network is paused.
        :raises OracleInactive: If the provider is inactive.
        """
        with self.store.transaction():
            self._require_not_paused()
            self._config()
            provider = normalize_identity(provider)
            return self.providers.heartbeat(provider, self._now())

    def slash_oracle(
        self,
        caller: str,
        provider: str,
        stake_penalty: int,
        rep_penalty: int,
    ) -> OracleProvider:
        """Slash a provider's stake and reputation (admin only).

        :raises Unauthorized: If the caller is not the admin.
        :raises OracleNotRegistered: If the provider is unknown.
        """
        with self.store.transaction():
            self._require_admin(caller)
            provider = normalize_identity(provider)
            record = self.providers.slash(provider, stake_penalty, rep_penalty)
            self._emit("oracle", "slash", provider)
        return record

    def enforce_heartbeats(self, caller: str) -> int:
        """Deactivate providers that missed their heartbeat (admin only).

        :returns: Number of providers deactivated.
        :raises Unauthorized: If the caller is not the admin.
        """
        with self.store.transaction():
            cfg = self._require_admin(caller)
            deactivated = self.providers.enforce_heartbeats(cfg, self._now())
        if deactivated:
            logger.info(f"Heartbeat enforcement deactivated {len(deactivated)} oracle(s)")
        return len(deactivated)

    # Price feeds

    def create_feed(
        self,
        caller: str,
        feed_id: str,
        base_asset: str,
        quote_asset: str,
        decimals: int,
    ) -> PriceFeed:
        """Create a new price feed (admin only).

        :raises Unauthorized: If the caller is not the admin.
        :raises FeedAlreadyExists: If the id is taken.
        :raises MaxFeedsReached: If the catalog is full.
        """
        with self.store.transaction():
            self._require_admin(caller)
            feed = self.feeds.create(feed_id, base_asset, quote_asset, decimals, self._now())
            self._emit("feed", "create", feed_id)
        return feed

    def update_feed(
        self,
        caller: str,
        feed_id: str,
        is_active: bool,
        staleness_override_secs: int,
        min_oracles_override: int,
    ) -> PriceFeed:
        """Update a feed's activity and overrides (admin only).

        :raises Unauthorized: If the caller is not the admin.
        :raises FeedNotFound: If the feed is unknown.
        """
        with self.store.transaction():
            self._require_admin(caller)
            feed = self.feeds.update(
                feed_id, is_active, staleness_override_secs, min_oracles_override
            )
            self._emit("feed", "update", feed_id)
        return feed

    # Rounds and submissions

    def open_round(self, caller: str, feed_id: str) -> int:
        """Open the next round of a feed.

        :returns: The new round id.
        :raises Paused: If the network is paused.
        :raises FeedNotFound: If the feed is unknown.
        :raises FeedInactive: If the feed is inactive.
        :raises RoundNotOpen: If the current round is still open.
        """
        with self.store.transaction():
            self._require_not_paused()
            authorize(caller, Permission.ANY)
            feed = self.feeds.get(feed_id)
            if not feed.is_active:
                raise FeedInactive(f"Feed {feed_id!r} is inactive")
            cfg = self._config()
            round_ = self.rounds.open(feed_id, cfg.submission_window_secs, self._now())
            self._emit("round", "open", (feed_id, round_.round_id))
        return round_.round_id

    def submit_price(
        self,
        provider: str,
        feed_id: str,
        price: int,
        confidence: int,
    ) -> PriceSubmission:
        """Submit a price for the feed's current round.

        :param provider: Submitting provider (the caller).
        :param feed_id: Target feed.
        :param price: Price scaled by the feed's decimals.
        :param confidence: Self-reported confidence in bps (clamped).
        :raises Paused: If the network is paused.
        :raises OracleInactive: If the provider is inactive.
        :raises InvalidPrice: If price is not positive.
        :raises RoundNotOpen: If there is no unresolved round.
        :raises SubmissionWindowClosed: If the window has elapsed.
        :raises DuplicateSubmission: If the provider already submitted.
        """
        with self.store.transaction():
            self._require_not_paused()
            self._config()
            provider = normalize_identity(provider)
            submission = self.ledger.submit(provider, feed_id, price, confidence, self._now())
            self._emit("price", "submit", (feed_id, provider, price))
        return submission

    def resolve_round(self, caller: str, feed_id: str) -> ResolvedPrice:
        """Aggregate the current round of a feed and publish the price.

        Computes the reputation-weighted median of the non-outlier submissions,
        applies reputation rewards and penalties, stores the resolved price,
        appends history and marks the round resolved. Applied exactly once.

        :returns: The resolved price.
        :raises Paused: If the network is paused.
        :raises FeedInactive: If the feed is inactive.
        :raises RoundNotOpen: If there is no unresolved round.
        :raises InsufficientSubmissions: Too few submissions.
        :raises ConsensusNotReached: Too few submissions survive outlier rejection.
        """
        with self.store.transaction():
            self._require_not_paused()
            authorize(caller, Permission.ANY)
            cfg = self._config()
            feed = self.feeds.get(feed_id)
            if not feed.is_active:
                raise FeedInactive(f"Feed {feed_id!r} is inactive")

            round_ = self.rounds.get_unresolved(feed_id)
            subs = self.ledger.get(feed_id, round_.round_id) or []
            min_oracles = cfg.effective_min_oracles(feed.min_oracles_override)

            weights: dict[str, int] = {}
            for sub in subs:
                record = self.providers.find(sub.oracle)
                weights[sub.oracle] = record.reputation if record else FALLBACK_WEIGHT

            aggregator = PriceAggregator(
                min_submissions=min_oracles,
                outlier_threshold_bps=cfg.outlier_threshold_bps,
            )
            result = aggregator.aggregate(subs, weights)

            if not result.success:
                error_type = result.error or "unknown"
                logger.warning(
                    f"{feed_id}: round {round_.round_id} resolution failed "
                    f"({error_type}): {result.metadata}"
                )
                raise AGGREGATION_ERRORS[error_type](
                    f"{feed_id!r} round {round_.round_id}: {result.metadata}"
                )

            meta = result.metadata
            update = self.reputation.apply_round(
                cfg,
                included=meta["included"],
                rejected=list(meta["rejected"]),
            )

            resolved = ResolvedPrice(
                feed_id=feed_id,
                round_id=round_.round_id,
                price=result.price,
                timestamp=self._now(),
                num_included=meta["num_included"],
                num_rejected=meta["num_rejected"],
                spread_bps=meta["spread_bps"],
                confidence=meta["confidence"],
            )
            self.prices.publish(resolved)
            self.rounds.mark_resolved(round_)
            self._emit("round", "resolve", (feed_id, round_.round_id, result.price))

        log_msg = (
            f"{feed_id}: round {round_.round_id} resolved at {resolved.price} "
            f"(included={resolved.num_included}, spread={resolved.spread_bps}bps, "
            f"confidence={resolved.confidence}bps"
        )
        if update.missed:
            log_msg += f", missed={len(update.missed)}"
        if update.deactivated:
            log_msg += f", deactivated={len(update.deactivated)}"
        if meta["rejected"]:
            dropped = [f"{addr}={price}" for addr, price in meta["rejected"].items()]
            log_msg += f", rejected: [{', '.join(dropped)}]"
        log_msg += ")"
        logger.info(log_msg)
        return resolved

    # Price queries

    def get_price(self, feed_id: str) -> ResolvedPrice:
        """Get the latest resolved price, rejecting stale prices.

        :raises NoResolvedPrice: If the feed has never been resolved.
        :raises StalePrice: If the price exceeds the feed's staleness threshold.
        """
        self.prices.get_latest(feed_id)
        cfg = self._config()
        feed = self.feeds.get(feed_id)
        staleness = cfg.effective_staleness(feed.staleness_override_secs)
        return self.prices.get_fresh(feed_id, staleness, self._now())

    def get_price_value(self, feed_id: str) -> int:
        """Get only the latest non-stale price value."""
        return self.get_price(feed_id).price

    def get_latest_price_unchecked(self, feed_id: str) -> ResolvedPrice:
        """Get the latest resolved price without a staleness check.

        :raises NoResolvedPrice: If the feed has never been resolved.
        """
        return self.prices.get_latest(feed_id)

    def get_price_history(self, feed_id: str) -> list[PriceHistoryEntry]:
        """Get the bounded price history of a feed, oldest first.

        :raises FeedNotFound: If the feed has no history.
        """
        return self.prices.get_history(feed_id)

    def get_current_round(self, feed_id: str) -> PriceRound:
        """Get the current round of a feed.

        :raises RoundNotOpen: If the feed never had a round.
        """
        return self.rounds.get_current(feed_id)

    def get_round_submissions(self, feed_id: str, round_id: int) -> list[PriceSubmission]:
        """Get the submissions of a round.

        :raises RoundNotOpen: If the round never existed.
        """
        return self.ledger.get_required(feed_id, round_id)

    # Oracle and feed queries

    def get_oracle(self, provider: str) -> OracleProvider:
        """Get a provider record.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        return self.providers.get(normalize_identity(provider))

    def get_oracle_stats(self, provider: str) -> OracleStats:
        """Get a provider's performance statistics.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        return self.providers.stats(normalize_identity(provider))

    def list_oracles(self) -> list[str]:
        """List registered provider addresses."""
        return self.providers.addresses()

    def get_feed(self, feed_id: str) -> PriceFeed:
        """Get a feed record.

        :raises FeedNotFound: If the feed is unknown.
        """
        return self.feeds.get(feed_id)

    def list_feeds(self) -> list[str]:
        """List feed ids."""
        return self.feeds.feed_ids()

    def get_network_stats(self) -> NetworkStats:
        """Get network-wide statistics."""
        feed_ids = self.feeds.feed_ids()
        return NetworkStats(
            total_oracles=len(self.providers.addresses()),
            active_oracles=self.providers.count_active(),
            total_feeds=len(feed_ids),
            active_feeds=self.feeds.count_active(),
            total_rounds_resolved=sum(self.rounds.resolved_count(f) for f in feed_ids),
        )

    def get_config(self) -> NetworkConfig:
        """Get the network configuration.

        :raises NotInitialized: If the network is not initialized.
        """
        return self._config()

    def is_oracle_healthy(self, provider: str) -> bool:
        """Check whether a provider is active, within its heartbeat and has reputation.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        cfg = self._config()
        return self.providers.is_healthy(normalize_identity(provider), cfg, self._now())

    def get_events(self) -> list[NetworkEvent]:
        """Get the retained event log, oldest first."""
        return list(self.store.get(EVENTS_KEY, []))
