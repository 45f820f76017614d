"""ProviderRegistry: Roster of staked oracle providers.

Tracks each provider's stake, reputation, activity and liveness. The roster is
bounded by ``max_oracles``: registration is refused once it is full, so every
per-round scan over providers stays small.

A provider that stops sending heartbeats can be swept out by
:meth:`ProviderRegistry.enforce_heartbeats`, which deactivates it and applies
the missed-round reputation penalty.

.. code-block:: python

    >>> registry = ProviderRegistry(KeyedStore())
    >>> registry.register(addr, 10_000_000, cfg, now=1000)
    >>> registry.get(addr).reputation
    500
    >>> registry.is_healthy(addr, cfg, now=1000 + cfg.heartbeat_interval + 1)
    False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import (
    InsufficientStake,
    InvalidInput,
    MaxOraclesReached,
    OracleAlreadyRegistered,
    OracleInactive,
    OracleNotRegistered,
    ReputationTooLow,
)
from .KeyedStore import ORACLE_LIST_KEY, ORACLE_PFX, KeyedStore
from .NetworkConfig import BPS_DENOMINATOR, NetworkConfig
from .ReputationEngine import apply_penalty, penalize

logger = logging.getLogger(__name__)

# Stakes are signed 128-bit fixed point values.
I128_MAX = 2**127 - 1
I128_MIN = -(2**127)


@dataclass
class OracleProvider:
    """An oracle provider in the network.

    :ivar address: Provider identity.
    :ivar stake: Amount staked.
    :ivar reputation: Reputation score (0 to rep_max).
    :ivar is_active: Whether the provider participates in rounds.
    :ivar registered_at: Registration timestamp.
    :ivar last_heartbeat: Last liveness proof timestamp.
    :ivar total_submissions: Submissions made.
    :ivar accepted_submissions: Submissions included in consensus.
    :ivar rejected_submissions: Submissions rejected as outliers.
    :ivar missed_rounds: Rounds resolved without a submission from this provider.
    """

    address: str
    stake: int
    reputation: int
    is_active: bool = True
    registered_at: int = 0
    last_heartbeat: int = 0
    total_submissions: int = 0
    accepted_submissions: int = 0
    rejected_submissions: int = 0
    missed_rounds: int = 0


@dataclass
class OracleStats:
    """Read-only performance view of a provider.

    :ivar accuracy_bps: accepted / total submissions in basis points.
    """

    address: str
    reputation: int
    total_submissions: int
    accepted_submissions: int
    rejected_submissions: int
    missed_rounds: int
    accuracy_bps: int
    is_active: bool


class BoundedRoster:
    """Capacity-checked list of provider addresses.

    :ivar capacity: Maximum number of entries.
    """

    def __init__(self, addresses: list[str], capacity: int) -> None:
        self._addresses = list(addresses)
        self.capacity = capacity

    def __len__(self) -> int:
        return len(self._addresses)

    def __contains__(self, address: object) -> bool:
        return address in self._addresses

    def is_full(self) -> bool:
        return len(self._addresses) >= self.capacity

    def append(self, address: str) -> None:
        """Append an address.

        :raises MaxOraclesReached: If the roster is at capacity.
        """
        if self.is_full():
            raise MaxOraclesReached(f"Roster is full ({self.capacity} oracles)")
        self._addresses.append(address)

    def to_list(self) -> list[str]:
        return list(self._addresses)


class ProviderRegistry:
    """Registry of oracle providers backed by a keyed store.

    :ivar store: Keyed store holding provider records.
    """

    def __init__(self, store: KeyedStore) -> None:
        self.store = store

    def _key(self, address: str) -> tuple:
        return (ORACLE_PFX, address)

    def addresses(self) -> list[str]:
        """List registered provider addresses in registration order."""
        return list(self.store.get(ORACLE_LIST_KEY, []))

    def find(self, address: str) -> OracleProvider | None:
        """Get a provider record, or None if not registered."""
        return self.store.get(self._key(address))

    def get(self, address: str) -> OracleProvider:
        """Get a provider record.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        provider = self.find(address)
        if provider is None:
            raise OracleNotRegistered(f"Oracle {address} is not registered")
        return provider

    def save(self, provider: OracleProvider) -> None:
        """Write a provider record back to the store."""
        self.store.set(self._key(provider.address), provider)

    def register(self, address: str, stake: int, cfg: NetworkConfig, now: int) -> OracleProvider:
        """Register a new provider.

        :param address: Provider identity.
        :param stake: Stake to lock.
        :param cfg: Network configuration.
        :param now: Current timestamp.
        :returns: The new provider record.
        :raises InsufficientStake: If stake is below ``cfg.min_stake``.
        :raises MaxOraclesReached: If the roster is full.
        :raises OracleAlreadyRegistered: If the provider exists.
        """
        if stake > I128_MAX:
            raise InvalidInput("stake exceeds the 128-bit range")
        if stake < cfg.min_stake:
            raise InsufficientStake(f"stake {stake} below minimum {cfg.min_stake}")

        roster = BoundedRoster(self.addresses(), cfg.max_oracles)
        if roster.is_full():
            raise MaxOraclesReached(f"Roster is full ({cfg.max_oracles} oracles)")
        if address in roster:
            raise OracleAlreadyRegistered(f"Oracle {address} is already registered")

        provider = OracleProvider(
            address=address,
            stake=stake,
            reputation=cfg.rep_initial,
            is_active=True,
            registered_at=now,
            last_heartbeat=now,
        )
        roster.append(address)
        self.save(provider)
        self.store.set(ORACLE_LIST_KEY, roster.to_list())

        logger.info(f"Oracle {address} registered (stake={stake}, reputation={cfg.rep_initial})")
        return provider

    def deactivate(self, address: str) -> OracleProvider:
        """Deactivate a provider.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        provider = self.get(address)
        provider.is_active = False
        self.save(provider)
        logger.info(f"Oracle {address} deactivated")
        return provider

    def reactivate(self, address: str, cfg: NetworkConfig, now: int) -> OracleProvider:
        """Reactivate a provider and refresh its heartbeat.

        :raises OracleNotRegistered: If the provider is unknown.
        :raises ReputationTooLow: If reputation is below half of ``rep_initial``.
        """
        provider = self.get(address)
        if provider.reputation < cfg.rep_initial // 2:
            raise ReputationTooLow(
                f"Oracle {address} reputation {provider.reputation} "
                f"below {cfg.rep_initial // 2}"
            )
        provider.is_active = True
        provider.last_heartbeat = now
        self.save(provider)
        logger.info(f"Oracle {address} reactivated")
        return provider

    def add_stake(self, address: str, amount: int) -> OracleProvider:
        """Add stake to a provider (saturating at the 128-bit maximum).

        :raises InvalidInput: If amount is not positive.
        :raises OracleNotRegistered: If the provider is unknown.
        """
        if amount <= 0:
            raise InvalidInput("stake amount must be positive")
        provider = self.get(address)
        provider.stake = min(provider.stake + amount, I128_MAX)
        self.save(provider)
        return provider

    def heartbeat(self, address: str, now: int) -> OracleProvider:
        """Record a liveness proof.

        :raises OracleNotRegistered: If the provider is unknown.
        :raises OracleInactive: If the provider is inactive.
        """
        provider = self.get(address)
        if not provider.is_active:
            raise OracleInactive(f"Oracle {address} is inactive")
        provider.last_heartbeat = now
        self.save(provider)
        return provider

    def slash(self, address: str, stake_penalty: int, rep_penalty: int) -> OracleProvider:
        """Slash stake and reputation (both saturating).

        :raises InvalidInput: If ``rep_penalty`` is negative.
        :raises OracleNotRegistered: If the provider is unknown.
        """
        if rep_penalty < 0:
            raise InvalidInput("rep_penalty must not be negative")
        provider = self.get(address)
        if stake_penalty > 0:
            provider.stake = max(provider.stake - stake_penalty, I128_MIN)
        apply_penalty(provider, rep_penalty)
        self.save(provider)
        logger.warning(
            f"Oracle {address} slashed: stake -{max(stake_penalty, 0)}, "
            f"reputation -{rep_penalty} -> {provider.reputation}"
        )
        return provider

    def enforce_heartbeats(self, cfg: NetworkConfig, now: int) -> list[str]:
        """Deactivate active providers whose heartbeat has expired.

        :param cfg: Network configuration.
        :param now: Current timestamp.
        :returns: Addresses deactivated by this sweep.
        """
        deactivated: list[str] = []
        for address in self.addresses():
            provider = self.find(address)
            if provider is None or not provider.is_active:
                continue
            if now > provider.last_heartbeat + cfg.heartbeat_interval:
                provider.is_active = False
                provider.reputation = penalize(provider.reputation, cfg.rep_miss_penalty)
                self.save(provider)
                deactivated.append(address)
                logger.warning(
                    f"Oracle {address} missed heartbeat "
                    f"(last={provider.last_heartbeat}, now={now}), deactivated"
                )
        return deactivated

    def is_healthy(self, address: str, cfg: NetworkConfig, now: int) -> bool:
        """Check whether a provider is active, live and has reputation.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        provider = self.get(address)
        if not provider.is_active:
            return False
        return now <= provider.last_heartbeat + cfg.heartbeat_interval and provider.reputation > 0

    def stats(self, address: str) -> OracleStats:
        """Build the performance view of a provider.

        :raises OracleNotRegistered: If the provider is unknown.
        """
        provider = self.get(address)
        accuracy = 0
        if provider.total_submissions > 0:
            accuracy = provider.accepted_submissions * BPS_DENOMINATOR // provider.total_submissions
        return OracleStats(
            address=provider.address,
            reputation=provider.reputation,
            total_submissions=provider.total_submissions,
            accepted_submissions=provider.accepted_submissions,
            rejected_submissions=provider.rejected_submissions,
            missed_rounds=provider.missed_rounds,
            accuracy_bps=accuracy,
            is_active=provider.is_active,
        )

    def count_active(self) -> int:
        """Count active providers."""
        count = 0
        for address in self.addresses():
            provider = self.find(address)
            if provider is not None and provider.is_active:
                count += 1
        return count
