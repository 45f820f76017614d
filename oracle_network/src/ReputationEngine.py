"""ReputationEngine: Reward and penalty accounting for oracle providers.

After a round is aggregated, every registered provider falls in one of three
buckets:
    - included: submission used in the final price -> +rep_reward (capped)
    - rejected: submission excluded as an outlier -> -rep_penalty
    - missed: active provider that did not submit -> -rep_miss_penalty

All reputation math saturates: scores never go below 0 or above rep_max.
A provider whose reputation reaches 0 is deactivated.

.. code-block:: python

    >>> reward(995, 5, 1000), reward(998, 5, 1000)
    (1000, 1000)
    >>> penalize(15, 20)
    0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .NetworkConfig import NetworkConfig
    from .ProviderRegistry import OracleProvider, ProviderRegistry

logger = logging.getLogger(__name__)


def reward(reputation: int, amount: int, rep_max: int) -> int:
    """Add ``amount`` to ``reputation``, capped at ``rep_max``."""
    return min(reputation + amount, rep_max)


def penalize(reputation: int, amount: int) -> int:
    """Subtract ``amount`` from ``reputation``, floored at 0."""
    return max(reputation - amount, 0)


def apply_penalty(provider: OracleProvider, amount: int) -> None:
    """Penalize a provider in place, deactivating it at zero reputation."""
    provider.reputation = penalize(provider.reputation, amount)
    if provider.reputation == 0:
        provider.is_active = False


@dataclass
class ReputationUpdate:
    """Outcome of applying a round to the provider roster.

    :ivar rewarded: Providers whose submissions were included.
    :ivar penalized: Providers whose submissions were rejected.
    :ivar missed: Active providers that did not submit.
    :ivar deactivated: Providers deactivated because reputation hit 0.
    """

    rewarded: list[str] = field(default_factory=list)
    penalized: list[str] = field(default_factory=list)
    missed: list[str] = field(default_factory=list)
    deactivated: list[str] = field(default_factory=list)


class ReputationEngine:
    """Applies aggregation and liveness outcomes to provider records.

    :ivar registry: Provider registry whose records are updated.
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self.registry = registry

    def apply_round(
        self,
        cfg: NetworkConfig,
        included: list[str],
        rejected: list[str],
    ) -> ReputationUpdate:
        """Reward, penalize and record misses for one resolved round.

        :param cfg: Network configuration with reputation parameters.
        :param included: Addresses whose submissions were included.
        :param rejected: Addresses whose submissions were rejected.
        :returns: Summary of the applied changes.
        """
        update = ReputationUpdate()

        for address in included:
            provider = self.registry.find(address)
            if provider is None:
                continue
            provider.accepted_submissions += 1
            provider.reputation = reward(provider.reputation, cfg.rep_reward, cfg.rep_max)
            self.registry.save(provider)
            update.rewarded.append(address)

        for address in rejected:
            provider = self.registry.find(address)
            if provider is None:
                continue
            provider.rejected_submissions += 1
            was_active = provider.is_active
            apply_penalty(provider, cfg.rep_penalty)
            self.registry.save(provider)
            update.penalized.append(address)
            if was_active and not provider.is_active:
                update.deactivated.append(address)

        submitted = set(included) | set(rejected)
        for address in self.registry.addresses():
            if address in submitted:
                continue
            provider = self.registry.find(address)
            if provider is None or not provider.is_active:
                continue
            provider.missed_rounds += 1
            apply_penalty(provider, cfg.rep_miss_penalty)
            self.registry.save(provider)
            update.missed.append(address)
            if not provider.is_active:
                update.deactivated.append(address)

        for address in update.deactivated:
            logger.warning(f"Oracle {address} deactivated: reputation reached 0")

        logger.debug(
            f"Reputation applied: rewarded={len(update.rewarded)}, "
            f"penalized={len(update.penalized)}, missed={len(update.missed)}"
        )
        return update
