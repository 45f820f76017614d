"""Unit tests for ReputationEngine."""

import pytest
from conftest import new_address

from oracle_network.src.KeyedStore import KeyedStore
from oracle_network.src.NetworkConfig import NetworkConfig
from oracle_network.src.ProviderRegistry import ProviderRegistry
from oracle_network.src.ReputationEngine import ReputationEngine, penalize, reward

NOW = 1000


@pytest.fixture
def cfg() -> NetworkConfig:
    return NetworkConfig(admin=new_address())


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(KeyedStore())


class TestReputationEngine:
    """Test reputation accounting."""

    def test_saturating_math(self) -> None:
        """Scores stay within [0, rep_max]."""
        assert reward(998, 5, 1000) == 1000
        assert penalize(15, 20) == 0

    def test_apply_round(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Included, rejected and missing providers are each accounted."""
        good, bad, absent = new_address(), new_address(), new_address()
        for addr in (good, bad, absent):
            registry.register(addr, cfg.min_stake, cfg, NOW)

        update = ReputationEngine(registry).apply_round(cfg, included=[good], rejected=[bad])

        assert update.rewarded == [good]
        assert update.penalized == [bad]
        assert update.missed == [absent]
        assert registry.get(good).reputation == cfg.rep_initial + cfg.rep_reward
        assert registry.get(good).accepted_submissions == 1
        assert registry.get(bad).reputation == cfg.rep_initial - cfg.rep_penalty
        assert registry.get(bad).rejected_submissions == 1
        assert registry.get(absent).reputation == cfg.rep_initial - cfg.rep_miss_penalty
        assert registry.get(absent).missed_rounds == 1

    def test_inactive_not_counted_as_missed(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Inactive providers are not penalized for missing a round."""
        idle = new_address()
        registry.register(idle, cfg.min_stake, cfg, NOW)
        registry.deactivate(idle)

        update = ReputationEngine(registry).apply_round(cfg, included=[], rejected=[])

        assert update.missed == []
        assert registry.get(idle).missed_rounds == 0
        assert registry.get(idle).reputation == cfg.rep_initial

    def test_zero_reputation_deactivates(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """A rejected provider reaching zero reputation is deactivated."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        registry.slash(addr, 0, cfg.rep_initial - 1)

        update = ReputationEngine(registry).apply_round(cfg, included=[], rejected=[addr])

        assert update.deactivated == [addr]
        assert registry.get(addr).reputation == 0
        assert not registry.get(addr).is_active
