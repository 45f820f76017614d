"""Unit tests for ProviderRegistry."""

import pytest
from conftest import new_address

from oracle_network.src.errors import (
    InsufficientStake,
    InvalidInput,
    MaxOraclesReached,
    OracleAlreadyRegistered,
    OracleInactive,
    OracleNotRegistered,
    ReputationTooLow,
)
from oracle_network.src.KeyedStore import KeyedStore
from oracle_network.src.NetworkConfig import NetworkConfig
from oracle_network.src.ProviderRegistry import I128_MAX, BoundedRoster, ProviderRegistry

NOW = 1000


@pytest.fixture
def cfg() -> NetworkConfig:
    return NetworkConfig(admin=new_address(), max_oracles=3)


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(KeyedStore())


class TestRegistration:
    """Test provider registration."""

    def test_register_sets_initial_state(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """New providers start active with the initial reputation."""
        addr = new_address()
        provider = registry.register(addr, cfg.min_stake, cfg, NOW)

        assert provider.reputation == cfg.rep_initial
        assert provider.is_active
        assert provider.registered_at == NOW
        assert provider.last_heartbeat == NOW
        assert registry.addresses() == [addr]
        assert registry.get(addr) == provider

    def test_insufficient_stake(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Stake below the minimum is refused."""
        with pytest.raises(InsufficientStake):
            registry.register(new_address(), cfg.min_stake - 1, cfg, NOW)
        assert registry.addresses() == []

    def test_duplicate(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Registering twice is refused."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        with pytest.raises(OracleAlreadyRegistered):
            registry.register(addr, cfg.min_stake, cfg, NOW)

    def test_roster_capacity(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Registration fails once max_oracles providers exist."""
        for _ in range(cfg.max_oracles):
            registry.register(new_address(), cfg.min_stake, cfg, NOW)
        with pytest.raises(MaxOraclesReached):
            registry.register(new_address(), cfg.min_stake, cfg, NOW)
        assert len(registry.addresses()) == cfg.max_oracles

    def test_unknown_provider(self, registry: ProviderRegistry) -> None:
        """Looking up an unknown provider raises OracleNotRegistered."""
        assert registry.find(new_address()) is None
        with pytest.raises(OracleNotRegistered):
            registry.get(new_address())


class TestBoundedRoster:
    """Test BoundedRoster."""

    def test_append_until_full(self) -> None:
        """Appending beyond capacity raises MaxOraclesReached."""
        roster = BoundedRoster(["a"], capacity=2)
        roster.append("b")
        assert roster.is_full()
        assert "b" in roster
        with pytest.raises(MaxOraclesReached):
            roster.append("c")
        assert roster.to_list() == ["a", "b"]


class TestLifecycle:
    """Test activation, stake and liveness."""

    def test_deactivate_and_reactivate(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Reactivation restores activity and refreshes the heartbeat."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        registry.deactivate(addr)
        assert not registry.get(addr).is_active

        provider = registry.reactivate(addr, cfg, NOW + 50)
        assert provider.is_active
        assert provider.last_heartbeat == NOW + 50

    def test_reactivate_low_reputation(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Reputation below half of the initial score blocks reactivation."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        registry.slash(addr, 0, cfg.rep_initial // 2 + 1)
        registry.deactivate(addr)

        with pytest.raises(ReputationTooLow):
            registry.reactivate(addr, cfg, NOW)

    def test_add_stake(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Stake increases and saturates at the 128-bit maximum."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        assert registry.add_stake(addr, 5).stake == cfg.min_stake + 5
        assert registry.add_stake(addr, I128_MAX).stake == I128_MAX

        with pytest.raises(InvalidInput):
            registry.add_stake(addr, 0)

    def test_heartbeat_inactive(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Inactive providers cannot heartbeat."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        assert registry.heartbeat(addr, NOW + 10).last_heartbeat == NOW + 10

        registry.deactivate(addr)
        with pytest.raises(OracleInactive):
            registry.heartbeat(addr, NOW + 20)

    def test_slash_to_zero_deactivates(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Slashing reputation to zero deactivates the provider."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)
        provider = registry.slash(addr, 1000, cfg.rep_max)

        assert provider.reputation == 0
        assert not provider.is_active
        assert provider.stake == cfg.min_stake - 1000

    def test_health(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Healthy means active, within the heartbeat interval and reputation > 0."""
        addr = new_address()
        registry.register(addr, cfg.min_stake, cfg, NOW)

        assert registry.is_healthy(addr, cfg, NOW + cfg.heartbeat_interval)
        assert not registry.is_healthy(addr, cfg, NOW + cfg.heartbeat_interval + 1)

    def test_enforce_heartbeats(self, registry: ProviderRegistry, cfg: NetworkConfig) -> None:
        """Expired providers are deactivated and penalized; live ones are not."""
        stale, live = new_address(), new_address()
        registry.register(stale, cfg.min_stake, cfg, NOW)
        registry.register(live, cfg.min_stake, cfg, NOW)
        later = NOW + cfg.heartbeat_interval + 1
        registry.heartbeat(live, later)

        assert registry.enforce_heartbeats(cfg, later) == [stale]
        assert not registry.get(stale).is_active
        assert registry.get(stale).reputation == cfg.rep_initial - cfg.rep_miss_penalty
        assert registry.get(live).is_active
        assert registry.count_active() == 1
