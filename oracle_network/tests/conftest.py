"""Shared fixtures for oracle network tests."""

import pytest
from eth_account import Account

from oracle_network.src.NetworkConfig import DEFAULT_MIN_STAKE
from oracle_network.src.OracleNetwork import OracleNetwork

START_TIME = 1_700_000_000
FEED_ID = "XLMUSD"


class ManualClock:
    """Clock advanced explicitly by tests."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def new_address() -> str:
    """Generate a fresh checksummed address."""
    return Account.create().address


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def admin() -> str:
    return new_address()


@pytest.fixture
def providers() -> list[str]:
    return [new_address() for _ in range(4)]


@pytest.fixture
def network(clock: ManualClock, admin: str) -> OracleNetwork:
    """An initialized network with default configuration."""
    network = OracleNetwork(clock=clock)
    network.initialize(admin)
    return network


@pytest.fixture
def live_network(network: OracleNetwork, admin: str, providers: list[str]) -> OracleNetwork:
    """A network with one 8-decimal feed and all providers registered."""
    network.create_feed(admin, FEED_ID, "XLM", "USD", 8)
    for provider in providers:
        network.register_oracle(provider, DEFAULT_MIN_STAKE)
    return network
