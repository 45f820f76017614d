"""
Oracle Network - Decentralized Price Aggregation Engine

This module provides the components of the oracle network:
- ProviderRegistry: Staked oracle providers with reputation and liveness
- FeedRegistry: Catalog of price feeds
- RoundManager: Submission round lifecycle per feed
- SubmissionLedger: Per-round price submissions
- PriceAggregator: Reputation-weighted median with outlier rejection
- ReputationEngine: Rewards and penalties after each round
- PriceStore: Latest resolved price and bounded history
- OracleNetwork: Facade exposing the public operations
"""

from .errors import OracleNetworkError
from .FeedPair import FeedPair
from .FeedRegistry import FeedRegistry, PriceFeed
from .KeyedStore import KeyedStore
from .NetworkConfig import NetworkConfig
from .OracleNetwork import NetworkEvent, NetworkStats, OracleNetwork
from .PriceAggregator import AggregationResult, PriceAggregator
from .PriceStore import PriceHistoryEntry, PriceStore, ResolvedPrice
from .ProviderRegistry import OracleProvider, OracleStats, ProviderRegistry
from .ReputationEngine import ReputationEngine
from .RoundManager import PriceRound, RoundManager
from .SubmissionLedger import PriceSubmission, SubmissionLedger

__all__ = [
    "AggregationResult",
    "FeedPair",
    "FeedRegistry",
    "KeyedStore",
    "NetworkConfig",
    "NetworkEvent",
    "NetworkStats",
    "OracleNetwork",
    "OracleNetworkError",
    "OracleProvider",
    "OracleStats",
    "PriceAggregator",
    "PriceFeed",
    "PriceHistoryEntry",
    "PriceRound",
    "PriceStore",
    "PriceSubmission",
    "ProviderRegistry",
    "ReputationEngine",
    "ResolvedPrice",
    "RoundManager",
    "SubmissionLedger",
]
