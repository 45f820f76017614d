"""NetworkConfig: Global parameters of the oracle network.

Defaults match the deployed contract: 3-21 oracles, a 5 minute submission
window, 1 hour staleness, a 15% outlier threshold and a 0-1000 reputation
scale starting at 500.

.. code-block:: python

    >>> cfg = NetworkConfig(admin="0x...")
    >>> cfg.outlier_threshold_bps
    1500
    >>> cfg.effective_min_oracles(0), cfg.effective_min_oracles(5)
    (3, 5)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from .errors import InvalidInput, NotInitialized
from .KeyedStore import CONFIG_KEY, KeyedStore

DEFAULT_MIN_ORACLES = 3
DEFAULT_MAX_ORACLES = 21
DEFAULT_SUBMISSION_WINDOW_SECS = 300  # 5 min
DEFAULT_STALENESS_SECS = 3600  # 1 hour
DEFAULT_OUTLIER_THRESHOLD_BPS = 1500  # 15 %
DEFAULT_MIN_STAKE = 10_000_000  # 1 XLM in stroops (7 decimals)
DEFAULT_HEARTBEAT_INTERVAL = 600  # 10 min
DEFAULT_REP_INITIAL = 500  # out of 1000
DEFAULT_REP_MAX = 1000
DEFAULT_REP_REWARD = 5
DEFAULT_REP_PENALTY = 20
DEFAULT_REP_MISS_PENALTY = 10

MAX_HISTORY_LEN = 50
MAX_FEEDS = 100
BPS_DENOMINATOR = 10_000

ENV_PREFIX = "ORACLE_"


@dataclass
class NetworkConfig:
    """Global network configuration.

    :ivar admin: Admin identity.
    :ivar min_oracles: Minimum submissions needed to resolve a round.
    :ivar max_oracles: Maximum number of registered providers.
    :ivar submission_window_secs: Seconds a round accepts submissions.
    :ivar staleness_secs: Maximum age of a resolved price.
    :ivar outlier_threshold_bps: Max deviation from the reference median (bps).
    :ivar min_stake: Minimum stake to register.
    :ivar heartbeat_interval: Seconds within which a provider must ping.
    :ivar rep_initial: Starting reputation for new providers.
    :ivar rep_max: Reputation ceiling.
    :ivar rep_reward: Reputation gained per accepted submission.
    :ivar rep_penalty: Reputation lost per rejected submission.
    :ivar rep_miss_penalty: Reputation lost per missed round or heartbeat.
    """

    admin: str
    min_oracles: int = DEFAULT_MIN_ORACLES
    max_oracles: int = DEFAULT_MAX_ORACLES
    submission_window_secs: int = DEFAULT_SUBMISSION_WINDOW_SECS
    staleness_secs: int = DEFAULT_STALENESS_SECS
    outlier_threshold_bps: int = DEFAULT_OUTLIER_THRESHOLD_BPS
    min_stake: int = DEFAULT_MIN_STAKE
    heartbeat_interval: int = DEFAULT_HEARTBEAT_INTERVAL
    rep_initial: int = DEFAULT_REP_INITIAL
    rep_max: int = DEFAULT_REP_MAX
    rep_reward: int = DEFAULT_REP_REWARD
    rep_penalty: int = DEFAULT_REP_PENALTY
    rep_miss_penalty: int = DEFAULT_REP_MISS_PENALTY

    def validate(self) -> None:
        """Check network and reputation invariants.

        :raises InvalidInput: If any parameter is out of range.
        """
        validate_network_params(
            self.min_oracles,
            self.max_oracles,
            self.submission_window_secs,
            self.staleness_secs,
            self.outlier_threshold_bps,
            self.min_stake,
            self.heartbeat_interval,
        )
        validate_reputation_params(
            self.rep_initial,
            self.rep_max,
            self.rep_reward,
            self.rep_penalty,
            self.rep_miss_penalty,
        )

    def effective_min_oracles(self, override: int) -> int:
        """Resolve a per-feed min-oracles override (0 means network default)."""
        return override if override > 0 else self.min_oracles

    def effective_staleness(self, override: int) -> int:
        """Resolve a per-feed staleness override (0 means network default)."""
        return override if override > 0 else self.staleness_secs

    @classmethod
    def from_env(cls, admin: str, environ: dict[str, str] | None = None) -> NetworkConfig:
        """Build a config from ``ORACLE_*`` environment variables.

        Unset variables keep their defaults, e.g. ``ORACLE_MIN_ORACLES=5``.

        :param admin: Admin identity.
        :param environ: Mapping to read from (default: ``os.environ``).
        :returns: New NetworkConfig.
        :raises InvalidInput: If a variable is not an integer.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, int] = {}
        for field in fields(cls):
            if field.name == "admin":
                continue
            raw = env.get(ENV_PREFIX + field.name.upper())
            if not raw:
                continue
            try:
                overrides[field.name] = int(raw)
            except ValueError as e:
                raise InvalidInput(
                    f"{ENV_PREFIX}{field.name.upper()} must be an integer, got {raw!r}"
                ) from e
        return cls(admin=admin, **overrides)


def validate_network_params(
    min_oracles: int,
    max_oracles: int,
    submission_window_secs: int,
    staleness_secs: int,
    outlier_threshold_bps: int,
    min_stake: int,
    heartbeat_interval: int,
) -> None:
    """Validate the parameters accepted by ``update_config``.

    :raises InvalidInput: If any parameter is out of range.
    """
    if min_oracles < 1:
        raise InvalidInput("min_oracles must be at least 1")
    if max_oracles < min_oracles:
        raise InvalidInput("max_oracles must be >= min_oracles")
    if submission_window_secs <= 0 or staleness_secs <= 0 or heartbeat_interval <= 0:
        raise InvalidInput("durations must be positive")
    if not 0 < outlier_threshold_bps <= BPS_DENOMINATOR:
        raise InvalidInput(f"outlier_threshold_bps must be in (0, {BPS_DENOMINATOR}]")
    if min_stake < 0:
        raise InvalidInput("min_stake must not be negative")


def validate_reputation_params(
    rep_initial: int,
    rep_max: int,
    rep_reward: int,
    rep_penalty: int,
    rep_miss_penalty: int,
) -> None:
    """Validate the parameters accepted by ``update_reputation_config``.

    :raises InvalidInput: If any parameter is out of range.
    """
    if rep_max <= 0:
        raise InvalidInput("rep_max must be positive")
    if min(rep_initial, rep_reward, rep_penalty, rep_miss_penalty) < 0:
        raise InvalidInput("reputation parameters must not be negative")
    if rep_initial > rep_max or rep_reward > rep_max or rep_penalty > rep_max:
        raise InvalidInput("rep_initial, rep_reward and rep_penalty must not exceed rep_max")


def load_config(store: KeyedStore) -> NetworkConfig:
    """Read the network config from ``store``.

    :raises NotInitialized: If the network has not been initialized.
    """
    cfg = store.get(CONFIG_KEY)
    if cfg is None:
        raise NotInitialized("Oracle network is not initialized")
    return cfg
