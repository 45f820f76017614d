"""Typed errors raised by the oracle network.

Every failure of a public operation is reported as a subclass of
:class:`OracleNetworkError`. Each subclass carries the numeric ``code`` used by
the on-chain contract so callers can map errors across boundaries.

.. code-block:: python

    >>> try:
    ...     raise StalePrice("XLMUSD resolved 4000s ago")
    ... except OracleNetworkError as exc:
    ...     exc.code, exc.name
    (42, 'StalePrice')
"""

from __future__ import annotations

from typing import ClassVar


class OracleNetworkError(Exception):
    """Base exception for oracle network errors.

    :cvar code: Numeric error code.
    """

    code: ClassVar[int] = 0

    @property
    def name(self) -> str:
        """Error name, e.g. ``"RoundNotOpen"``."""
        return type(self).__name__

    def __str__(self) -> str:
        detail = super().__str__()
        if detail:
            return f"{self.name} (code {self.code}): {detail}"
        return f"{self.name} (code {self.code})"


# General


class Unauthorized(OracleNetworkError):
    code = 1


class Paused(OracleNetworkError):
    code = 2


class AlreadyInitialized(OracleNetworkError):
    code = 3


class NotInitialized(OracleNetworkError):
    code = 4


class InvalidInput(OracleNetworkError):
    code = 5


# Oracle provider


class OracleAlreadyRegistered(OracleNetworkError):
    code = 10


class OracleNotRegistered(OracleNetworkError):
    code = 11


class OracleInactive(OracleNetworkError):
    code = 12


class InsufficientStake(OracleNetworkError):
    code = 13


class MaxOraclesReached(OracleNetworkError):
    code = 15


# Price feeds


class FeedAlreadyExists(OracleNetworkError):
    code = 20


class FeedNotFound(OracleNetworkError):
    code = 21


class FeedInactive(OracleNetworkError):
    code = 22


class MaxFeedsReached(OracleNetworkError):
    code = 23


# Submissions


class DuplicateSubmission(OracleNetworkError):
    code = 30


class SubmissionWindowClosed(OracleNetworkError):
    code = 31


class InvalidPrice(OracleNetworkError):
    code = 32


class RoundNotOpen(OracleNetworkError):
    code = 33


# Aggregation


class InsufficientSubmissions(OracleNetworkError):
    code = 40


class ConsensusNotReached(OracleNetworkError):
    code = 41


class StalePrice(OracleNetworkError):
    code = 42


class NoResolvedPrice(OracleNetworkError):
    code = 44


# Reputation


class ReputationTooLow(OracleNetworkError):
    code = 50


# Maps PriceAggregator error identifiers to the exception raised by the network.
AGGREGATION_ERRORS: dict[str, type[OracleNetworkError]] = {
    "insufficient_submissions": InsufficientSubmissions,
    "consensus_not_reached": ConsensusNotReached,
}
