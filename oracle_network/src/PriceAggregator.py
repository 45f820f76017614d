"""PriceAggregator: Reputation-weighted median with outlier rejection.

Algorithm:
    1. Require at least min_submissions submissions
    2. Calculate an unweighted reference median across all submitted prices
    3. Reject outliers (prices deviating > outlier_threshold_bps from the reference)
    4. Require at least min_submissions survivors
    5. Calculate the reputation-weighted median of the survivors
    6. Compute spread (bps of the final price) and weighted confidence

The reference median is unweighted so that a single high-reputation provider
cannot define the reference used to exclude everybody else.

All arithmetic is integer: prices are fixed point values scaled by the feed's
decimals.

.. code-block:: python

    >>> aggregator = PriceAggregator(min_submissions=3, outlier_threshold_bps=1500)
    >>> subs = [
    ...     PriceSubmission("a", 100_000_000, 0, 9000),
    ...     PriceSubmission("b", 100_100_000, 0, 9000),
    ...     PriceSubmission("c", 100_200_000, 0, 9000),
    ...     PriceSubmission("rogue", 200_000_000, 0, 5000),
    ... ]
    >>> result = aggregator.aggregate(subs, weights={"a": 500, "b": 500, "c": 500})
    >>> result.price
    100100000
    >>> result.metadata["rejected"]
    {'rogue': 200000000}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypedDict

if TYPE_CHECKING:
    from .SubmissionLedger import PriceSubmission

BPS_DENOMINATOR = 10_000
U32_MAX = 2**32 - 1
# Weight used when a submitter has no provider record.
FALLBACK_WEIGHT = 1


class AggregationError(TypedDict, total=False):
    """Error information when aggregation fails.

    :ivar error: Error type identifier.
    :ivar available: Number of submissions available.
    :ivar included: Number of submissions left after outlier rejection.
    :ivar required: Minimum number of submissions required.
    :ivar rejected: Dict of providers rejected as outliers and their prices.
    :ivar reference_median: Median before outlier filtering.
    """

    error: str
    available: int
    included: int
    required: int
    rejected: dict[str, int]
    reference_median: int


class AggregationMetadata(TypedDict, total=False):
    """Metadata about a successful aggregation.

    :ivar included: Providers whose prices were used, in submission order.
    :ivar rejected: Dict of providers rejected as outliers and their prices.
    :ivar num_included: Number of included submissions.
    :ivar num_rejected: Number of rejected submissions.
    :ivar reference_median: Unweighted median before outlier filtering.
    :ivar spread_bps: (max - min included price) in bps of the final price.
    :ivar confidence: Reputation-weighted confidence (bps).
    """

    included: list[str]
    rejected: dict[str, int]
    num_included: int
    num_rejected: int
    reference_median: int
    spread_bps: int
    confidence: int


@dataclass
class AggregationResult:
    """Result of price aggregation.

    :ivar price: Aggregated price, or None if aggregation failed.
    :ivar metadata: Additional information about the aggregation.
    """

    price: int | None
    metadata: AggregationMetadata | AggregationError

    @property
    def success(self) -> bool:
        """Check if aggregation was successful."""
        return self.price is not None

    @property
    def error(self) -> str | None:
        """Get error type if aggregation failed."""
        if self.price is None:
            return self.metadata.get("error")
        return None


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def simple_median(values: list[int]) -> int:
    """Unweighted median of integer values.

    Odd counts return the middle element; even counts the average of the two
    middle elements, truncated toward zero. An empty list yields 0.
    """
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[mid]
    return _div_trunc(ordered[mid - 1] + ordered[mid], 2)


def weighted_median(prices_and_weights: list[tuple[int, int]]) -> int:
    """Weighted median of ``(price, weight)`` pairs.

    Returns the first price, in ascending order, at which the cumulative
    weight reaches half of the total weight (rounded up).

    .. code-block:: python

        >>> weighted_median([(100, 10), (200, 10), (300, 10)])
        200
        >>> weighted_median([(100, 100), (200, 10), (300, 10)])
        100
    """
    if not prices_and_weights:
        return 0
    if len(prices_and_weights) == 1:
        return prices_and_weights[0][0]

    ordered = sorted(prices_and_weights, key=lambda pw: pw[0])
    total_weight = sum(weight for _, weight in ordered)
    half = (total_weight + 1) // 2

    cumulative = 0
    for price, weight in ordered:
        cumulative += weight
        if cumulative >= half:
            return price
    return ordered[-1][0]


def is_outlier(price: int, median: int, threshold_bps: int) -> bool:
    """Check whether ``price`` deviates from ``median`` by more than ``threshold_bps``.

    .. code-block:: python

        >>> is_outlier(85, 100, 1500), is_outlier(120, 100, 1500)
        (False, True)
    """
    if median == 0:
        return price != 0
    diff = abs(price - median)
    return diff * BPS_DENOMINATOR // abs(median) > threshold_bps


def spread_bps(min_price: int, max_price: int, reference: int) -> int:
    """Range of included prices in bps of ``reference``, capped at 2**32 - 1."""
    if reference == 0:
        return 0
    bps = (max_price - min_price) * BPS_DENOMINATOR // abs(reference)
    return min(bps, U32_MAX)


def weighted_confidence(confidences_and_weights: list[tuple[int, int]]) -> int:
    """Weighted average of ``(confidence, weight)`` pairs, 0 if total weight is 0."""
    total_weight = sum(weight for _, weight in confidences_and_weights)
    if total_weight == 0:
        return 0
    weighted_sum = sum(conf * weight for conf, weight in confidences_and_weights)
    return weighted_sum // total_weight


class PriceAggregator:
    """Aggregates one round of submissions into a single price.

    :ivar min_submissions: Minimum submissions required, before and after
        outlier rejection.
    :ivar outlier_threshold_bps: Max allowed deviation from the reference median.

    .. code-block:: python

        >>> agg = PriceAggregator(min_submissions=1, outlier_threshold_bps=1500)
        >>> agg.aggregate([PriceSubmission("a", 42, 0, 10_000)], {"a": 500}).price
        42
    """

    def __init__(
        self,
        min_submissions: int = 3,
        outlier_threshold_bps: int = 1500,
    ) -> None:
        """Initialize the aggregator.

        :param min_submissions: Minimum submissions for a valid aggregation.
        :param outlier_threshold_bps: Maximum deviation from the reference
            median, in basis points, before a submission is rejected.
        :raises ValueError: If parameters are invalid.
        """
        if min_submissions < 1:
            raise ValueError("min_submissions must be at least 1")
        if not 0 <= outlier_threshold_bps <= BPS_DENOMINATOR:
            raise ValueError(f"outlier_threshold_bps must be in [0, {BPS_DENOMINATOR}]")

        self.min_submissions = min_submissions
        self.outlier_threshold_bps = outlier_threshold_bps

    def aggregate(
        self,
        submissions: list[PriceSubmission],
        weights: dict[str, int],
    ) -> AggregationResult:
        """Aggregate submissions into a reputation-weighted median price.

        :param submissions: Submissions of one round.
        :param weights: Provider address to weight (reputation). Providers
            missing from the mapping weigh FALLBACK_WEIGHT.
        :returns: AggregationResult with price and metadata, or None price
            with error info.
        """
        # Step 1: Enough raw submissions
        if len(submissions) < self.min_submissions:
            return AggregationResult(
                price=None,
                metadata={
                    "error": "insufficient_submissions",
                    "available": len(submissions),
                    "required": self.min_submissions,
                },
            )

        # Step 2: Unweighted reference median
        reference_median = simple_median([sub.price for sub in submissions])

        # Step 3: Partition into included and rejected
        included: list[PriceSubmission] = []
        rejected: dict[str, int] = {}
        for sub in submissions:
            if is_outlier(sub.price, reference_median, self.outlier_threshold_bps):
                rejected[sub.oracle] = sub.price
            else:
                included.append(sub)

        # Step 4: Enough survivors for consensus
        if len(included) < self.min_submissions:
            return AggregationResult(
                price=None,
                metadata={
                    "error": "consensus_not_reached",
                    "available": len(submissions),
                    "included": len(included),
                    "required": self.min_submissions,
                    "rejected": rejected,
                    "reference_median": reference_median,
                },
            )

        # Step 5: Weighted median of the survivors
        weighted = [
            (sub.price, sub.confidence, weights.get(sub.oracle, FALLBACK_WEIGHT))
            for sub in included
        ]
        final_price = weighted_median([(price, w) for price, _, w in weighted])

        # Step 6: Spread and confidence
        included_prices = [sub.price for sub in included]
        spread = spread_bps(min(included_prices), max(included_prices), final_price)
        confidence = weighted_confidence([(conf, w) for _, conf, w in weighted])

        return AggregationResult(
            price=final_price,
            metadata={
                "included": [sub.oracle for sub in included],
                "rejected": rejected,
                "num_included": len(included),
                "num_rejected": len(rejected),
                "reference_median": reference_median,
                "spread_bps": spread,
                "confidence": confidence,
            },
        )
