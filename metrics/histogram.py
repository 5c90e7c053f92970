"""Quantile estimation over cumulative bucketed histograms.

Histogram gauges report cumulative bucket counts against a fixed series of
bucket upper bounds. A quantile is the upper bound of the first bucket whose
cumulative count reaches ``ceil(rank * total)``, which is how the source
process estimates its own percentiles. No interpolation is done between
bucket bounds.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Quantile, STANDARD_QUANTILES


def estimated_bucket_offsets(size: int) -> List[int]:
    """Return ``size`` exponentially growing bucket upper bounds (1, 2, 3, ... 8, 10, 12, 14, 17, ...)"""
    offsets: List[int] = []
    last = 1
    for i in range(size):
        if i > 0:
            # round half up, never repeat a bound
            following = math.floor(last * 1.2 + 0.5)
            last = following if following != last else following + 1
        offsets.append(last)
    return offsets


@dataclass(frozen=True)
class HistogramBuckets:
    """Cumulative bucket counts paired with their upper bounds"""
    bucket_offsets: Sequence[float]
    bucket_counts: Sequence[int]


class EstimatedHistogram:
    """Read-only view over one set of cumulative bucket counts"""

    def __init__(self, bucket_counts: Sequence[int], bucket_offsets: Optional[Sequence[float]] = None):
        self.bucket_counts = list(bucket_counts)
        if bucket_offsets is None:
            bucket_offsets = estimated_bucket_offsets(len(self.bucket_counts))
        self.bucket_offsets = list(bucket_offsets)

        if len(self.bucket_offsets) != len(self.bucket_counts):
            raise ValueError(
                f"Bucket offsets ({len(self.bucket_offsets)}) and counts "
                f"({len(self.bucket_counts)}) must have the same length"
            )

    @classmethod
    def from_value(cls, value) -> "EstimatedHistogram":
        """Build from a gauge value: either ``HistogramBuckets``-like or a plain count sequence"""
        if hasattr(value, "bucket_counts") and hasattr(value, "bucket_offsets"):
            return cls(value.bucket_counts, value.bucket_offsets)
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise TypeError(f"Expected bucket counts, got {type(value).__name__}")
        return cls(list(value))

    @property
    def is_empty(self) -> bool:
        """True when there are no buckets at all"""
        return not self.bucket_counts

    def count(self) -> float:
        """Total number of samples, NaN when there are no buckets"""
        if self.is_empty:
            return math.nan
        return float(self.bucket_counts[-1])

    def percentile(self, rank: float) -> float:
        total = self.count()
        if math.isnan(total) or total <= 0:
            return math.nan

        target = math.ceil(rank * total)
        for offset, cumulative in zip(self.bucket_offsets, self.bucket_counts):
            if cumulative >= target:
                return float(offset)

        # counts were not cumulative
        return math.nan

    def quantiles(self, ranks: Iterable[Quantile] = STANDARD_QUANTILES) -> Dict[Quantile, float]:
        return {quantile: self.percentile(quantile.value) for quantile in ranks}


def quantiles_from_buckets(bucket_counts: Sequence[int],
                           bucket_offsets: Optional[Sequence[float]] = None,
                           ranks: Iterable[Quantile] = STANDARD_QUANTILES) -> Dict[Quantile, float]:
    """Estimate the standard quantiles for cumulative bucket counts"""
    return EstimatedHistogram(bucket_counts, bucket_offsets).quantiles(ranks)
