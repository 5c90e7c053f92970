"""Metric family data models"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Iterable, Iterator, Mapping, Tuple, Union


class MetricType(Enum):
    """Prometheus metric family types"""
    COUNTER = "counter"
    GAUGE = "gauge"
    SUMMARY = "summary"


class Labels(Mapping[str, str]):
    """Ordered, immutable set of unique label pairs.

    Equality and hashing use the set of pairs, so two label sets built in a
    different order compare equal.
    """

    __slots__ = ("_pairs", "_index", "_hash")

    def __init__(self, pairs: Union[Mapping[str, str], Iterable[Tuple[str, str]], None] = None):
        if pairs is None:
            pairs = ()
        elif isinstance(pairs, Mapping):
            pairs = pairs.items()

        items = tuple((str(key), str(value)) for key, value in pairs)
        index = dict(items)
        if len(index) != len(items):
            raise ValueError(f"Duplicate label keys in {items!r}")

        self._pairs = items
        self._index = index
        self._hash = hash(frozenset(items))

    def __getitem__(self, key: str) -> str:
        return self._index[key]

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Labels):
            return NotImplemented
        return self._index == other._index

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"Labels({dict(self._pairs)!r})"

    @property
    def pairs(self) -> Tuple[Tuple[str, str], ...]:
        return self._pairs

    def merge(self, other: Mapping[str, str]) -> "Labels":
        """Return a new label set with the pairs of ``other`` appended.

        Existing keys keep their value.
        """
        extra = [(key, value) for key, value in other.items() if key not in self._index]
        if not extra:
            return self
        return Labels(self._pairs + tuple(extra))


@dataclass(frozen=True, order=True)
class Quantile:
    """A quantile rank and its exposition text"""
    value: float
    text: str = field(default="", compare=False)

    def __post_init__(self):
        if not 0.0 < self.value < 1.0:
            raise ValueError(f"Quantile rank must be in (0, 1), got {self.value}")
        if not self.text:
            object.__setattr__(self, "text", format(self.value, "g"))

    def __str__(self) -> str:
        return self.text


STANDARD_QUANTILES: Tuple[Quantile, ...] = tuple(
    Quantile(value) for value in (0.5, 0.75, 0.95, 0.98, 0.99, 0.999)
)


def nan_quantiles() -> Dict[Quantile, float]:
    """Quantile mapping for a source with no data"""
    return {quantile: math.nan for quantile in STANDARD_QUANTILES}


@dataclass(frozen=True)
class NumericMetric:
    """Single counter or gauge sample"""
    labels: Labels
    value: float


@dataclass(frozen=True)
class Summary:
    """Single summary sample; NaN marks an unknown sum or count"""
    labels: Labels
    sum: float
    count: float
    quantiles: Mapping[Quantile, float]


@dataclass(frozen=True)
class MetricFamily:
    """Named, typed collection of samples produced for one exposition pass"""
    name: str
    help: str
    metric_type: ClassVar[MetricType]

    def __post_init__(self):
        object.__setattr__(self, "metrics", tuple(self.metrics))


@dataclass(frozen=True)
class CounterMetricFamily(MetricFamily):
    metrics: Tuple[NumericMetric, ...] = ()
    metric_type: ClassVar[MetricType] = MetricType.COUNTER


@dataclass(frozen=True)
class GaugeMetricFamily(MetricFamily):
    metrics: Tuple[NumericMetric, ...] = ()
    metric_type: ClassVar[MetricType] = MetricType.GAUGE


@dataclass(frozen=True)
class SummaryMetricFamily(MetricFamily):
    metrics: Tuple[Summary, ...] = ()
    metric_type: ClassVar[MetricType] = MetricType.SUMMARY
