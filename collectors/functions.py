"""Collector functions for each pairing of instrument kind and metric family type"""
import math
from numbers import Real
from typing import Dict, List, Optional

from metrics.histogram import EstimatedHistogram
from metrics.models import (
    CounterMetricFamily,
    GaugeMetricFamily,
    MetricFamily,
    NumericMetric,
    Summary,
    SummaryMetricFamily,
    nan_quantiles,
)
from remote.interfaces import InstrumentKind
from logging_config import get_logger
from .base import CollectorFunction, LabeledObjectGroup, ScaleFunction, identity, micros_to_seconds


logger = get_logger(__name__)


def _as_number(value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"Expected a numeric value, got {type(value).__name__}")
    return float(value)


class _CountCollector(CollectorFunction):
    """Reads ``get_count()`` from each object"""

    def numeric_metrics(self, group: LabeledObjectGroup) -> List[NumericMetric]:
        return [
            NumericMetric(obj.labels, self.scale(_as_number(obj.handle.get_count())))
            for obj in group
        ]


class _NumericGaugeCollector(CollectorFunction):
    """Reads a plain number from ``get_value()`` on each object"""

    def numeric_metrics(self, group: LabeledObjectGroup) -> List[NumericMetric]:
        return [
            NumericMetric(obj.labels, self.scale(_as_number(obj.handle.get_value())))
            for obj in group
        ]


class CounterAsCounter(_CountCollector):
    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        return [CounterMetricFamily(group.name, group.help, self.numeric_metrics(group))]


class CounterAsGauge(_CountCollector):
    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        return [GaugeMetricFamily(group.name, group.help, self.numeric_metrics(group))]


class MeterAsCounter(_CountCollector):
    """Meters are exported by their total event count"""

    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        return [CounterMetricFamily(group.name, group.help, self.numeric_metrics(group))]


class NumericGaugeAsGauge(_NumericGaugeCollector):
    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        return [GaugeMetricFamily(group.name, group.help, self.numeric_metrics(group))]


class NumericGaugeAsCounter(_NumericGaugeCollector):
    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        return [CounterMetricFamily(group.name, group.help, self.numeric_metrics(group))]


class HistogramGaugeAsSummary(CollectorFunction):
    """Gauges whose value is a cumulative bucketed histogram.

    The source never tracks a sum, so it is always NaN. A histogram with no
    buckets, or one that cannot be read as buckets, still produces a sample
    with count and every quantile NaN.
    """

    def summarize(self, labels, value) -> Summary:
        try:
            histogram = EstimatedHistogram.from_value(value)
            if histogram.is_empty:
                return Summary(labels, math.nan, math.nan, nan_quantiles())
            count = histogram.count()
            estimates = histogram.quantiles()
        except (TypeError, ValueError) as e:
            logger.warning(
                "Malformed histogram value",
                labels=dict(labels),
                error=str(e),
                event_type="malformed_histogram"
            )
            return Summary(labels, math.nan, math.nan, nan_quantiles())

        quantiles = {quantile: self.scale(estimate) for quantile, estimate in estimates.items()}
        return Summary(labels, math.nan, count, quantiles)

    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        summaries = [self.summarize(obj.labels, obj.handle.get_value()) for obj in group]
        return [SummaryMetricFamily(group.name, group.help, summaries)]


class SamplingAndCountingAsSummary(CollectorFunction):
    """Objects exposing a sample count and their own quantile estimates"""

    def collect(self, group: LabeledObjectGroup) -> List[MetricFamily]:
        summaries = []
        for obj in group:
            quantiles: Dict = {
                quantile: self.scale(_as_number(estimate))
                for quantile, estimate in obj.handle.get_quantiles().items()
            }
            summaries.append(Summary(obj.labels, math.nan, _as_number(obj.handle.get_count()), quantiles))

        return [SummaryMetricFamily(group.name, group.help, summaries)]


def counter_as_counter(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect a counter as a Prometheus counter"""
    return CounterAsCounter(scale)


def counter_as_gauge(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect a counter as a Prometheus gauge"""
    return CounterAsGauge(scale)


def meter_as_counter(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect a meter as a Prometheus counter"""
    return MeterAsCounter(scale)


def numeric_gauge_as_gauge(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect a gauge holding a number as a Prometheus gauge"""
    return NumericGaugeAsGauge(scale)


def numeric_gauge_as_counter(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect a gauge holding a number as a Prometheus counter"""
    return NumericGaugeAsCounter(scale)


def histogram_gauge_as_summary(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect a gauge holding cumulative histogram buckets as a Prometheus summary"""
    return HistogramGaugeAsSummary(scale)


def sampling_and_counting_as_summary(scale: ScaleFunction = identity) -> CollectorFunction:
    """Collect an object with a count and quantile estimates as a Prometheus summary"""
    return SamplingAndCountingAsSummary(scale)


DEFAULT_COLLECTOR_FUNCTIONS: Dict[InstrumentKind, CollectorFunction] = {
    InstrumentKind.COUNTER: counter_as_counter(),
    InstrumentKind.GAUGE: numeric_gauge_as_gauge(),
    InstrumentKind.METER: meter_as_counter(),
    InstrumentKind.HISTOGRAM: sampling_and_counting_as_summary(),
    # timer durations are reported in microseconds
    InstrumentKind.TIMER: sampling_and_counting_as_summary(micros_to_seconds),
}


def default_collector_function(kind: InstrumentKind) -> Optional[CollectorFunction]:
    """Default collector function for an instrument kind, None for management interfaces"""
    return DEFAULT_COLLECTOR_FUNCTIONS.get(kind)
