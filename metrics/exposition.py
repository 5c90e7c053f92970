"""Bridge from metric families to prometheus_client for exposition"""
from typing import Callable, Iterable, Iterator, List

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.metrics_core import Metric

from logging_config import get_logger
from .models import MetricFamily, MetricType


logger = get_logger(__name__)


def to_prometheus_metric(family: MetricFamily) -> Metric:
    """Convert one metric family into a prometheus_client metric"""
    metric = Metric(family.name, family.help, family.metric_type.value)

    if family.metric_type is MetricType.COUNTER:
        for sample in family.metrics:
            metric.add_sample(f"{metric.name}_total", dict(sample.labels), sample.value)

    elif family.metric_type is MetricType.GAUGE:
        for sample in family.metrics:
            metric.add_sample(metric.name, dict(sample.labels), sample.value)

    elif family.metric_type is MetricType.SUMMARY:
        for summary in family.metrics:
            labels = dict(summary.labels)
            for quantile, value in sorted(summary.quantiles.items()):
                metric.add_sample(metric.name, {**labels, "quantile": quantile.text}, value)
            metric.add_sample(f"{metric.name}_count", labels, summary.count)
            metric.add_sample(f"{metric.name}_sum", labels, summary.sum)

    return metric


class FamilyCollector:
    """prometheus_client collector serving families from a callable on every scrape"""

    def __init__(self, source: Callable[[], Iterable[MetricFamily]]):
        self.source = source

    def describe(self) -> List[Metric]:
        # families are only known at scrape time
        return []

    def collect(self) -> Iterator[Metric]:
        for family in self.source():
            try:
                yield to_prometheus_metric(family)
            except Exception as e:
                logger.warning(
                    "Failed to convert metric family",
                    family=family.name,
                    error=str(e),
                    event_type="exposition_error"
                )


def create_registry(source: Callable[[], Iterable[MetricFamily]]) -> CollectorRegistry:
    """Create a registry exposing only the given family source"""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(FamilyCollector(source))
    return registry


def render_latest(registry: CollectorRegistry) -> bytes:
    """Render the registry in the Prometheus text format"""
    return generate_latest(registry)
