"""Metric family metadata derived from remote object names"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from collectors.base import CollectorFunction
from collectors.functions import (
    counter_as_gauge,
    default_collector_function,
    histogram_gauge_as_summary,
)
from metrics.models import Labels
from .interfaces import InstrumentKind


@dataclass(frozen=True)
class ObjectMetadata:
    """Family name, help text and labels for one monitored object"""
    name: str
    help: str
    labels: Labels
    collector: Optional[CollectorFunction] = None


def parse_object_name(object_name: str) -> Tuple[str, List[Tuple[str, str]]]:
    """Split ``domain:key=value,...`` into the domain and its ordered key properties"""
    domain, separator, properties = object_name.partition(":")
    if not separator or not domain:
        raise ValueError(f"Malformed object name: {object_name!r}")

    pairs = []
    for prop in _split_properties(properties):
        key, equals, value = prop.partition("=")
        if not equals or not key:
            raise ValueError(f"Malformed key property {prop!r} in {object_name!r}")
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1].replace('\\"', '"')
        pairs.append((key, value))

    return domain, pairs


def _split_properties(properties: str) -> List[str]:
    # commas may appear inside quoted values
    parts, current, quoted, escaped = [], [], False, False
    for char in properties:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == "," and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    if current:
        parts.append("".join(current))
    return [part for part in parts if part]


_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")
_INVALID_CHARACTERS = re.compile(r"[^a-zA-Z0-9_]+")


def snake_case(value: str) -> str:
    """``SSTablesPerReadHistogram`` -> ``sstables_per_read_histogram``"""
    value = _WORD_BOUNDARY.sub(r"\1_\2", value)
    value = _INVALID_CHARACTERS.sub("_", value)
    return re.sub(r"_+", "_", value).strip("_").lower()


# (object type, key property) -> label name
LABEL_RENAMES: Dict[Tuple[str, str], str] = {
    ("Table", "scope"): "table",
    ("ColumnFamily", "scope"): "table",
    ("IndexTable", "scope"): "table",
    ("ClientRequest", "scope"): "operation",
    ("ThreadPools", "path"): "pool_type",
    ("ThreadPools", "scope"): "pool",
    ("Cache", "scope"): "cache",
    ("DroppedMessage", "scope"): "message_type",
    ("Connection", "scope"): "endpoint",
}

# counters that can go down, exported as gauges
COUNTERS_AS_GAUGES = frozenset({"Load", "PendingFlushes", "TotalHintsInProgress"})


class ObjectNameMetadataFactory:
    """Derives metric family metadata from the key properties of metric object names.

    ``org.apache.cassandra.metrics:type=Table,keyspace=ks,scope=users,name=ReadLatency``
    becomes family ``cassandra_table_read_latency_seconds`` with labels
    ``keyspace="ks"`` and ``table="users"``. Objects outside the metrics
    domain (management interfaces) have no metadata.
    """

    def __init__(self, prefix: str = "cassandra", domain: str = "org.apache.cassandra.metrics"):
        self.prefix = prefix
        self.domain = domain

    def metadata_for(self, handle) -> Optional[ObjectMetadata]:
        if not handle.kind.is_instrument:
            return None

        domain, properties = parse_object_name(handle.object_name)
        if domain != self.domain:
            return None

        keys = dict(properties)
        object_type, metric = keys.get("type"), keys.get("name")
        if not object_type or not metric:
            return None

        name_parts = [self.prefix, snake_case(object_type), snake_case(metric)]
        if handle.kind is InstrumentKind.TIMER:
            name_parts.append("seconds")
        name = "_".join(part for part in name_parts if part)

        labels = Labels(
            (LABEL_RENAMES.get((object_type, key), snake_case(key)), value)
            for key, value in properties
            if key not in ("type", "name")
        )

        return ObjectMetadata(
            name=name,
            help=f"{object_type} {metric} ({handle.kind.value})",
            labels=labels,
            collector=self.collector_for(handle.kind, metric),
        )

    def collector_for(self, kind: InstrumentKind, metric: str) -> Optional[CollectorFunction]:
        if kind is InstrumentKind.GAUGE and metric.endswith("Histogram"):
            return histogram_gauge_as_summary()
        if kind is InstrumentKind.COUNTER and metric in COUNTERS_AS_GAUGES:
            return counter_as_gauge()
        return default_collector_function(kind)
