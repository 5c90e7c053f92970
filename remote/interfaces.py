"""Classification of remote object classes into instrument kinds"""
from enum import Enum
from typing import Dict, Optional


class InstrumentKind(Enum):
    """Kinds of remote objects the exporter knows how to proxy"""
    COUNTER = "counter"
    GAUGE = "gauge"
    METER = "meter"
    HISTOGRAM = "histogram"
    TIMER = "timer"

    # management interfaces, never exported as instruments
    FAILURE_DETECTOR = "failure_detector"
    ENDPOINT_SNITCH_INFO = "endpoint_snitch_info"
    STORAGE_SERVICE = "storage_service"

    @property
    def is_instrument(self) -> bool:
        return self in INSTRUMENT_KINDS


INSTRUMENT_KINDS = frozenset({
    InstrumentKind.COUNTER,
    InstrumentKind.GAUGE,
    InstrumentKind.METER,
    InstrumentKind.HISTOGRAM,
    InstrumentKind.TIMER,
})


MBEAN_INTERFACES: Dict[str, InstrumentKind] = {
    "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxGauge": InstrumentKind.GAUGE,
    "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxCounter": InstrumentKind.COUNTER,
    "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxMeter": InstrumentKind.METER,
    "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxHistogram": InstrumentKind.HISTOGRAM,
    "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxTimer": InstrumentKind.TIMER,

    "org.apache.cassandra.gms.FailureDetector": InstrumentKind.FAILURE_DETECTOR,
    "org.apache.cassandra.locator.EndpointSnitchInfo": InstrumentKind.ENDPOINT_SNITCH_INFO,
    "org.apache.cassandra.service.StorageService": InstrumentKind.STORAGE_SERVICE,
}


def resolve(class_name: str, interfaces: Optional[Dict[str, InstrumentKind]] = None) -> Optional[InstrumentKind]:
    """Look up the instrument kind for a remote class name, None if unrecognised"""
    table = MBEAN_INTERFACES if interfaces is None else interfaces
    return table.get(class_name)
