"""Shared fixtures and fakes for the exporter tests"""
import threading
from typing import Any, Dict, Set, Tuple

import pytest

from remote.connection import ObjectInstance, RemoteConnection


GAUGE_CLASS = "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxGauge"
COUNTER_CLASS = "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxCounter"
METER_CLASS = "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxMeter"
HISTOGRAM_CLASS = "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxHistogram"
TIMER_CLASS = "org.apache.cassandra.metrics.CassandraMetricsRegistry$JmxTimer"
STORAGE_SERVICE_CLASS = "org.apache.cassandra.service.StorageService"
UNKNOWN_CLASS = "java.lang.management.MemoryImpl"


class FakeConnection(RemoteConnection):
    """In-memory remote process: object name -> (class name, attributes)"""

    def __init__(self):
        self.objects: Dict[str, Tuple[str, Dict[str, Any]]] = {}
        self.query_error = None
        self.query_count = 0
        self.closed = False
        self.block = None
        self._lock = threading.Lock()
        self.active_queries = 0
        self.max_active_queries = 0

    def add(self, object_name: str, class_name: str, **attributes) -> None:
        self.objects[object_name] = (class_name, attributes)

    def remove(self, object_name: str) -> None:
        del self.objects[object_name]

    def query_objects(self) -> Set[ObjectInstance]:
        with self._lock:
            self.query_count += 1
            self.active_queries += 1
            self.max_active_queries = max(self.max_active_queries, self.active_queries)
        try:
            if self.block is not None:
                self.block.wait(5)
            if self.query_error is not None:
                raise self.query_error
            return {ObjectInstance(name, class_name) for name, (class_name, _) in self.objects.items()}
        finally:
            with self._lock:
                self.active_queries -= 1

    def get_attribute(self, object_name: str, attribute: str) -> Any:
        value = self.objects[object_name][1][attribute]
        if isinstance(value, Exception):
            raise value
        return value

    def close(self) -> None:
        self.closed = True


def metric_name(object_type: str, name: str, **properties) -> str:
    """Build a metrics domain object name"""
    keys = [("type", object_type)] + list(properties.items()) + [("name", name)]
    return "org.apache.cassandra.metrics:" + ",".join(f"{key}={value}" for key, value in keys)


class FakeCounter:
    def __init__(self, count):
        self.count = count

    def get_count(self):
        return self.count


class FakeGauge:
    def __init__(self, value):
        self.value = value

    def get_value(self):
        if isinstance(self.value, Exception):
            raise self.value
        return self.value


class FakeSampling:
    def __init__(self, count, quantiles):
        self.count = count
        self.quantiles = quantiles

    def get_count(self):
        return self.count

    def get_quantiles(self):
        return self.quantiles


@pytest.fixture
def connection():
    return FakeConnection()
