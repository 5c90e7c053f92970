"""Typed proxies over remote management objects"""
from typing import Any, Dict, Type

from metrics.models import Quantile, STANDARD_QUANTILES
from .connection import RemoteConnection
from .interfaces import InstrumentKind


class RemoteObjectProxy:
    """Reads attributes of one remote object on demand"""

    kind: InstrumentKind

    def __init__(self, connection: RemoteConnection, object_name: str):
        self._connection = connection
        self._object_name = object_name

    @property
    def object_name(self) -> str:
        return self._object_name

    def _get(self, attribute: str) -> Any:
        return self._connection.get_attribute(self._object_name, attribute)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RemoteObjectProxy):
            return NotImplemented
        return self.kind == other.kind and self._object_name == other._object_name

    def __hash__(self) -> int:
        return hash((self.kind, self._object_name))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._object_name!r})"


class CounterProxy(RemoteObjectProxy):
    kind = InstrumentKind.COUNTER

    def get_count(self) -> int:
        return self._get("Count")


class GaugeProxy(RemoteObjectProxy):
    kind = InstrumentKind.GAUGE

    def get_value(self) -> Any:
        return self._get("Value")


class MeterProxy(RemoteObjectProxy):
    kind = InstrumentKind.METER

    def get_count(self) -> int:
        return self._get("Count")

    def get_mean_rate(self) -> float:
        return self._get("MeanRate")

    def get_one_minute_rate(self) -> float:
        return self._get("OneMinuteRate")

    def get_five_minute_rate(self) -> float:
        return self._get("FiveMinuteRate")

    def get_fifteen_minute_rate(self) -> float:
        return self._get("FifteenMinuteRate")


# Percentile attributes published by sampling instruments, keyed by quantile rank
PERCENTILE_ATTRIBUTES: Dict[float, str] = {
    0.5: "50thPercentile",
    0.75: "75thPercentile",
    0.95: "95thPercentile",
    0.98: "98thPercentile",
    0.99: "99thPercentile",
    0.999: "999thPercentile",
}


class SamplingCounting(RemoteObjectProxy):
    """Instruments that count samples and estimate their own quantiles"""

    def get_count(self) -> int:
        return self._get("Count")

    def get_min(self) -> float:
        return self._get("Min")

    def get_max(self) -> float:
        return self._get("Max")

    def get_mean(self) -> float:
        return self._get("Mean")

    def get_quantiles(self) -> Dict[Quantile, float]:
        return {
            quantile: self._get(PERCENTILE_ATTRIBUTES[quantile.value])
            for quantile in STANDARD_QUANTILES
        }


class HistogramProxy(SamplingCounting):
    kind = InstrumentKind.HISTOGRAM


class TimerProxy(SamplingCounting):
    kind = InstrumentKind.TIMER

    def get_duration_unit(self) -> str:
        return self._get("DurationUnit")

    def get_mean_rate(self) -> float:
        return self._get("MeanRate")


class FailureDetectorProxy(RemoteObjectProxy):
    kind = InstrumentKind.FAILURE_DETECTOR

    def get_up_endpoint_count(self) -> int:
        return self._get("UpEndpointCount")

    def get_down_endpoint_count(self) -> int:
        return self._get("DownEndpointCount")

    def get_simple_states(self) -> Dict[str, str]:
        return self._get("SimpleStates")


class EndpointSnitchInfoProxy(RemoteObjectProxy):
    kind = InstrumentKind.ENDPOINT_SNITCH_INFO

    def get_datacenter(self) -> str:
        return self._get("Datacenter")

    def get_rack(self) -> str:
        return self._get("Rack")


class StorageServiceProxy(RemoteObjectProxy):
    kind = InstrumentKind.STORAGE_SERVICE

    def get_live_nodes(self) -> list:
        return self._get("LiveNodes")

    def get_operation_mode(self) -> str:
        return self._get("OperationMode")


PROXY_CLASSES: Dict[InstrumentKind, Type[RemoteObjectProxy]] = {
    proxy_class.kind: proxy_class
    for proxy_class in (
        CounterProxy,
        GaugeProxy,
        MeterProxy,
        HistogramProxy,
        TimerProxy,
        FailureDetectorProxy,
        EndpointSnitchInfoProxy,
        StorageServiceProxy,
    )
}


class RemoteProxyFactory:
    """Builds typed handles for remote objects"""

    def __init__(self, connection: RemoteConnection):
        self.connection = connection

    def build(self, object_name: str, kind: InstrumentKind) -> RemoteObjectProxy:
        proxy_class = PROXY_CLASSES.get(kind)
        if proxy_class is None:
            raise ValueError(f"No proxy available for {kind.value} objects")
        return proxy_class(self.connection, object_name)
