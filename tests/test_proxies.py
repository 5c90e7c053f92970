"""Tests for remote object classification and typed proxies"""
import pytest

from metrics.models import STANDARD_QUANTILES
from remote.connection import ObjectInstance, load_connection_factory
from remote.interfaces import InstrumentKind, MBEAN_INTERFACES, resolve
from remote.proxies import (
    CounterProxy,
    GaugeProxy,
    HistogramProxy,
    MeterProxy,
    PROXY_CLASSES,
    RemoteProxyFactory,
    StorageServiceProxy,
    TimerProxy,
)
from conftest import COUNTER_CLASS, TIMER_CLASS, UNKNOWN_CLASS, FakeConnection


class TestInterfaces:
    """Test class name classification"""

    def test_resolve_known_classes(self):
        assert resolve(COUNTER_CLASS) is InstrumentKind.COUNTER
        assert resolve(TIMER_CLASS) is InstrumentKind.TIMER
        assert resolve("org.apache.cassandra.gms.FailureDetector") is InstrumentKind.FAILURE_DETECTOR

    def test_resolve_unknown_class(self):
        assert resolve(UNKNOWN_CLASS) is None

    def test_resolve_custom_table(self):
        assert resolve("com.example.Counter", {"com.example.Counter": InstrumentKind.COUNTER}) is InstrumentKind.COUNTER
        assert resolve(COUNTER_CLASS, {}) is None

    def test_instrument_kinds(self):
        instruments = {kind for kind in InstrumentKind if kind.is_instrument}

        assert instruments == {
            InstrumentKind.COUNTER,
            InstrumentKind.GAUGE,
            InstrumentKind.METER,
            InstrumentKind.HISTOGRAM,
            InstrumentKind.TIMER,
        }

    def test_every_kind_has_a_proxy(self):
        assert set(MBEAN_INTERFACES.values()) == set(PROXY_CLASSES)


class TestObjectInstance:
    """Test enumerated object identity"""

    def test_identity_is_object_name(self):
        assert ObjectInstance("a:type=X", COUNTER_CLASS) == ObjectInstance("a:type=X", TIMER_CLASS)
        assert len({ObjectInstance("a:type=X", COUNTER_CLASS), ObjectInstance("a:type=X")}) == 1


class TestProxies:
    """Test attribute-backed proxies"""

    def setup_method(self):
        self.connection = FakeConnection()
        self.factory = RemoteProxyFactory(self.connection)

    def test_factory_builds_typed_proxies(self):
        assert isinstance(self.factory.build("a:name=c", InstrumentKind.COUNTER), CounterProxy)
        assert isinstance(self.factory.build("a:name=g", InstrumentKind.GAUGE), GaugeProxy)
        assert isinstance(self.factory.build("a:name=m", InstrumentKind.METER), MeterProxy)
        assert isinstance(self.factory.build("a:name=h", InstrumentKind.HISTOGRAM), HistogramProxy)
        assert isinstance(self.factory.build("a:name=t", InstrumentKind.TIMER), TimerProxy)
        assert isinstance(self.factory.build("a:type=StorageService", InstrumentKind.STORAGE_SERVICE), StorageServiceProxy)

    def test_counter_reads_count(self):
        self.connection.add("a:name=c", COUNTER_CLASS, Count=12)
        proxy = self.factory.build("a:name=c", InstrumentKind.COUNTER)

        assert proxy.object_name == "a:name=c"
        assert proxy.kind is InstrumentKind.COUNTER
        assert proxy.get_count() == 12

    def test_timer_quantiles(self):
        attributes = {
            "Count": 4,
            "50thPercentile": 1.0,
            "75thPercentile": 2.0,
            "95thPercentile": 3.0,
            "98thPercentile": 4.0,
            "99thPercentile": 5.0,
            "999thPercentile": 6.0,
        }
        self.connection.add("a:name=t", TIMER_CLASS, **attributes)
        proxy = self.factory.build("a:name=t", InstrumentKind.TIMER)

        assert proxy.get_count() == 4
        assert list(proxy.get_quantiles().values()) == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        assert list(proxy.get_quantiles()) == list(STANDARD_QUANTILES)

    def test_read_errors_propagate(self):
        self.connection.add("a:name=c", COUNTER_CLASS, Count=ConnectionError("unreachable"))
        proxy = self.factory.build("a:name=c", InstrumentKind.COUNTER)

        with pytest.raises(ConnectionError):
            proxy.get_count()

    def test_proxy_equality(self):
        assert self.factory.build("a:name=c", InstrumentKind.COUNTER) == self.factory.build("a:name=c", InstrumentKind.COUNTER)
        assert self.factory.build("a:name=c", InstrumentKind.COUNTER) != self.factory.build("a:name=c", InstrumentKind.METER)


class TestLoadConnectionFactory:
    """Test connection factory import paths"""

    def test_load_callable(self):
        from collections import OrderedDict

        assert load_connection_factory("collections:OrderedDict") is OrderedDict

    def test_load_nested_attribute(self):
        import os.path

        assert load_connection_factory("os:path.join") is os.path.join

    def test_invalid_path(self):
        with pytest.raises(ValueError):
            load_connection_factory("")
        with pytest.raises(ValueError):
            load_connection_factory("collections.OrderedDict")

    def test_not_callable(self):
        with pytest.raises(ValueError):
            load_connection_factory("math:pi")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_connection_factory("does_not_exist_anywhere:factory")
