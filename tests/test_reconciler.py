"""Tests for inventory reconciliation"""
import asyncio
import threading
from unittest.mock import Mock, patch

import pytest

from harvester.harvester import Harvester
from harvester.reconciler import InventoryReconciler
from remote.proxies import RemoteProxyFactory
from conftest import (
    COUNTER_CLASS,
    GAUGE_CLASS,
    STORAGE_SERVICE_CLASS,
    TIMER_CLASS,
    UNKNOWN_CLASS,
    FakeConnection,
    metric_name,
)


EXCEPTIONS = metric_name("Storage", "Exceptions")
LOAD = metric_name("Storage", "Load")
READ_LATENCY = metric_name("Table", "ReadLatency", keyspace="ks", scope="users")
MEMORY = "java.lang:type=Memory"
STORAGE_SERVICE = "org.apache.cassandra.db:type=StorageService"


class TestReconcile:
    """Test single reconciliation ticks"""

    def setup_method(self):
        self.connection = FakeConnection()
        self.connection.add(EXCEPTIONS, COUNTER_CLASS, Count=1)
        self.connection.add(LOAD, COUNTER_CLASS, Count=1024)
        self.connection.add(READ_LATENCY, TIMER_CLASS, Count=0)
        self.connection.add(MEMORY, UNKNOWN_CLASS)

        self.harvester = Harvester()
        self.handle_factory = Mock(wraps=RemoteProxyFactory(self.connection))
        self.reconciler = InventoryReconciler(
            self.connection,
            self.harvester,
            handle_factory=self.handle_factory,
            enumerate_timeout=0.5,
        )

    def teardown_method(self):
        if self.connection.block is not None:
            self.connection.block.set()
        self.reconciler._executor.shutdown(wait=False)
        self.reconciler._enumerate_executor.shutdown(wait=False)

    @property
    def snapshot(self):
        return self.harvester.inventory.snapshot

    def test_registers_recognised_objects(self):
        assert self.reconciler.reconcile() is True

        assert set(self.snapshot.objects) == {EXCEPTIONS, LOAD, READ_LATENCY}
        assert len(self.reconciler.current) == 4
        assert self.handle_factory.build.call_count == 3
        assert self.reconciler.last_success_time > 0

    def test_second_tick_is_idempotent(self):
        self.reconciler.reconcile()
        first = self.snapshot

        assert self.reconciler.reconcile() is True

        assert self.handle_factory.build.call_count == 3
        assert set(self.snapshot.objects) == set(first.objects)
        assert self.reconciler.tick_count == 2

    def test_new_and_removed_objects(self):
        self.reconciler.reconcile()
        self.connection.remove(LOAD)
        self.connection.add(metric_name("Storage", "TotalHints"), COUNTER_CLASS, Count=0)

        self.reconciler.reconcile()

        assert LOAD not in self.snapshot
        assert metric_name("Storage", "TotalHints") in self.snapshot
        assert EXCEPTIONS in self.snapshot
        assert self.handle_factory.build.call_count == 4

    def test_failed_listing_retains_state(self):
        self.reconciler.reconcile()
        snapshot = self.snapshot
        current = self.reconciler.current

        self.connection.query_error = ConnectionError("connection refused")
        self.connection.remove(LOAD)

        assert self.reconciler.reconcile() is False

        assert self.snapshot is snapshot
        assert self.reconciler.current == current
        assert self.reconciler.failed_ticks == 1

    def test_listing_timeout_is_a_failed_tick(self):
        self.connection.block = threading.Event()

        assert self.reconciler.reconcile() is False

        assert len(self.snapshot) == 0
        assert self.reconciler.current == frozenset()
        assert self.reconciler.failed_ticks == 1

    def test_hung_listing_is_not_queued_again(self):
        self.connection.block = threading.Event()
        self.reconciler.enumerate_timeout = 0.05

        for _ in range(4):
            assert self.reconciler.reconcile() is False

        assert self.connection.query_count == 1
        assert self.reconciler._enumerate_executor._work_queue.qsize() == 0
        assert self.reconciler.failed_ticks == 4

        self.connection.block.set()
        self.reconciler._enumeration.result(timeout=5)

        assert self.reconciler.reconcile() is True
        assert self.connection.query_count == 2
        assert set(self.snapshot.objects) == {EXCEPTIONS, LOAD, READ_LATENCY}

    def test_timeout_error_names_the_timeout(self):
        self.connection.block = threading.Event()

        with pytest.raises(TimeoutError, match="0.5s"):
            self.reconciler._enumerate()

    def test_failed_removal_is_retried(self):
        self.reconciler.reconcile()
        self.connection.remove(LOAD)

        with patch.object(self.harvester, "unregister", side_effect=RuntimeError("unregister failed")):
            assert self.reconciler.reconcile() is True

        assert LOAD in self.snapshot
        assert any(instance.object_name == LOAD for instance in self.reconciler.current)

        self.reconciler.reconcile()

        assert LOAD not in self.snapshot
        assert all(instance.object_name != LOAD for instance in self.reconciler.current)

    def test_reconciliation_log_counts_only_registered_objects(self):
        self.connection.add(STORAGE_SERVICE, STORAGE_SERVICE_CLASS)
        self.reconciler.harvester.exclusions = ["cassandra_storage_load"]

        with patch("harvester.reconciler.log_reconciliation") as log:
            self.reconciler.reconcile()

        kwargs = log.call_args.kwargs
        assert kwargs["added"] == 2
        assert kwargs["skipped"] == 1
        assert kwargs["removed"] == 0

    def test_management_objects_known_but_not_registered(self):
        self.connection.add(STORAGE_SERVICE, STORAGE_SERVICE_CLASS)

        self.reconciler.reconcile()

        assert STORAGE_SERVICE not in self.snapshot
        assert any(instance.object_name == STORAGE_SERVICE for instance in self.reconciler.current)

    def test_failed_registration_is_isolated_and_retried(self):
        broken = metric_name("Storage", "Broken")
        self.connection.add(broken, GAUGE_CLASS, Value=1)
        factory = RemoteProxyFactory(self.connection)

        def build(object_name, kind):
            if object_name == broken:
                raise RuntimeError("proxy creation failed")
            return factory.build(object_name, kind)

        self.handle_factory.build.side_effect = build

        assert self.reconciler.reconcile() is True
        assert set(self.snapshot.objects) == {EXCEPTIONS, LOAD, READ_LATENCY}
        assert all(instance.object_name != broken for instance in self.reconciler.current)

        self.handle_factory.build.side_effect = factory.build
        self.reconciler.reconcile()

        assert broken in self.snapshot

    def test_snapshot_published_only_at_end_of_tick(self):
        seen = []
        factory = RemoteProxyFactory(self.connection)

        def build(object_name, kind):
            seen.append(len(self.snapshot))
            return factory.build(object_name, kind)

        self.handle_factory.build.side_effect = build

        self.reconciler.reconcile()

        assert seen == [0, 0, 0]
        assert len(self.snapshot) == 3

    def test_status(self):
        self.reconciler.reconcile()

        status = self.reconciler.get_status()

        assert status["ticks"] == 1
        assert status["failed_ticks"] == 0
        assert status["known_objects"] == 4
        assert status["registered_objects"] == 3


class TestReconcilerLifecycle:
    """Test the background reconciliation loop"""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        connection = FakeConnection()
        connection.add(EXCEPTIONS, COUNTER_CLASS, Count=1)
        harvester = Harvester()
        reconciler = InventoryReconciler(connection, harvester, interval=0.01)

        reconciler.start()
        await asyncio.sleep(0.2)
        await reconciler.stop()

        assert reconciler.tick_count >= 2
        assert connection.max_active_queries == 1
        assert EXCEPTIONS in harvester.inventory.snapshot

    @pytest.mark.asyncio
    async def test_no_publication_after_stop(self):
        connection = FakeConnection()
        harvester = Harvester()
        reconciler = InventoryReconciler(connection, harvester, interval=60)

        reconciler.start()
        await asyncio.sleep(0.05)
        await reconciler.stop()

        connection.add(EXCEPTIONS, COUNTER_CLASS, Count=1)
        assert reconciler.reconcile() is False
        assert EXCEPTIONS not in harvester.inventory.snapshot

    @pytest.mark.asyncio
    async def test_manual_tick(self):
        connection = FakeConnection()
        connection.add(EXCEPTIONS, COUNTER_CLASS, Count=1)
        harvester = Harvester()
        reconciler = InventoryReconciler(connection, harvester)

        assert await reconciler.reconcile_async() is True
        assert EXCEPTIONS in harvester.inventory.snapshot

        await reconciler.stop()
