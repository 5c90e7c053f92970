"""Periodic reconciliation of the local inventory with the remote object inventory"""
import asyncio
import threading
import time
from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Dict, FrozenSet, Optional

from remote.connection import ObjectInstance, RemoteConnection
from remote.interfaces import InstrumentKind, MBEAN_INTERFACES, resolve
from remote.proxies import RemoteProxyFactory
from logging_config import get_logger, log_error, log_reconciliation
from .harvester import Harvester


logger = get_logger(__name__)


class InventoryReconciler:
    """Keeps the harvester's inventory in step with the remote process.

    Each tick lists every remote object, unregisters the ones that went
    away and registers the new ones whose class is recognised. The staged
    changes are published in one step at the end of the tick. A failed
    listing leaves both the known object set and the published snapshot
    untouched.
    """

    def __init__(self, connection: RemoteConnection, harvester: Harvester,
                 handle_factory: Optional[RemoteProxyFactory] = None,
                 interval: float = 30, enumerate_timeout: float = 10.0,
                 interfaces: Optional[Dict[str, InstrumentKind]] = None):
        self.connection = connection
        self.harvester = harvester
        self.handle_factory = handle_factory or RemoteProxyFactory(connection)
        self.interval = interval
        self.enumerate_timeout = enumerate_timeout
        self.interfaces = MBEAN_INTERFACES if interfaces is None else interfaces

        self._current: FrozenSet[ObjectInstance] = frozenset()
        self._stopping = threading.Event()
        self._task: Optional[asyncio.Task] = None
        # ticks and remote listing each get their own dedicated worker
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reconciler")
        self._enumerate_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reconciler_enumerate")
        self._enumeration: Optional[Future] = None

        # Reconciliation state
        self.tick_count = 0
        self.failed_ticks = 0
        self.last_success_time = 0.0
        self.last_tick_duration = 0.0

    @property
    def current(self) -> FrozenSet[ObjectInstance]:
        """Remote objects known as of the last successful tick"""
        return self._current

    def _enumerate(self) -> FrozenSet[ObjectInstance]:
        # a listing that outlived its timeout keeps the worker; never queue behind it
        if self._enumeration is not None and not self._enumeration.done():
            raise TimeoutError(
                f"Previous listing of remote objects still running after {self.enumerate_timeout}s timeout"
            )

        future = self._enumerate_executor.submit(self.connection.query_objects)
        self._enumeration = future
        try:
            return frozenset(future.result(timeout=self.enumerate_timeout))
        except futures.TimeoutError:
            future.cancel()
            raise TimeoutError(f"Listing remote objects timed out after {self.enumerate_timeout}s") from None

    def reconcile(self) -> bool:
        """Run one reconciliation tick; returns True when the result was published"""
        start_time = time.time()
        self.tick_count += 1

        try:
            latest = self._enumerate()
        except Exception as e:
            self.failed_ticks += 1
            log_error(logger, e, {"component": "reconciler", "phase": "enumerate",
                                 "enumerate_timeout": self.enumerate_timeout, "failed_ticks": self.failed_ticks})
            return False

        builder = self.harvester.inventory.stage()
        errors = 0

        removed = self._current - latest
        failed_removals = set()
        for instance in removed:
            try:
                self.harvester.unregister(builder, instance.object_name)
            except Exception as e:
                errors += 1
                # kept in the known set so the next tick retries it
                failed_removals.add(instance)
                logger.error("Failed to unregister object", object_name=instance.object_name,
                             error=str(e), event_type="unregister_error", exc_info=True)

        added = latest - self._current
        failed = set()
        skipped = 0
        registered = 0
        for instance in added:
            kind = resolve(instance.class_name, self.interfaces)
            if kind is None:
                skipped += 1
                logger.debug("Skipping object with unrecognised class", object_name=instance.object_name,
                             class_name=instance.class_name)
                continue

            try:
                logger.debug("Registering object", object_name=instance.object_name, kind=kind.value)
                handle = self.handle_factory.build(instance.object_name, kind)
                if self.harvester.register(builder, handle) is not None:
                    registered += 1
            except Exception as e:
                errors += 1
                # left out of the known set so the next tick retries it
                failed.add(instance)
                logger.error("Failed to register object", object_name=instance.object_name,
                             error=str(e), event_type="register_error", exc_info=True)

        if self._stopping.is_set():
            logger.info("Discarding reconciliation results during shutdown", event_type="reconciliation_discarded")
            return False

        self.harvester.inventory.publish(builder.build())
        self._current = (latest - failed) | failed_removals

        self.last_success_time = time.time()
        self.last_tick_duration = self.last_success_time - start_time
        log_reconciliation(
            logger,
            added=registered,
            removed=len(removed) - len(failed_removals),
            skipped=skipped,
            errors=errors,
            inventory_size=len(builder),
            duration=self.last_tick_duration,
        )
        return True

    async def reconcile_async(self) -> bool:
        """Run one tick on the dedicated reconciliation worker"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.reconcile)

    async def run(self) -> None:
        """Reconcile with a fixed delay between the end of one tick and the start of the next"""
        while not self._stopping.is_set():
            try:
                await self.reconcile_async()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                log_error(logger, e, {"component": "reconciliation_loop", "failed_ticks": self.failed_ticks})
                await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """Start the background reconciliation task"""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop reconciling; an in-flight tick finishes without publishing"""
        self._stopping.set()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, partial(self._executor.shutdown, wait=True))
        self._enumerate_executor.shutdown(wait=False)

    def get_status(self) -> Dict:
        """Get reconciliation status information"""
        return {
            "interval_seconds": self.interval,
            "enumerate_timeout_seconds": self.enumerate_timeout,
            "ticks": self.tick_count,
            "failed_ticks": self.failed_ticks,
            "last_success_time": self.last_success_time or None,
            "last_tick_duration_seconds": round(self.last_tick_duration, 3),
            "known_objects": len(self._current),
            "registered_objects": len(self.harvester.inventory.snapshot),
        }
