"""FastAPI server setup and routes"""
import os
import time
from fastapi import FastAPI, Response, HTTPException
from prometheus_client import CONTENT_TYPE_LATEST
from config import Config
from harvester.harvester import Harvester
from harvester.reconciler import InventoryReconciler
from metrics.exposition import create_registry, render_latest
from remote.connection import RemoteConnection
from remote.metadata import ObjectNameMetadataFactory
from logging_config import get_logger, log_error


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server exposing remote instruments as Prometheus metrics"""

    def __init__(self, config: Config, connection: RemoteConnection):
        self.config = config
        self.connection = connection
        self.app = FastAPI(
            title="Cassandra Metrics Exporter",
            version=config.service_version,
            docs_url=None,  # Disable docs for security
            redoc_url=None,  # Disable redoc for security
            openapi_url=None  # Disable OpenAPI schema for security
        )
        self.app.state.start_time = time.time()

        self.harvester = Harvester(
            metadata_factory=ObjectNameMetadataFactory(config.metric_prefix, config.metrics_domain),
            exclusions=config.exclusions,
            global_labels=config.global_labels,
        )
        self.reconciler = InventoryReconciler(
            connection,
            self.harvester,
            interval=config.reconcile_interval,
            enumerate_timeout=config.enumerate_timeout,
        )
        self.registry = create_registry(self.harvester.collect)

        # Setup routes
        self._setup_routes()

        # Setup startup/shutdown events
        self._setup_events()

    def _is_healthy(self) -> bool:
        if not self.reconciler.last_success_time:
            return False
        age = time.time() - self.reconciler.last_success_time
        return age < self.config.reconcile_interval * 2 + self.config.enumerate_timeout

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get('/metrics', response_class=Response)
        def get_metrics():
            """Serve metrics in Prometheus format, collected fresh on every request"""
            content = render_latest(self.registry)
            return Response(content, media_type=CONTENT_TYPE_LATEST)

        @self.app.get('/health')
        def health_check():
            """Health check endpoint"""
            last_success = self.reconciler.last_success_time
            age = time.time() - last_success if last_success > 0 else float('inf')

            health_data = {
                "status": "healthy" if self._is_healthy() else "unhealthy",
                "last_reconciliation_seconds_ago": round(age, 1) if age != float('inf') else None,
                "reconcile_interval": self.config.reconcile_interval,
                "total_reconciliations": self.reconciler.tick_count,
                "failed_reconciliations": self.reconciler.failed_ticks,
                "registered_objects": len(self.harvester.inventory.snapshot),
            }

            if not self._is_healthy():
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            return {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                    "uptime_seconds": round(time.time() - self.app.state.start_time, 1),
                    "hostname": os.uname().nodename
                },
                "remote": {
                    "connection_url": self.config.connection_url,
                    "metrics_domain": self.config.metrics_domain,
                },
                "reconciliation": self.reconciler.get_status(),
                "families": self.harvester.get_family_status(),
            }

        @self.app.post('/reconcile')
        async def manual_reconcile():
            """Manually trigger an inventory reconciliation"""
            try:
                published = await self.reconciler.reconcile_async()
            except Exception as e:
                log_error(logger, e, {"component": "manual_reconciliation", "endpoint": "/reconcile"})
                raise HTTPException(status_code=500, detail={"error": str(e)})

            if not published:
                raise HTTPException(status_code=503, detail={"error": "Reconciliation failed", "published": False})

            return {
                "success": True,
                "message": "Inventory reconciled",
                "registered_objects": len(self.harvester.inventory.snapshot),
            }

    def _setup_events(self):
        """Setup FastAPI startup/shutdown events"""

        @self.app.on_event("startup")
        async def startup_event():
            """Start the reconciliation task"""
            self.app.state.start_time = time.time()
            logger.info(
                "Application startup initiated",
                service_name=self.config.service_name,
                service_version=self.config.service_version,
                reconcile_interval=self.config.reconcile_interval,
                event_type="server_startup"
            )
            self.reconciler.start()

        @self.app.on_event("shutdown")
        async def shutdown_event():
            """Cleanup on shutdown"""
            logger.info("Shutting down metrics exporter", event_type="server_shutdown")

            await self.reconciler.stop()

            try:
                self.connection.close()
            except Exception as e:
                log_error(logger, e, {"component": "shutdown", "phase": "connection_close"})

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
