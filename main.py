#!/usr/bin/env python3
"""Main entry point for the Cassandra metrics exporter"""
import sys
import uvicorn
from config import Config
from app.server import MetricsServer
from remote.connection import load_connection_factory
from logging_config import setup_structured_logging, get_logger, log_server_startup, log_error


def main():
    """Main application entry point"""
    try:
        # Load configuration
        config = Config()

        # Setup structured logging
        setup_structured_logging(config)
        logger = get_logger(__name__)

        # Log startup
        log_server_startup(logger, config)

        # Connect to the remote process
        connection_factory = load_connection_factory(config.connection_factory)
        connection = connection_factory(config.connection_url)

        # Create server
        server = MetricsServer(config, connection)
        app = server.get_app()

        # Run server
        uvicorn.run(
            app,
            host=config.metrics_host,
            port=config.metrics_port,
            log_config=None  # We handle logging ourselves
        )

    except Exception as e:
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        sys.exit(1)


if __name__ == '__main__':
    main()
