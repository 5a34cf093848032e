"""Application entry-point for the ProxySQL exporter.

Creates and configures the FastAPI application instance, sets up
structured logging, attaches request-logging middleware, and starts the
status poller for the lifetime of the application.

Run modes::

    uvicorn proxysql_exporter.main:app --host 0.0.0.0 --port 2314

    python -m proxysql_exporter.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from proxysql_exporter import __version__
from proxysql_exporter.api.routes import router
from proxysql_exporter.config import Settings, settings
from proxysql_exporter.connection import Connect, mysql_connector
from proxysql_exporter.exporter import Exporter
from proxysql_exporter.logging_config import RequestLoggingMiddleware, setup_logging


def create_app(config: Settings = settings, connect: Connect | None = None) -> FastAPI:
    """Build the exporter application.

    Parameters:
        config: Settings to run with.
        connect: Coroutine factory opening admin connections; defaults to
                 an ``aiomysql`` connector for ``config.PROXYSQL_DSN``.
    """
    exporter = Exporter.from_settings(config, connect or mysql_connector(config))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Start the status poller on startup and stop it on shutdown."""
        setup_logging(log_level=config.LOG_LEVEL)
        logger = structlog.get_logger("proxysql_exporter.startup")
        target = config.admin_target
        await logger.ainfo(
            "exporter_starting",
            version=__version__,
            admin_host=target.host,
            admin_port=target.port,
            log_level=config.LOG_LEVEL,
        )
        exporter.start()
        yield
        await logger.ainfo("exporter_shutting_down")
        await exporter.stop()

    app = FastAPI(
        title="ProxySQL Exporter",
        description=(
            "Prometheus exporter for the ProxySQL admin interface. "
            "Publishes global status counters and per-backend "
            "connection pool statistics."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.exporter = exporter
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "proxysql_exporter.main:app",
        host=settings.LISTEN_HOST,
        port=settings.LISTEN_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
