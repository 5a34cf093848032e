"""On-demand connection pool collection for the ``/metrics`` request path."""

from __future__ import annotations

import asyncio
import time

import structlog

from proxysql_exporter.collectors.pool import PoolCollector
from proxysql_exporter.connection import AdminConnection, ConnectionSupplier
from proxysql_exporter.errors import ConnectError
from proxysql_exporter.metrics import ExporterMetrics, MetricSample

logger = structlog.get_logger(__name__)


class PoolScraper:
    """Run the pool collector once per HTTP scrape.

    The scraper keeps a dedicated admin connection, separate from the
    status poller's, and lets one scrape at a time use it.  A scrape never
    blocks on reconnecting and never raises: if the admin interface is
    unreachable or the collection fails it returns no samples and the
    next scrape tries again.

    Parameters:
        supplier: Source of admin connections for this scraper only.
        collector: Pool collector to run.
        metrics: Exporter instruments to record scrape outcomes on.
    """

    def __init__(
        self,
        supplier: ConnectionSupplier,
        collector: PoolCollector,
        metrics: ExporterMetrics | None = None,
    ) -> None:
        self._supplier = supplier
        self._collector = collector
        self._metrics = metrics
        self._conn: AdminConnection | None = None
        self._lock = asyncio.Lock()

    async def scrape(self) -> list[MetricSample]:
        """Collect the connection pool table.

        Returns:
            The samples of this scrape, or an empty list if the admin
            interface could not be queried.
        """
        async with self._lock:
            start = time.perf_counter()
            samples: list[MetricSample] = []
            try:
                if self._conn is None:
                    self._conn = await self._supplier.try_acquire()
                await self._collector.collect(self._conn, samples.append)
            except ConnectError as exc:
                await logger.awarning(
                    "pool_connect_failed",
                    collector=self._collector.name,
                    error=str(exc),
                )
                self._record(time.perf_counter() - start, failed=True)
                return []
            except Exception as exc:
                await logger.awarning(
                    "pool_query_failed",
                    collector=self._collector.name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await self._drop()
                self._record(time.perf_counter() - start, failed=True)
                return []

            self._record(time.perf_counter() - start, failed=False)
            return samples

    async def close(self) -> None:
        """Close the scraper's connection once any running scrape is done."""
        async with self._lock:
            await self._drop()

    async def _drop(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._supplier.release(conn)

    def _record(self, duration: float, failed: bool) -> None:
        if self._metrics is not None:
            self._metrics.record_scrape(self._collector.name, duration, failed)
