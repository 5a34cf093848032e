"""Background loop driving the status collector.

:class:`StatusPoller` owns its own admin connection.  It collects the
global status table once per scrape interval; when a query fails it waits
the retry interval, throws the connection away and blocks until the
supplier hands out a new one.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from proxysql_exporter.collectors.status import StatusCollector
from proxysql_exporter.connection import AdminConnection, ConnectionSupplier, Sleep
from proxysql_exporter.metrics import ExporterMetrics, Sink

logger = structlog.get_logger(__name__)


class StatusPoller:
    """Periodically push status samples into ``sink``.

    Parameters:
        supplier: Source of admin connections for this poller only.
        collector: Status collector to run each cycle.
        sink: Receiver of every emitted sample.
        scrape_interval: Seconds to wait between successful cycles.
        metrics: Exporter instruments to record cycle outcomes on.
        sleep: Coroutine used for waiting (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        supplier: ConnectionSupplier,
        collector: StatusCollector,
        sink: Sink,
        scrape_interval: float,
        metrics: ExporterMetrics | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._supplier = supplier
        self._collector = collector
        self._sink = sink
        self.scrape_interval = scrape_interval
        self._metrics = metrics
        self._sleep = sleep
        self._conn: AdminConnection | None = None

    async def poll_once(self) -> bool:
        """Run one collection cycle, reconnecting if it fails.

        Returns:
            ``True`` if the status table was collected, ``False`` if
            collection raised and the connection was replaced.
        """
        if self._conn is None:
            self._conn = await self._supplier.acquire()

        start = time.perf_counter()
        try:
            await self._collector.collect(self._conn, self._sink)
        except Exception as exc:
            self._record(time.perf_counter() - start, failed=True)
            await logger.awarning(
                "status_query_failed",
                collector=self._collector.name,
                retry_in_seconds=self._supplier.retry_interval,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            await self._sleep(self._supplier.retry_interval)
            self._conn = await self._supplier.replace(self._conn)
            return False

        self._record(time.perf_counter() - start, failed=False)
        return True

    async def run(self) -> None:
        """Poll forever; returns only when cancelled."""
        await logger.ainfo(
            "status_poller_started", scrape_interval_seconds=self.scrape_interval
        )
        try:
            while True:
                try:
                    collected = await self.poll_once()
                except Exception as exc:
                    await logger.aerror(
                        "status_poller_error",
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    await self.close()
                    await self._sleep(self._supplier.retry_interval)
                    continue
                if collected:
                    await self._sleep(self.scrape_interval)
        finally:
            await self.close()

    async def close(self) -> None:
        """Close the poller's connection, if any."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._supplier.release(conn)

    def _record(self, duration: float, failed: bool) -> None:
        if self._metrics is None:
            return
        self._metrics.up.set(0 if failed else 1)
        self._metrics.record_scrape(self._collector.name, duration, failed)
