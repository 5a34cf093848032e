"""Wiring of registry, instruments, collectors, poller, and scraper."""

from __future__ import annotations

import asyncio

from prometheus_client import CollectorRegistry

from proxysql_exporter.collectors.pool import POOL_HELP, PoolCollector
from proxysql_exporter.collectors.status import STATUS_METRICS, StatusCollector
from proxysql_exporter.config import Settings
from proxysql_exporter.connection import Connect, ConnectionSupplier, Sleep
from proxysql_exporter.exposition import StatusInstruments, render
from proxysql_exporter.metrics import ExporterMetrics
from proxysql_exporter.poller import StatusPoller
from proxysql_exporter.scraper import PoolScraper


class Exporter:
    """Everything one running exporter owns.

    The status poller and the pool scraper each get their own
    :class:`ConnectionSupplier` so they never share a connection.

    Parameters:
        connect: Coroutine factory opening admin connections.
        retry_interval: Seconds between reconnect attempts.
        scrape_interval: Seconds between status polling cycles.
        sleep: Coroutine used for all waiting.
    """

    def __init__(
        self,
        connect: Connect,
        retry_interval: float,
        scrape_interval: float,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.registry = CollectorRegistry()
        self.metrics = ExporterMetrics(self.registry)
        self.status = StatusInstruments(STATUS_METRICS)
        self.registry.register(self.status)

        self.poller = StatusPoller(
            supplier=ConnectionSupplier(
                connect, retry_interval, sleep=sleep, name=StatusCollector.name
            ),
            collector=StatusCollector(),
            sink=self.status.update,
            scrape_interval=scrape_interval,
            metrics=self.metrics,
            sleep=sleep,
        )
        self.scraper = PoolScraper(
            supplier=ConnectionSupplier(
                connect, retry_interval, sleep=sleep, name=PoolCollector.name
            ),
            collector=PoolCollector(),
            metrics=self.metrics,
        )
        self._task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, config: Settings, connect: Connect) -> "Exporter":
        return cls(
            connect=connect,
            retry_interval=config.retry_interval,
            scrape_interval=config.scrape_interval,
        )

    def start(self) -> None:
        """Start the status poller as a background task."""
        if self._task is None:
            self._task = asyncio.create_task(self.poller.run(), name="status-poller")

    async def stop(self) -> None:
        """Cancel the poller and close every connection."""
        if self._task is not None:
            task, self._task = self._task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.scraper.close()

    async def render_metrics(self) -> bytes:
        """Collect the pool table and render the full exposition."""
        pool_samples = await self.scraper.scrape()
        return render(self.registry, pool_samples, POOL_HELP)
