"""
Monitoring for the mosaic crawler: Prometheus metrics and the periodic
progress reporter.
"""

import asyncio
import logging
import time
from typing import Dict, Optional, Any, Callable, Tuple, Awaitable

from prometheus_client import Counter, Gauge, CollectorRegistry
from prometheus_client import start_http_server


class MetricsCollector:
    """Collects crawl metrics on a private Prometheus registry."""

    def __init__(self, enable_server: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_server = enable_server
        self.prometheus_port = prometheus_port
        self.registry = CollectorRegistry()
        self.start_time = time.time()

        self.requests_total = Counter(
            'clickdrag_requests_total',
            'Total number of tile requests issued',
            registry=self.registry
        )
        self.tiles_fetched_total = Counter(
            'clickdrag_tiles_fetched_total',
            'Tiles downloaded this run',
            registry=self.registry
        )
        self.tiles_cached_total = Counter(
            'clickdrag_tiles_cached_total',
            'Tiles already present on disk',
            registry=self.registry
        )
        self.fetch_failures_total = Counter(
            'clickdrag_fetch_failures_total',
            'Tile fetches that did not produce a tile',
            ['outcome'],
            registry=self.registry
        )
        self.tiles_found = Gauge(
            'clickdrag_tiles_found',
            'Tiles confirmed to exist',
            registry=self.registry
        )
        self.tiles_tried = Gauge(
            'clickdrag_tiles_tried',
            'Tiles attempted',
            registry=self.registry
        )
        self.active_tasks = Gauge(
            'clickdrag_active_tasks',
            'Discovery tasks in flight',
            registry=self.registry
        )

    def start_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_server:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def record_request(self):
        self.requests_total.inc()

    def record_fetched(self):
        self.tiles_fetched_total.inc()

    def record_cached(self):
        self.tiles_cached_total.inc()

    def record_failure(self, outcome: str):
        self.fetch_failures_total.labels(outcome=outcome).inc()

    def update_progress(self, found: int, tried: int, active: int):
        self.tiles_found.set(found)
        self.tiles_tried.set(tried)
        self.active_tasks.set(active)

    def _sample(self, sample_name: str) -> float:
        return self.registry.get_sample_value(sample_name) or 0.0

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the crawl metrics."""
        runtime = time.time() - self.start_time
        requests = self._sample('clickdrag_requests_total')
        return {
            'runtime_seconds': runtime,
            'requests': requests,
            'fetched': self._sample('clickdrag_tiles_fetched_total'),
            'cached': self._sample('clickdrag_tiles_cached_total'),
            'found': self._sample('clickdrag_tiles_found'),
            'tried': self._sample('clickdrag_tiles_tried'),
            'requests_per_second': requests / runtime if runtime > 0 else 0,
        }


class StatusReporter:
    """
    Periodically logs crawl progress.

    ``snapshot`` returns ``(found, tried, active)`` and is expected to read
    the shared sets under their lock.
    """

    def __init__(self, snapshot: Callable[[], Awaitable[Tuple[int, int, int]]],
                 interval: float = 1.0, metrics: Optional[MetricsCollector] = None):
        self.snapshot = snapshot
        self.interval = interval
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)
        self._task: Optional[asyncio.Task] = None

    async def report_once(self):
        found, tried, active = await self.snapshot()
        self.logger.info(f"Downloaded: {found}, Attempted: {tried}, Pending: {active}")
        if self.metrics:
            self.metrics.update_progress(found, tried, active)

    async def _run(self):
        while True:
            await self.report_once()
            await asyncio.sleep(self.interval)

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self):
        """Stop the reporter and log one last line."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        await self.report_once()
