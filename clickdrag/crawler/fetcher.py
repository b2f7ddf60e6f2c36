"""
Tile fetcher: bounded-concurrency HTTP downloads streamed straight to disk.
"""

import asyncio
import aiohttp
import aiofiles
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError

from ..utils.logger import CrawlerLogAdapter
from ..utils.monitoring import MetricsCollector


class FetchOutcome(Enum):
    """How a tile fetch ended."""
    FETCHED = "fetched"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    WRITE_ERROR = "write_error"
    EMPTY = "empty"

    @property
    def ok(self) -> bool:
        return self is FetchOutcome.FETCHED


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    name: str
    url: str
    outcome: FetchOutcome
    status_code: int = 0
    bytes_written: int = 0
    error: Optional[str] = None
    fetch_time: float = 0.0


class TileFetcher:
    """
    Fetches tiles with a counting semaphore bounding in-flight requests.

    A permit is held from just before the GET until the body has been
    written out (or the attempt failed).
    """

    def __init__(self, url_template: str, user_agent: str, request_timeout: int = 30,
                 max_concurrent_requests: int = 10,
                 log: Optional[CrawlerLogAdapter] = None,
                 metrics: Optional[MetricsCollector] = None,
                 chunk_size: int = 8192):
        self.url_template = url_template
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.chunk_size = chunk_size
        self.metrics = metrics

        self.log = log or CrawlerLogAdapter(logging.getLogger(__name__))

        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'not_found': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.log.debug("TileFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.log.debug("TileFetcher session closed")

    def url_for(self, name: str) -> str:
        return self.url_template.format(name=name)

    async def fetch(self, name: str, path: Path) -> FetchResult:
        """
        Download tile ``name`` into ``path``.

        Per-tile failures are logged and reported through the result's
        outcome; nothing is raised. A partially written file is removed.
        """
        if self.session is None:
            raise RuntimeError("TileFetcher used before start()")

        url = self.url_for(name)
        start_time = time.time()

        async with self.semaphore:
            self.stats['total_requests'] += 1
            if self.metrics:
                self.metrics.record_request()

            try:
                async with self.session.get(url) as response:
                    if response.status // 100 != 2:
                        return self._status_failure(name, url, response, start_time)

                    self.log.log_tile_event(logging.INFO, name, f"Fetched {name}...")
                    return await self._write_body(name, url, path, response, start_time)

            except (ClientError, asyncio.TimeoutError) as e:
                return self._failure(name, url, FetchOutcome.TRANSPORT_ERROR,
                                     f"get({name!r}): {_describe(e)}", start_time,
                                     path=path)

    async def _write_body(self, name: str, url: str, path: Path, response,
                          start_time: float) -> FetchResult:
        opened = False
        written = 0
        try:
            async with aiofiles.open(path, 'wb') as f:
                opened = True
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    await f.write(chunk)
                    written += len(chunk)
        except (OSError, ClientError, asyncio.TimeoutError) as e:
            if not opened:
                return self._failure(name, url, FetchOutcome.WRITE_ERROR,
                                     f"create({name!r}): {e}", start_time,
                                     response.status)
            # Covers errors flushing on close as well as mid-stream
            return self._failure(name, url, FetchOutcome.WRITE_ERROR,
                                 f"copy({name!r}): {_describe(e)}", start_time,
                                 response.status, path=path)

        if written == 0:
            return self._failure(name, url, FetchOutcome.EMPTY,
                                 f"fetch({name!r}): empty body", start_time,
                                 response.status, path=path)

        self.stats['successful_requests'] += 1
        self.stats['total_bytes_downloaded'] += written
        if self.metrics:
            self.metrics.record_fetched()

        return FetchResult(
            name=name,
            url=url,
            outcome=FetchOutcome.FETCHED,
            status_code=response.status,
            bytes_written=written,
            fetch_time=time.time() - start_time
        )

    def _status_failure(self, name: str, url: str, response, start_time: float) -> FetchResult:
        status = f"{response.status} {response.reason or ''}".strip()
        if response.status == 404:
            self.stats['not_found'] += 1
            self.log.v(1, f"fetch({name!r}): {status}")
            outcome = FetchOutcome.NOT_FOUND
        else:
            self.stats['failed_requests'] += 1
            self.log.warning(f"fetch({name!r}): {status}")
            outcome = FetchOutcome.HTTP_ERROR

        if self.metrics:
            self.metrics.record_failure(outcome.value)

        return FetchResult(
            name=name,
            url=url,
            outcome=outcome,
            status_code=response.status,
            error=status,
            fetch_time=time.time() - start_time
        )

    def _failure(self, name: str, url: str, outcome: FetchOutcome, error: str,
                 start_time: float, status_code: int = 0,
                 path: Optional[Path] = None) -> FetchResult:
        self.stats['failed_requests'] += 1
        self.log.warning(error)
        if path is not None:
            _remove_partial(path, self.log)
        if self.metrics:
            self.metrics.record_failure(outcome.value)

        return FetchResult(
            name=name,
            url=url,
            outcome=outcome,
            status_code=status_code,
            error=error,
            fetch_time=time.time() - start_time
        )

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()


def _remove_partial(path: Path, log: CrawlerLogAdapter):
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning(f"remove({path.name!r}): {e}")


def _describe(error: BaseException) -> str:
    # asyncio.TimeoutError stringifies to ''
    return str(error) or type(error).__name__
