"""
Discovery engine: concurrent flood-fill over the tile grid.

Every coordinate visit runs as its own task. A visit claims the tile name in
the tried set, confirms the tile from the on-disk cache or the network, and
on success schedules all neighbors. Regions that answer 404 are never
expanded, so the crawl stops at the edge of the mosaic without knowing its
extent up front.
"""

import asyncio
import logging
from typing import Iterable, Optional, Set, Tuple

from .coords import TileCoord, name, neighbors
from .fetcher import TileFetcher
from ..storage.tile_store import TileStore
from ..utils.logger import CrawlerLogAdapter
from ..utils.monitoring import MetricsCollector


class DiscoveryEngine:
    """
    Flood-fill tile discovery.

    ``tried`` and ``found`` only ever grow and share a single lock, held
    just for the check-and-insert and mark-found steps. Completion is
    tracked with a pending-task counter that the spawning side increments
    before the child task exists, so it cannot reach zero while a found
    tile still has neighbors to schedule.
    """

    def __init__(self, store: TileStore, fetcher: Optional[TileFetcher] = None,
                 local_only: bool = False, log: Optional[CrawlerLogAdapter] = None,
                 metrics: Optional[MetricsCollector] = None):
        if fetcher is None and not local_only:
            raise ValueError("A fetcher is required unless running local-only")

        self.store = store
        self.fetcher = fetcher
        self.local_only = local_only
        self.log = log or CrawlerLogAdapter(logging.getLogger(__name__))
        self.metrics = metrics

        self.tried: Set[str] = set()
        self.found: Set[str] = set()
        self._lock = asyncio.Lock()

        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> int:
        """Number of visits scheduled but not yet finished."""
        return self._pending

    def seed(self, coord: TileCoord):
        """Schedule a coordinate for discovery. Must be called from a running loop."""
        self._spawn(coord)

    async def wait(self):
        """Block until every scheduled and expanded visit has finished."""
        await self._idle.wait()

    async def crawl(self, coords: Iterable[TileCoord]):
        """Seed ``coords`` and wait for quiescence."""
        for coord in coords:
            self.seed(coord)
        await self.wait()

    def is_found(self, tile_name: str) -> bool:
        return tile_name in self.found

    def is_tried(self, tile_name: str) -> bool:
        return tile_name in self.tried

    async def snapshot(self) -> Tuple[int, int, int]:
        """(found, tried, active) counts, read under the lock."""
        async with self._lock:
            return len(self.found), len(self.tried), self._pending

    def _spawn(self, coord: TileCoord):
        self._pending += 1
        self._idle.clear()
        task = asyncio.create_task(self._visit(coord))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _visit(self, coord: TileCoord):
        try:
            await self._discover(coord)
        except Exception as e:
            self.log.error(f"visit({name(coord)!r}): {e}", exc_info=True)
        finally:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()

    async def _should_try(self, image: str) -> bool:
        async with self._lock:
            if image in self.tried:
                return False
            self.tried.add(image)
            return True

    async def _mark_found(self, image: str):
        async with self._lock:
            self.found.add(image)

    async def _discover(self, coord: TileCoord):
        image = name(coord)

        if not await self._should_try(image):
            self.log.v(3, f"already tried {image!r}")
            return

        if self.store.has_tile(image):
            self.log.log_tile_event(logging.INFO, image, f"Existing {image}...")
            if self.metrics:
                self.metrics.record_cached()
        elif self.local_only:
            return
        else:
            result = await self.fetcher.fetch(image, self.store.path_for(image))
            if not result.outcome.ok:
                return

        await self._mark_found(image)

        for neighbor in neighbors(coord):
            self.log.v(3, f"{image}: considering {neighbor.m} {neighbor.ns}, "
                          f"{neighbor.n} {neighbor.ew}")
            self._spawn(neighbor)
