"""
Unit tests for the tile fetcher, run against a local aiohttp server
"""

import asyncio
import logging
from collections import Counter
from unittest.mock import patch

import pytest
from aiohttp import web
from aiohttp import test_utils

from clickdrag.crawler import fetcher as fetcher_module
from clickdrag.crawler.fetcher import TileFetcher, FetchOutcome
from clickdrag.utils.logger import CrawlerLogAdapter
from clickdrag.utils.monitoring import MetricsCollector

TILE = b"\x89PNG\r\n\x1a\n" + b"x" * 20000


class TileServer:
    """Serves a fixed set of tiles and tracks request concurrency."""

    def __init__(self, tiles=(), statuses=None, empty=(), delay=0.0):
        self.tiles = set(tiles)
        self.statuses = statuses or {}
        self.empty = set(empty)
        self.delay = delay
        self.hits = Counter()
        self.active = 0
        self.max_active = 0
        self.server = None

    async def handle(self, request):
        tile = request.match_info['name']
        self.hits[tile] += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if tile in self.statuses:
                return web.Response(status=self.statuses[tile])
            if tile in self.empty:
                return web.Response(body=b"", content_type='image/png')
            if tile in self.tiles:
                return web.Response(body=TILE, content_type='image/png')
            raise web.HTTPNotFound()
        finally:
            self.active -= 1

    async def __aenter__(self):
        app = web.Application()
        app.router.add_get('/clickdrag/{name}', self.handle)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.server.close()

    @property
    def template(self) -> str:
        return str(self.server.make_url('/clickdrag/')) + '{name}'


def make_fetcher(template, limit=10, verbosity=0, metrics=None):
    log = CrawlerLogAdapter(logging.getLogger("clickdrag.test.fetcher"), verbosity)
    return TileFetcher(template, "clickdrag-test/1.0", request_timeout=5,
                       max_concurrent_requests=limit, log=log, metrics=metrics)


class TestTileFetcher:
    """Test cases for TileFetcher"""

    def test_url_for(self):
        fetcher = make_fetcher("http://imgs.xkcd.com/clickdrag/{name}")
        assert fetcher.url_for("3s7e.png") == "http://imgs.xkcd.com/clickdrag/3s7e.png"

    def test_fetch_before_start_raises(self, tmp_path):
        fetcher = make_fetcher("http://tiles.test/{name}")
        with pytest.raises(RuntimeError):
            asyncio.run(fetcher.fetch("1n1e.png", tmp_path / "1n1e.png"))

    def test_success_streams_to_file(self, tmp_path):
        async def _run():
            metrics = MetricsCollector()
            async with TileServer(["1n1e.png"]) as server:
                async with make_fetcher(server.template, metrics=metrics) as fetcher:
                    result = await fetcher.fetch("1n1e.png", tmp_path / "1n1e.png")
                    return result, fetcher.get_stats(), metrics.get_summary()

        result, stats, summary = asyncio.run(_run())
        assert result.outcome is FetchOutcome.FETCHED
        assert result.outcome.ok
        assert result.status_code == 200
        assert result.bytes_written == len(TILE)
        assert (tmp_path / "1n1e.png").read_bytes() == TILE
        assert stats['successful_requests'] == 1
        assert stats['total_bytes_downloaded'] == len(TILE)
        assert summary['requests'] == 1
        assert summary['fetched'] == 1

    def test_not_found(self, tmp_path, caplog):
        caplog.set_level(logging.DEBUG, logger="clickdrag.test.fetcher")

        async def _run():
            async with TileServer() as server:
                async with make_fetcher(server.template, verbosity=1) as fetcher:
                    return await fetcher.fetch("9n9e.png", tmp_path / "9n9e.png")

        result = asyncio.run(_run())
        assert result.outcome is FetchOutcome.NOT_FOUND
        assert result.status_code == 404
        assert not (tmp_path / "9n9e.png").exists()
        assert "[debug] fetch('9n9e.png'): 404" in caplog.text

    def test_not_found_quiet_at_default_verbosity(self, tmp_path, caplog):
        caplog.set_level(logging.DEBUG, logger="clickdrag.test.fetcher")

        async def _run():
            async with TileServer() as server:
                async with make_fetcher(server.template) as fetcher:
                    return await fetcher.fetch("9n9e.png", tmp_path / "9n9e.png")

        asyncio.run(_run())
        assert "9n9e.png" not in caplog.text

    def test_other_status_is_logged(self, tmp_path, caplog):
        async def _run():
            async with TileServer(["1n1e.png"], statuses={"1n1e.png": 503}) as server:
                async with make_fetcher(server.template) as fetcher:
                    return await fetcher.fetch("1n1e.png", tmp_path / "1n1e.png")

        result = asyncio.run(_run())
        assert result.outcome is FetchOutcome.HTTP_ERROR
        assert result.status_code == 503
        assert not (tmp_path / "1n1e.png").exists()
        assert "fetch('1n1e.png'): 503" in caplog.text

    def test_empty_body_is_discarded(self, tmp_path):
        async def _run():
            async with TileServer(empty=["1n1e.png"]) as server:
                async with make_fetcher(server.template) as fetcher:
                    return await fetcher.fetch("1n1e.png", tmp_path / "1n1e.png")

        result = asyncio.run(_run())
        assert result.outcome is FetchOutcome.EMPTY
        assert not (tmp_path / "1n1e.png").exists()

    def test_create_error(self, tmp_path, caplog):
        async def _run():
            async with TileServer(["1n1e.png"]) as server:
                async with make_fetcher(server.template) as fetcher:
                    return await fetcher.fetch("1n1e.png", tmp_path / "missing" / "1n1e.png")

        result = asyncio.run(_run())
        assert result.outcome is FetchOutcome.WRITE_ERROR
        assert "create('1n1e.png')" in caplog.text

    def test_close_error_removes_partial_file(self, tmp_path, caplog):
        path = tmp_path / "1n1e.png"

        class DiskFullOnClose:
            """Writes through to disk, then fails flushing on close."""

            def __init__(self, target, mode):
                self.target = target
                self.mode = mode

            async def __aenter__(self):
                self.file = open(self.target, self.mode)
                return self

            async def write(self, chunk):
                self.file.write(chunk[:len(chunk) // 2])

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                self.file.close()
                raise OSError(28, "No space left on device")

        async def _run():
            async with TileServer(["1n1e.png"]) as server:
                async with make_fetcher(server.template) as fetcher:
                    with patch.object(fetcher_module.aiofiles, "open", DiskFullOnClose):
                        return await fetcher.fetch("1n1e.png", path)

        result = asyncio.run(_run())
        assert result.outcome is FetchOutcome.WRITE_ERROR
        assert not path.exists()
        assert "copy('1n1e.png')" in caplog.text
        assert "No space left on device" in caplog.text

    def test_transport_error(self, tmp_path, caplog):
        async def _run():
            async with TileServer() as server:
                template = server.template
            # Server is gone; the port now refuses connections
            async with make_fetcher(template) as fetcher:
                return await fetcher.fetch("1n1e.png", tmp_path / "1n1e.png"), fetcher.get_stats()

        result, stats = asyncio.run(_run())
        assert result.outcome is FetchOutcome.TRANSPORT_ERROR
        assert stats['failed_requests'] == 1
        assert "get('1n1e.png')" in caplog.text
        assert not (tmp_path / "1n1e.png").exists()

    def test_concurrency_is_bounded(self, tmp_path):
        names = [f"{m}n1e.png" for m in range(1, 26)]

        async def _run():
            async with TileServer(names, delay=0.02) as server:
                async with make_fetcher(server.template, limit=3) as fetcher:
                    results = await asyncio.gather(
                        *(fetcher.fetch(n, tmp_path / n) for n in names)
                    )
                    return results, server.max_active

        results, max_active = asyncio.run(_run())
        assert all(r.outcome is FetchOutcome.FETCHED for r in results)
        assert 1 <= max_active <= 3
