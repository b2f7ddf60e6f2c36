#!/usr/bin/env python3
"""
Main entry point for the clickdrag mosaic crawler.
"""

import asyncio
import argparse
import logging
import sys
from typing import List, Optional

import yaml

from clickdrag import __version__
from clickdrag.crawler.engine import DiscoveryEngine
from clickdrag.crawler.fetcher import TileFetcher
from clickdrag.render.mosaic import MosaicRenderer
from clickdrag.storage.tile_store import TileStore, TileStoreError
from clickdrag.utils.config import load_config, Config
from clickdrag.utils.logger import setup_logging, get_crawler_logger, log_system_info
from clickdrag.utils.monitoring import MetricsCollector, StatusReporter


class CrawlerApp:
    """Main application class for the mosaic crawler."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.engine: Optional[DiscoveryEngine] = None
        self.metrics: Optional[MetricsCollector] = None

    def setup_logging(self):
        """Setup logging configuration."""
        setup_logging(
            {
                'level': self.config.logging.level,
                'file': self.config.logging.file,
                'format': self.config.logging.format,
            },
            verbosity=self.config.crawler.verbosity,
            enable_json=self.config.logging.json,
        )

    async def run(self) -> int:
        """Run discovery and render the mosaic. Returns the exit status."""
        crawler_config = self.config.crawler
        render_config = self.config.render

        self.logger.info("=== CLICKDRAG CRAWLER STARTING ===")
        self.logger.info(f"Output directory: {crawler_config.output_dir}")
        self.logger.info(f"Local only: {crawler_config.local_only}")
        self.logger.info(f"Max concurrent requests: {crawler_config.max_concurrent_requests}")

        store = TileStore(crawler_config.output_dir, render_config.index_name)
        try:
            store.prepare()
        except TileStoreError as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        self.logger.info(f"Tiles already on disk: {len(store.cached_tiles())}")

        log = get_crawler_logger('clickdrag', verbosity=crawler_config.verbosity)

        self.metrics = MetricsCollector(
            enable_server=self.config.monitoring.metrics_enabled,
            prometheus_port=self.config.monitoring.prometheus_port
        )
        self.metrics.start_server()

        fetcher = None
        if not crawler_config.local_only:
            fetcher = TileFetcher(
                url_template=crawler_config.tile_url_template,
                user_agent=crawler_config.user_agent,
                request_timeout=crawler_config.request_timeout,
                max_concurrent_requests=crawler_config.max_concurrent_requests,
                log=log,
                metrics=self.metrics
            )
            await fetcher.start()

        try:
            self.engine = DiscoveryEngine(
                store,
                fetcher,
                local_only=crawler_config.local_only,
                log=log,
                metrics=self.metrics
            )

            reporter = StatusReporter(
                self.engine.snapshot,
                interval=crawler_config.status_interval,
                metrics=self.metrics
            )
            reporter.start()

            # Starting points, then the placeholder anchors
            await self.engine.crawl(
                crawler_config.seed_coords() + crawler_config.placeholder_coords()
            )
            await reporter.stop()

            renderer = MosaicRenderer(
                extent=render_config.extent,
                placeholder=render_config.placeholder,
                title=render_config.title,
                log=log
            )
            store.write_index(renderer.render(self.engine))

        except TileStoreError as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if fetcher:
                await fetcher.close()

        found, tried, _ = await self.engine.snapshot()
        summary = self.metrics.get_summary()
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Tiles found: {found}")
        self.logger.info(f"Tiles attempted: {tried}")
        self.logger.info(f"Requests issued: {int(summary['requests'])}")
        self.logger.info(f"Total time: {summary['runtime_seconds']:.2f} seconds")
        if fetcher:
            self.logger.info(f"Fetcher stats: {fetcher.get_stats()}")

        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconstruct the clickdrag mosaic by flood-fill tile discovery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                      # Crawl into ./out
  python main.py --dir mosaic         # Crawl into ./mosaic
  python main.py --local              # Only use tiles already on disk
  python main.py -v 1                 # Also log tiles answering 404
  python main.py --config crawl.yaml  # Load settings from a YAML file
        """
    )

    parser.add_argument(
        '--dir',
        default=None,
        help='Output directory (default: out)'
    )

    parser.add_argument(
        '--local',
        action='store_true',
        help='Only examine local files'
    )

    parser.add_argument(
        '-v',
        type=int,
        default=None,
        dest='verbosity',
        help='Verbose level (1: 404s, 2: render misses, 3: dedup and expansion)'
    )

    parser.add_argument(
        '--config',
        default=None,
        help='Path to a YAML configuration file'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'clickdrag {__version__}'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError, TypeError, yaml.YAMLError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.dir is not None:
        config.crawler.output_dir = args.dir
    if args.local:
        config.crawler.local_only = True
    if args.verbosity is not None:
        config.crawler.verbosity = args.verbosity

    app = CrawlerApp(config)
    app.setup_logging()
    log_system_info()

    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
