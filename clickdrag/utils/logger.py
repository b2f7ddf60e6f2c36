"""
Logging utilities for the mosaic crawler.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'tile'):
            log_entry['tile'] = record.tile

        return json.dumps(log_entry, ensure_ascii=False)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """
    Logger adapter carrying the crawl verbosity.

    ``v(level, ...)`` emits a ``[debug]`` line only when the configured
    verbosity is at least ``level``:

        1: tiles answering 404
        2: render-time misses
        3: dedup and expansion traces
    """

    def __init__(self, logger: logging.Logger, verbosity: int = 0,
                 extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})
        self.verbosity = verbosity

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Add extra context to log messages."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra'].update(self.extra)
        return msg, kwargs

    def enabled(self, level: int) -> bool:
        return self.verbosity >= level

    def v(self, level: int, msg: str, *args, **kwargs):
        """Verbosity-gated debug line."""
        if not self.enabled(level):
            return
        self.debug("[debug] " + msg, *args, **kwargs)

    def log_tile_event(self, level: int, tile: str, message: str, *args, **kwargs):
        """Log a tile-specific event."""
        extra = kwargs.get('extra', {})
        extra['tile'] = tile
        kwargs['extra'] = extra
        self.log(level, message, *args, **kwargs)


def setup_logging(config: Dict[str, Any], verbosity: int = 0,
                  enable_json: bool = False) -> logging.Logger:
    """
    Setup logging for the crawler.

    Args:
        config: Logging configuration dictionary (level, file, format)
        verbosity: Crawl verbosity; any non-zero value lowers the level to DEBUG
        enable_json: Enable JSON formatted logging

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    level = getattr(logging, str(config.get('level', 'INFO')).upper(), logging.INFO)
    if verbosity > 0:
        level = logging.DEBUG
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    if enable_json:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            config.get('format') or '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file = config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    third_party_loggers = {
        'aiohttp': logging.WARNING,
        'asyncio': logging.WARNING,
        'urllib3': logging.WARNING,
    }
    for logger_name, third_party_level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(third_party_level)

    root_logger.debug(f"Logging initialized (level={logging.getLevelName(level)}, "
                      f"verbosity={verbosity}, file={log_file})")
    return root_logger


def get_crawler_logger(name: str, verbosity: int = 0, **extra_context) -> CrawlerLogAdapter:
    """
    Get a crawler logger with a verbosity gate.

    Args:
        name: Logger name
        verbosity: Crawl verbosity level
        **extra_context: Additional context fields to include in all log messages
    """
    return CrawlerLogAdapter(logging.getLogger(name), verbosity, extra_context)


def log_system_info():
    """Log system and environment information."""
    import platform
    import psutil

    logger = logging.getLogger(__name__)

    logger.debug("=== SYSTEM INFORMATION ===")
    logger.debug(f"Platform: {platform.platform()}")
    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"CPU cores: {psutil.cpu_count()}")
    logger.debug(f"Memory: {psutil.virtual_memory().total / 1024**3:.1f} GB")
