"""
Configuration management for the mosaic crawler.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field, fields

from ..crawler.coords import TileCoord


DEFAULT_SEEDS = [
    [1, 'n', 1, 'e'],
    [1, 'n', 1, 'w'],
    [3, 's', 7, 'e'],
    [15, 's', 1, 'w'],
]

# The south-east anchor appears twice and south-west not at all; kept as-is
DEFAULT_PLACEHOLDER_SEEDS = [
    [11, 'n', 11, 'e'],
    [11, 'n', 11, 'w'],
    [11, 's', 11, 'e'],
    [11, 's', 11, 'e'],
]


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    tile_url_template: str = "http://imgs.xkcd.com/clickdrag/{name}"
    output_dir: str = "out"
    local_only: bool = False
    max_concurrent_requests: int = 10
    request_timeout: int = 30
    user_agent: str = "clickdrag-crawler/1.0"
    status_interval: float = 1.0
    verbosity: int = 0
    seeds: List[List[Any]] = field(default_factory=lambda: [list(s) for s in DEFAULT_SEEDS])
    placeholder_seeds: List[List[Any]] = field(
        default_factory=lambda: [list(s) for s in DEFAULT_PLACEHOLDER_SEEDS]
    )

    def seed_coords(self) -> List[TileCoord]:
        return [TileCoord.create(*seed) for seed in self.seeds]

    def placeholder_coords(self) -> List[TileCoord]:
        return [TileCoord.create(*seed) for seed in self.placeholder_seeds]


@dataclass
class RenderConfig:
    """Configuration for the mosaic document."""
    extent: int = 50
    placeholder: int = 11
    index_name: str = "index.html"
    title: str = "clickdrag"


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _section(cls, data: Optional[Dict[str, Any]]):
    """Build a config section, rejecting unknown keys."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__} section must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from a YAML file, or defaults when no path is set."""
        config_data: Dict[str, Any] = {}
        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r') as file:
                config_data = yaml.safe_load(file) or {}

            if not isinstance(config_data, dict):
                raise ValueError(f"Configuration must be a mapping: {self.config_path}")

        self._config = Config(
            crawler=_section(CrawlerConfig, config_data.get('crawler')),
            render=_section(RenderConfig, config_data.get('render')),
            logging=_section(LoggingConfig, config_data.get('logging')),
            monitoring=_section(MonitoringConfig, config_data.get('monitoring')),
        )

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")

        crawler = self._config.crawler
        if not crawler.seeds:
            raise ValueError("At least one seed must be provided")

        # Raises ValueError on malformed entries
        crawler.seed_coords()
        crawler.placeholder_coords()

        if '{name}' not in crawler.tile_url_template:
            raise ValueError("tile_url_template must contain '{name}'")

        if crawler.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

        if crawler.status_interval <= 0:
            raise ValueError("status_interval must be positive")

        if crawler.verbosity < 0:
            raise ValueError("verbosity must be non-negative")

        render = self._config.render
        if render.extent < 1:
            raise ValueError("render extent must be at least 1")

        if render.placeholder < 1:
            raise ValueError("render placeholder must be at least 1")

        logging.debug("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config_manager.config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()
