"""
Tile discovery components.
"""

from .coords import TileCoord, name, parse_name, neighbors
from .fetcher import TileFetcher, FetchResult, FetchOutcome
from .engine import DiscoveryEngine

__all__ = [
    'TileCoord', 'name', 'parse_name', 'neighbors',
    'TileFetcher', 'FetchResult', 'FetchOutcome',
    'DiscoveryEngine'
]
