"""
Storage layer for downloaded tiles and the rendered index.
"""

from .tile_store import TileStore, TileStoreError

__all__ = ['TileStore', 'TileStoreError']
