"""
Mosaic document rendering.
"""

from .mosaic import MosaicRenderer

__all__ = ['MosaicRenderer']
