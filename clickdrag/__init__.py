"""
clickdrag mosaic crawler

Discovers the tiles of a sparse image mosaic by flood-fill and lays them out
as a single HTML page.
"""

__version__ = "1.0.0"
__description__ = "Flood-fill tile crawler and mosaic renderer"
