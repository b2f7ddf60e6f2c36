"""
On-disk tile storage: the output directory holding one file per found tile
plus the rendered index.
"""

import logging
from pathlib import Path
from typing import List, Union


class TileStoreError(Exception):
    """Fatal error preparing or writing the output directory."""
    pass


class TileStore:
    """
    Output directory for tiles and the mosaic index.

    Tile files double as the cross-run cache: a non-empty file named after a
    tile counts as found without any network I/O.
    """

    def __init__(self, directory: Union[str, Path], index_name: str = "index.html"):
        self.directory = Path(directory)
        self.index_name = index_name
        self.logger = logging.getLogger(__name__)

    @property
    def index_path(self) -> Path:
        return self.directory / self.index_name

    def prepare(self):
        """Create the output directory and make sure the index can be created."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TileStoreError(f"mkdir({str(self.directory)!r}): {e}") from e

        try:
            with open(self.index_path, 'a', encoding='utf-8'):
                pass
        except OSError as e:
            raise TileStoreError(f"create({self.index_name!r}): {e}") from e

        self.logger.info(f"Output directory ready at {self.directory}")

    def path_for(self, tile_name: str) -> Path:
        return self.directory / tile_name

    def has_tile(self, tile_name: str) -> bool:
        """True if a non-empty file for ``tile_name`` exists."""
        try:
            return self.path_for(tile_name).stat().st_size > 0
        except OSError:
            return False

    def cached_tiles(self) -> List[str]:
        """Names of files currently in the directory, excluding the index."""
        if not self.directory.is_dir():
            return []
        return sorted(
            entry.name for entry in self.directory.iterdir()
            if entry.is_file() and entry.name != self.index_name
        )

    def write_index(self, document: str):
        """Write the rendered mosaic document. On failure no index is left behind."""
        try:
            self.index_path.write_text(document, encoding='utf-8')
        except OSError as e:
            try:
                self.index_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                self.logger.warning(f"remove({self.index_name!r}): {cleanup_error}")
            raise TileStoreError(f"write({self.index_name!r}): {e}") from e
        self.logger.info(f"Wrote {self.index_name}")
