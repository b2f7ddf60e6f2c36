"""
Tile coordinate model: naming scheme and the neighbor function that defines
the crawl graph.
"""

import re
from typing import List, NamedTuple

NORTH_SOUTH = ('n', 's')
EAST_WEST = ('e', 'w')

# Offsets examined around a found tile; +/-2 hops over a single missing tile
EXPAND_OFFSETS = (-2, -1, 0, 1, 2)

_NAME_PATTERN = re.compile(r'^([1-9][0-9]*)([ns])([1-9][0-9]*)([ew])\.png$')


class TileCoord(NamedTuple):
    """A cell in one of the four quadrants of the mosaic."""
    m: int
    ns: str
    n: int
    ew: str

    @classmethod
    def create(cls, m: int, ns: str, n: int, ew: str) -> 'TileCoord':
        """Build a validated coordinate."""
        if m < 1 or n < 1:
            raise ValueError(f"Coordinates must be positive, got m={m}, n={n}")
        if ns not in NORTH_SOUTH:
            raise ValueError(f"Invalid north/south label: {ns!r}")
        if ew not in EAST_WEST:
            raise ValueError(f"Invalid east/west label: {ew!r}")
        return cls(m, ns, n, ew)

    @property
    def quadrant(self) -> str:
        return self.ns + self.ew

    def __str__(self) -> str:
        return name(self)


def name(coord: TileCoord) -> str:
    """Canonical tile filename, e.g. ``3s7e.png``."""
    return f"{coord.m}{coord.ns}{coord.n}{coord.ew}.png"


def parse_name(tile_name: str) -> TileCoord:
    """Inverse of :func:`name`."""
    match = _NAME_PATTERN.match(tile_name)
    if not match:
        raise ValueError(f"Not a tile name: {tile_name!r}")
    m, ns, n, ew = match.groups()
    return TileCoord(int(m), ns, int(n), ew)


def neighbors(coord: TileCoord) -> List[TileCoord]:
    """
    Coordinates within two steps of ``coord`` on both axes.

    Offsets are produced in row-major order. Neighbors that would fall on or
    across the origin are dropped; direction labels never flip.
    """
    result = []
    for dm in EXPAND_OFFSETS:
        for dn in EXPAND_OFFSETS:
            if dm == 0 and dn == 0:
                continue
            m, n = coord.m + dm, coord.n + dn
            if m < 1 or n < 1:
                continue
            result.append(TileCoord(m, coord.ns, n, coord.ew))
    return result
