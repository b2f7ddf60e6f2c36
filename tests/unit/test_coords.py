"""
Unit tests for the tile coordinate model
"""

import pytest

from clickdrag.crawler.coords import TileCoord, name, parse_name, neighbors


class TestTileNames:
    """Test cases for tile naming"""

    def test_name_format(self):
        assert name(TileCoord(3, 's', 7, 'e')) == "3s7e.png"
        assert name(TileCoord(15, 's', 1, 'w')) == "15s1w.png"

    def test_str_is_name(self):
        assert str(TileCoord(1, 'n', 1, 'e')) == "1n1e.png"

    def test_parse_name_inverts_name(self):
        coord = TileCoord(12, 'n', 40, 'w')
        assert parse_name(name(coord)) == coord

    @pytest.mark.parametrize("bad", ["0n1e.png", "1x1e.png", "1n1e.jpg", "n1e.png", "01n1e.png", ""])
    def test_parse_name_rejects_non_tiles(self, bad):
        with pytest.raises(ValueError, match="Not a tile name"):
            parse_name(bad)

    def test_direction_labels_distinguish_tiles(self):
        assert name(TileCoord(2, 'n', 2, 'e')) != name(TileCoord(2, 's', 2, 'e'))


class TestTileCoordCreate:
    """Test cases for coordinate validation"""

    def test_valid(self):
        assert TileCoord.create(1, 'n', 1, 'e') == TileCoord(1, 'n', 1, 'e')

    def test_origin_is_invalid(self):
        with pytest.raises(ValueError, match="positive"):
            TileCoord.create(0, 'n', 1, 'e')
        with pytest.raises(ValueError, match="positive"):
            TileCoord.create(1, 'n', 0, 'e')

    def test_bad_labels(self):
        with pytest.raises(ValueError, match="north/south"):
            TileCoord.create(1, 'e', 1, 'e')
        with pytest.raises(ValueError, match="east/west"):
            TileCoord.create(1, 'n', 1, 'n')

    def test_quadrant(self):
        assert TileCoord(4, 's', 9, 'w').quadrant == "sw"


class TestNeighbors:
    """Test cases for the expansion neighborhood"""

    def test_interior_has_24_neighbors(self):
        result = neighbors(TileCoord(10, 'n', 10, 'e'))
        assert len(result) == 24
        assert TileCoord(10, 'n', 10, 'e') not in result
        assert {c.m for c in result} == {8, 9, 10, 11, 12}
        assert {c.n for c in result} == {8, 9, 10, 11, 12}

    def test_row_major_order(self):
        result = neighbors(TileCoord(10, 'n', 10, 'e'))
        assert result[0] == TileCoord(8, 'n', 8, 'e')
        assert result[1] == TileCoord(8, 'n', 9, 'e')
        assert result[-1] == TileCoord(12, 'n', 12, 'e')

    def test_corner_stays_in_quadrant(self):
        result = neighbors(TileCoord(1, 's', 1, 'w'))
        assert len(result) == 8
        assert {c.m for c in result} == {1, 2, 3}
        assert {c.n for c in result} == {1, 2, 3}
        assert all(c.ns == 's' and c.ew == 'w' for c in result)

    def test_edge_filters_one_axis(self):
        result = neighbors(TileCoord(1, 'n', 5, 'e'))
        assert len(result) == 14
        assert min(c.m for c in result) == 1
        assert {c.n for c in result} == {3, 4, 5, 6, 7}

    def test_second_row_keeps_m_of_one(self):
        result = neighbors(TileCoord(2, 'n', 2, 'w'))
        assert {c.m for c in result} == {1, 2, 3, 4}
        assert all(c.m >= 1 and c.n >= 1 for c in result)
