"""
Mosaic renderer: lays the discovered tiles out as an HTML table.
"""

import html
import io
import logging
from typing import Optional

from ..crawler.coords import TileCoord, name
from ..utils.logger import CrawlerLogAdapter

STYLE = "*{margin:0;padding:0;border-collapse:collapse}"


class MosaicRenderer:
    """
    Renders a fixed window of the grid into a single HTML document.

    Rows run from ``extent`` down to ``-extent`` and columns from
    ``-extent`` up to ``extent``; row 0 and column 0 do not exist and emit
    nothing. ``state`` is anything answering ``is_found(name)`` and
    ``is_tried(name)``, normally the :class:`DiscoveryEngine` after
    ``wait()`` has returned.
    """

    def __init__(self, extent: int = 50, placeholder: int = 11, title: str = "clickdrag",
                 log: Optional[CrawlerLogAdapter] = None):
        self.extent = extent
        self.placeholder = placeholder
        self.title = title
        self.log = log or CrawlerLogAdapter(logging.getLogger(__name__))

    def cell(self, state, r: int, c: int) -> str:
        """Contents of the ``<td>`` at row ``r``, column ``c``."""
        ns = 'n' if r > 0 else 's'
        ew = 'e' if c > 0 else 'w'
        image = name(TileCoord(abs(r), ns, abs(c), ew))

        if state.is_found(image):
            return f'<img src="{image}"/>'
        if state.is_tried(image):
            self.log.v(2, f"Could not find {image!r}")
            placeholder = name(TileCoord(self.placeholder, ns, self.placeholder, ew))
            return f'<img src="{placeholder}"/>'
        self.log.v(3, f"Did not attempt {image!r}")
        return "&nbsp;"

    def render(self, state) -> str:
        out = io.StringIO()
        out.write("<html><head>\n")
        out.write(f"<title>{html.escape(self.title)}</title>\n")
        out.write(f"<style>{STYLE}</style>\n")
        out.write("</head><body>\n")
        out.write("<table>\n")

        for r in range(self.extent, -self.extent - 1, -1):
            if r == 0:
                continue
            ns = 'n' if r > 0 else 's'
            out.write(f"  <tr> <!-- row {r} -->\n")
            for c in range(-self.extent, self.extent + 1):
                if c == 0:
                    continue
                ew = 'e' if c > 0 else 'w'
                out.write(f"  <td>{self.cell(state, r, c)}</td> <!-- {r} ({ns}) {c} ({ew}) -->\n")
            out.write("  </tr>\n")

        out.write("</table>\n")
        out.write("</body>\n")
        out.write("</html>\n")
        return out.getvalue()
