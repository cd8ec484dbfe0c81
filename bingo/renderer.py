"""
ThemeRenderer - turns geometry plus cell content into draw commands.

The renderer never talks to a PDF or image library directly. It emits
small command records that the document backend (ReportLab) and the
preview backend (Pillow) both execute.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple, Union

from .layout import GridPlacement, Rect
from .themes import RGB, ThemeStyle

logger = logging.getLogger(__name__)

WHITE: RGB = (255, 255, 255)
PT_TO_MM = 25.4 / 72

# Font sizes in points: one grid per page vs. compact layouts
TITLE_FONT_SIZES = {False: 14, True: 8}
STAR_FONT_SIZES = {False: 18, True: 10}


@dataclass
class FillRect:
    rect: Rect
    color: RGB
    alpha: float = 1.0
    radius: float = 0.0


@dataclass
class StrokeRect:
    rect: Rect
    color: RGB
    width: float
    radius: float = 0.0


@dataclass
class DrawImage:
    rect: Rect
    data: bytes          # Encoded raster (JPEG)
    source: str = ""     # For logging only


@dataclass
class DrawText:
    x: float             # Horizontal center
    y: float             # Baseline
    text: str
    size: float          # Points
    color: RGB


@dataclass
class DrawStar:
    center: Tuple[float, float]
    radius: float
    color: RGB


DrawCommand = Union[FillRect, StrokeRect, DrawImage, DrawText, DrawStar]


@dataclass(frozen=True)
class FreeSpace:
    """Center cell on odd-sized grids."""


@dataclass(frozen=True)
class ImageCell:
    """Cell showing a normalized photo; empty data means it failed to load."""
    image_id: str
    data: bytes = b""

    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0


CellContent = Union[FreeSpace, ImageCell]


def star_points(center: Tuple[float, float], radius: float, points: int = 5) -> List[Tuple[float, float]]:
    """Vertices of a star polygon pointing up, alternating outer/inner radius."""
    cx, cy = center
    inner = radius * 0.4
    vertices = []
    for i in range(points * 2):
        r = radius if i % 2 == 0 else inner
        angle = -math.pi / 2 + i * math.pi / points
        vertices.append((cx + r * math.cos(angle), cy + r * math.sin(angle)))
    return vertices


class ThemeRenderer:
    """
    Renders backgrounds, titles, grid frames and cells.

    Theme differences come only from the ThemeStyle passed in:
    - Background themes: near-opaque rounded white tile, inset image,
      rounded white stroke on top ("polaroid on backdrop")
    - Plain themes: square white cell with a thin gray border
    """

    def render_page_fill(self, page: Rect, style: ThemeStyle) -> List[DrawCommand]:
        """White base, or the theme tint when the theme has no artwork."""
        color = WHITE if style.has_background_artwork else style.page_tint
        return [FillRect(page, color)]

    def render_background(
        self,
        rect: Rect,
        style: ThemeStyle,
        data: bytes,
        source: str = "",
    ) -> List[DrawCommand]:
        """Artwork over rect, or a flat theme tint when the asset is missing."""
        if not data:
            logger.warning(f"Background {source or '<none>'} unavailable, using flat tint")
            return [FillRect(rect, style.page_tint)]
        return [DrawImage(rect, data, source)]

    def render_title(
        self,
        placement: GridPlacement,
        text: str,
        style: ThemeStyle,
        grids_per_page: int,
    ) -> List[DrawCommand]:
        if placement.title_anchor is None or not style.show_title:
            return []
        x, y = placement.title_anchor
        return [DrawText(x, y, text, TITLE_FONT_SIZES[grids_per_page > 1], style.title_color)]

    def render_grid_frame(self, placement: GridPlacement, style: ThemeStyle) -> List[DrawCommand]:
        if style.has_background_artwork:
            return []
        return [StrokeRect(placement.frame, style.grid_border_color, style.grid_border_width)]

    def render_cell(
        self,
        rect: Rect,
        content: CellContent,
        style: ThemeStyle,
        grids_per_page: int = 1,
    ) -> List[DrawCommand]:
        """
        Render one cell.

        Args:
            rect: Cell rectangle
            content: FreeSpace or ImageCell
            style: Theme style
            grids_per_page: Scales the free-space glyph

        Returns:
            Draw commands in paint order
        """
        rounded = style.has_background_artwork
        radius = style.corner_radius if rounded else 0.0
        commands: List[DrawCommand] = [
            FillRect(rect, style.cell_fill, style.cell_fill_alpha, radius)
        ]

        if isinstance(content, FreeSpace):
            size_mm = STAR_FONT_SIZES[grids_per_page > 1] * PT_TO_MM
            star_radius = min(size_mm / 2, rect.width * 0.4)
            commands.append(DrawStar(rect.center, star_radius, style.star_color))
        elif content.is_empty:
            logger.debug(f"Skipping image draw for {content.image_id}: no asset")
        else:
            commands.append(DrawImage(rect.inset(style.image_padding), content.data, content.image_id))

        commands.append(StrokeRect(rect, style.cell_border_color, style.cell_border_width, radius))
        return commands

    def render_grid(
        self,
        placement: GridPlacement,
        contents: List[CellContent],
        title: str,
        style: ThemeStyle,
        grids_per_page: int,
    ) -> List[DrawCommand]:
        """Title, frame and every cell of one grid."""
        commands = self.render_title(placement, title, style, grids_per_page)
        commands.extend(self.render_grid_frame(placement, style))
        for cell, content in zip(placement.cells, contents):
            commands.extend(self.render_cell(cell.rect, content, style, grids_per_page))
        return commands
