"""
Preview adapters for on-screen display.

- build_preview_tree: JSON-friendly tree of pages, grids and cells that a
  client lays out with absolute positioning
- RasterPreviewRenderer: Pillow raster of one page, drawn from the same
  commands the PDF writer executes
"""

import io
import logging
from typing import Dict, Optional

from PIL import Image, ImageDraw, ImageFont

from models import BingoImage
from .api_models import PreviewCell, PreviewDocument, PreviewGrid, PreviewPage, PreviewRect
from .compositor import DocumentLayout
from .layout import Rect
from .renderer import (
    PT_TO_MM, DrawCommand, DrawImage, DrawStar, DrawText, FillRect, FreeSpace, StrokeRect, star_points,
)

logger = logging.getLogger(__name__)


def _rect(rect: Rect) -> PreviewRect:
    return PreviewRect(x=rect.x, y=rect.y, width=rect.width, height=rect.height)


def build_preview_tree(
    document: DocumentLayout,
    images: Optional[Dict[str, BingoImage]] = None,
) -> PreviewDocument:
    """Describe a composited document as nested pages/grids/cells."""
    images = images or {}
    pages = []
    for page in document.pages:
        grids = []
        for placed in page.slots:
            cells = []
            for cell, content in zip(placed.placement.cells, placed.contents):
                if isinstance(content, FreeSpace):
                    cells.append(PreviewCell(
                        index=cell.index, row=cell.row, col=cell.col,
                        rect=_rect(cell.rect), kind="free_space",
                    ))
                else:
                    image = images.get(content.image_id)
                    cells.append(PreviewCell(
                        index=cell.index, row=cell.row, col=cell.col,
                        rect=_rect(cell.rect), kind="image",
                        image_id=content.image_id,
                        image_url=image.url if image else None,
                        image_name=image.name if image else None,
                        missing=content.is_empty,
                    ))
            grids.append(PreviewGrid(
                id=placed.grid.id,
                name=placed.grid.name,
                slot=_rect(placed.slot.rect),
                frame=_rect(placed.placement.frame),
                title_anchor=placed.placement.title_anchor,
                background=placed.background_ref,
                cells=cells,
            ))
        pages.append(PreviewPage(index=page.index, grids=grids))

    return PreviewDocument(
        width=document.width,
        height=document.height,
        theme=document.theme,
        grids_per_page=document.grids_per_page,
        page_count=document.page_count,
        pages=pages,
    )


class RasterPreviewRenderer:
    """
    Renders one page to a Pillow image.

    Resolution is given in pixels per millimetre (4 px/mm is ~100 DPI).
    """

    def __init__(self, pixels_per_mm: float = 4.0, font_path: Optional[str] = None):
        self.scale = pixels_per_mm
        self.font_path = font_path
        self._fonts: Dict[int, ImageFont.ImageFont] = {}

    def _get_font(self, size: int):
        """Get font for text rendering."""
        if size in self._fonts:
            return self._fonts[size]

        font_paths = [self.font_path] if self.font_path else []
        font_paths += [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",  # Linux
            "/System/Library/Fonts/Helvetica.ttc",  # macOS
            "C:\\Windows\\Fonts\\arial.ttf",  # Windows
        ]

        font = None
        for fp in font_paths:
            try:
                font = ImageFont.truetype(fp, size)
                break
            except OSError:
                continue

        if font is None:
            font = ImageFont.load_default(size=size)
        self._fonts[size] = font
        return font

    def _box(self, rect: Rect):
        s = self.scale
        return [rect.x * s, rect.y * s, rect.right * s, rect.bottom * s]

    def render_page(self, document: DocumentLayout, page_index: int) -> Image.Image:
        """Rasterize one page; raises IndexError for pages out of range."""
        page = document.pages[page_index]
        size = (round(document.width * self.scale), round(document.height * self.scale))
        canvas = Image.new("RGBA", size, (255, 255, 255, 255))
        for command in page.commands:
            self._execute(canvas, command)
        return canvas.convert("RGB")

    def _execute(self, canvas: Image.Image, command: DrawCommand) -> None:
        draw = ImageDraw.Draw(canvas, "RGBA")

        if isinstance(command, FillRect):
            fill = (*command.color, round(255 * command.alpha))
            if command.radius > 0:
                draw.rounded_rectangle(self._box(command.rect), radius=command.radius * self.scale, fill=fill)
            else:
                draw.rectangle(self._box(command.rect), fill=fill)

        elif isinstance(command, StrokeRect):
            width = max(1, round(command.width * self.scale))
            if command.radius > 0:
                draw.rounded_rectangle(
                    self._box(command.rect), radius=command.radius * self.scale,
                    outline=command.color, width=width,
                )
            else:
                draw.rectangle(self._box(command.rect), outline=command.color, width=width)

        elif isinstance(command, DrawImage):
            x0, y0, x1, y1 = (round(v) for v in self._box(command.rect))
            if x1 <= x0 or y1 <= y0:
                return
            try:
                with Image.open(io.BytesIO(command.data)) as source:
                    tile = source.convert("RGB").resize((x1 - x0, y1 - y0), Image.Resampling.LANCZOS)
                canvas.paste(tile, (x0, y0))
            except Exception as e:
                logger.warning(f"Skipping image {command.source} in preview: {e}")

        elif isinstance(command, DrawText):
            font = self._get_font(max(1, round(command.size * PT_TO_MM * self.scale)))
            draw.text(
                (command.x * self.scale, command.y * self.scale),
                command.text, font=font, fill=command.color, anchor="ms",
            )

        elif isinstance(command, DrawStar):
            points = [(x * self.scale, y * self.scale) for x, y in star_points(command.center, command.radius)]
            draw.polygon(points, fill=command.color)

    def export(self, image: Image.Image, format: str = "PNG") -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format=format)
        return buffer.getvalue()
