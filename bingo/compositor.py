"""
PageCompositor - lays out every grid of a batch across pages.

Combines:
- LayoutEngine: slot and cell geometry
- ThemeRenderer: draw commands per background, title and cell

The result is a DocumentLayout, a backend-neutral description of every
page. The PDF writer and the preview adapters consume the same layout.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from models import FREE_SPACE, Grid, Theme
from .allocator import center_index
from .assets import AssetBundle
from .errors import InvalidLayoutError
from .layout import GridPlacement, LayoutEngine, Rect, SlotSpec
from .renderer import CellContent, DrawCommand, FreeSpace, ImageCell, ThemeRenderer
from .themes import ThemeStyle, get_theme_style

logger = logging.getLogger(__name__)


@dataclass
class GridSlot:
    """A grid placed on a page."""
    grid: Grid
    slot: SlotSpec
    placement: GridPlacement
    contents: List[CellContent]
    background_ref: Optional[str] = None


@dataclass
class PageLayout:
    index: int
    slots: List[GridSlot] = field(default_factory=list)
    commands: List[DrawCommand] = field(default_factory=list)


@dataclass
class DocumentLayout:
    """Every page of an output document, in page units (mm)."""
    width: float
    height: float
    theme: str
    grids_per_page: int
    pages: List[PageLayout] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def paginate(grids: Sequence[Grid], grids_per_page: int) -> List[List[Grid]]:
    """Split grids into consecutive pages; the last page may be short."""
    if grids_per_page < 1:
        raise InvalidLayoutError(f"grids_per_page must be positive, got {grids_per_page}")
    return [list(grids[i:i + grids_per_page]) for i in range(0, len(grids), grids_per_page)]


def background_index(page_index: int, slot_index: int, grids_per_page: int) -> int:
    """
    Rotation index into a theme's background set.

    A single grid per page rotates by page; packed pages rotate by slot.
    """
    return page_index if grids_per_page == 1 else slot_index


def backgrounds_needed(style: ThemeStyle, grid_count: int, grids_per_page: int) -> List[str]:
    """Distinct background refs a document of grid_count grids will draw."""
    if not style.has_background_artwork or grid_count == 0:
        return []
    if grids_per_page == 1:
        indices = range(grid_count)
    else:
        indices = range(min(grids_per_page, grid_count))
    return list(dict.fromkeys(style.background_for(i) for i in indices))


def cell_contents(grid: Grid, assets: AssetBundle) -> List[CellContent]:
    """Map stored cell values to renderable content."""
    center = center_index(grid.size)
    contents: List[CellContent] = []
    for index, value in enumerate(grid.cells):
        if index == center or value == FREE_SPACE:
            contents.append(FreeSpace())
        else:
            contents.append(ImageCell(value, assets.photo(value).data))
    return contents


class PageCompositor:
    """
    Builds DocumentLayouts.

    Workflow per page:
    1. Base fill (white, or the theme tint without artwork)
    2. Background artwork (whole page or per slot, per rotation rule)
    3. Title, frame and cells for every grid slot
    """

    def __init__(
        self,
        layout_engine: Optional[LayoutEngine] = None,
        renderer: Optional[ThemeRenderer] = None,
    ):
        self.layout_engine = layout_engine or LayoutEngine()
        self.renderer = renderer or ThemeRenderer()

    def compose(
        self,
        grids: Sequence[Grid],
        theme: Union[Theme, str],
        grids_per_page: int,
        assets: AssetBundle,
    ) -> DocumentLayout:
        """
        Compose all pages for a batch of grids.

        Args:
            grids: Grids in output order
            theme: Theme name
            grids_per_page: 1, 2 or 4
            assets: Resolved photos and backgrounds

        Returns:
            DocumentLayout with ceil(len(grids) / grids_per_page) pages
        """
        style = get_theme_style(theme)
        self.layout_engine.page_grid_shape(grids_per_page)

        for grid in grids:
            if grid.size * grid.size != len(grid.cells) or grid.size < 1:
                raise InvalidLayoutError(
                    f"Grid {grid.id} has {len(grid.cells)} cells, which is not a square"
                )

        page_spec = self.layout_engine.page
        page_rect = Rect(0.0, 0.0, page_spec.width, page_spec.height)
        document = DocumentLayout(
            width=page_spec.width,
            height=page_spec.height,
            theme=style.name,
            grids_per_page=grids_per_page,
        )

        for page_index, page_grids in enumerate(paginate(grids, grids_per_page)):
            page = PageLayout(index=page_index)
            page.commands.extend(self.renderer.render_page_fill(page_rect, style))

            page_background = None
            if style.has_background_artwork and grids_per_page == 1:
                page_background = style.background_for(background_index(page_index, 0, grids_per_page))
                page.commands.extend(self.renderer.render_background(
                    page_rect, style, assets.background(page_background).data, page_background
                ))

            slots = self.layout_engine.compute_page_layout(grids_per_page, len(page_grids))
            for slot, grid in zip(slots, page_grids):
                slot_background = page_background
                if style.has_background_artwork and grids_per_page > 1:
                    slot_background = style.background_for(
                        background_index(page_index, slot.index, grids_per_page)
                    )
                    page.commands.extend(self.renderer.render_background(
                        slot.rect, style, assets.background(slot_background).data, slot_background
                    ))

                placement = self.layout_engine.compute_grid_cells(
                    slot.rect, grid.size, style, grids_per_page
                )
                contents = cell_contents(grid, assets)
                page.commands.extend(self.renderer.render_grid(
                    placement, contents, grid.name, style, grids_per_page
                ))
                page.slots.append(GridSlot(grid, slot, placement, contents, slot_background))

            document.pages.append(page)

        logger.info(
            f"Composited {len(grids)} grids onto {document.page_count} pages "
            f"(theme={style.name}, per_page={grids_per_page})"
        )
        return document
