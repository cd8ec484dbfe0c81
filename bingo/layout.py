"""
LayoutEngine - page and cell geometry for printable grids.

Handles:
1. Splitting a page into 1, 2 or 4 grid slots
2. Reserving a title band above the grid, or anchoring the grid to the
   bottom of the slot for themes with background artwork
3. Square cell sizing and centering within the reserved area

All values are page-relative millimetres with the origin at the top-left
corner; backends convert to their own coordinate systems.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import InvalidLayoutError
from .presets import PAGE_GRID_SHAPES, PageSpec, get_page_spec
from .themes import ThemeStyle

EPSILON = 1e-6


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in page units."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def inset(self, amount: float) -> "Rect":
        return Rect(
            self.x + amount,
            self.y + amount,
            max(0.0, self.width - 2 * amount),
            max(0.0, self.height - 2 * amount),
        )

    def overlaps(self, other: "Rect") -> bool:
        """True when the interiors intersect (shared edges do not count)."""
        return (
            self.x < other.right - EPSILON and other.x < self.right - EPSILON
            and self.y < other.bottom - EPSILON and other.y < self.bottom - EPSILON
        )

    def contains(self, other: "Rect") -> bool:
        return (
            other.x >= self.x - EPSILON and other.y >= self.y - EPSILON
            and other.right <= self.right + EPSILON and other.bottom <= self.bottom + EPSILON
        )


@dataclass
class SlotSpec:
    """One grid's share of a page."""
    index: int
    row: int
    col: int
    rect: Rect


@dataclass
class CellRect:
    """Drawing target for one cell of a grid."""
    index: int
    row: int
    col: int
    rect: Rect


@dataclass
class GridPlacement:
    """Complete geometry for one grid inside its slot."""
    slot: Rect
    cell_area: Rect          # Area reserved for cells
    frame: Rect              # Actual square occupied by the cells
    grid_size: int
    cell_size: float
    cell_gap: float
    cells: List[CellRect]
    title_anchor: Optional[Tuple[float, float]] = None  # (center x, baseline y)


class LayoutEngine:
    """
    Calculates slot and cell rectangles for card pages.

    Features:
    - Gap between slots only on interior edges
    - Title band for plain themes
    - Bottom-anchored grid (68% of slot height) for background themes
    - Always-square cells, centered on the axis with slack
    """

    SLOT_GAP = 6.0
    CELL_AREA_INSET = 2.0
    BACKGROUND_GRID_RATIO = 0.68
    BACKGROUND_BOTTOM_INSET = 2.0

    # compact (more than one grid per page) -> (title baseline, band height, height reduction)
    TITLE_BANDS = {
        False: (8.0, 10.0, 12.0),
        True: (4.0, 5.0, 6.0),
    }

    def __init__(self, page: Optional[PageSpec] = None, slot_gap: float = SLOT_GAP):
        """
        Initialize layout engine.

        Args:
            page: Physical page spec (defaults to A4 with 8mm margin)
            slot_gap: Gap between neighbouring slots
        """
        self.page = page or get_page_spec()
        self.slot_gap = slot_gap

    @property
    def content_area(self) -> Rect:
        margin = self.page.margin
        return Rect(
            margin,
            margin,
            self.page.width - 2 * margin,
            self.page.height - 2 * margin,
        )

    def page_grid_shape(self, grids_per_page: int) -> Tuple[int, int]:
        """Return (columns, rows) for a packing mode."""
        if grids_per_page not in PAGE_GRID_SHAPES:
            raise InvalidLayoutError(
                f"grids_per_page must be one of {sorted(PAGE_GRID_SHAPES)}, got {grids_per_page}"
            )
        return PAGE_GRID_SHAPES[grids_per_page]

    def compute_page_layout(self, grids_per_page: int, grid_count_on_page: int) -> List[SlotSpec]:
        """
        Calculate the slot for each grid on a page.

        Args:
            grids_per_page: Packing mode (1, 2 or 4)
            grid_count_on_page: Grids actually present (last page may be short)

        Returns:
            SlotSpec list in row-major order
        """
        cols, rows = self.page_grid_shape(grids_per_page)
        if not 0 <= grid_count_on_page <= grids_per_page:
            raise InvalidLayoutError(
                f"{grid_count_on_page} grids do not fit a {grids_per_page}-per-page layout"
            )

        content = self.content_area
        slot_width = content.width / cols
        slot_height = content.height / rows
        half_gap = self.slot_gap / 2

        slots = []
        for index in range(grid_count_on_page):
            col = index % cols
            row = index // cols

            x = content.x + col * slot_width + (half_gap if col > 0 else 0)
            y = content.y + row * slot_height + (half_gap if row > 0 else 0)
            w = slot_width - (half_gap if cols > 1 else 0)
            h = slot_height - (half_gap if rows > 1 else 0)

            slots.append(SlotSpec(index=index, row=row, col=col, rect=Rect(x, y, w, h)))

        return slots

    def reserve_cell_area(
        self,
        slot: Rect,
        style: ThemeStyle,
        grids_per_page: int,
    ) -> Tuple[Rect, Optional[Tuple[float, float]]]:
        """Return the area reserved for cells and the title anchor, if any."""
        x = slot.x + self.CELL_AREA_INSET
        w = slot.width - 2 * self.CELL_AREA_INSET

        if style.has_background_artwork:
            h = slot.height * self.BACKGROUND_GRID_RATIO
            y = slot.bottom - h - self.BACKGROUND_BOTTOM_INSET
            return Rect(x, y, w, h), None

        if not style.show_title:
            return Rect(x, slot.y, w, slot.height), None

        baseline, band, reduction = self.TITLE_BANDS[grids_per_page > 1]
        anchor = (slot.x + slot.width / 2, slot.y + baseline)
        return Rect(x, slot.y + band, w, slot.height - reduction), anchor

    def compute_grid_cells(
        self,
        slot: Rect,
        grid_size: int,
        style: ThemeStyle,
        grids_per_page: int = 1,
    ) -> GridPlacement:
        """
        Calculate every cell rectangle of one grid.

        Cell i sits at row i // size, column i % size. The pitch is the
        reserved square divided by size; each cell gives up its share of
        the gaps so the grid never exceeds the reserved area.
        """
        if grid_size < 1:
            raise InvalidLayoutError(f"Grid size must be positive, got {grid_size}")

        area, anchor = self.reserve_cell_area(slot, style, grids_per_page)

        extent = max(0.0, min(area.width, area.height))
        gap = style.cell_gap if grid_size > 1 else 0.0
        pitch = extent / grid_size
        cell_size = max(0.0, pitch - gap * (grid_size - 1) / grid_size)

        frame = Rect(
            area.x + (area.width - extent) / 2,
            area.y + (area.height - extent) / 2,
            extent,
            extent,
        )

        cells = []
        for i in range(grid_size * grid_size):
            row = i // grid_size
            col = i % grid_size
            cells.append(CellRect(
                index=i,
                row=row,
                col=col,
                rect=Rect(
                    frame.x + col * cell_size + col * gap,
                    frame.y + row * cell_size + row * gap,
                    cell_size,
                    cell_size,
                ),
            ))

        return GridPlacement(
            slot=slot,
            cell_area=area,
            frame=frame,
            grid_size=grid_size,
            cell_size=cell_size,
            cell_gap=gap,
            cells=cells,
            title_anchor=anchor,
        )
