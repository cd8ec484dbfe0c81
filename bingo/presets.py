"""
Page and grid presets for printable card sheets.

Supports:
- A4 portrait pages (the print target)
- 1, 2 or 4 grids per page
- Grid sizes from 3x3 to 7x7
"""

from enum import Enum
from typing import Tuple, Optional
from dataclasses import dataclass

from models import ALLOWED_GRIDS_PER_PAGE
from .allocator import center_index, required_images_per_grid


class PagePresets(Enum):
    """Supported output page formats."""
    A4 = "a4"


@dataclass
class PageSpec:
    """Specification for a physical page, in millimetres."""
    width: float
    height: float
    margin: float
    description: str

    @property
    def size(self) -> Tuple[float, float]:
        return (self.width, self.height)


PAGE_SPECS = {
    PagePresets.A4: PageSpec(
        width=210.0, height=297.0,
        margin=8.0,
        description="A4 portrait"
    ),
}

# Background artwork is normalized for A4 at ~210 DPI
A4_PRINT_PIXELS = (1754, 2480)

PRACTICAL_GRID_SIZES = (3, 4, 5, 6, 7)

# (columns, rows) per number of grids on a page
PAGE_GRID_SHAPES = {
    1: (1, 1),
    2: (2, 1),
    4: (2, 2),
}


def get_page_spec(preset: Optional[str] = None) -> PageSpec:
    """
    Get page spec from preset name.

    Unknown or missing names fall back to A4.

    Examples:
        >>> get_page_spec("a4").size
        (210.0, 297.0)
    """
    if preset:
        preset_lower = preset.lower().strip()
        for p, spec in PAGE_SPECS.items():
            if p.value == preset_lower:
                return spec
    return PAGE_SPECS[PagePresets.A4]


def get_grids_per_page_options() -> list:
    """Get list of page packing options for user selection."""
    return [
        {
            "id": count,
            "columns": PAGE_GRID_SHAPES[count][0],
            "rows": PAGE_GRID_SHAPES[count][1],
        }
        for count in ALLOWED_GRIDS_PER_PAGE
    ]


def get_grid_size_options() -> list:
    """Get list of grid sizes with the images each one needs."""
    return [
        {
            "size": size,
            "cells": size * size,
            "required_images": required_images_per_grid(size),
            "has_free_space": center_index(size) is not None,
        }
        for size in PRACTICAL_GRID_SIZES
    ]
