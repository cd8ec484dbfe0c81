"""
Allocator - random assignment of pool images to grid cells.

Every grid gets its own Fisher-Yates permutation of the full pool, so an
image never repeats within one grid but may appear on many grids. The
random source is injectable for deterministic tests.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, TypeVar

from models import FREE_SPACE
from .errors import InsufficientImagesError, InvalidLayoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AllocatedGrid:
    """Cells for one grid before it is persisted."""
    name: str
    cells: List[str]


def center_index(size: int) -> Optional[int]:
    """Index of the free-space cell, or None for even sizes."""
    if size % 2 == 0:
        return None
    return (size * size) // 2


def required_images_per_grid(size: int) -> int:
    """Number of distinct pool images that fill one grid."""
    total = size * size
    return total - 1 if size % 2 else total


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a Fisher-Yates permutation of items; the input is untouched."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def build_cells(image_ids: Sequence[str], size: int, rng: Optional[random.Random] = None) -> List[str]:
    """
    Fill one grid from a fresh permutation of image_ids.

    Cells are filled row-major, skipping the center on odd sizes. A pool
    smaller than required cycles through the permuted selection.
    """
    if not image_ids:
        raise InsufficientImagesError(0, required_images_per_grid(size))

    required = required_images_per_grid(size)
    selected = shuffle(image_ids, rng)[:required]
    center = center_index(size)

    cells = []
    image_index = 0
    for i in range(size * size):
        if i == center:
            cells.append(FREE_SPACE)
        else:
            cells.append(selected[image_index % len(selected)])
            image_index += 1
    return cells


def allocate(
    image_ids: Sequence[str],
    size: int,
    card_count: int,
    rng: Optional[random.Random] = None,
    name_prefix: str = "Grid",
) -> List[AllocatedGrid]:
    """
    Generate card_count grids from the pool.

    Args:
        image_ids: Pool of image identifiers (order is irrelevant)
        size: Grid edge length
        card_count: Number of grids to produce
        rng: Random source; a fresh unseeded one when omitted
        name_prefix: Grid names are "<prefix> 1" .. "<prefix> N"

    Returns:
        List of AllocatedGrid in generation order
    """
    if size < 2:
        raise InvalidLayoutError(f"Grid size must be at least 2, got {size}")
    if card_count < 0:
        raise InvalidLayoutError(f"Card count must not be negative, got {card_count}")

    rng = rng or random.Random()
    required = required_images_per_grid(size)
    if len(image_ids) < required:
        logger.warning(
            f"Pool of {len(image_ids)} images is smaller than the {required} a "
            f"{size}x{size} grid needs; images will repeat within grids"
        )

    return [
        AllocatedGrid(name=f"{name_prefix} {i + 1}", cells=build_cells(image_ids, size, rng))
        for i in range(card_count)
    ]


def draw_next(
    image_ids: Sequence[str],
    drawn_ids: Sequence[str],
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """Pick one not-yet-drawn image uniformly at random, or None when exhausted."""
    drawn = set(drawn_ids)
    available = [image_id for image_id in image_ids if image_id not in drawn]
    if not available:
        return None
    rng = rng or random.Random()
    return available[rng.randrange(len(available))]
