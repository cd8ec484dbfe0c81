from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

FREE_SPACE = "star"  # Sentinel stored in Grid.cells for the center cell
ALLOWED_GRIDS_PER_PAGE = (1, 2, 4)


class Theme(str, Enum):
    """Visual theme of a game"""
    STANDARD = "standard"
    CHRISTMAS = "christmas"
    BIRTHDAY = "birthday"


class BingoImage(BaseModel):
    """An uploaded photo belonging to a game"""
    id: str
    game_id: str
    name: str
    url: str  # Source reference resolvable by the blob store


class GameConfig(BaseModel):
    """Bingo configuration edited by the CRUD layer"""
    id: str
    name: str
    theme: Theme = Theme.STANDARD
    grid_size: int = Field(default=5, ge=2, le=10)
    card_count: int = Field(default=1, ge=1)
    grids_per_page: int = 1

    @field_validator("grids_per_page")
    @classmethod
    def _check_grids_per_page(cls, value: int) -> int:
        if value not in ALLOWED_GRIDS_PER_PAGE:
            raise ValueError(f"grids_per_page must be one of {ALLOWED_GRIDS_PER_PAGE}")
        return value


class GridGroup(BaseModel):
    """A batch of grids generated together"""
    id: str
    game_id: str
    name: str
    size: int


class Grid(BaseModel):
    """One playable card"""
    id: str
    grid_group_id: str
    name: str
    cells: List[str] = Field(default_factory=list)  # Image ids or FREE_SPACE

    @property
    def size(self) -> int:
        # Cells always hold a full square
        return int(round(len(self.cells) ** 0.5))


class DrawSession(BaseModel):
    """Live draw of images for one round of play"""
    id: str
    game_id: str
    name: str
    is_active: bool = True
    drawn_image_ids: List[str] = Field(default_factory=list)
    last_drawn_id: Optional[str] = None
