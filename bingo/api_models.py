"""
Bingo API models for FastAPI endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Tuple

from models import BingoImage, DrawSession, Grid, GridGroup, Theme


class GenerateGridsRequest(BaseModel):
    """Request to (re)generate the grids of a game."""
    card_count: Optional[int] = Field(default=None, ge=1)  # Defaults to the game's card_count
    grid_size: Optional[int] = Field(default=None, ge=2, le=10)  # Defaults to the game's grid_size
    seed: Optional[int] = None  # Deterministic shuffle when set


class GridGroupResponse(BaseModel):
    """A freshly generated grid group with its grids."""
    group: GridGroup
    grids: List[Grid]


class DocumentRequest(BaseModel):
    """Request for a printable document or its preview."""
    grid_ids: List[str]
    game_id: str
    grids_per_page: int = 1  # 1, 2 or 4
    theme: Theme = Theme.STANDARD
    display_name: str = ""


class BingoOptionsResponse(BaseModel):
    """Response with available generation options."""
    themes: List[dict]
    grids_per_page: List[dict]
    grid_sizes: List[dict]


class SessionCreateRequest(BaseModel):
    name: Optional[str] = None


class DrawResponse(BaseModel):
    """Result of one draw; image is None once every image is drawn."""
    session: DrawSession
    image: Optional[BingoImage] = None
    remaining: int


class PreviewRect(BaseModel):
    x: float
    y: float
    width: float
    height: float


class PreviewCell(BaseModel):
    index: int
    row: int
    col: int
    rect: PreviewRect
    kind: str  # "image" or "free_space"
    image_id: Optional[str] = None
    image_url: Optional[str] = None
    image_name: Optional[str] = None
    missing: bool = False  # Image asset failed to load


class PreviewGrid(BaseModel):
    id: str
    name: str
    slot: PreviewRect
    frame: PreviewRect
    title_anchor: Optional[Tuple[float, float]] = None
    background: Optional[str] = None
    cells: List[PreviewCell]


class PreviewPage(BaseModel):
    index: int
    grids: List[PreviewGrid]


class PreviewDocument(BaseModel):
    """On-screen layout tree; all lengths in millimetres."""
    width: float
    height: float
    theme: str
    grids_per_page: int
    page_count: int
    pages: List[PreviewPage]
