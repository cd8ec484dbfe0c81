"""
CardGenerator - main orchestrator for bingo cards.

Combines:
- Allocator: random grid contents
- AssetPipeline: photo and background normalization
- PageCompositor: page layout and draw commands
- PdfDocumentWriter: final document bytes

This is the main entry point used by the HTTP layer.
"""

import asyncio
import logging
import random
import re
from typing import Dict, List, Optional, Sequence, Tuple, Union

from models import BingoImage, Grid, GridGroup, Theme
from storage import BlobStore, GameStore
from .allocator import allocate, required_images_per_grid
from .assets import DEFAULT_PHOTO_SIZE, DEFAULT_QUALITY, AssetCache, AssetPipeline
from .compositor import DocumentLayout, PageCompositor, backgrounds_needed
from .errors import (
    InsufficientImagesError, InvalidLayoutError, PreconditionError, UnknownGameError, UnknownGridError,
)
from .pdf import PdfDocumentWriter
from .presets import A4_PRINT_PIXELS
from .themes import get_theme_style

logger = logging.getLogger(__name__)


def suggested_file_name(display_name: str, extension: str = "pdf") -> str:
    """
    File name for a downloaded document.

    Every character outside A-Z, a-z and 0-9 becomes an underscore.

    Examples:
        >>> suggested_file_name("Noël 2024!")
        'No_l_2024__cards.pdf'
    """
    base = re.sub(r"[^A-Za-z0-9]", "_", display_name or "") or "bingo"
    return f"{base}_cards.{extension}"


class CardGenerator:
    """
    Main orchestrator for card generation and export.

    Workflow:
    1. Generate grids for a game (allocation + batch insert)
    2. Resolve assets for the requested grids (concurrent, cached per run)
    3. Composite pages (sequential)
    4. Write the document
    """

    def __init__(
        self,
        store: GameStore,
        blob_store: BlobStore,
        compositor: Optional[PageCompositor] = None,
        writer: Optional[PdfDocumentWriter] = None,
        photo_size: int = DEFAULT_PHOTO_SIZE,
        background_size: Tuple[int, int] = A4_PRINT_PIXELS,
        quality: int = DEFAULT_QUALITY,
        asset_workers: int = 8,
        asset_deadline: Optional[float] = None,
    ):
        self.store = store
        self.blob_store = blob_store
        self.compositor = compositor or PageCompositor()
        self.writer = writer or PdfDocumentWriter()
        self.photo_size = photo_size
        self.background_size = background_size
        self.quality = quality
        self.asset_workers = asset_workers
        self.asset_deadline = asset_deadline

    def new_pipeline(self) -> AssetPipeline:
        """Asset pipeline with a fresh run-scoped cache."""
        return AssetPipeline(
            self.blob_store,
            cache=AssetCache(),
            photo_size=self.photo_size,
            background_size=self.background_size,
            quality=self.quality,
            max_workers=self.asset_workers,
        )

    async def generate_grids(
        self,
        game_id: str,
        card_count: Optional[int] = None,
        grid_size: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> Tuple[GridGroup, List[Grid]]:
        """
        Replace a game's grids with a freshly generated group.

        Args:
            game_id: Game to generate for
            card_count: Number of grids (defaults to the game's setting)
            grid_size: Grid edge length (defaults to the game's setting)
            rng: Random source for deterministic output

        Returns:
            Tuple of (grid group, grids in creation order)
        """
        config = await self.store.get_game_config(game_id)
        if config is None:
            raise UnknownGameError(game_id)

        size = grid_size or config.grid_size
        count = card_count or config.card_count
        images = await self.store.list_images(game_id)

        required = required_images_per_grid(size)
        if len(images) < required:
            raise InsufficientImagesError(len(images), required)

        logger.info(f"Generating {count} grids of {size}x{size} for game {game_id} from {len(images)} images")
        allocated = allocate([image.id for image in images], size, count, rng=rng)

        group = await self.store.create_grid_group(game_id, f"Grids - {config.name}", size)
        try:
            grids = await self.store.create_grids(group.id, [(a.name, a.cells) for a in allocated])
        except Exception:
            await self.store.delete_grid_group(group.id)
            raise

        removed = await self.store.delete_grid_groups(game_id, keep=group.id)
        if removed:
            logger.info(f"Removed {removed} previous grid group(s) for game {game_id}")
        return group, grids

    async def prepare_document(
        self,
        grid_ids: Sequence[str],
        game_id: str,
        grids_per_page: int,
        theme: Union[Theme, str],
    ) -> Tuple[DocumentLayout, Dict[str, BingoImage]]:
        """
        Validate a request, resolve its assets and composite every page.

        Returns:
            Tuple of (document layout, image id -> image)
        """
        if not grid_ids:
            raise PreconditionError("At least one grid id is required")
        self.compositor.layout_engine.page_grid_shape(grids_per_page)
        try:
            style = get_theme_style(theme)
        except KeyError as e:
            raise InvalidLayoutError(str(e)) from e

        if await self.store.get_game_config(game_id) is None:
            raise UnknownGameError(game_id)

        group_ids = {group.id for group in await self.store.list_grid_groups(game_id)}
        grids = [grid for grid in await self.store.get_grids(grid_ids) if grid.grid_group_id in group_ids]
        found = {grid.id for grid in grids}
        missing = [grid_id for grid_id in grid_ids if grid_id not in found]
        if missing:
            raise UnknownGridError(missing)

        images = {image.id: image for image in await self.store.list_images(game_id)}
        photos = {
            image_id: images[image_id].url
            for grid in grids
            for image_id in grid.cells
            if image_id in images
        }

        pipeline = self.new_pipeline()
        bundle = await pipeline.resolve(
            photos,
            backgrounds_needed(style, len(grids), grids_per_page),
            deadline=self.asset_deadline,
        )
        logger.info(f"Assets resolved with {pipeline.fetch_count} fetches")

        document = self.compositor.compose(grids, style.name, grids_per_page, bundle)
        return document, images

    async def generate_document(
        self,
        grid_ids: Sequence[str],
        game_id: str,
        grids_per_page: int,
        theme: Union[Theme, str],
        display_name: str,
    ) -> Tuple[bytes, str]:
        """
        Generate the printable PDF for a set of grids.

        Returns:
            Tuple of (PDF bytes, suggested file name)
        """
        document, _ = await self.prepare_document(grid_ids, game_id, grids_per_page, theme)
        data = await asyncio.to_thread(self.writer.write, document, display_name)
        return data, suggested_file_name(display_name)
