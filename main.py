from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ConfigDict
from pydantic_settings import BaseSettings
from typing import List, Tuple
import logging
import random
import traceback

from models import DrawSession, Grid
from storage import HttpBlobStore, InMemoryGameStore, LocalBlobStore, RoutingBlobStore

# Bingo module imports
from bingo import CardGenerator, PageCompositor, RasterPreviewRenderer, build_preview_tree, draw_next
from bingo.assets import DEFAULT_PHOTO_SIZE, DEFAULT_QUALITY, DISPLAY_PHOTO_SIZE
from bingo.api_models import (
    BingoOptionsResponse, DocumentRequest, DrawResponse, GenerateGridsRequest,
    GridGroupResponse, PreviewDocument, SessionCreateRequest,
)
from bingo.errors import (
    AssetDeadlineExceeded, BingoError, DocumentEncodingError, PreconditionError, UnknownGameError,
    UnknownGridError,
)
from bingo.layout import LayoutEngine
from bingo.presets import A4_PRINT_PIXELS, PageSpec, get_grid_size_options, get_grids_per_page_options, get_page_spec
from bingo.themes import get_theme_options

# Logging setup
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    assets_dir: str = "assets"  # Built-in theme artwork root
    photo_size: int = DEFAULT_PHOTO_SIZE  # Print-embedded photo edge (px)
    display_photo_size: int = DISPLAY_PHOTO_SIZE  # Display copy edge (px)
    background_max_size: Tuple[int, int] = A4_PRINT_PIXELS
    jpeg_quality: int = DEFAULT_QUALITY
    fetch_timeout_seconds: float = 30.0
    asset_workers: int = 8
    asset_deadline_seconds: float = 60.0
    page_margin_mm: float = 8.0

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
app = FastAPI(title="Photo Bingo", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
a4 = get_page_spec("a4")
page = PageSpec(width=a4.width, height=a4.height, margin=settings.page_margin_mm, description=a4.description)

game_store = InMemoryGameStore()  # Replaced by the persistent store in deployment
blob_store = RoutingBlobStore(
    remote=HttpBlobStore(timeout=settings.fetch_timeout_seconds),
    local=LocalBlobStore(settings.assets_dir),
)
card_generator = CardGenerator(
    game_store,
    blob_store,
    compositor=PageCompositor(layout_engine=LayoutEngine(page=page)),
    photo_size=settings.photo_size,
    background_size=settings.background_max_size,
    quality=settings.jpeg_quality,
    asset_workers=settings.asset_workers,
    asset_deadline=settings.asset_deadline_seconds,
)
preview_renderer = RasterPreviewRenderer()


def bingo_http_error(e: BingoError) -> HTTPException:
    """Map engine errors to HTTP status codes."""
    if isinstance(e, (UnknownGameError, UnknownGridError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PreconditionError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, AssetDeadlineExceeded):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, DocumentEncodingError):
        return HTTPException(status_code=500, detail=f"Document generation failed: {e}")
    return HTTPException(status_code=500, detail=str(e))


def log_failure(action: str, e: Exception) -> None:
    tb = traceback.format_exc()
    logger.error(f"{action} error: {e}")
    logger.error(f"Traceback:\n{tb}")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "photo-bingo"}


@app.get("/")
async def root():
    return {
        "service": "Photo Bingo",
        "version": "1.0.0",
        "description": "Photo bingo card generator with print layout and draw sessions",
        "endpoints": [
            "/bingo/options", "/games/{game_id}/grids/generate", "/grid-groups/{grid_group_id}/grids",
            "/generate-pdf", "/preview", "/preview/page.png", "/games/{game_id}/sessions", "/health",
        ],
        "config": {
            "page_margin_mm": settings.page_margin_mm,
            "photo_size": settings.photo_size,
            "asset_workers": settings.asset_workers,
        }
    }


@app.get("/bingo/options", response_model=BingoOptionsResponse)
async def get_bingo_options():
    """
    Get available options for card generation.

    Returns themes, page packing modes and grid sizes.
    """
    return BingoOptionsResponse(
        themes=get_theme_options(),
        grids_per_page=get_grids_per_page_options(),
        grid_sizes=get_grid_size_options(),
    )


# ==================== GRID ENDPOINTS ====================

@app.post("/games/{game_id}/grids/generate", response_model=GridGroupResponse)
async def generate_grids(game_id: str, request: GenerateGridsRequest):
    """
    Generate a new set of grids for a game.

    Previous grid groups of the game are deleted first (with their grids).
    A seed makes the shuffle reproducible.
    """
    try:
        rng = random.Random(request.seed) if request.seed is not None else None
        group, grids = await card_generator.generate_grids(
            game_id,
            card_count=request.card_count,
            grid_size=request.grid_size,
            rng=rng,
        )
        logger.info(f"Generated grid group {group.id} with {len(grids)} grids")
        return GridGroupResponse(group=group, grids=grids)

    except BingoError as e:
        logger.warning(f"Grid generation rejected: {e}")
        raise bingo_http_error(e)
    except Exception as e:
        log_failure("Grid generation", e)
        raise HTTPException(status_code=500, detail=f"Grid generation failed: {e}")


@app.get("/grid-groups/{grid_group_id}/grids", response_model=List[Grid])
async def list_grids(grid_group_id: str):
    """List the grids of a group in creation order."""
    return await game_store.list_grids(grid_group_id)


# ==================== DOCUMENT ENDPOINTS ====================

@app.post("/generate-pdf")
async def generate_pdf(request: DocumentRequest):
    """
    Generate the printable PDF for a set of grids.

    Workflow:
    1. Validate game, grids and layout
    2. Fetch and normalize photos and theme backgrounds (concurrently)
    3. Composite pages and write the PDF
    """
    try:
        logger.info(
            f"Generating PDF for {len(request.grid_ids)} grids, game={request.game_id}, "
            f"per_page={request.grids_per_page}, theme={request.theme.value}"
        )
        data, filename = await card_generator.generate_document(
            request.grid_ids,
            request.game_id,
            request.grids_per_page,
            request.theme,
            request.display_name,
        )
        return Response(
            content=data,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except BingoError as e:
        if isinstance(e, DocumentEncodingError):
            log_failure("PDF generation", e)
        else:
            logger.warning(f"PDF generation rejected: {e}")
        raise bingo_http_error(e)
    except Exception as e:
        log_failure("PDF generation", e)
        raise HTTPException(status_code=500, detail=f"PDF generation failed: {e}")


@app.post("/preview", response_model=PreviewDocument)
async def preview_document(request: DocumentRequest):
    """On-screen layout tree for the same document /generate-pdf would produce."""
    try:
        document, images = await card_generator.prepare_document(
            request.grid_ids,
            request.game_id,
            request.grids_per_page,
            request.theme,
        )
        return build_preview_tree(document, images)

    except BingoError as e:
        logger.warning(f"Preview rejected: {e}")
        raise bingo_http_error(e)
    except Exception as e:
        log_failure("Preview", e)
        raise HTTPException(status_code=500, detail=f"Preview failed: {e}")


@app.post("/preview/page.png")
async def preview_page(request: DocumentRequest, page: int = 0):
    """
    Raster preview of one page.

    Args:
        request: Same body as /generate-pdf
        page: Zero-based page index
    """
    try:
        document, _ = await card_generator.prepare_document(
            request.grid_ids,
            request.game_id,
            request.grids_per_page,
            request.theme,
        )
        if not 0 <= page < document.page_count:
            raise HTTPException(
                status_code=400,
                detail=f"Page {page} out of range (document has {document.page_count} pages)",
            )

        image = preview_renderer.render_page(document, page)
        return Response(content=preview_renderer.export(image, "PNG"), media_type="image/png")

    except HTTPException:
        raise
    except BingoError as e:
        logger.warning(f"Page preview rejected: {e}")
        raise bingo_http_error(e)
    except Exception as e:
        log_failure("Page preview", e)
        raise HTTPException(status_code=500, detail=f"Page preview failed: {e}")


@app.get("/games/{game_id}/images/{image_id}/display")
async def display_image(game_id: str, image_id: str):
    """Square display copy of one photo (JPEG)."""
    images = await game_store.list_images(game_id)
    image = next((i for i in images if i.id == image_id), None)
    if image is None:
        raise HTTPException(status_code=404, detail=f"Unknown image: {image_id}")

    pipeline = card_generator.new_pipeline()
    asset = await pipeline.normalize_photo(image.url, size=settings.display_photo_size)
    if asset.is_empty:
        raise HTTPException(status_code=502, detail=f"Image {image_id} could not be loaded")
    return Response(content=asset.data, media_type="image/jpeg")


# ==================== DRAW SESSION ENDPOINTS ====================

async def _get_session(session_id: str) -> DrawSession:
    session = await game_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


@app.post("/games/{game_id}/sessions", response_model=DrawSession)
async def create_session(game_id: str, request: SessionCreateRequest):
    """Start a new draw session; other sessions of the game are deactivated."""
    if await game_store.get_game_config(game_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown game: {game_id}")

    session = await game_store.create_session(game_id, request.name or "Draw session")
    logger.info(f"Started draw session {session.id} for game {game_id}")
    return session


@app.post("/sessions/{session_id}/draw", response_model=DrawResponse)
async def draw_image(session_id: str):
    """
    Draw one image that has not been drawn yet in this session.

    Returns image=None once every image of the game has been drawn.
    """
    session = await _get_session(session_id)
    if not session.is_active:
        raise HTTPException(status_code=400, detail=f"Session {session_id} is not active")

    images = await game_store.list_images(session.game_id)
    image_id = draw_next([i.id for i in images], session.drawn_image_ids)
    if image_id is None:
        return DrawResponse(session=session, image=None, remaining=0)

    session = session.model_copy(update={
        "drawn_image_ids": session.drawn_image_ids + [image_id],
        "last_drawn_id": image_id,
    })
    session = await game_store.save_session(session)

    drawn = set(session.drawn_image_ids)
    remaining = sum(1 for i in images if i.id not in drawn)
    image = next(i for i in images if i.id == image_id)
    logger.info(f"Session {session_id} drew {image_id}, {remaining} remaining")
    return DrawResponse(session=session, image=image, remaining=remaining)


@app.post("/sessions/{session_id}/reset", response_model=DrawSession)
async def reset_session(session_id: str):
    """Forget every drawn image of a session."""
    session = await _get_session(session_id)
    session = session.model_copy(update={"drawn_image_ids": [], "last_drawn_id": None})
    return await game_store.save_session(session)
