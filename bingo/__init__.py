# Bingo Card Module
# One engine, two adapters: PDF for printing, layout tree / PNG for preview

from .generator import CardGenerator, suggested_file_name
from .allocator import allocate, center_index, draw_next, required_images_per_grid
from .layout import LayoutEngine
from .renderer import ThemeRenderer
from .compositor import PageCompositor
from .assets import AssetCache, AssetPipeline
from .pdf import PdfDocumentWriter
from .preview import RasterPreviewRenderer, build_preview_tree
from .themes import get_theme_options, get_theme_style

__all__ = [
    "CardGenerator",
    "suggested_file_name",
    "allocate",
    "center_index",
    "draw_next",
    "required_images_per_grid",
    "LayoutEngine",
    "ThemeRenderer",
    "PageCompositor",
    "AssetCache",
    "AssetPipeline",
    "PdfDocumentWriter",
    "RasterPreviewRenderer",
    "build_preview_tree",
    "get_theme_options",
    "get_theme_style",
]
