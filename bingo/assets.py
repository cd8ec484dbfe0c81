"""
Asset pipeline - fetch and normalize rasters for embedding.

Photos are auto-rotated from EXIF and center-cropped to a fixed square.
Backgrounds are shrunk to fit the print resolution (never enlarged).
Both are re-encoded as high quality JPEG.

Failures never raise: a source that cannot be fetched or decoded yields
the empty asset, which renderers skip. Each distinct source is processed
at most once per run thanks to the run-scoped AssetCache.
"""

import asyncio
import io
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Tuple

from PIL import Image, ImageOps

from storage import BlobStore
from .errors import AssetDeadlineExceeded
from .presets import A4_PRINT_PIXELS

logger = logging.getLogger(__name__)

PHOTO = "photo"
BACKGROUND = "background"

DEFAULT_PHOTO_SIZE = 400
DISPLAY_PHOTO_SIZE = 800
DEFAULT_QUALITY = 95


@dataclass(frozen=True)
class NormalizedAsset:
    """Fixed-size, fixed-format raster ready for embedding."""
    data: bytes
    width: int = 0
    height: int = 0

    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0


EMPTY_ASSET = NormalizedAsset(b"")


def _flatten(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    return image.convert("RGB")


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def square_crop(raw: bytes, size: int = DEFAULT_PHOTO_SIZE, quality: int = DEFAULT_QUALITY) -> NormalizedAsset:
    """Cover-fit a photo into a size x size square."""
    with Image.open(io.BytesIO(raw)) as source:
        image = _flatten(ImageOps.exif_transpose(source))
        fitted = ImageOps.fit(image, (size, size), Image.Resampling.LANCZOS, centering=(0.5, 0.5))
        return NormalizedAsset(_encode_jpeg(fitted, quality), size, size)


def fit_inside(
    raw: bytes,
    max_width: int = A4_PRINT_PIXELS[0],
    max_height: int = A4_PRINT_PIXELS[1],
    quality: int = DEFAULT_QUALITY,
) -> NormalizedAsset:
    """Shrink a background to fit within the bounds, keeping aspect ratio."""
    with Image.open(io.BytesIO(raw)) as source:
        image = _flatten(ImageOps.exif_transpose(source))
        image.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
        return NormalizedAsset(_encode_jpeg(image, quality), image.width, image.height)


class AssetCache:
    """Run-scoped map of (kind, source ref) to normalized asset."""

    def __init__(self):
        self._entries: Dict[Tuple[str, str], NormalizedAsset] = {}
        self.hits = 0
        self.misses = 0

    def get(self, kind: str, ref: str) -> Optional[NormalizedAsset]:
        entry = self._entries.get((kind, ref))
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
        return entry

    def put(self, kind: str, ref: str, asset: NormalizedAsset) -> None:
        self._entries[(kind, ref)] = asset

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class AssetBundle:
    """Everything a document needs, resolved before compositing."""
    photos: Dict[str, NormalizedAsset] = field(default_factory=dict)       # image id -> asset
    backgrounds: Dict[str, NormalizedAsset] = field(default_factory=dict)  # source ref -> asset
    photo_refs: Dict[str, str] = field(default_factory=dict)               # image id -> source ref

    def photo(self, image_id: str) -> NormalizedAsset:
        return self.photos.get(image_id, EMPTY_ASSET)

    def background(self, ref: str) -> NormalizedAsset:
        return self.backgrounds.get(ref, EMPTY_ASSET)

    @property
    def failed_count(self) -> int:
        """Distinct sources that failed to load."""
        failed = {
            self.photo_refs.get(image_id, image_id)
            for image_id, asset in self.photos.items() if asset.is_empty
        }
        failed.update(ref for ref, asset in self.backgrounds.items() if asset.is_empty)
        return len(failed)


class AssetPipeline:
    """
    Fetches and normalizes assets with bounded concurrency.

    A pipeline belongs to one document-generation run; create a new one
    (with a new cache) for each request.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        cache: Optional[AssetCache] = None,
        photo_size: int = DEFAULT_PHOTO_SIZE,
        background_size: Tuple[int, int] = A4_PRINT_PIXELS,
        quality: int = DEFAULT_QUALITY,
        max_workers: int = 8,
    ):
        """
        Initialize pipeline.

        Args:
            blob_store: Source of raw bytes
            cache: Run-scoped cache (a fresh one when omitted)
            photo_size: Square edge for photos in pixels
            background_size: Fit-inside bound for backgrounds
            quality: JPEG quality
            max_workers: Maximum concurrent fetch/normalize jobs
        """
        self.blob_store = blob_store
        self.cache = cache if cache is not None else AssetCache()
        self.photo_size = photo_size
        self.background_size = background_size
        self.quality = quality
        self.fetch_count = 0
        self._semaphore = asyncio.Semaphore(max_workers)
        self._inflight: Dict[Tuple[str, str], asyncio.Future] = {}

    async def normalize_photo(self, ref: str, size: Optional[int] = None) -> NormalizedAsset:
        """Square-cropped photo; size defaults to the print size."""
        size = size or self.photo_size
        return await self._normalize(
            f"{PHOTO}:{size}", ref, lambda raw: square_crop(raw, size, self.quality)
        )

    async def normalize_background(self, ref: str) -> NormalizedAsset:
        """Background fitted inside the print resolution."""
        width, height = self.background_size
        return await self._normalize(
            BACKGROUND, ref, lambda raw: fit_inside(raw, width, height, self.quality)
        )

    async def _normalize(
        self,
        kind: str,
        ref: str,
        transform: Callable[[bytes], NormalizedAsset],
    ) -> NormalizedAsset:
        cached = self.cache.get(kind, ref)
        if cached is not None:
            return cached

        key = (kind, ref)
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._load(kind, ref, transform))
            self._inflight[key] = future
        return await future

    async def _load(
        self,
        kind: str,
        ref: str,
        transform: Callable[[bytes], NormalizedAsset],
    ) -> NormalizedAsset:
        try:
            async with self._semaphore:
                self.fetch_count += 1
                raw = await self.blob_store.fetch_bytes(ref)
                asset = await asyncio.to_thread(transform, raw)
        except Exception as e:
            logger.warning(f"Failed to normalize {kind} '{ref}': {e}")
            asset = EMPTY_ASSET
        finally:
            self._inflight.pop((kind, ref), None)

        self.cache.put(kind, ref, asset)
        return asset

    async def resolve(
        self,
        photos: Dict[str, str],
        backgrounds: Iterable[str] = (),
        deadline: Optional[float] = None,
    ) -> AssetBundle:
        """
        Normalize every asset a document needs, concurrently.

        Args:
            photos: Image id -> source ref
            backgrounds: Background source refs
            deadline: Seconds allowed for the whole batch (None = unbounded)

        Returns:
            AssetBundle keyed by image id and background ref

        Raises:
            AssetDeadlineExceeded: when the batch does not finish in time
        """
        photo_refs = list(dict.fromkeys(photos.values()))
        background_refs = list(dict.fromkeys(backgrounds))

        logger.info(
            f"Resolving {len(photo_refs)} photos and {len(background_refs)} backgrounds"
        )

        jobs = [self.normalize_photo(ref) for ref in photo_refs]
        jobs += [self.normalize_background(ref) for ref in background_refs]

        try:
            results = await asyncio.wait_for(asyncio.gather(*jobs), timeout=deadline)
        except asyncio.TimeoutError:
            pending = len(photo_refs) + len(background_refs) - sum(
                1 for ref in photo_refs if (f"{PHOTO}:{self.photo_size}", ref) in self.cache
            ) - sum(1 for ref in background_refs if (BACKGROUND, ref) in self.cache)
            raise AssetDeadlineExceeded(deadline, pending) from None

        by_ref = dict(zip(photo_refs, results[:len(photo_refs)]))
        bundle = AssetBundle(
            photos={image_id: by_ref[ref] for image_id, ref in photos.items()},
            backgrounds=dict(zip(background_refs, results[len(photo_refs):])),
            photo_refs=dict(photos),
        )

        if bundle.failed_count:
            logger.warning(f"{bundle.failed_count} asset(s) failed and will render empty")
        return bundle
