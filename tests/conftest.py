import asyncio
import io
import uuid

import pytest
from PIL import Image

from models import BingoImage, GameConfig, Theme
from storage import BlobStore, InMemoryGameStore


def make_image_bytes(size=(64, 48), color=(200, 30, 30), format="JPEG", mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=format)
    return buffer.getvalue()


class FakeBlobStore(BlobStore):
    """In-memory blob store that counts fetches."""

    def __init__(self, blobs=None, delay: float = 0.0):
        self.blobs = dict(blobs or {})
        self.delay = delay
        self.fetches = []
        self.active = 0
        self.max_active = 0

    async def fetch_bytes(self, source_ref: str) -> bytes:
        self.fetches.append(source_ref)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if source_ref not in self.blobs:
                raise FileNotFoundError(source_ref)
            return self.blobs[source_ref]
        finally:
            self.active -= 1


def make_pool(game_id: str, count: int):
    """Images plus the blobs behind their urls."""
    images = []
    blobs = {}
    for i in range(count):
        url = f"https://storage.test/{game_id}/photo_{i}.jpg"
        images.append(BingoImage(id=f"img-{i}", game_id=game_id, name=f"Photo {i}", url=url))
        blobs[url] = make_image_bytes(color=((i * 37) % 256, (i * 91) % 256, (i * 53) % 256))
    return images, blobs


def seed_game(store: InMemoryGameStore, blob_store: FakeBlobStore, image_count: int = 24,
              grid_size: int = 5, name: str = "Party", theme: Theme = Theme.STANDARD) -> GameConfig:
    game_id = uuid.uuid4().hex
    images, blobs = make_pool(game_id, image_count)
    blob_store.blobs.update(blobs)
    config = GameConfig(id=game_id, name=name, theme=theme, grid_size=grid_size, card_count=3)
    return store.add_game(config, images)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def game_store():
    return InMemoryGameStore()
