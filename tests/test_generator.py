import random
import re

import pytest

from models import FREE_SPACE, Theme
from bingo.errors import (
    InsufficientImagesError, InvalidLayoutError, PreconditionError, UnknownGameError, UnknownGridError,
)
from bingo.generator import CardGenerator, suggested_file_name
from bingo.renderer import DrawImage, DrawText
from conftest import seed_game


@pytest.fixture
def generator(game_store, blob_store):
    return CardGenerator(game_store, blob_store)

def test_suggested_file_name():
    name = suggested_file_name("Noël 2024!")
    assert re.match(r"^[A-Za-z0-9_]+_cards\.[a-z]+$", name)
    assert name == "No_l_2024__cards.pdf"

def test_suggested_file_name_empty():
    assert suggested_file_name("") == "bingo_cards.pdf"
    assert suggested_file_name("Party", "png") == "Party_cards.png"

@pytest.mark.asyncio
async def test_generate_grids_five_by_five(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=24, grid_size=5)
    group, grids = await generator.generate_grids(game.id, card_count=3, rng=random.Random(1))

    assert group.name == "Grids - Party"
    assert group.size == 5
    assert [g.name for g in grids] == ["Grid 1", "Grid 2", "Grid 3"]
    pool = sorted(image.id for image in game_store.images[game.id])
    for grid in grids:
        assert grid.cells[12] == FREE_SPACE
        assert sorted(c for c in grid.cells if c != FREE_SPACE) == pool
    assert await game_store.list_grids(group.id) == grids

@pytest.mark.asyncio
async def test_generate_grids_even_size(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=16, grid_size=4)
    _, grids = await generator.generate_grids(game.id, card_count=1)

    assert len(grids) == 1
    assert FREE_SPACE not in grids[0].cells
    assert len(set(grids[0].cells)) == 16

@pytest.mark.asyncio
async def test_generate_grids_uses_game_defaults(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    group, grids = await generator.generate_grids(game.id)
    assert group.size == 3
    assert len(grids) == game.card_count

@pytest.mark.asyncio
async def test_regeneration_replaces_previous_group(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    old_group, old_grids = await generator.generate_grids(game.id, card_count=2)
    new_group, _ = await generator.generate_grids(game.id, card_count=2)

    groups = await game_store.list_grid_groups(game.id)
    assert [g.id for g in groups] == [new_group.id]
    assert await game_store.list_grids(old_group.id) == []
    assert await game_store.get_grids([g.id for g in old_grids]) == []

@pytest.mark.asyncio
async def test_generate_grids_insufficient_pool(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=10, grid_size=5)
    with pytest.raises(InsufficientImagesError) as excinfo:
        await generator.generate_grids(game.id)
    assert (excinfo.value.available, excinfo.value.required) == (10, 24)
    assert await game_store.list_grid_groups(game.id) == []

@pytest.mark.asyncio
async def test_generate_grids_unknown_game(generator):
    with pytest.raises(UnknownGameError):
        await generator.generate_grids("missing")

@pytest.mark.asyncio
async def test_generate_document_end_to_end(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=24, grid_size=5)
    _, grids = await generator.generate_grids(game.id, card_count=3, rng=random.Random(2))
    grid_ids = [g.id for g in grids]

    document, images = await generator.prepare_document(grid_ids, game.id, 1, Theme.STANDARD)
    assert document.page_count == 3
    for page, grid in zip(document.pages, grids):
        assert [c.text for c in page.commands if isinstance(c, DrawText)] == [grid.name]
        assert sum(1 for c in page.commands if isinstance(c, DrawImage) and c.data) == 24
    assert len(images) == 24

    data, filename = await generator.generate_document(grid_ids, game.id, 1, Theme.STANDARD, "Noël 2024!")
    assert data.startswith(b"%PDF")
    assert filename == "No_l_2024__cards.pdf"

@pytest.mark.asyncio
async def test_each_photo_fetched_once_per_run(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    _, grids = await generator.generate_grids(game.id, card_count=5)

    await generator.prepare_document([g.id for g in grids], game.id, 4, "standard")
    assert len(blob_store.fetches) == 8
    assert len(set(blob_store.fetches)) == 8

@pytest.mark.asyncio
async def test_missing_theme_artwork_still_renders(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3, theme=Theme.CHRISTMAS)
    _, grids = await generator.generate_grids(game.id, card_count=3)

    data, _ = await generator.generate_document([g.id for g in grids], game.id, 1, Theme.CHRISTMAS, "Noel")
    assert data.startswith(b"%PDF")
    document, _ = await generator.prepare_document([g.id for g in grids], game.id, 1, Theme.CHRISTMAS)
    assert document.page_count == 3

@pytest.mark.asyncio
async def test_document_preconditions(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    _, grids = await generator.generate_grids(game.id, card_count=1)

    with pytest.raises(PreconditionError):
        await generator.prepare_document([], game.id, 1, "standard")
    with pytest.raises(InvalidLayoutError):
        await generator.prepare_document([grids[0].id], game.id, 3, "standard")
    with pytest.raises(InvalidLayoutError):
        await generator.prepare_document([grids[0].id], game.id, 1, "halloween")
    with pytest.raises(UnknownGameError):
        await generator.prepare_document([grids[0].id], "missing", 1, "standard")
    with pytest.raises(UnknownGridError) as excinfo:
        await generator.prepare_document([grids[0].id, "nope"], game.id, 1, "standard")
    assert excinfo.value.grid_ids == ["nope"]
    assert blob_store.fetches == []

@pytest.mark.asyncio
async def test_document_rejects_grids_of_other_games(generator, game_store, blob_store):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    other = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    _, grids = await generator.generate_grids(game.id, card_count=1)
    _, other_grids = await generator.generate_grids(other.id, card_count=1)

    with pytest.raises(UnknownGridError) as excinfo:
        await generator.prepare_document([grids[0].id, other_grids[0].id], game.id, 1, "standard")
    assert excinfo.value.grid_ids == [other_grids[0].id]
    assert blob_store.fetches == []

@pytest.mark.asyncio
async def test_failed_regeneration_keeps_previous_group(generator, game_store, blob_store, monkeypatch):
    game = seed_game(game_store, blob_store, image_count=8, grid_size=3)
    old_group, old_grids = await generator.generate_grids(game.id, card_count=2)

    async def failing_create_grids(grid_group_id, grids):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(game_store, "create_grids", failing_create_grids)
    with pytest.raises(RuntimeError):
        await generator.generate_grids(game.id, card_count=2)

    assert await game_store.list_grid_groups(game.id) == [old_group]
    assert await game_store.list_grids(old_group.id) == old_grids
