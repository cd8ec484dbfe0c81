import io

import pytest
from httpx import AsyncClient, ASGITransport
from PIL import Image

import main
from bingo.assets import DEFAULT_PHOTO_SIZE, DEFAULT_QUALITY, DISPLAY_PHOTO_SIZE
from main import app
from conftest import FakeBlobStore, seed_game


@pytest.fixture
def fake_blobs(monkeypatch):
    store = FakeBlobStore()
    monkeypatch.setattr(main.card_generator, "blob_store", store)
    return store

@pytest.fixture
def game(fake_blobs):
    return seed_game(main.game_store, fake_blobs, image_count=8, grid_size=3, name="Noël 2024!")

async def generate(client, game_id, **body):
    response = await client.post(f"/games/{game_id}/grids/generate", json=body)
    assert response.status_code == 200
    return response.json()

@pytest.mark.asyncio
async def test_health():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

@pytest.mark.asyncio
async def test_options():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/bingo/options")

    assert response.status_code == 200
    data = response.json()
    assert [t["id"] for t in data["themes"]] == ["standard", "christmas", "birthday"]
    assert [o["id"] for o in data["grids_per_page"]] == [1, 2, 4]
    sizes = {s["size"]: s for s in data["grid_sizes"]}
    assert sizes[5]["required_images"] == 24
    assert sizes[4]["has_free_space"] is False

@pytest.mark.asyncio
async def test_generate_grids(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = await generate(client, game.id, card_count=2, seed=11)
        again = await generate(client, game.id, card_count=2, seed=11)
        listed = await client.get(f"/grid-groups/{data['group']['id']}/grids")

    assert data["group"]["name"] == "Grids - Noël 2024!"
    assert [g["name"] for g in data["grids"]] == ["Grid 1", "Grid 2"]
    assert data["grids"][0]["cells"][4] == "star"
    # Same seed, same cards
    assert [g["cells"] for g in again["grids"]] == [g["cells"] for g in data["grids"]]
    # Previous group was replaced
    assert listed.json() == []

@pytest.mark.asyncio
async def test_generate_grids_errors(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        unknown = await client.post("/games/missing/grids/generate", json={})
        too_big = await client.post(f"/games/{game.id}/grids/generate", json={"grid_size": 5})
        invalid = await client.post(f"/games/{game.id}/grids/generate", json={"grid_size": 1})

    assert unknown.status_code == 404
    assert too_big.status_code == 400
    assert "24 required" in too_big.json()["detail"]
    assert invalid.status_code == 422

@pytest.mark.asyncio
async def test_generate_pdf(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = await generate(client, game.id, card_count=3)
        response = await client.post("/generate-pdf", json={
            "grid_ids": [g["id"] for g in data["grids"]],
            "game_id": game.id,
            "grids_per_page": 2,
            "theme": "birthday",
            "display_name": game.name,
        })

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="No_l_2024__cards.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

@pytest.mark.asyncio
async def test_generate_pdf_errors(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = await generate(client, game.id, card_count=1)
        grid_id = data["grids"][0]["id"]
        empty = await client.post("/generate-pdf", json={"grid_ids": [], "game_id": game.id})
        packing = await client.post("/generate-pdf", json={
            "grid_ids": [grid_id], "game_id": game.id, "grids_per_page": 3,
        })
        unknown = await client.post("/generate-pdf", json={"grid_ids": ["nope"], "game_id": game.id})
        theme = await client.post("/generate-pdf", json={
            "grid_ids": [grid_id], "game_id": game.id, "theme": "halloween",
        })

    assert empty.status_code == 400
    assert packing.status_code == 400
    assert unknown.status_code == 404
    assert theme.status_code == 422

@pytest.mark.asyncio
async def test_preview_tree(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = await generate(client, game.id, card_count=5)
        response = await client.post("/preview", json={
            "grid_ids": [g["id"] for g in data["grids"]],
            "game_id": game.id,
            "grids_per_page": 4,
        })

    assert response.status_code == 200
    tree = response.json()
    assert tree["page_count"] == 2
    assert [len(p["grids"]) for p in tree["pages"]] == [4, 1]
    cells = tree["pages"][0]["grids"][0]["cells"]
    assert len(cells) == 9
    assert cells[4]["kind"] == "free_space"
    assert cells[0]["kind"] == "image"
    assert cells[0]["image_url"].startswith("https://storage.test/")
    assert not any(c["missing"] for c in cells)

@pytest.mark.asyncio
async def test_preview_page_png(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = await generate(client, game.id, card_count=2)
        body = {"grid_ids": [g["id"] for g in data["grids"]], "game_id": game.id, "theme": "christmas"}
        response = await client.post("/preview/page.png?page=1", json=body)
        out_of_range = await client.post("/preview/page.png?page=2", json=body)

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    image = Image.open(io.BytesIO(response.content))
    assert image.size == (840, 1188)
    assert out_of_range.status_code == 400

@pytest.mark.asyncio
async def test_display_image(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get(f"/games/{game.id}/images/img-0/display")
        missing = await client.get(f"/games/{game.id}/images/nope/display")

    assert response.status_code == 200
    assert Image.open(io.BytesIO(response.content)).size == (DISPLAY_PHOTO_SIZE, DISPLAY_PHOTO_SIZE)
    assert missing.status_code == 404

@pytest.mark.asyncio
async def test_draw_session(game):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        first = (await client.post(f"/games/{game.id}/sessions", json={"name": "Round 1"})).json()
        second = (await client.post(f"/games/{game.id}/sessions", json={})).json()
        inactive = await client.post(f"/sessions/{first['id']}/draw")

        drawn = []
        for _ in range(8):
            response = await client.post(f"/sessions/{second['id']}/draw")
            assert response.status_code == 200
            drawn.append(response.json()["image"]["id"])
        last = (await client.post(f"/sessions/{second['id']}/draw")).json()
        reset = (await client.post(f"/sessions/{second['id']}/reset")).json()
        unknown = await client.post("/sessions/nope/draw")

    assert first["name"] == "Round 1"
    assert inactive.status_code == 400
    assert sorted(drawn) == sorted(f"img-{i}" for i in range(8))
    assert last["image"] is None
    assert last["remaining"] == 0
    assert last["session"]["last_drawn_id"] == drawn[-1]
    assert reset["drawn_image_ids"] == []
    assert reset["last_drawn_id"] is None
    assert unknown.status_code == 404

def test_settings_default_to_asset_sizes():
    defaults = main.Settings()
    assert defaults.photo_size == DEFAULT_PHOTO_SIZE
    assert defaults.display_photo_size == DISPLAY_PHOTO_SIZE
    assert defaults.jpeg_quality == DEFAULT_QUALITY
