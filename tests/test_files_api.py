"""Tests for the legacy flat-storage endpoints (/api/upload, /api/files, /api/thumbnails)."""
import base64

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_upload_markdown_and_read(async_client: AsyncClient, flat_store):
    r = await async_client.post("/api/upload", files={"file": ("notes.md", b"# Hello", "text/markdown")})
    assert r.status_code == 200
    data = r.json()
    assert data["kind"] == "document"
    assert data["original_name"] == "notes.md"
    assert data["filename"].endswith("-notes.md")
    assert (flat_store.root / "markdown" / data["filename"]).is_file()

    r = await async_client.get(f"/api/files/markdown/{data['filename']}")
    assert r.status_code == 200
    assert r.json() == {
        "filename": data["filename"],
        "display_name": "notes.md",
        "content": "# Hello",
        "kind": "document",
    }


@pytest.mark.asyncio
async def test_upload_image_creates_square_thumbnail(async_client: AsyncClient, image_bytes):
    r = await async_client.post("/api/upload", files={"file": ("pic.png", image_bytes((500, 300)), "image/png")})
    assert r.status_code == 200
    filename = r.json()["filename"]

    r = await async_client.get("/api/files")
    assert r.status_code == 200
    [item] = r.json()
    assert item["filename"] == filename
    assert item["display_name"] == "pic.png"
    assert item["folder"] == "images"
    assert item["thumbnail"] == filename.rsplit(".", 1)[0] + ".jpg"

    r = await async_client.get(f"/api/thumbnails/{item['thumbnail']}")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/jpeg"

    r = await async_client.get(f"/api/files/images/{filename}")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"


@pytest.mark.asyncio
async def test_upload_rejects_unknown_type(async_client: AsyncClient, flat_store):
    r = await async_client.post("/api/upload", files={"file": ("a.pdf", b"%PDF", "application/pdf")})
    assert r.status_code == 400
    assert await flat_store.list_files() == []


@pytest.mark.asyncio
async def test_upload_without_file(async_client: AsyncClient):
    r = await async_client.post("/api/upload", data={"x": "y"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_upload_clipboard(async_client: AsyncClient, image_bytes, flat_store):
    payload = "data:image/png;base64," + base64.b64encode(image_bytes((64, 64))).decode()
    r = await async_client.post("/api/upload-clipboard", json={"image_data": payload})
    assert r.status_code == 200
    data = r.json()
    assert data["filename"].endswith("-clipboard.png")
    assert data["original_name"] == "clipboard.png"
    assert (flat_store.root / "images" / data["filename"]).is_file()


@pytest.mark.asyncio
async def test_upload_clipboard_rejects_bad_payload(async_client: AsyncClient):
    assert (await async_client.post("/api/upload-clipboard", json={})).status_code == 400
    r = await async_client.post("/api/upload-clipboard", json={"image_data": "data:image/png;base64,@@@"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_delete_file(async_client: AsyncClient, image_bytes, flat_store):
    r = await async_client.post("/api/upload", files={"file": ("pic.png", image_bytes(), "image/png")})
    filename = r.json()["filename"]
    r = await async_client.delete(f"/api/files/images/{filename}")
    assert r.status_code == 200
    assert not (flat_store.root / "images" / filename).exists()
    assert list(flat_store.thumbnails_path.iterdir()) == []
    assert (await async_client.delete(f"/api/files/images/{filename}")).status_code == 404


@pytest.mark.asyncio
async def test_unknown_folder_and_traversal(async_client: AsyncClient):
    assert (await async_client.get("/api/files/thumbnails/x.jpg")).status_code == 403
    assert (await async_client.get("/api/files/markdown/..%5C..%5Csecret.md")).status_code == 403
    assert (await async_client.get("/api/files/markdown/missing.md")).status_code == 404
    assert (await async_client.get("/api/thumbnails/missing.jpg")).status_code == 404
