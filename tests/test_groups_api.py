"""Tests for /api/groups endpoints."""
import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, name: str | None = None) -> dict:
    r = await client.post("/api/groups", json={"name": name})
    assert r.status_code == 200
    return r.json()["group"]


async def _upload(client: AsyncClient, group_id: str, *files) -> dict:
    r = await client.post(f"/api/groups/{group_id}/files", files=[("files", f) for f in files])
    assert r.status_code == 200, r.text
    return r.json()["group"]


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    r = await async_client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "service": "groupshelf"}


@pytest.mark.asyncio
async def test_create_group(async_client: AsyncClient):
    r = await async_client.post("/api/groups", json={"name": "Поездка"})
    assert r.status_code == 200
    data = r.json()
    assert data["message"]
    assert data["group"]["name"] == "Поездка"
    assert data["group"]["is_completed"] is False
    assert data["group"]["files"] == []


@pytest.mark.asyncio
async def test_create_group_without_body(async_client: AsyncClient):
    r = await async_client.post("/api/groups")
    assert r.status_code == 200
    assert r.json()["group"]["name"].startswith("Новая группа")


@pytest.mark.asyncio
async def test_upload_and_fetch_files(async_client: AsyncClient, image_bytes):
    group = await _create(async_client, "g")
    png = image_bytes()
    group = await _upload(
        async_client,
        group["id"],
        ("photo.png", png, "image/png"),
        ("notes.md", "# Заметки".encode(), "text/markdown"),
    )
    photo, notes = group["files"]
    assert photo["kind"] == "image" and photo["thumbnail"]
    assert notes["kind"] == "document"

    r = await async_client.get(f"/api/groups/{group['id']}/files/{photo['storage_name']}")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content == png

    r = await async_client.get(f"/api/groups/{group['id']}/files/{notes['storage_name']}")
    assert r.status_code == 200
    assert r.json() == {
        "storage_name": notes["storage_name"],
        "display_name": "notes.md",
        "content": "# Заметки",
        "kind": "document",
    }

    r = await async_client.get(f"/api/groups/{group['id']}/thumbnails/{photo['thumbnail']}")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_upload_repairs_mangled_utf8_name(async_client: AsyncClient):
    group = await _create(async_client)
    mangled = "заметки.md".encode("utf-8").decode("latin-1")
    group = await _upload(async_client, group["id"], (mangled, b"x", "text/markdown"))
    assert group["files"][0]["display_name"] == "заметки.md"


@pytest.mark.asyncio
async def test_upload_rejects_unknown_type_before_writing(async_client: AsyncClient, group_store):
    group = await _create(async_client)
    r = await async_client.post(
        f"/api/groups/{group['id']}/files",
        files=[
            ("files", ("ok.md", b"# ok", "text/markdown")),
            ("files", ("evil.exe", b"MZ", "application/octet-stream")),
        ],
    )
    assert r.status_code == 400
    assert "Markdown" in r.json()["detail"]
    assert list(group_store.files_path(group["id"]).iterdir()) == []
    assert (await async_client.get(f"/api/groups/{group['id']}")).json()["files"] == []


@pytest.mark.asyncio
async def test_upload_without_files(async_client: AsyncClient):
    group = await _create(async_client)
    r = await async_client.post(f"/api/groups/{group['id']}/files", data={"other": "x"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_upload_to_unknown_group(async_client: AsyncClient):
    r = await async_client.post(
        "/api/groups/group-1-missing/files", files=[("files", ("a.md", b"a", "text/markdown"))]
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_upload_too_large(async_client: AsyncClient, monkeypatch):
    from groupshelf.config import settings

    monkeypatch.setattr(settings, "max_upload_bytes", 10)
    group = await _create(async_client)
    r = await async_client.post(
        f"/api/groups/{group['id']}/files", files=[("files", ("a.md", b"x" * 11, "text/markdown"))]
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_rename_file_and_group(async_client: AsyncClient):
    group = await _create(async_client, "old")
    group = await _upload(async_client, group["id"], ("a.md", b"a", "text/markdown"))
    storage_name = group["files"][0]["storage_name"]

    r = await async_client.put(
        f"/api/groups/{group['id']}/files/{storage_name}/name", json={"display_name": "b.md"}
    )
    assert r.status_code == 200
    record = r.json()["group"]["files"][0]
    assert record["display_name"] == "b.md"
    assert record["storage_name"] == storage_name

    r = await async_client.put(f"/api/groups/{group['id']}/name", json={"name": "new"})
    assert r.status_code == 200
    assert r.json()["group"]["name"] == "new"


@pytest.mark.asyncio
async def test_blank_names_return_400(async_client: AsyncClient):
    group = await _create(async_client)
    group = await _upload(async_client, group["id"], ("a.md", b"a", "text/markdown"))
    storage_name = group["files"][0]["storage_name"]
    r = await async_client.put(f"/api/groups/{group['id']}/name", json={"name": "  "})
    assert r.status_code == 400
    r = await async_client.put(f"/api/groups/{group['id']}/files/{storage_name}/name", json={})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_delete_file(async_client: AsyncClient):
    group = await _create(async_client)
    group = await _upload(
        async_client, group["id"], ("a.md", b"a", "text/markdown"), ("b.md", b"b", "text/markdown")
    )
    storage_name = group["files"][0]["storage_name"]
    r = await async_client.delete(f"/api/groups/{group['id']}/files/{storage_name}")
    assert r.status_code == 200
    assert [f["display_name"] for f in r.json()["group"]["files"]] == ["b.md"]
    r = await async_client.get(f"/api/groups/{group['id']}/files/{storage_name}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_complete_and_list(async_client: AsyncClient, image_bytes):
    draft = await _create(async_client, "draft")
    await _upload(async_client, draft["id"], ("a.md", b"a", "text/markdown"))
    done = await _create(async_client, "done")
    done = await _upload(async_client, done["id"], ("p.png", image_bytes(), "image/png"))

    r = await async_client.put(f"/api/groups/{done['id']}/complete", json={"name": "Готово"})
    assert r.status_code == 200
    assert r.json()["group"]["is_completed"] is True

    r = await async_client.get("/api/groups")
    assert r.status_code == 200
    groups = r.json()
    assert [g["id"] for g in groups] == [done["id"]]
    assert groups[0]["name"] == "Готово"
    thumb = done["files"][0]["thumbnail"]
    assert groups[0]["thumbnail_url"] == f"/api/groups/{done['id']}/thumbnails/{thumb}"


@pytest.mark.asyncio
async def test_complete_empty_group_is_rejected(async_client: AsyncClient):
    group = await _create(async_client)
    r = await async_client.put(f"/api/groups/{group['id']}/complete")
    assert r.status_code == 400
    assert (await async_client.get("/api/groups")).json() == []


@pytest.mark.asyncio
async def test_delete_group(async_client: AsyncClient):
    group = await _create(async_client)
    r = await async_client.delete(f"/api/groups/{group['id']}")
    assert r.status_code == 200
    assert (await async_client.get(f"/api/groups/{group['id']}")).status_code == 404
    assert (await async_client.delete(f"/api/groups/{group['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_unknown_group_and_file(async_client: AsyncClient):
    assert (await async_client.get("/api/groups/group-1-missing")).status_code == 404
    group = await _create(async_client)
    r = await async_client.get(f"/api/groups/{group['id']}/files/1-abcdef-none.md")
    assert r.status_code == 404
    r = await async_client.get(f"/api/groups/{group['id']}/thumbnails/none.jpg")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_path_traversal_is_forbidden(async_client: AsyncClient):
    r = await async_client.get("/api/groups/..%5C..%5Cetc")
    assert r.status_code == 403
    group = await _create(async_client)
    r = await async_client.get(f"/api/groups/{group['id']}/files/..%5Cmetadata.json")
    assert r.status_code == 403
    r = await async_client.get(f"/api/groups/{group['id']}/thumbnails/..%5C..%5Cx.jpg")
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_unreadable_metadata_is_not_found(async_client: AsyncClient, group_store):
    broken = group_store.root / "group-2-broken"
    broken.mkdir(parents=True)
    (broken / "metadata.json").write_bytes(b"\xff")
    assert (await async_client.get("/api/groups/group-2-broken")).status_code == 404
    r = await async_client.get("/api/groups")
    assert r.status_code == 200
    assert r.json() == []
