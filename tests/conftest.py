"""Pytest fixtures: app, client, stores on a temporary uploads tree, test images."""
import io
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from groupshelf.main import app
from groupshelf.services.flat_store import FlatStore
from groupshelf.services.group_store import GroupStore
from groupshelf.services.uploads import StagedUpload
from groupshelf.storage import get_flat_store, get_group_store, get_staging_dir


def make_image_bytes(size: tuple[int, int] = (640, 480), fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, fmt)
    return buf.getvalue()


@pytest.fixture
def uploads_root(tmp_path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def staging_dir(uploads_root) -> Path:
    path = uploads_root / "temp"
    path.mkdir()
    return path


@pytest.fixture
def group_store(uploads_root) -> GroupStore:
    return GroupStore(uploads_root / "groups")


@pytest.fixture
def flat_store(uploads_root) -> FlatStore:
    store = FlatStore(uploads_root, max_bytes=10 * 1024 * 1024)
    store.ensure_dirs()
    return store


@pytest.fixture
def stage(staging_dir):
    """Кладёт байты во временный каталог так же, как это делает приём загрузок."""
    counter = {"n": 0}

    def _stage(name: str, data: bytes, kind: str, content_type: str | None = None) -> StagedUpload:
        counter["n"] += 1
        path = staging_dir / f"upload-{counter['n']}.part"
        path.write_bytes(data)
        return StagedUpload(path=path, original_name=name, content_type=content_type, size=len(data), kind=kind)

    return _stage


@pytest.fixture
async def async_client(group_store, flat_store, staging_dir):
    app.dependency_overrides[get_group_store] = lambda: group_store
    app.dependency_overrides[get_flat_store] = lambda: flat_store
    app.dependency_overrides[get_staging_dir] = lambda: staging_dir
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def image_bytes():
    return make_image_bytes
