"""Зависимости FastAPI: хранилища создаются на каждый запрос, состояния между запросами нет."""
from pathlib import Path

from groupshelf.config import settings
from groupshelf.services.flat_store import FlatStore
from groupshelf.services.group_store import GroupStore

GROUPS_DIR = "groups"
STAGING_DIR = "temp"


def get_uploads_root() -> Path:
    return settings.get_uploads_path()


def get_group_store() -> GroupStore:
    return GroupStore(get_uploads_root() / GROUPS_DIR)


def get_flat_store() -> FlatStore:
    return FlatStore(get_uploads_root(), max_bytes=settings.max_upload_bytes)


def get_staging_dir() -> Path:
    return get_uploads_root() / STAGING_DIR


def init_storage() -> None:
    """Каталоги uploads/ при старте приложения."""
    root = get_uploads_root()
    for name in (GROUPS_DIR, STAGING_DIR):
        (root / name).mkdir(parents=True, exist_ok=True)
    get_flat_store().ensure_dirs()
