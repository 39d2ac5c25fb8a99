"""Старое плоское хранилище (без групп): uploads/markdown, uploads/images, uploads/thumbnails.

Оставлено для совместимости и не синхронизировано с хранилищем групп. Имена файлов:
``{мс}-{имя}``, превью 200x200 с обрезкой.
"""
import asyncio
import base64
import binascii
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

from groupshelf.schemas import LegacyFileItem
from groupshelf.services.errors import FileNotFound, Forbidden, StorageFault, ValidationFault
from groupshelf.services.file_names import (
    display_name_for,
    legacy_display_name,
    legacy_storage_name,
    thumbnail_name,
)
from groupshelf.services.file_types import ContentKind
from groupshelf.services.paths import check_segment, resolve_inside
from groupshelf.services.thumbnails import COVER_200, generate_thumbnail
from groupshelf.services.uploads import StagedUpload

logger = logging.getLogger(__name__)

MARKDOWN_DIR = "markdown"
IMAGES_DIR = "images"
THUMBNAILS_DIR = "thumbnails"
FOLDER_BY_KIND: dict[str, str] = {"document": MARKDOWN_DIR, "image": IMAGES_DIR}
KIND_BY_FOLDER: dict[str, ContentKind] = {MARKDOWN_DIR: "document", IMAGES_DIR: "image"}
CLIPBOARD_NAME = "clipboard.png"

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


class FlatStore:
    def __init__(self, root: Path, max_bytes: int | None = None) -> None:
        self.root = Path(root)
        self.max_bytes = max_bytes

    @property
    def thumbnails_path(self) -> Path:
        return self.root / THUMBNAILS_DIR

    def folder_path(self, folder: str) -> Path:
        check_segment(folder)
        if folder not in KIND_BY_FOLDER:
            raise Forbidden()
        return resolve_inside(self.root, folder)

    def ensure_dirs(self) -> None:
        for name in (MARKDOWN_DIR, IMAGES_DIR, THUMBNAILS_DIR):
            (self.root / name).mkdir(parents=True, exist_ok=True)

    async def _run(self, fn, *args):
        return await asyncio.get_running_loop().run_in_executor(None, fn, *args)

    async def _thumbnail_for(self, image_path: Path) -> str | None:
        thumb = await generate_thumbnail(
            image_path, self.thumbnails_path / thumbnail_name(image_path.name), COVER_200
        )
        return thumb.name if thumb else None

    async def save_upload(self, item: StagedUpload) -> tuple[str, str, ContentKind]:
        """Переносит загруженный файл в markdown/ или images/. Возвращает (filename, original_name, kind)."""
        original_name = display_name_for(item.original_name)
        folder = FOLDER_BY_KIND.get(item.kind)
        if folder is None:
            raise ValidationFault("Неподдерживаемый тип файла.")
        filename = legacy_storage_name(original_name)
        target = self.root / folder / filename

        def _move() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(item.path), str(target))

        try:
            await self._run(_move)
        except OSError as e:
            logger.exception("Не удалось сохранить файл %s: %s", original_name, e)
            raise StorageFault("Не удалось сохранить файл.") from e
        if item.kind == "image":
            await self._thumbnail_for(target)
        return filename, original_name, item.kind

    async def save_clipboard(self, image_data: str | None) -> str:
        """Изображение из буфера обмена (data URL в base64) сохраняется как ``{мс}-clipboard.png``."""
        if not image_data:
            raise ValidationFault("Нет данных изображения.")
        try:
            data = base64.b64decode(_DATA_URL_PREFIX.sub("", image_data.strip(), count=1), validate=True)
        except (binascii.Error, ValueError):
            raise ValidationFault("Данные изображения не в формате base64.")
        if not data:
            raise ValidationFault("Нет данных изображения.")
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise ValidationFault("Изображение больше допустимого размера.")
        filename = legacy_storage_name(CLIPBOARD_NAME)
        target = self.root / IMAGES_DIR / filename

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await self._run(_write)
        except OSError as e:
            logger.exception("Не удалось сохранить изображение из буфера обмена: %s", e)
            raise StorageFault("Не удалось сохранить изображение.") from e
        await self._thumbnail_for(target)
        return filename

    def _list_files(self) -> list[LegacyFileItem]:
        items = []
        for folder, kind in KIND_BY_FOLDER.items():
            directory = self.root / folder
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                if not path.is_file():
                    continue
                st = path.stat()
                thumbnail = None
                if kind == "image":
                    thumb = thumbnail_name(path.name)
                    thumbnail = thumb if (self.thumbnails_path / thumb).is_file() else None
                items.append(
                    LegacyFileItem(
                        filename=path.name,
                        display_name=legacy_display_name(path.name),
                        uploaded_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                        size=st.st_size,
                        kind=kind,
                        folder=folder,
                        thumbnail=thumbnail,
                    )
                )
        items.sort(key=lambda i: i.uploaded_at, reverse=True)
        return items

    async def list_files(self) -> list[LegacyFileItem]:
        try:
            return await self._run(self._list_files)
        except OSError as e:
            logger.exception("Не удалось прочитать список файлов: %s", e)
            raise StorageFault("Не удалось прочитать список файлов.") from e

    def file_path(self, folder: str, filename: str) -> Path:
        path = resolve_inside(self.folder_path(folder), filename)
        if not path.is_file():
            raise FileNotFound()
        return path

    async def read_document(self, folder: str, filename: str) -> str:
        path = self.file_path(folder, filename)
        try:
            return await self._run(lambda: path.read_text(encoding="utf-8", errors="replace"))
        except FileNotFoundError:
            raise FileNotFound()
        except OSError as e:
            raise StorageFault("Не удалось прочитать файл.") from e

    async def delete_file(self, folder: str, filename: str) -> None:
        path = self.file_path(folder, filename)

        def _delete() -> None:
            path.unlink()
            if folder == IMAGES_DIR:
                try:
                    (self.thumbnails_path / thumbnail_name(filename)).unlink()
                except OSError as e:
                    logger.info("Превью не удалено (игнорируется): %s", e)

        try:
            await self._run(_delete)
        except FileNotFoundError:
            raise FileNotFound()
        except OSError as e:
            logger.exception("Не удалось удалить файл %s/%s: %s", folder, filename, e)
            raise StorageFault("Не удалось удалить файл.") from e

    def thumbnail_file(self, filename: str) -> Path:
        path = resolve_inside(self.thumbnails_path, filename)
        if not path.is_file():
            raise FileNotFound("thumbnail not found")
        return path
