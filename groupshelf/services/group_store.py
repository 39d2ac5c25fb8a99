"""Хранилище групп на файловой системе: каталог группы + metadata.json + превью.

Раскладка::

    groups/<group_id>/metadata.json
    groups/<group_id>/files/<storage_name>
    groups/<group_id>/thumbnails/<storage_stem>.jpg

Транзакций нет, согласованность держится на порядке операций:
- байты файла записываются раньше, чем metadata.json со ссылкой на них;
- запись из metadata.json удаляется раньше, чем сами байты.
После сбоя между шагами остаётся только «сирота» на диске, а не запись без файла.
Каждая операция заново читает документ с диска (read → mutate → write целиком), кэша нет.
Параллельные записи в одну и ту же группу не сериализуются: выигрывает последний писатель.
"""
import asyncio
import logging
import os
import secrets
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from groupshelf.schemas import FileRecord, Group
from groupshelf.services.errors import (
    EmptyGroup,
    FileNotFound,
    Forbidden,
    GroupNotFound,
    StorageFault,
    ValidationFault,
)
from groupshelf.services.file_names import display_name_for, grouped_storage_name, thumbnail_name
from groupshelf.services.paths import check_segment, resolve_inside
from groupshelf.services.thumbnails import CONTAIN_300x200, generate_thumbnail
from groupshelf.services.uploads import StagedUpload

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
FILES_DIR = "files"
THUMBNAILS_DIR = "thumbnails"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_group_id() -> str:
    """Id из времени создания; случайный хвост, чтобы две группы в одну миллисекунду не совпали."""
    return f"group-{time.time_ns() // 1_000_000}-{secrets.token_hex(3)}"


def default_group_name() -> str:
    return f"Новая группа {datetime.now():%d.%m.%Y}"


def _clean_name(value: str | None, what: str) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationFault(f"Не указано {what}.")
    return name


class GroupStore:
    """Единственный писатель каталогов групп и их metadata.json."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    # --- paths ---

    def group_path(self, group_id: str) -> Path:
        return resolve_inside(self.root, group_id)

    def files_path(self, group_id: str) -> Path:
        return self.group_path(group_id) / FILES_DIR

    def thumbnails_path(self, group_id: str) -> Path:
        return self.group_path(group_id) / THUMBNAILS_DIR

    # --- metadata document ---

    def read_metadata(self, group_id: str) -> Group | None:
        """Документ группы или None, если его нет или он не разбирается."""
        path = self.group_path(group_id) / METADATA_FILE
        try:
            # байты: битый UTF-8 pydantic сообщает как ValidationError
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Не удалось прочитать метаданные группы %s: %s", group_id, e)
            return None
        try:
            return Group.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Повреждённые метаданные группы %s пропущены: %s", group_id, e.error_count())
            return None

    def write_metadata(self, group: Group) -> None:
        """Полная перезапись документа: временный файл + fsync + os.replace."""
        path = self.group_path(group.id) / METADATA_FILE
        tmp = path.with_name(f".{METADATA_FILE}.{secrets.token_hex(4)}.tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(group.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            logger.exception("Не удалось сохранить метаданные группы %s: %s", group.id, e)
            raise StorageFault("Не удалось сохранить метаданные группы.") from e

    def load(self, group_id: str) -> Group:
        if not self.group_path(group_id).is_dir():
            raise GroupNotFound()
        group = self.read_metadata(group_id)
        if group is None:
            raise GroupNotFound()
        return group

    def snapshot(self, group: Group) -> Group:
        """
        Копия для читателей: записи без файла на диске (сироты после сбоя) не показываются,
        ссылка на отсутствующее превью обнуляется.
        """
        files_dir = self.files_path(group.id)
        thumbs_dir = self.thumbnails_path(group.id)
        files = []
        for record in group.files:
            if not (files_dir / record.storage_name).is_file():
                continue
            if record.thumbnail and not (thumbs_dir / record.thumbnail).is_file():
                record = record.model_copy(update={"thumbnail": None})
            files.append(record)
        return group.model_copy(update={"files": files})

    @staticmethod
    def _find(group: Group, storage_name: str) -> int:
        for i, record in enumerate(group.files):
            if record.storage_name == storage_name:
                return i
        raise FileNotFound()

    # --- blocking operations (run in executor) ---

    def _create_group(self, name: str | None) -> Group:
        group = Group(
            id=new_group_id(),
            name=(name or "").strip() or default_group_name(),
            created_at=_now(),
        )
        path = self.group_path(group.id)
        created = False
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.mkdir()
            created = True
            (path / FILES_DIR).mkdir()
            (path / THUMBNAILS_DIR).mkdir()
            self.write_metadata(group)
        except (OSError, StorageFault) as e:
            if created:
                shutil.rmtree(path, ignore_errors=True)
            if isinstance(e, StorageFault):
                raise
            logger.exception("Не удалось создать каталог группы %s: %s", group.id, e)
            raise StorageFault("Не удалось создать группу.") from e
        logger.info("Группа создана: id=%s name=%s", group.id, group.name)
        return group

    def _get_group(self, group_id: str) -> Group:
        return self.snapshot(self.load(group_id))

    def _taken_names(self, group: Group) -> set[str]:
        names = {record.storage_name for record in group.files}
        try:
            names.update(p.name for p in self.files_path(group.id).iterdir())
        except FileNotFoundError:
            pass
        return names

    def _store_bytes(self, item: StagedUpload, target: Path) -> None:
        # без parents: удалённую тем временем группу не воскрешаем
        target.parent.mkdir(exist_ok=True)
        shutil.move(str(item.path), str(target))

    def _remove_file(self, group_id: str, storage_name: str) -> Group:
        check_segment(storage_name)
        group = self.load(group_id)
        record = group.files.pop(self._find(group, storage_name))
        # сначала запись из метаданных, потом байты
        self.write_metadata(group)
        self._unlink(self.files_path(group_id) / record.storage_name, "file")
        thumb = record.thumbnail or (thumbnail_name(record.storage_name) if record.kind == "image" else None)
        if thumb:
            self._unlink(self.thumbnails_path(group_id) / thumb, "thumbnail")
        return self.snapshot(group)

    def _unlink(self, path: Path, what: str) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("Удаление: %s %s уже отсутствует", what, path.name)
        except OSError as e:
            # запись уже удалена из метаданных, на диске остаётся сирота
            logger.warning("Не удалось удалить %s %s: %s", what, path, e)

    def _rename_file(self, group_id: str, storage_name: str, display_name: str | None) -> Group:
        check_segment(storage_name)
        name = _clean_name(display_name, "имя файла")
        group = self.load(group_id)
        group.files[self._find(group, storage_name)].display_name = name
        self.write_metadata(group)
        return self.snapshot(group)

    def _rename_group(self, group_id: str, name: str | None) -> Group:
        new_name = _clean_name(name, "название группы")
        group = self.load(group_id)
        group.name = new_name
        self.write_metadata(group)
        return self.snapshot(group)

    def _complete_group(self, group_id: str, name: str | None) -> Group:
        group = self.load(group_id)
        if not self.snapshot(group).files:
            raise EmptyGroup("В группе нет файлов.")
        group.is_completed = True
        group.completed_at = _now()
        if name and name.strip():
            group.name = name.strip()
        self.write_metadata(group)
        logger.info("Группа завершена: id=%s files=%d", group.id, len(group.files))
        return self.snapshot(group)

    def _list_completed_groups(self) -> list[Group]:
        try:
            entries = sorted(self.root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.exception("Не удалось прочитать каталог групп: %s", e)
            raise StorageFault("Не удалось прочитать список групп.") from e
        groups = []
        for entry in entries:
            if not entry.is_dir():
                continue
            try:
                group = self.read_metadata(entry.name)
            except Forbidden:
                logger.debug("Каталог %s не является группой, пропущен", entry.name)
                continue
            if group is None or not group.is_completed or group.id != entry.name:
                continue
            groups.append(self.snapshot(group))
        groups.sort(key=lambda g: g.completed_at or g.created_at, reverse=True)
        return groups

    def _delete_group(self, group_id: str) -> None:
        path = self.group_path(group_id)
        if not path.is_dir():
            raise GroupNotFound()
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.exception("Не удалось удалить группу %s: %s", group_id, e)
            raise StorageFault("Не удалось удалить группу.") from e
        logger.info("Группа удалена: id=%s", group_id)

    def _file_path(self, group_id: str, storage_name: str) -> tuple[FileRecord, Path]:
        check_segment(storage_name)
        group = self.load(group_id)
        record = group.files[self._find(group, storage_name)]
        path = resolve_inside(self.files_path(group_id), storage_name)
        if not path.is_file():
            raise FileNotFound()
        return record, path

    def _read_document(self, group_id: str, storage_name: str) -> tuple[FileRecord, str]:
        record, path = self._file_path(group_id, storage_name)
        try:
            return record, path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            raise FileNotFound()
        except OSError as e:
            raise StorageFault("Не удалось прочитать файл.") from e

    def _thumbnail_path(self, group_id: str, thumb_name: str) -> Path:
        check_segment(thumb_name)
        if not self.group_path(group_id).is_dir():
            raise GroupNotFound()
        path = resolve_inside(self.thumbnails_path(group_id), thumb_name)
        if not path.is_file():
            raise FileNotFound("thumbnail not found")
        return path

    # --- public async API ---

    async def _run(self, fn, *args):
        return await asyncio.get_running_loop().run_in_executor(None, fn, *args)

    async def create_group(self, name: str | None = None) -> Group:
        return await self._run(self._create_group, name)

    async def get_group(self, group_id: str) -> Group:
        return await self._run(self._get_group, group_id)

    async def add_files(self, group_id: str, items: list[StagedUpload]) -> Group:
        """
        Добавляет пачку файлов. Байты каждого файла переносятся в files/ по порядку,
        для изображений строится превью (ошибка превью не мешает), metadata.json пишется
        один раз в конце. Если перенос файла k не удался, остаток пачки не обрабатывается,
        метаданные не пишутся вовсе; уже перенесённые файлы остаются сиротами.
        """
        if not items:
            raise ValidationFault("Файлы не переданы.")
        group = await self._run(self.load, group_id)
        files_dir = self.files_path(group_id)
        thumbs_dir = self.thumbnails_path(group_id)
        taken = await self._run(self._taken_names, group)
        for item in items:
            display_name = display_name_for(item.original_name)
            storage_name = grouped_storage_name(display_name, taken)
            taken.add(storage_name)
            target = files_dir / storage_name
            try:
                await self._run(self._store_bytes, item, target)
            except OSError as e:
                logger.exception("Не удалось сохранить файл %s в группу %s: %s", display_name, group_id, e)
                raise StorageFault(f"Не удалось сохранить файл {display_name}.") from e
            thumbnail = None
            if item.kind == "image":
                thumb = await generate_thumbnail(
                    target, thumbs_dir / thumbnail_name(storage_name), CONTAIN_300x200
                )
                thumbnail = thumb.name if thumb else None
            group.files.append(
                FileRecord(
                    storage_name=storage_name,
                    display_name=display_name,
                    kind=item.kind,
                    uploaded_at=_now(),
                    size=item.size,
                    thumbnail=thumbnail,
                )
            )
        await self._run(self.write_metadata, group)
        return await self._run(self.snapshot, group)

    async def remove_file(self, group_id: str, storage_name: str) -> Group:
        return await self._run(self._remove_file, group_id, storage_name)

    async def rename_file(self, group_id: str, storage_name: str, display_name: str | None) -> Group:
        return await self._run(self._rename_file, group_id, storage_name, display_name)

    async def rename_group(self, group_id: str, name: str | None) -> Group:
        return await self._run(self._rename_group, group_id, name)

    async def complete_group(self, group_id: str, name: str | None = None) -> Group:
        return await self._run(self._complete_group, group_id, name)

    async def list_completed_groups(self) -> list[Group]:
        return await self._run(self._list_completed_groups)

    async def delete_group(self, group_id: str) -> None:
        await self._run(self._delete_group, group_id)

    async def file_path(self, group_id: str, storage_name: str) -> tuple[FileRecord, Path]:
        return await self._run(self._file_path, group_id, storage_name)

    async def read_document(self, group_id: str, storage_name: str) -> tuple[FileRecord, str]:
        return await self._run(self._read_document, group_id, storage_name)

    async def thumbnail_path(self, group_id: str, thumb_name: str) -> Path:
        return await self._run(self._thumbnail_path, group_id, thumb_name)
