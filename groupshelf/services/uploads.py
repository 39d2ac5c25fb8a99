"""Приём загрузок: фильтр по типу и размеру, затем запись во временный каталог (temp/).

Дальше файл переносит хранилище (группы или плоское). Временные файлы удаляются вызывающим
через discard_staged() в любом случае, перенесённых на месте уже нет.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from groupshelf.services.errors import StorageFault, ValidationFault
from groupshelf.services.file_names import repair_upload_name
from groupshelf.services.file_types import ContentKind, classify

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
ALLOWED_TYPES_MESSAGE = (
    "Можно загружать только документы Markdown (.md, .markdown) "
    "или изображения (.jpg, .jpeg, .png, .gif, .webp, .svg)."
)


@dataclass
class StagedUpload:
    path: Path
    original_name: str
    content_type: str | None
    size: int
    kind: ContentKind


def check_upload_kind(upload: UploadFile) -> ContentKind:
    """Фильтр загрузки: неизвестный тип отклоняется до записи на диск."""
    kind = classify(repair_upload_name(upload.filename or ""), upload.content_type)
    if kind == "unknown":
        raise ValidationFault(ALLOWED_TYPES_MESSAGE)
    return kind


async def stage_upload(upload: UploadFile, staging_dir: Path, max_bytes: int) -> StagedUpload:
    kind = check_upload_kind(upload)
    staging_dir.mkdir(parents=True, exist_ok=True)
    path = staging_dir / f"{uuid.uuid4().hex}.part"
    size = 0
    try:
        with open(path, "wb") as f:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationFault(
                        f"Файл {upload.filename} больше допустимого размера ({max_bytes // (1024 * 1024)} МБ)."
                    )
                f.write(chunk)
    except ValidationFault:
        path.unlink(missing_ok=True)
        raise
    except OSError as e:
        path.unlink(missing_ok=True)
        logger.exception("Не удалось записать загрузку во временный каталог: %s", e)
        raise StorageFault("не удалось принять файл") from e
    return StagedUpload(
        path=path,
        original_name=upload.filename or "",
        content_type=upload.content_type,
        size=size,
        kind=kind,
    )


def discard_staged(items: list[StagedUpload]) -> None:
    for item in items:
        try:
            item.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Не удалось удалить временный файл %s: %s", item.path, e)
