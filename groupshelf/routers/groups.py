"""Группы файлов: создание, добавление/удаление/переименование файлов, завершение, список, удаление."""
import mimetypes
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from groupshelf.config import settings
from groupshelf.schemas import (
    DocumentContent,
    FileRename,
    Group,
    GroupComplete,
    GroupCreate,
    GroupRename,
    GroupResponse,
    GroupSummary,
    MessageResponse,
)
from groupshelf.services.group_store import GroupStore
from groupshelf.services.uploads import StagedUpload, check_upload_kind, discard_staged, stage_upload
from groupshelf.storage import get_group_store, get_staging_dir

router = APIRouter(prefix="/api", tags=["groups"])


def thumbnail_url(group: Group) -> str | None:
    """URL превью первого изображения группы, у которого превью есть."""
    for record in group.files:
        if record.kind == "image" and record.thumbnail:
            return f"/api/groups/{quote(group.id)}/thumbnails/{quote(record.thumbnail)}"
    return None


@router.post("/groups", response_model=GroupResponse)
async def create_group(
    body: GroupCreate | None = None,
    store: GroupStore = Depends(get_group_store),
):
    group = await store.create_group(body.name if body else None)
    return GroupResponse(message="Группа создана.", group=group)


@router.get("/groups", response_model=list[GroupSummary])
async def list_groups(store: GroupStore = Depends(get_group_store)):
    """Только завершённые группы, новые (по времени завершения) первыми."""
    groups = await store.list_completed_groups()
    return [GroupSummary(**g.model_dump(), thumbnail_url=thumbnail_url(g)) for g in groups]


@router.get("/groups/{group_id}", response_model=Group)
async def get_group(group_id: str, store: GroupStore = Depends(get_group_store)):
    return await store.get_group(group_id)


@router.put("/groups/{group_id}/complete", response_model=GroupResponse)
async def complete_group(
    group_id: str,
    body: GroupComplete | None = None,
    store: GroupStore = Depends(get_group_store),
):
    group = await store.complete_group(group_id, body.name if body else None)
    return GroupResponse(message="Группа завершена.", group=group)


@router.put("/groups/{group_id}/name", response_model=GroupResponse)
async def rename_group(
    group_id: str,
    body: GroupRename,
    store: GroupStore = Depends(get_group_store),
):
    group = await store.rename_group(group_id, body.name)
    return GroupResponse(message="Название группы изменено.", group=group)


@router.delete("/groups/{group_id}", response_model=MessageResponse)
async def delete_group(group_id: str, store: GroupStore = Depends(get_group_store)):
    await store.delete_group(group_id)
    return MessageResponse(message="Группа удалена.")


@router.post("/groups/{group_id}/files", response_model=GroupResponse)
async def add_group_files(
    group_id: str,
    files: list[UploadFile] | None = File(None),
    store: GroupStore = Depends(get_group_store),
    staging_dir=Depends(get_staging_dir),
):
    if not files:
        raise HTTPException(status_code=400, detail="Файлы не переданы.")
    # фильтр по типу для всей пачки до записи чего-либо на диск
    for upload in files:
        check_upload_kind(upload)
    staged: list[StagedUpload] = []
    try:
        for upload in files:
            staged.append(await stage_upload(upload, staging_dir, settings.max_upload_bytes))
        group = await store.add_files(group_id, staged)
    finally:
        discard_staged(staged)
    return GroupResponse(message=f"Добавлено файлов: {len(staged)}.", group=group)


@router.get("/groups/{group_id}/files/{storage_name}")
async def get_group_file(group_id: str, storage_name: str, store: GroupStore = Depends(get_group_store)):
    """Изображения (и файлы неизвестного типа) отдаются байтами, документы JSON с текстом."""
    record, path = await store.file_path(group_id, storage_name)
    if record.kind == "document":
        record, content = await store.read_document(group_id, storage_name)
        return DocumentContent(
            storage_name=record.storage_name,
            display_name=record.display_name,
            content=content,
            kind=record.kind,
        )
    media_type = mimetypes.guess_type(record.storage_name)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type)


@router.get("/groups/{group_id}/thumbnails/{thumb_name}")
async def get_group_thumbnail(group_id: str, thumb_name: str, store: GroupStore = Depends(get_group_store)):
    path = await store.thumbnail_path(group_id, thumb_name)
    return FileResponse(path, media_type="image/jpeg")


@router.put("/groups/{group_id}/files/{storage_name}/name", response_model=GroupResponse)
async def rename_group_file(
    group_id: str,
    storage_name: str,
    body: FileRename,
    store: GroupStore = Depends(get_group_store),
):
    group = await store.rename_file(group_id, storage_name, body.display_name)
    return GroupResponse(message="Имя файла изменено.", group=group)


@router.delete("/groups/{group_id}/files/{storage_name}", response_model=GroupResponse)
async def delete_group_file(group_id: str, storage_name: str, store: GroupStore = Depends(get_group_store)):
    group = await store.remove_file(group_id, storage_name)
    return GroupResponse(message="Файл удалён.", group=group)
