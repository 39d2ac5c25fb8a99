"""Старые эндпоинты плоского хранилища (без групп), для совместимости."""
import mimetypes

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from groupshelf.config import settings
from groupshelf.schemas import (
    ClipboardUpload,
    LegacyDocument,
    LegacyFileItem,
    LegacyUploadResponse,
    MessageResponse,
)
from groupshelf.services.file_names import legacy_display_name
from groupshelf.services.flat_store import KIND_BY_FOLDER, FlatStore
from groupshelf.services.uploads import discard_staged, stage_upload
from groupshelf.storage import get_flat_store, get_staging_dir

router = APIRouter(prefix="/api", tags=["files"])


@router.post("/upload", response_model=LegacyUploadResponse)
async def upload_file(
    file: UploadFile | None = File(None),
    store: FlatStore = Depends(get_flat_store),
    staging_dir=Depends(get_staging_dir),
):
    if file is None:
        raise HTTPException(status_code=400, detail="Файл не передан.")
    staged = await stage_upload(file, staging_dir, settings.max_upload_bytes)
    try:
        filename, original_name, kind = await store.save_upload(staged)
    finally:
        discard_staged([staged])
    return LegacyUploadResponse(
        message="Файл загружен.",
        filename=filename,
        original_name=original_name,
        kind=kind,
    )


@router.post("/upload-clipboard", response_model=LegacyUploadResponse)
async def upload_clipboard(body: ClipboardUpload, store: FlatStore = Depends(get_flat_store)):
    filename = await store.save_clipboard(body.image_data)
    return LegacyUploadResponse(
        message="Изображение из буфера обмена загружено.",
        filename=filename,
        original_name=legacy_display_name(filename),
        kind="image",
    )


@router.get("/files", response_model=list[LegacyFileItem])
async def list_files(store: FlatStore = Depends(get_flat_store)):
    return await store.list_files()


@router.get("/files/{folder}/{filename}")
async def get_file(folder: str, filename: str, store: FlatStore = Depends(get_flat_store)):
    path = store.file_path(folder, filename)
    kind = KIND_BY_FOLDER[folder]
    if kind == "image":
        media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return FileResponse(path, media_type=media_type)
    content = await store.read_document(folder, filename)
    return LegacyDocument(
        filename=filename,
        display_name=legacy_display_name(filename),
        content=content,
        kind=kind,
    )


@router.delete("/files/{folder}/{filename}", response_model=MessageResponse)
async def delete_file(folder: str, filename: str, store: FlatStore = Depends(get_flat_store)):
    await store.delete_file(folder, filename)
    return MessageResponse(message="Файл удалён.")


@router.get("/thumbnails/{filename}")
async def get_thumbnail(filename: str, store: FlatStore = Depends(get_flat_store)):
    return FileResponse(store.thumbnail_file(filename), media_type="image/jpeg")
