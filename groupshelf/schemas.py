"""Pydantic schemas: документ метаданных группы (metadata.json) и тела запросов/ответов API."""
from datetime import datetime

from pydantic import BaseModel, Field

from groupshelf.services.file_types import ContentKind


# Metadata document
class FileRecord(BaseModel):
    storage_name: str
    display_name: str
    kind: ContentKind
    uploaded_at: datetime
    size: int = 0
    thumbnail: str | None = None  # имя файла в thumbnails/, только для изображений


class Group(BaseModel):
    id: str
    name: str
    created_at: datetime
    completed_at: datetime | None = None
    is_completed: bool = False
    files: list[FileRecord] = []


# Groups API
class GroupSummary(Group):
    thumbnail_url: str | None = None


class GroupResponse(BaseModel):
    message: str
    group: Group


class GroupCreate(BaseModel):
    name: str | None = Field(None, max_length=256)


class GroupComplete(BaseModel):
    name: str | None = Field(None, max_length=256)


class GroupRename(BaseModel):
    name: str | None = Field(None, max_length=256)


class FileRename(BaseModel):
    display_name: str | None = Field(None, max_length=512)


class DocumentContent(BaseModel):
    storage_name: str
    display_name: str
    content: str
    kind: ContentKind


class MessageResponse(BaseModel):
    message: str


# Legacy flat storage
class LegacyFileItem(BaseModel):
    filename: str
    display_name: str
    uploaded_at: datetime
    size: int
    kind: ContentKind
    folder: str
    thumbnail: str | None = None


class LegacyUploadResponse(BaseModel):
    message: str
    filename: str
    original_name: str
    kind: ContentKind


class LegacyDocument(BaseModel):
    filename: str
    display_name: str
    content: str
    kind: ContentKind


class ClipboardUpload(BaseModel):
    image_data: str | None = None
