"""Тип содержимого по имени файла (и MIME как запасной вариант): document | image | unknown."""
from pathlib import Path
from typing import Literal

ContentKind = Literal["document", "image", "unknown"]

DOCUMENT_EXTENSIONS = (".md", ".markdown")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")
DOCUMENT_MIME_TYPES = ("text/markdown", "text/x-markdown")


def classify(filename: str, content_type: str | None = None) -> ContentKind:
    ext = Path(filename or "").suffix.lower()
    if ext in DOCUMENT_EXTENSIONS:
        return "document"
    if ext in IMAGE_EXTENSIONS:
        return "image"
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct in DOCUMENT_MIME_TYPES:
        return "document"
    if ct.startswith("image/"):
        return "image"
    return "unknown"
