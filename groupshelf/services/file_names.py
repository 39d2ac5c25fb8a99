"""Имена файлов: уникальные имена хранения, отображаемые имена, имена превью.

Две схемы именования:
- группы: ``{мс}-{6 случайных символов}-{имя}``, не пересекаются даже при загрузке
  нескольких файлов в одну миллисекунду;
- старое плоское хранилище: ``{мс}-{имя}``; отображаемое имя получается отбрасыванием
  числового префикса.
"""
import re
import secrets
import time
import unicodedata

THUMBNAIL_EXTENSION = ".jpg"
SUFFIX_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
SUFFIX_LENGTH = 6
DEFAULT_NAME = "file"

_LEGACY_PREFIX = re.compile(r"^\d+-")
_EXTENSION = re.compile(r"\.[^/.]+$")


def repair_upload_name(name: str) -> str:
    """
    Имя файла из multipart могло прийти как байты UTF-8, прочитанные в latin-1 (кракозябры
    вместо кириллицы/хангыля). Перекодируем обратно; если имя уже корректно, возвращаем как есть.
    """
    try:
        return name.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return name


def sanitize(name: str) -> str:
    """Только последний компонент пути, без управляющих символов; пустое имя заменяется на 'file'."""
    base = (name or "").replace("\\", "/").rsplit("/", 1)[-1]
    base = "".join(c for c in base if unicodedata.category(c)[0] != "C")
    base = unicodedata.normalize("NFC", base).strip()
    if base in ("", ".", ".."):
        return DEFAULT_NAME
    return base


def _millis() -> int:
    return time.time_ns() // 1_000_000


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def grouped_storage_name(original_name: str, taken: set[str] | None = None) -> str:
    """Имя хранения для файла группы. taken — имена, уже занятые в каталоге группы."""
    safe = sanitize(original_name)
    while True:
        candidate = f"{_millis()}-{random_suffix()}-{safe}"
        if not taken or candidate not in taken:
            return candidate


def legacy_storage_name(original_name: str) -> str:
    return f"{_millis()}-{sanitize(original_name)}"


def legacy_display_name(storage_name: str) -> str:
    return _LEGACY_PREFIX.sub("", storage_name, count=1)


def thumbnail_name(storage_name: str) -> str:
    """Та же основа имени с расширением .jpg: превью находится без индекса."""
    if _EXTENSION.search(storage_name):
        return _EXTENSION.sub(THUMBNAIL_EXTENSION, storage_name)
    return storage_name + THUMBNAIL_EXTENSION


def display_name_for(original_name: str) -> str:
    return sanitize(repair_upload_name(original_name))
