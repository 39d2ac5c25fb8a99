"""Ограничение путей: id группы и имена файлов не должны выводить за пределы своего каталога."""
from pathlib import Path

from groupshelf.services.errors import Forbidden

_BAD_CHARS = ("/", "\\", "\x00")


def check_segment(value: str) -> str:
    """Один компонент пути (id группы, имя файла). Проверка выполняется до обращения к ФС."""
    if not value or value in (".", "..") or any(c in value for c in _BAD_CHARS):
        raise Forbidden()
    return value


def resolve_inside(root: Path, *segments: str) -> Path:
    """root / segments с проверкой, что результат остаётся внутри root."""
    for s in segments:
        check_segment(s)
    root = root.resolve()
    target = root.joinpath(*segments).resolve()
    if target != root and root not in target.parents:
        raise Forbidden()
    return target
