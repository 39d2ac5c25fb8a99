"""Превью изображений (Pillow). Генерация best-effort: при любой ошибке лог и None, исключений наружу нет.

Две политики вписывания, у каждой схемы хранения своя:
- COVER_200: старое плоское хранилище: 200x200, заполнение с обрезкой по центру;
- CONTAIN_300x200: группы: вписать в 300x200, без увеличения маленьких картинок.
"""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80


@dataclass(frozen=True)
class ThumbnailPolicy:
    width: int
    height: int
    fit: Literal["cover", "contain"]


COVER_200 = ThumbnailPolicy(200, 200, "cover")
CONTAIN_300x200 = ThumbnailPolicy(300, 200, "contain")


def _to_rgb(im: Image.Image) -> Image.Image:
    if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
        rgba = im.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if im.mode != "RGB":
        return im.convert("RGB")
    return im


def render_thumbnail(source: Path, target: Path, policy: ThumbnailPolicy) -> Path:
    """Синхронная генерация; бросает исключения Pillow/OSError. Снаружи используйте generate_thumbnail."""
    with Image.open(source) as im:
        im = ImageOps.exif_transpose(im)
        im = _to_rgb(im)
        size = (policy.width, policy.height)
        if policy.fit == "cover":
            im = ImageOps.fit(im, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
        else:
            # thumbnail() только уменьшает, маленькие картинки не растягиваются
            im.thumbnail(size, Image.Resampling.LANCZOS)
        target.parent.mkdir(parents=True, exist_ok=True)
        im.save(target, "JPEG", quality=JPEG_QUALITY, optimize=True)
    return target


def try_render_thumbnail(source: Path, target: Path, policy: ThumbnailPolicy) -> Path | None:
    try:
        return render_thumbnail(source, target, policy)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning("Превью не создано: source=%s error=%s", source.name, e)
    except Exception as e:
        logger.exception("Неожиданная ошибка при создании превью %s: %s", source.name, e)
    # частично записанный файл превью не оставляем
    try:
        target.unlink(missing_ok=True)
    except OSError:
        pass
    return None


async def generate_thumbnail(source: Path, target: Path, policy: ThumbnailPolicy) -> Path | None:
    """Превью в пуле потоков. Возвращает путь к превью или None, если создать не удалось."""
    return await asyncio.get_running_loop().run_in_executor(
        None, try_render_thumbnail, source, target, policy
    )
