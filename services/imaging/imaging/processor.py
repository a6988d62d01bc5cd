"""
Image processor — resize, flatten and re-encode one derivative.

Uses Pillow for image manipulation. Both functions are CPU-bound and
synchronous; the pipeline runs them in the default thread-pool executor.

render_variant:
  1. decode permissively (truncated files are tolerated)
  2. apply EXIF orientation, dropping the orientation tag
  3. downscale to max_width if wider (never upscale, aspect ratio kept)
  4. flatten transparency onto white
  5. encode per target extension

encode_auxiliary:
  AVIF re-encode of an already rendered raster, so both siblings share
  pixel dimensions.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageFile, ImageOps, UnidentifiedImageError

from imaging.constants import (
    AVIF_QUALITY,
    AVIF_SPEED,
    JPEG_QUALITY,
    PNG_COMPRESS_LEVEL,
    WEBP_METHOD,
    WEBP_QUALITY,
    content_type_of,
)
from imaging.exceptions import RenderFailed

logger = logging.getLogger(__name__)

ImageFile.LOAD_TRUNCATED_IMAGES = True

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")
_WHITE = (255, 255, 255)


@dataclass(frozen=True)
class RenderedRaster:
    data: bytes
    content_type: str
    format: str
    width: int
    height: int


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise RenderFailed(str(exc)) from exc
    return img


def _resampleable(img: Image.Image) -> Image.Image:
    """Palette and bilevel images only resize with NEAREST; lift them first."""
    if img.mode == "P":
        return img.convert("RGBA" if "transparency" in img.info else "RGB")
    if img.mode == "1":
        return img.convert("L")
    return img


def _fit_width(img: Image.Image, max_width: int) -> Image.Image:
    if img.width <= max_width:
        return img
    height = max(1, round(img.height * max_width / img.width))
    return img.resize((max_width, height), Image.LANCZOS)


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparency onto a white background; always returns RGB."""
    if img.mode == "P" and "transparency" in img.info:
        img = img.convert("RGBA")
    if img.mode in _ALPHA_MODES:
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, _WHITE)
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode(img: Image.Image, ext: str) -> tuple[bytes, str]:
    """Encode ``img`` for ``ext``; returns (bytes, Pillow format name)."""
    buf = io.BytesIO()
    ext = ext.lower()
    if ext == ".png":
        fmt = "PNG"
        img.save(buf, format=fmt, compress_level=PNG_COMPRESS_LEVEL)
    elif ext == ".webp":
        fmt = "WEBP"
        img.save(buf, format=fmt, quality=WEBP_QUALITY, method=WEBP_METHOD)
    elif ext == ".gif":
        # static frame only, animation is not preserved
        fmt = "GIF"
        img.save(buf, format=fmt)
    elif ext in (".jpg", ".jpeg"):
        fmt = "JPEG"
        img.save(buf, format=fmt, quality=JPEG_QUALITY, optimize=True)
    else:
        # Unknown extensions fall back to JPEG
        fmt = "JPEG"
        img.save(buf, format=fmt, quality=JPEG_QUALITY)
    return buf.getvalue(), fmt


def render_variant(
    source: bytes,
    max_width: int,
    target_ext: str,
    *,
    normalize_orientation: bool = True,
    flatten_transparency: bool = True,
) -> RenderedRaster:
    """Produce one resized, re-encoded raster from the source bytes."""
    img = _open(source)
    try:
        if normalize_orientation:
            img = ImageOps.exif_transpose(img)
        img = _fit_width(_resampleable(img), max_width)
        if flatten_transparency:
            img = _flatten(img)
        data, fmt = _encode(img, target_ext)
    except (OSError, ValueError) as exc:
        raise RenderFailed(str(exc)) from exc

    logger.debug("Rendered %s %dx%d (max_width=%d)", fmt, img.width, img.height, max_width)
    return RenderedRaster(
        data=data,
        content_type=content_type_of(f".{fmt.lower()}"),
        format=fmt,
        width=img.width,
        height=img.height,
    )


def encode_auxiliary(raster: RenderedRaster) -> RenderedRaster:
    """Re-encode a rendered raster as AVIF at the same pixel dimensions."""
    img = _open(raster.data)
    try:
        if img.mode != "RGB":
            img = img.convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format="AVIF", quality=AVIF_QUALITY, speed=AVIF_SPEED)
    except (OSError, ValueError, KeyError) as exc:
        raise RenderFailed(f"avif encode: {exc}") from exc

    return RenderedRaster(
        data=buf.getvalue(),
        content_type=content_type_of(".avif"),
        format="AVIF",
        width=img.width,
        height=img.height,
    )
