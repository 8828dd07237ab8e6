"""Decode image payloads into RGBA pixel buffers."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from ..io.models import DecodedImage, PixelBuffer

try:  # pragma: no cover - optional dependency
    import cairosvg  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    cairosvg = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_SVG_MIME_TYPES = {"image/svg+xml", "image/svg", "text/svg"}


class ImageDecodeError(ValueError):
    """Raised when a payload cannot be turned into pixels."""


def decode_image(
    image_bytes: bytes,
    mime_hint: str | None = None,
    max_side: int | None = None,
) -> DecodedImage:
    """Return the RGBA buffer for *image_bytes* and the image's original size.

    When *max_side* is given the buffer is downscaled so that its longer side
    does not exceed it; the original size is still reported unchanged.
    """
    if not image_bytes:
        raise ImageDecodeError("Empty image payload cannot be decoded")

    mime = (mime_hint or "").lower() or None
    is_svg = mime in _SVG_MIME_TYPES or _looks_like_svg(image_bytes)
    declared_size = _svg_declared_size(image_bytes) if is_svg else None

    img = to_rgba(image_bytes, is_svg)
    try:
        original_size = declared_size or img.size
        if max_side is not None:
            resized = downscale(img, max_side)
            if resized is not img:
                img.close()
                img = resized
        width, height = img.size
        buffer = PixelBuffer(width=width, height=height, data=img.tobytes())
    finally:
        img.close()

    if is_svg:
        mime = "image/svg+xml"
    return DecodedImage(buffer=buffer, original_size=original_size, mime=mime)


def to_rgba(image_bytes: bytes, is_svg: bool = False) -> Image.Image:
    """Return a Pillow image in RGBA mode, rasterizing SVG input when possible."""
    data = image_bytes
    if is_svg:
        if cairosvg is None:
            raise ImageDecodeError("SVG input requires the optional cairosvg package")
        try:
            data = cairosvg.svg2png(bytestring=image_bytes)  # type: ignore[attr-defined]
        except Exception as exc:
            raise ImageDecodeError(f"Failed to rasterize SVG: {exc}") from exc

    try:
        with Image.open(BytesIO(data)) as img:
            return img.convert("RGBA")
    except (UnidentifiedImageError, DecompressionBombError, OSError) as exc:
        raise ImageDecodeError(f"Unreadable image payload: {exc}") from exc


def downscale(img: Image.Image, max_side: int) -> Image.Image:
    """Return *img* shrunk so its longer side is at most *max_side* pixels."""
    if max_side <= 0:
        raise ValueError("max_side must be a positive integer")

    width, height = img.size
    longest = max(width, height)
    if longest <= max_side:
        return img

    scale = max_side / longest
    target = (max(1, round(width * scale)), max(1, round(height * scale)))
    resample_attr = getattr(Image, "Resampling", None)
    resample_filter = getattr(resample_attr, "LANCZOS", None) if resample_attr else None
    if resample_filter is None:
        resample_filter = getattr(Image, "LANCZOS", Image.BICUBIC)

    logger.debug("Downscaling %dx%d image to %dx%d", width, height, *target)
    return img.resize(target, resample_filter)


def _looks_like_svg(image_bytes: bytes) -> bool:
    snippet = image_bytes[:1024].lstrip().lower()
    return snippet.startswith(b"<svg") or (
        snippet.startswith(b"<?xml") and b"<svg" in snippet
    )


def _svg_declared_size(image_bytes: bytes) -> tuple[int, int] | None:
    try:
        root = ET.fromstring(image_bytes.decode("utf-8", errors="ignore"))
    except ET.ParseError:
        return None
    if not root.tag.lower().endswith("svg"):
        return None

    width = _extract_svg_dimension(root.get("width"))
    height = _extract_svg_dimension(root.get("height"))
    view_box = root.get("viewBox")
    if (width is None or height is None) and view_box:
        parts = re.split(r"[\s,]+", view_box.strip())
        if len(parts) == 4:
            width = width if width is not None else _to_float(parts[2])
            height = height if height is not None else _to_float(parts[3])
    if not width or not height:
        return None
    return max(1, round(width)), max(1, round(height))


def _extract_svg_dimension(value: str | None) -> float | None:
    if not value or value.strip().endswith("%"):
        return None
    match = re.search(r"([0-9]*\.?[0-9]+)", value)
    if not match:
        return None
    return float(match.group(1))


def _to_float(value: str) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
