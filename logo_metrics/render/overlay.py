"""Structural overlay drawn on top of the analysed artifact."""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from ..io.models import LogoMetrics, PixelBuffer

_GHOST_OPACITY = 0.15
_NOTCH = 6
_INK = (0, 0, 0)
_GUIDE = (200, 200, 200)
_THIRDS = (221, 221, 221)
_ACCENT = (40, 40, 220)


def buffer_to_array(buffer: PixelBuffer) -> np.ndarray:
    """Return *buffer* as an ``(H, W, 4)`` RGBA array."""
    pixels = np.frombuffer(buffer.data, dtype=np.uint8)
    return pixels.reshape(buffer.height, buffer.width, 4)


def render_overlay(buffer: PixelBuffer, metrics: LogoMetrics) -> np.ndarray:
    """Return a BGR image of the artifact annotated with its geometry.

    Coordinates are taken verbatim from *metrics* and share the buffer's
    pixel space.
    """
    rgba = buffer_to_array(buffer)
    height, width = rgba.shape[:2]

    gray = cv2.cvtColor(np.ascontiguousarray(rgba[:, :, :3]), cv2.COLOR_RGB2GRAY)
    alpha = rgba[:, :, 3].astype(np.float32) / 255.0
    white = np.full((height, width), 255.0, dtype=np.float32)
    composited = alpha * gray.astype(np.float32) + (1.0 - alpha) * white
    ghost = white - _GHOST_OPACITY * (white - composited)
    canvas = cv2.cvtColor(ghost.astype(np.uint8), cv2.COLOR_GRAY2BGR)

    guides = canvas.copy()
    mid_x, mid_y = width // 2, height // 2
    cv2.line(guides, (mid_x, 0), (mid_x, height - 1), _GUIDE, 1)
    cv2.line(guides, (0, mid_y), (width - 1, mid_y), _GUIDE, 1)
    for step in (1, 2):
        x = round(width * step / 3)
        y = round(height * step / 3)
        cv2.line(guides, (x, 0), (x, height - 1), _THIRDS, 1)
        cv2.line(guides, (0, y), (width - 1, y), _THIRDS, 1)
    canvas = cv2.addWeighted(guides, 0.6, canvas, 0.4, 0)

    bbox = metrics.bounding_box
    left, top, right, bottom = bbox.x, bbox.y, bbox.right, bbox.bottom
    cv2.rectangle(canvas, (left, top), (right, bottom), _GUIDE, 1)
    _draw_notches(canvas, left, top, right, bottom)

    com = metrics.center_of_mass
    center = (round(com.x), round(com.y))
    cv2.line(canvas, (mid_x, mid_y), center, _ACCENT, 1, lineType=cv2.LINE_AA)
    radius = max(2, round(min(width, height) * 0.02))
    cv2.circle(canvas, center, radius, _INK, -1, lineType=cv2.LINE_AA)
    return canvas


def save_overlay(path: Path, buffer: PixelBuffer, metrics: LogoMetrics) -> Path:
    """Render the overlay and write it to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    image = render_overlay(buffer, metrics)
    if not cv2.imwrite(str(path), image):
        raise OSError(f"Failed to write overlay to {path}")
    return path


def _draw_notches(canvas: np.ndarray, left: int, top: int, right: int, bottom: int) -> None:
    corners = (
        ((left, top + _NOTCH), (left, top), (left + _NOTCH, top)),
        ((right - _NOTCH, top), (right, top), (right, top + _NOTCH)),
        ((left, bottom - _NOTCH), (left, bottom), (left + _NOTCH, bottom)),
        ((right - _NOTCH, bottom), (right, bottom), (right, bottom - _NOTCH)),
    )
    for points in corners:
        polyline = np.array(points, dtype=np.int32).reshape(-1, 1, 2)
        cv2.polylines(canvas, [polyline], False, _INK, 1)
