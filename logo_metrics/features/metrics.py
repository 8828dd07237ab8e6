"""Geometric descriptors derived from a logo's alpha channel."""

from __future__ import annotations

import logging
import math
import numbers
from concurrent.futures import ThreadPoolExecutor
from functools import reduce
from typing import Tuple

import numpy as np

from ..io.models import BoundingBox, CenterOfMass, LogoMetrics, PixelBuffer, Symmetry
from .accumulator import Accumulation

logger = logging.getLogger(__name__)

_HIGH_SYMMETRY_LIMIT = 0.05
_MEDIUM_SYMMETRY_LIMIT = 0.15
_CHANNELS = 4


class MetricsError(ValueError):
    """Base class for failures of a single extraction call."""


class InvalidBuffer(MetricsError):
    """Raised when the buffer dimensions or byte length are malformed."""


class EmptyArtifact(MetricsError):
    """Raised when no pixel has a non-zero alpha value."""


class DegenerateBoundingBox(MetricsError):
    """Raised when the occupied region has zero area."""


def classify_symmetry(diff: float) -> Symmetry:
    """Map a normalized half-plane imbalance onto a symmetry class."""
    if diff < _HIGH_SYMMETRY_LIMIT:
        return Symmetry.HIGH
    if diff < _MEDIUM_SYMMETRY_LIMIT:
        return Symmetry.MEDIUM
    return Symmetry.LOW


def fill_density(filled_pixels: int, bbox: BoundingBox) -> float:
    """Return the percentage of *bbox* covered by *filled_pixels*."""
    area = bbox.width * bbox.height
    if area <= 0:
        raise DegenerateBoundingBox(
            f"Bounding box {bbox.width}x{bbox.height} at ({bbox.x}, {bbox.y}) has no area"
        )
    return filled_pixels / area * 100.0


def derive_metrics(acc: Accumulation, original_size: Tuple[float, float]) -> LogoMetrics:
    """Turn a completed accumulation into the final descriptor record."""
    total = acc.total_alpha
    if total <= 0:
        raise EmptyArtifact("Image has no non-transparent pixels")

    width, height = acc.width, acc.height
    center_x = acc.sum_x / total
    center_y = acc.sum_y / total

    diff_v = abs(acc.weight_left - acc.weight_right) / total
    diff_h = abs(acc.weight_top - acc.weight_bottom) / total

    bbox = BoundingBox(
        x=acc.min_x,
        y=acc.min_y,
        width=acc.max_x - acc.min_x + 1,
        height=acc.max_y - acc.min_y + 1,
    )
    original_width, original_height = original_size

    return LogoMetrics(
        width=width,
        height=height,
        aspect_ratio=original_width / original_height,
        symmetry_vertical=classify_symmetry(diff_v),
        symmetry_horizontal=classify_symmetry(diff_h),
        center_offset_x=(center_x - width / 2) / width * 100.0,
        center_offset_y=(center_y - height / 2) / height * 100.0,
        weight_left=acc.weight_left / total * 100.0,
        weight_right=acc.weight_right / total * 100.0,
        weight_top=acc.weight_top / total * 100.0,
        weight_bottom=acc.weight_bottom / total * 100.0,
        density=fill_density(acc.filled_pixels, bbox),
        complexity_index=acc.filled_pixels / (width + height),
        bounding_box=bbox,
        center_of_mass=CenterOfMass(x=center_x, y=center_y),
    )


class MetricExtractor:
    """Extract :class:`LogoMetrics` from decoded RGBA buffers.

    The extractor is stateless between calls. With ``workers > 1`` the rows
    are split into bands that are scanned on a thread pool and merged; the
    result is identical to a single scan.
    """

    def __init__(self, workers: int = 1) -> None:
        if workers < 1:
            raise ValueError("workers must be a positive integer")
        self.workers = workers

    def extract(
        self, buffer: PixelBuffer, original_size: Tuple[float, float]
    ) -> LogoMetrics:
        """Scan *buffer* once and derive its descriptors.

        *original_size* is the ``(width, height)`` reported for the image
        before decoding or resampling; it only feeds ``aspect_ratio``.
        """
        alpha = _alpha_channel(buffer)
        size = _validate_original_size(original_size)
        height, width = alpha.shape
        acc = self._accumulate(alpha, width, height)
        if acc.filled_pixels == 0:
            raise EmptyArtifact(
                f"All {width * height} pixels are fully transparent"
            )
        metrics = derive_metrics(acc, size)
        logger.debug(
            "Extracted metrics from %dx%d buffer (%d filled pixels, bbox %s)",
            width,
            height,
            acc.filled_pixels,
            metrics.bounding_box,
        )
        return metrics

    def _accumulate(self, alpha: np.ndarray, width: int, height: int) -> Accumulation:
        bands = min(self.workers, height)
        if bands <= 1:
            return Accumulation.scan(alpha, width, height)

        edges = np.linspace(0, height, bands + 1).astype(int)
        starts = [int(value) for value in edges[:-1]]
        stops = [int(value) for value in edges[1:]]

        def scan_band(start: int, stop: int) -> Accumulation:
            return Accumulation.scan(alpha[start:stop], width, height, row_offset=start)

        with ThreadPoolExecutor(max_workers=bands) as executor:
            partials = list(executor.map(scan_band, starts, stops))
        return reduce(Accumulation.merge, partials)


def extract_metrics(
    buffer: PixelBuffer, original_size: Tuple[float, float], workers: int = 1
) -> LogoMetrics:
    """Convenience wrapper around :meth:`MetricExtractor.extract`."""
    return MetricExtractor(workers=workers).extract(buffer, original_size)


def _alpha_channel(buffer: PixelBuffer) -> np.ndarray:
    width, height = buffer.width, buffer.height
    for value in (width, height):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidBuffer("Buffer dimensions must be integers")
    width, height = int(width), int(height)
    if width <= 0 or height <= 0:
        raise InvalidBuffer(f"Buffer dimensions must be positive, got {width}x{height}")
    try:
        pixels = np.frombuffer(buffer.data, dtype=np.uint8)
    except (TypeError, ValueError) as exc:
        raise InvalidBuffer("Buffer data is not a bytes-like object") from exc

    expected = width * height * _CHANNELS
    if pixels.size != expected:
        raise InvalidBuffer(
            f"Expected {expected} bytes for a {width}x{height} RGBA buffer, got {pixels.size}"
        )
    return pixels.reshape(height, width, _CHANNELS)[:, :, 3]


def _validate_original_size(original_size: Tuple[float, float]) -> Tuple[float, float]:
    try:
        original_width, original_height = (float(value) for value in original_size)
    except (TypeError, ValueError) as exc:
        raise InvalidBuffer("Original size must be a (width, height) pair") from exc
    if not (math.isfinite(original_width) and math.isfinite(original_height)):
        raise InvalidBuffer(
            f"Original size must be finite, got {original_width}x{original_height}"
        )
    if not (original_width > 0 and original_height > 0):
        raise InvalidBuffer(
            f"Original size must be positive, got {original_width}x{original_height}"
        )
    return original_width, original_height
