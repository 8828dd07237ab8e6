"""Shared test fixtures."""

from __future__ import annotations

from io import BytesIO
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from logo_metrics.io.models import (
    AnalysisResponse,
    GroundingLink,
    PixelBuffer,
)


def buffer_from_alpha(alpha: np.ndarray, rgb: int = 30) -> PixelBuffer:
    """Build an RGBA buffer whose alpha channel is *alpha* (an H x W array)."""
    alpha = np.asarray(alpha, dtype=np.uint8)
    height, width = alpha.shape
    rgba = np.full((height, width, 4), rgb, dtype=np.uint8)
    rgba[:, :, 3] = alpha
    return PixelBuffer(width=width, height=height, data=rgba.tobytes())


def png_from_alpha(alpha: np.ndarray, fmt: str = "PNG") -> bytes:
    alpha = np.asarray(alpha, dtype=np.uint8)
    height, width = alpha.shape
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[:, :, 0] = 200
    rgba[:, :, 3] = alpha
    image = Image.fromarray(rgba)
    if fmt == "JPEG":
        image = image.convert("RGB")
    out = BytesIO()
    image.save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def make_buffer() -> Callable[..., PixelBuffer]:
    return buffer_from_alpha


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return png_from_alpha


@pytest.fixture
def opaque_square() -> PixelBuffer:
    return buffer_from_alpha(np.full((10, 10), 255))


@pytest.fixture
def centered_mark() -> np.ndarray:
    """40x40 canvas with an opaque 20x20 square in the middle."""
    alpha = np.zeros((40, 40), dtype=np.uint8)
    alpha[10:30, 10:30] = 255
    return alpha


@pytest.fixture
def sample_analysis() -> AnalysisResponse:
    return AnalysisResponse(
        structural_summary="Compact, centred mass with a stable silhouette.",
        balance_analysis="Load is evenly distributed across both axes.",
        geometry_analysis="The bounding box is square and efficiently used.",
        alignment_analysis="Centroid sits within half a pixel of the origin.",
        remedial_actions=["Thin the lower stroke", "Open the counter", "Widen spacing"],
        score=82.0,
        market_context="Comparable to contemporary tech marks.",
        grounding_urls=[GroundingLink(title="Example", uri="https://example.com/logo")],
    )
