"""Paginated PDF report rendered with Pillow."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from ..io.models import AnalysisResponse, LogoMetrics

_DPI = 150.0
_PAGE_SIZE = (1240, 1754)  # A4 at 150 dpi
_MARGIN = 120
_INK = (0, 0, 0)
_MUTED = (120, 120, 120)

_TITLE_SIZE = 44
_HEADING_SIZE = 22
_BODY_SIZE = 20
_SCORE_SIZE = 140

SECTIONS: Tuple[Tuple[str, str], ...] = (
    ("MORPHOLOGICAL INTEGRITY", "structural_summary"),
    ("VOLUMETRIC LOGIC", "balance_analysis"),
    ("GEOMETRIC TENSION", "geometry_analysis"),
    ("AXIAL CRITIQUE", "alignment_analysis"),
    ("MARKET CONTEXT", "market_context"),
)


def _font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


class _PageWriter:
    """Flow text and images top to bottom, starting new pages when full."""

    def __init__(self) -> None:
        self.pages: List[Image.Image] = []
        self.new_page()

    @property
    def content_width(self) -> int:
        return _PAGE_SIZE[0] - 2 * _MARGIN

    def new_page(self) -> None:
        page = Image.new("RGB", _PAGE_SIZE, "white")
        self.pages.append(page)
        self.draw = ImageDraw.Draw(page)
        self.y = _MARGIN

    def ensure(self, height: int) -> None:
        if self.y + height > _PAGE_SIZE[1] - _MARGIN:
            self.new_page()

    def line(self, text: str, size: int, fill=_INK, gap: int = 8) -> None:
        font = _font(size)
        self.ensure(size + gap)
        self.draw.text((_MARGIN, self.y), text, font=font, fill=fill)
        self.y += size + gap

    def paragraph(self, text: str, size: int = _BODY_SIZE) -> None:
        font = _font(size)
        for row in _wrap(self.draw, text, font, self.content_width):
            self.line(row, size, gap=size // 2)

    def rule(self, gap: int = 24) -> None:
        self.ensure(gap * 2)
        self.y += gap
        self.draw.line(
            (_MARGIN, self.y, _PAGE_SIZE[0] - _MARGIN, self.y), fill=_INK, width=2
        )
        self.y += gap

    def space(self, amount: int) -> None:
        self.y += amount

    def image(self, img: Image.Image) -> None:
        max_width = self.content_width
        max_height = _PAGE_SIZE[1] - 2 * _MARGIN
        scale = min(max_width / img.width, max_height / img.height, 1.0)
        if scale < 1.0:
            img = img.resize((max(1, int(img.width * scale)), max(1, int(img.height * scale))))
        self.ensure(img.height)
        self.pages[-1].paste(img, (_MARGIN, self.y))
        self.y += img.height


def write_report(
    path: Path,
    metrics: LogoMetrics,
    analysis: AnalysisResponse | None = None,
    overlay: np.ndarray | Image.Image | None = None,
    generated_at: datetime | None = None,
    title: str = "STRUCTURAL REPORT",
) -> Path:
    """Render the metrics (and analysis, when present) to a PDF at *path*."""
    timestamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    writer = _PageWriter()

    writer.line(title, _TITLE_SIZE, gap=16)
    writer.line(f"DATE: {timestamp}", _BODY_SIZE, fill=_MUTED)
    writer.rule()

    if analysis is not None:
        writer.line("STRUCTURAL HARMONY INDEX (SHI)", _HEADING_SIZE, gap=12)
        writer.line(f"{analysis.score:g}", _SCORE_SIZE, gap=24)

    writer.line("METRICS", _HEADING_SIZE, gap=12)
    for label, value in metric_rows(metrics):
        writer.line(f"{label:<24} {value}", _BODY_SIZE, gap=8)
    writer.space(24)

    if analysis is not None:
        for heading, attr in SECTIONS:
            writer.line(heading, _HEADING_SIZE, gap=10)
            writer.paragraph(getattr(analysis, attr) or "")
            writer.space(20)

        writer.line("REMEDIAL PROTOCOL", _HEADING_SIZE, gap=10)
        for index, action in enumerate(analysis.remedial_actions, start=1):
            writer.paragraph(f"{index}. {action}")
        if analysis.grounding_urls:
            writer.space(20)
            writer.line("SOURCES", _HEADING_SIZE, gap=10)
            for link in analysis.grounding_urls:
                writer.paragraph(f"{link.title or link.uri} - {link.uri}")

    if overlay is not None:
        writer.new_page()
        writer.line("EUCLIDEAN MAPPING", _HEADING_SIZE, gap=16)
        writer.image(_overlay_image(overlay))

    path.parent.mkdir(parents=True, exist_ok=True)
    first, *rest = writer.pages
    first.save(path, format="PDF", resolution=_DPI, save_all=True, append_images=rest)
    for page in writer.pages:
        page.close()
    return path


def metric_rows(metrics: LogoMetrics) -> List[Tuple[str, str]]:
    """Return the human-readable label/value pairs shown in reports."""
    bbox = metrics.bounding_box
    com = metrics.center_of_mass
    return [
        ("Canvas", f"{metrics.width} x {metrics.height} px"),
        ("Aspect ratio", f"{metrics.aspect_ratio:.3f}"),
        ("Symmetry (vertical)", metrics.symmetry_vertical.value),
        ("Symmetry (horizontal)", metrics.symmetry_horizontal.value),
        ("Centroid offset", f"{metrics.center_offset_x:.3f}%, {metrics.center_offset_y:.3f}%"),
        ("Centroid", f"{com.x:.2f}, {com.y:.2f}"),
        ("Weight left/right", f"{metrics.weight_left:.2f}% / {metrics.weight_right:.2f}%"),
        ("Weight top/bottom", f"{metrics.weight_top:.2f}% / {metrics.weight_bottom:.2f}%"),
        ("Bounding box", f"{bbox.x}, {bbox.y}, {bbox.width} x {bbox.height}"),
        ("Pixel density", f"{metrics.density:.2f}%"),
        ("Complexity", f"{metrics.complexity_index:.4f}"),
    ]


def _overlay_image(overlay: np.ndarray | Image.Image) -> Image.Image:
    if isinstance(overlay, Image.Image):
        return overlay.convert("RGB")
    # render_overlay returns BGR
    return Image.fromarray(np.ascontiguousarray(overlay[:, :, ::-1]))


def _wrap(
    draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont, max_width: int
) -> Sequence[str]:
    rows: List[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}".strip()
            if current and draw.textlength(candidate, font=font) > max_width:
                rows.append(current)
                current = word
            else:
                current = candidate
        rows.append(current)
    return rows
