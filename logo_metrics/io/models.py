"""Data models shared across the logo metrics pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Tuple


class Symmetry(str, Enum):
    """Coarse classification of the imbalance between two half-planes."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class PixelBuffer:
    """Decoded RGBA pixels in row-major order, four bytes per pixel."""

    width: int
    height: int
    data: bytes


@dataclass(frozen=True, slots=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        """Last occupied column (inclusive)."""
        return self.x + self.width - 1

    @property
    def bottom(self) -> int:
        """Last occupied row (inclusive)."""
        return self.y + self.height - 1


@dataclass(frozen=True, slots=True)
class CenterOfMass:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class LogoMetrics:
    """Geometric descriptors extracted from a logo's alpha channel."""

    width: int
    height: int
    aspect_ratio: float
    symmetry_vertical: Symmetry
    symmetry_horizontal: Symmetry
    center_offset_x: float
    center_offset_y: float
    weight_left: float
    weight_right: float
    weight_top: float
    weight_bottom: float
    density: float
    complexity_index: float
    bounding_box: BoundingBox
    center_of_mass: CenterOfMass

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready representation consumed by reports and prompts."""
        return {
            "width": self.width,
            "height": self.height,
            "aspect_ratio": self.aspect_ratio,
            "symmetry_vertical": self.symmetry_vertical.value,
            "symmetry_horizontal": self.symmetry_horizontal.value,
            "center_offset_x": self.center_offset_x,
            "center_offset_y": self.center_offset_y,
            "weight_left": self.weight_left,
            "weight_right": self.weight_right,
            "weight_top": self.weight_top,
            "weight_bottom": self.weight_bottom,
            "density": self.density,
            "complexity_index": self.complexity_index,
            "boundingBox": asdict(self.bounding_box),
            "centerOfMass": asdict(self.center_of_mass),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LogoMetrics":
        bbox = payload["boundingBox"]
        com = payload["centerOfMass"]
        return cls(
            width=int(payload["width"]),
            height=int(payload["height"]),
            aspect_ratio=float(payload["aspect_ratio"]),
            symmetry_vertical=Symmetry(payload["symmetry_vertical"]),
            symmetry_horizontal=Symmetry(payload["symmetry_horizontal"]),
            center_offset_x=float(payload["center_offset_x"]),
            center_offset_y=float(payload["center_offset_y"]),
            weight_left=float(payload["weight_left"]),
            weight_right=float(payload["weight_right"]),
            weight_top=float(payload["weight_top"]),
            weight_bottom=float(payload["weight_bottom"]),
            density=float(payload["density"]),
            complexity_index=float(payload["complexity_index"]),
            bounding_box=BoundingBox(
                x=int(bbox["x"]),
                y=int(bbox["y"]),
                width=int(bbox["width"]),
                height=int(bbox["height"]),
            ),
            center_of_mass=CenterOfMass(x=float(com["x"]), y=float(com["y"])),
        )


@dataclass(frozen=True, slots=True)
class DecodedImage:
    """Pixel buffer handed to the extractor plus the pre-decode dimensions."""

    buffer: PixelBuffer
    original_size: Tuple[int, int]
    mime: str | None = None


@dataclass(slots=True)
class GroundingLink:
    title: str
    uri: str


@dataclass(slots=True)
class AnalysisResponse:
    """Critique and score returned by the interpretation service."""

    structural_summary: str
    balance_analysis: str
    geometry_analysis: str
    alignment_analysis: str
    remedial_actions: List[str] = field(default_factory=list)
    score: float = 0.0
    market_context: str | None = None
    grounding_urls: List[GroundingLink] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AnalysisResponse":
        links = [
            GroundingLink(title=str(item.get("title", "")), uri=str(item.get("uri", "")))
            for item in payload.get("grounding_urls") or []
            if isinstance(item, Mapping)
        ]
        actions = payload.get("remedial_actions") or []
        if isinstance(actions, str):
            actions = [actions]
        return cls(
            structural_summary=str(payload.get("structural_summary", "")),
            balance_analysis=str(payload.get("balance_analysis", "")),
            geometry_analysis=str(payload.get("geometry_analysis", "")),
            alignment_analysis=str(payload.get("alignment_analysis", "")),
            remedial_actions=[str(item) for item in actions],
            score=float(payload.get("score", 0.0) or 0.0),
            market_context=payload.get("market_context"),
            grounding_urls=links,
        )


@dataclass(slots=True)
class ArchiveEntry:
    """A persisted extraction result."""

    entry_id: str
    created_at: str
    metrics: LogoMetrics
    source: str | None = None
    analysis: AnalysisResponse | None = None
