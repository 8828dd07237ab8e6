"""Prompt and response contract for the interpretation service."""

from __future__ import annotations

from typing import Any, Dict

from ..io.models import LogoMetrics

SYSTEM_INSTRUCTION = (
    "You are a forensic design diagnostics interface. You analyze visual "
    "structures with the cold precision of a structural engineer. You provide "
    "objective design diagnostics based on mathematical weight distribution "
    "and market grounding."
)

REQUIRED_FIELDS = (
    "structural_summary",
    "balance_analysis",
    "geometry_analysis",
    "alignment_analysis",
    "market_context",
    "remedial_actions",
    "score",
)

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "structural_summary": {
            "type": "STRING",
            "description": "A forensic overview of the artifact's formal integrity.",
        },
        "balance_analysis": {
            "type": "STRING",
            "description": "Detailed critique of the volumetric load distribution.",
        },
        "geometry_analysis": {
            "type": "STRING",
            "description": "Assessment of the bounding box efficiency and aspect ratio.",
        },
        "alignment_analysis": {
            "type": "STRING",
            "description": "Analysis of centroid displacement and axial nodes.",
        },
        "market_context": {
            "type": "STRING",
            "description": "Grounding report on current visual industry standards.",
        },
        "remedial_actions": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Three specific architectural adjustments.",
        },
        "score": {
            "type": "NUMBER",
            "description": "Structural Harmony Index (0-100).",
        },
    },
    "required": list(REQUIRED_FIELDS),
}

_REQUIREMENTS = """\
Requirements:
1. Analysis must be clinical, objective, and authoritative. Use terminology: "Axial Tension", "Geometric Load", "Morphological Variance", "Euclidean Balance".
2. Market Grounding: Use web search to identify if this silhouette structure follows current luxury, tech, or industrial trends. Compare its "massing" to established global icons.
3. Recommendations: Provide 3 high-impact geometric adjustments to optimize the 'Structural Harmony Index'.
4. Provide a Score (0-100) representing pure mathematical formal excellence.

Strict JSON output only."""


def build_prompt(metrics: LogoMetrics) -> str:
    """Embed every numeric descriptor of *metrics* into the analysis request."""
    bbox = metrics.bounding_box
    com = metrics.center_of_mass
    lines = [
        "Perform a deep forensic deconstruction of this visual artifact using the "
        "provided Euclidean metrics.",
        "",
        "Metrics Overview:",
        f"- Canvas: {metrics.width}x{metrics.height} px, "
        f"Aspect Ratio: {metrics.aspect_ratio:.3f}",
        f"- Vertical Symmetry: {metrics.symmetry_vertical.value}",
        f"- Horizontal Symmetry: {metrics.symmetry_horizontal.value}",
        f"- Centroid Offset (X,Y): {metrics.center_offset_x:.3f}%, "
        f"{metrics.center_offset_y:.3f}%",
        f"- Centroid Position (X,Y): {com.x:.2f}, {com.y:.2f} px",
        f"- Volumetric Weights: Left:{metrics.weight_left:.2f}%, "
        f"Right:{metrics.weight_right:.2f}%, Top:{metrics.weight_top:.2f}%, "
        f"Bottom:{metrics.weight_bottom:.2f}%",
        f"- Bounding Box: x={bbox.x}, y={bbox.y}, {bbox.width}x{bbox.height} px",
        f"- Pixel Density: {metrics.density:.2f}%",
        f"- Structural Complexity (Node Density): {metrics.complexity_index:.4f}",
        "",
        _REQUIREMENTS,
    ]
    return "\n".join(lines)
