"""Output helpers for persisting extraction results."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Tuple

import pandas as pd

from .models import LogoMetrics


def write_json(path: Path, payload: Any) -> Path:
    """Write *payload* to *path* as indented JSON and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def metrics_row(label: str, metrics: LogoMetrics) -> dict[str, Any]:
    """Flatten *metrics* into a single table row keyed by *label*."""
    row: dict[str, Any] = {"label": label}
    for key, value in metrics.to_dict().items():
        if isinstance(value, dict):
            for inner_key, inner_value in value.items():
                row[f"{key}_{inner_key}"] = inner_value
        else:
            row[key] = value
    return row


def metrics_frame(rows: Iterable[Tuple[str, LogoMetrics]]) -> pd.DataFrame:
    return pd.DataFrame([metrics_row(label, metrics) for label, metrics in rows])


def write_metrics_table(rows: Iterable[Tuple[str, LogoMetrics]], out_dir: Path) -> Path | None:
    """Write all metrics to ``metrics.parquet`` under *out_dir*."""
    df = metrics_frame(rows)
    if df.empty:
        print("[metrics] no metric rows to write")
        return None

    table_path = out_dir / "metrics.parquet"
    table_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(table_path, index=False, engine="pyarrow")
    print(f"[metrics] wrote {len(df)} rows to {table_path}")
    return table_path
