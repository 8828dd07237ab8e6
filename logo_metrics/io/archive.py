"""JSON archive of past extraction results."""

from __future__ import annotations

import json
import logging
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from .models import AnalysisResponse, ArchiveEntry, LogoMetrics
from .outputs import write_json

logger = logging.getLogger(__name__)

_ID_PREFIX = "AX-"
_ID_SPACE = 100_000
_MAX_ID_ATTEMPTS = 50


class ArchiveStore:
    """Directory of ``<entry_id>.json`` documents."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def save(
        self,
        metrics: LogoMetrics,
        analysis: AnalysisResponse | None = None,
        source: str | None = None,
    ) -> ArchiveEntry:
        """Persist a result under a freshly generated identifier."""
        self.root.mkdir(parents=True, exist_ok=True)
        entry = ArchiveEntry(
            entry_id=self._new_id(),
            created_at=datetime.now(timezone.utc).isoformat(),
            metrics=metrics,
            source=source,
            analysis=analysis,
        )
        write_json(self._path(entry.entry_id), _serialize(entry))
        logger.debug("Archived %s at %s", entry.entry_id, self.root)
        return entry

    def load(self, entry_id: str) -> ArchiveEntry:
        path = self._path(entry_id)
        if not path.is_file():
            raise KeyError(entry_id)
        payload = json.loads(path.read_text(encoding="utf-8"))
        return _deserialize(payload)

    def delete(self, entry_id: str) -> None:
        path = self._path(entry_id)
        if not path.is_file():
            raise KeyError(entry_id)
        path.unlink()

    def entries(self) -> List[ArchiveEntry]:
        """Return all readable entries, newest first."""
        if not self.root.is_dir():
            return []
        entries: List[ArchiveEntry] = []
        for path in sorted(self.root.glob(f"{_ID_PREFIX}*.json")):
            try:
                entries.append(_deserialize(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable archive entry %s: %s", path, exc)
        entries.sort(key=lambda item: item.created_at, reverse=True)
        return entries

    def __contains__(self, entry_id: object) -> bool:
        if not isinstance(entry_id, str):
            return False
        try:
            return self._path(entry_id).is_file()
        except KeyError:
            return False

    def _path(self, entry_id: str) -> Path:
        if Path(entry_id).name != entry_id or not entry_id.startswith(_ID_PREFIX):
            raise KeyError(entry_id)
        return self.root / f"{entry_id}.json"

    def _new_id(self) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = f"{_ID_PREFIX}{random.randrange(_ID_SPACE):05d}"
            if not self._path(candidate).exists():
                return candidate
        raise RuntimeError(f"Could not allocate a free archive id in {self.root}")


def _serialize(entry: ArchiveEntry) -> dict:
    return {
        "id": entry.entry_id,
        "created_at": entry.created_at,
        "source": entry.source,
        "metrics": entry.metrics.to_dict(),
        "analysis": entry.analysis.to_dict() if entry.analysis else None,
    }


def _deserialize(payload: dict) -> ArchiveEntry:
    analysis = payload.get("analysis")
    return ArchiveEntry(
        entry_id=str(payload["id"]),
        created_at=str(payload["created_at"]),
        metrics=LogoMetrics.from_dict(payload["metrics"]),
        source=payload.get("source"),
        analysis=AnalysisResponse.from_dict(analysis) if analysis else None,
    )
