"""Output writers.

Collects one JSON entry per detected person (contours in source-image pixel
coordinates) and writes a YAML summary counting how often each feature was
produced or failed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .record import FEATURES, FaceRecord
from .types import ImageMeta
from .utils import ensure_dir

logger = logging.getLogger(__name__)


def build_entry(meta: ImageMeta, records: Sequence[FaceRecord], error: Optional[str] = None) -> Dict[str, Any]:
    return {
        "file": meta.path,
        "width": meta.width,
        "height": meta.height,
        "error": error,
        "persons": [r.to_dict() for r in records],
    }


class ResultsWriter:
    def __init__(self, output_dir: str | Path, cfg: Optional[Dict[str, Any]] = None):
        self.output_dir = Path(output_dir)
        ensure_dir(self.output_dir)
        self.cfg = cfg or {}
        self.entries: List[Dict[str, Any]] = []

    def add(self, entry: Dict[str, Any]) -> None:
        self.entries.append(entry)

    def _write_json(self, path: Path, data: List[Dict[str, Any]]):
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def summarize(self) -> Dict[str, Any]:
        ok = {name: 0 for name in FEATURES}
        failed = {name: 0 for name in FEATURES}
        persons = 0
        for entry in self.entries:
            for person in entry.get("persons", []):
                persons += 1
                for name in person.get("features", {}):
                    ok[name] += 1
                for name in person.get("failures", {}):
                    failed[name] += 1
        return {
            "counts": {
                "images": len(self.entries),
                "unreadable": sum(1 for e in self.entries if e.get("error")),
                "persons": persons,
            },
            "features": {name: {"ok": ok[name], "failed": failed[name]} for name in FEATURES},
            "detection": (self.cfg or {}).get("detection", {}),
            "paths": (self.cfg or {}).get("paths", {}),
        }

    def finalize(self) -> Dict[str, Any]:
        out_dir = ensure_dir(self.output_dir)
        faces_path = out_dir / "faces.json"
        summary_path = out_dir / "summary.yaml"

        self._write_json(faces_path, self.entries)
        summary = self.summarize()
        with summary_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(summary, f, sort_keys=False, allow_unicode=True)
        logger.info("Wrote %s and %s", faces_path, summary_path)
        return summary


__all__ = ["build_entry", "ResultsWriter"]
