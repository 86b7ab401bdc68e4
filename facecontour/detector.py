"""Person detection (COCO object detector via MediaPipe Tasks) and filtering."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np

try:
    import mediapipe as mp
    from mediapipe.tasks import python as mp_tasks
    from mediapipe.tasks.python import vision as mp_vision
except Exception:  # pragma: no cover - environment import guard
    mp = None  # type: ignore
    mp_tasks = None  # type: ignore
    mp_vision = None  # type: ignore

from .types import BBox, Detection

logger = logging.getLogger(__name__)


def filter_persons(detections: Iterable[Detection], label: str = "person", threshold: float = 0.5) -> List[Detection]:
    """Keep detections of `label` scoring at least `threshold`."""
    kept = [d for d in detections if d.label == label and d.score >= threshold]
    logger.debug("Kept %d %s detection(s) at threshold %.2f", len(kept), label, threshold)
    return kept


@dataclass
class DetectorConfig:
    model_path: str = "models/efficientdet_lite0.tflite"
    max_results: int = 5


class MediaPipeObjectDetector:
    """MediaPipe Tasks ObjectDetector returning COCO-labelled boxes.

    The model file (e.g. EfficientDet-Lite0) is not bundled; point
    `detection.model_path` at a local copy.
    """

    def __init__(self, cfg: Optional[DetectorConfig] = None):
        if mp is None:
            raise ImportError("mediapipe must be installed to use MediaPipeObjectDetector")
        self.cfg = cfg or DetectorConfig()
        self._detector = None
        self._lock = threading.Lock()

    def __enter__(self):
        path = Path(self.cfg.model_path)
        if not path.exists():
            raise FileNotFoundError(f"Object detector model not found: {path}")
        options = mp_vision.ObjectDetectorOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(path)),
            running_mode=mp_vision.RunningMode.IMAGE,
            max_results=self.cfg.max_results,
        )
        self._detector = mp_vision.ObjectDetector.create_from_options(options)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self._detector is not None:
            self._detector.close()
            self._detector = None

    def detect(self, image: np.ndarray) -> List[Detection]:
        if image.shape[2] == 4:
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGBA, data=np.ascontiguousarray(image))
        else:
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(image[:, :, :3]))
        with self._lock:
            if self._detector is None:
                self.__enter__()
            result = self._detector.detect(mp_image)

        out: List[Detection] = []
        for det in result.detections:
            if not det.categories:
                continue
            cat = det.categories[0]
            bb = det.bounding_box
            out.append(
                Detection(
                    label=str(cat.category_name),
                    score=float(cat.score),
                    bbox=BBox(x=float(bb.origin_x), y=float(bb.origin_y), w=float(bb.width), h=float(bb.height)),
                )
            )
        return out


__all__ = ["filter_persons", "DetectorConfig", "MediaPipeObjectDetector"]
