"""Collaborator interfaces and the shared model service handle.

The segmentation, detection and landmark models are expensive to load, so a
single `ModelServices` handle creates each of them at most once, on first
use, and is shared by every capture and every FaceRecord.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import numpy as np

from .config import section
from .types import Detection, Keypoint, SegmentationResult

logger = logging.getLogger(__name__)


class PersonSegmenter(Protocol):
    def segment(self, image: np.ndarray) -> SegmentationResult:
        """Foreground image and binary person mask; empty mask if nobody is found."""
        ...


class ObjectDetector(Protocol):
    def detect(self, image: np.ndarray) -> List[Detection]:
        ...


class LandmarkDetector(Protocol):
    def estimate(self, image: np.ndarray) -> List[List[Keypoint]]:
        """One keypoint list per face, in mesh index order."""
        ...


Factory = Callable[[], Any]


def _default_segmenter(cfg: Mapping[str, Any]) -> Factory:
    def build():
        from .segmentation import SegmenterConfig, SelfieSegmenter

        sc = section(cfg, "segmentation")
        return SelfieSegmenter(
            SegmenterConfig(
                model_selection=int(sc["model_selection"]),
                mask_threshold=float(sc["mask_threshold"]),
            )
        )

    return build


def _default_detector(cfg: Mapping[str, Any]) -> Factory:
    def build():
        from .detector import DetectorConfig, MediaPipeObjectDetector

        dc = section(cfg, "detection")
        return MediaPipeObjectDetector(
            DetectorConfig(model_path=str(dc["model_path"]), max_results=int(dc["max_results"]))
        )

    return build


def _default_landmarker(cfg: Mapping[str, Any]) -> Factory:
    def build():
        from .facemesh import FaceMeshConfig, FaceMeshDetector

        mc = section(cfg, "mediapipe")
        return FaceMeshDetector(
            FaceMeshConfig(
                static_image_mode=bool(mc["static_image_mode"]),
                refine_landmarks=bool(mc["refine_landmarks"]),
                max_faces=int(mc["max_faces"]),
                min_detection_confidence=float(mc["min_detection_confidence"]),
            )
        )

    return build


class ModelServices:
    """Lazily-initialised, thread-safe holder for the external models.

    Usage:
        with ModelServices(cfg) as services:
            pipeline = FacePipeline(services, cfg)
    """

    NAMES = ("segmenter", "detector", "landmarker")

    def __init__(
        self,
        cfg: Optional[Mapping[str, Any]] = None,
        segmenter_factory: Optional[Factory] = None,
        detector_factory: Optional[Factory] = None,
        landmarker_factory: Optional[Factory] = None,
    ):
        cfg = cfg or {}
        self._factories: Dict[str, Factory] = {
            "segmenter": segmenter_factory or _default_segmenter(cfg),
            "detector": detector_factory or _default_detector(cfg),
            "landmarker": landmarker_factory or _default_landmarker(cfg),
        }
        self._instances: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_instances(
        cls,
        segmenter: PersonSegmenter,
        detector: ObjectDetector,
        landmarker: LandmarkDetector,
    ) -> "ModelServices":
        """Wrap ready-made collaborators (tests, custom backends).

        All three are required; use the constructor to fall back to the
        default MediaPipe adapters.
        """
        def const(name, obj):
            if obj is None:
                raise ValueError(f"from_instances requires a {name}")
            return lambda: obj

        return cls(
            segmenter_factory=const("segmenter", segmenter),
            detector_factory=const("detector", detector),
            landmarker_factory=const("landmarker", landmarker),
        )

    def _get(self, name: str) -> Any:
        inst = self._instances.get(name)
        if inst is not None:
            return inst
        with self._lock:
            inst = self._instances.get(name)
            if inst is None:
                logger.info("Loading %s model", name)
                inst = self._factories[name]()
                self._instances[name] = inst
        return inst

    @property
    def segmenter(self) -> PersonSegmenter:
        return self._get("segmenter")

    @property
    def detector(self) -> ObjectDetector:
        return self._get("detector")

    @property
    def landmarker(self) -> LandmarkDetector:
        return self._get("landmarker")

    def is_loaded(self, name: str) -> bool:
        return name in self._instances

    def init(self) -> "ModelServices":
        """Load every model now instead of on first use."""
        for name in self.NAMES:
            self._get(name)
        return self

    def close(self) -> None:
        with self._lock:
            instances, self._instances = self._instances, {}
        for name, inst in instances.items():
            closer = getattr(inst, "close", None)
            if callable(closer):
                try:
                    closer()
                except Exception:
                    logger.exception("Failed to close %s", name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = [
    "PersonSegmenter",
    "ObjectDetector",
    "LandmarkDetector",
    "ModelServices",
]
