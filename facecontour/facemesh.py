from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

try:
    import mediapipe as mp
except Exception:  # pragma: no cover - environment import guard
    mp = None  # type: ignore

from .types import Keypoint

logger = logging.getLogger(__name__)


@dataclass
class FaceMeshConfig:
    static_image_mode: bool = True
    refine_landmarks: bool = True
    max_faces: int = 1
    min_detection_confidence: float = 0.5


# Keypoint name -> FaceMesh connection set in mediapipe.solutions.face_mesh_connections.
# Sides follow MediaPipe: LEFT_* is the subject's left.
_REGION_CONNECTIONS = (
    ("faceOval", "FACEMESH_FACE_OVAL"),
    ("leftEyebrow", "FACEMESH_LEFT_EYEBROW"),
    ("rightEyebrow", "FACEMESH_RIGHT_EYEBROW"),
    ("leftIris", "FACEMESH_LEFT_IRIS"),
    ("rightIris", "FACEMESH_RIGHT_IRIS"),
    ("leftEye", "FACEMESH_LEFT_EYE"),
    ("rightEye", "FACEMESH_RIGHT_EYE"),
    ("lips", "FACEMESH_LIPS"),
    ("nose", "FACEMESH_NOSE"),
)


def _region_names() -> Dict[int, str]:
    conns = mp.solutions.face_mesh_connections
    names: Dict[int, str] = {}
    for name, attr in _REGION_CONNECTIONS:
        for a, b in getattr(conns, attr):
            names.setdefault(a, name)
            names.setdefault(b, name)
    return names


def _landmarks_to_keypoints(lms, width: int, height: int, names: Dict[int, str]) -> List[Keypoint]:
    # MediaPipe z is relative depth on roughly the same scale as x
    return [
        Keypoint(
            x=float(pt.x) * width,
            y=float(pt.y) * height,
            z=float(getattr(pt, "z", 0.0)) * width,
            name=names.get(i),
        )
        for i, pt in enumerate(lms.landmark)
    ]


class FaceMeshDetector:
    """Reusable wrapper around MediaPipe FaceMesh for static crops.

    Usage:
        with FaceMeshDetector(FaceMeshConfig()) as det:
            faces = det.estimate(image_rgba)
    """

    def __init__(self, cfg: Optional[FaceMeshConfig] = None):
        if mp is None:
            raise ImportError("mediapipe must be installed to use FaceMeshDetector")
        self.cfg = cfg or FaceMeshConfig()
        self._mesh = None
        self._names: Dict[int, str] = {}
        # A FaceMesh graph must not be fed from two threads at once
        self._lock = threading.Lock()

    def __enter__(self):
        self._mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=self.cfg.static_image_mode,
            refine_landmarks=self.cfg.refine_landmarks,
            max_num_faces=self.cfg.max_faces,
            min_detection_confidence=self.cfg.min_detection_confidence,
        )
        self._names = _region_names()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self._mesh is not None:
            self._mesh.close()
            self._mesh = None

    def _ensure_open(self):
        if self._mesh is None:
            # Allow use without context manager by lazy init
            self.__enter__()

    def estimate(self, image: np.ndarray) -> List[List[Keypoint]]:
        """Keypoints (pixel units of `image`) for every face found, largest first."""
        rgb = np.ascontiguousarray(image[:, :, :3], dtype=np.uint8)
        height, width = rgb.shape[:2]
        with self._lock:
            self._ensure_open()
            results = self._mesh.process(rgb)
        if not results or not results.multi_face_landmarks:
            return []

        faces = [_landmarks_to_keypoints(f, width, height, self._names) for f in results.multi_face_landmarks]

        def area(kps: List[Keypoint]) -> float:
            xs = [k.x for k in kps]
            ys = [k.y for k in kps]
            return (max(xs) - min(xs)) * (max(ys) - min(ys))

        faces.sort(key=area, reverse=True)
        logger.debug("FaceMesh found %d face(s) in %dx%d crop", len(faces), width, height)
        return faces


__all__ = ["FaceMeshDetector", "FaceMeshConfig"]
