from __future__ import annotations

import math
import threading
from typing import Callable, List, Optional

import numpy as np
import pytest

from facecontour.segmentation import apply_mask
from facecontour.services import ModelServices
from facecontour.types import BBox, Detection, Keypoint, SegmentationResult

MESH_SIZE = 478


def _ring(cx: float, cy: float, rx: float, ry: float, n: int) -> List[tuple]:
    return [
        (cx + rx * math.cos(2 * math.pi * i / n), cy + ry * math.sin(2 * math.pi * i / n))
        for i in range(n)
    ]


def make_face_keypoints(width: int, height: int) -> List[Keypoint]:
    """A synthetic, frontal 478-point mesh laid out inside a width x height crop."""
    cx, cy = width / 2.0, height * 0.45
    r = min(width, height) * 0.3
    eye_y = cy - 0.2 * r
    kps = [Keypoint(cx, cy, 0.0, None) for _ in range(MESH_SIZE)]

    def put(start: int, name: Optional[str], pts: List[tuple]):
        for i, (x, y) in enumerate(pts):
            kps[start + i] = Keypoint(float(x), float(y), 0.0, name)

    put(300, "faceOval", _ring(cx, cy, r, r, 36))
    # Subject's left eye is on the image right
    put(340, "leftEye", _ring(cx + 0.4 * r, eye_y, 0.2 * r, 0.08 * r, 8))
    put(348, "rightEye", _ring(cx - 0.4 * r, eye_y, 0.2 * r, 0.08 * r, 8))
    put(356, "leftEyebrow", [(cx + 0.4 * r + dx, eye_y - 0.25 * r) for dx in np.linspace(-0.2 * r, 0.2 * r, 5)])
    put(361, "rightEyebrow", [(cx - 0.4 * r + dx, eye_y - 0.25 * r) for dx in np.linspace(-0.2 * r, 0.2 * r, 5)])
    put(366, "nose", [(cx, cy - 0.1 * r + dy) for dy in np.linspace(0, 0.4 * r, 6)])
    put(372, "lips", _ring(cx, cy + 0.55 * r, 0.3 * r, 0.1 * r, 10))
    put(468, "leftIris", _ring(cx + 0.4 * r, eye_y, 0.06 * r, 0.06 * r, 4) + [(cx + 0.4 * r, eye_y)])
    put(473, "rightIris", _ring(cx - 0.4 * r, eye_y, 0.06 * r, 0.06 * r, 4) + [(cx - 0.4 * r, eye_y)])

    put(33, None, [(cx - 0.5 * r, eye_y)])
    put(263, None, [(cx + 0.5 * r, eye_y)])
    put(1, None, [(cx, cy + 0.25 * r)])
    put(152, None, [(cx, cy + r)])
    return kps


class FakeSegmenter:
    def __init__(self, mask: Optional[np.ndarray] = None, error: Optional[Exception] = None):
        self.mask = mask
        self.error = error
        self.calls = 0

    def segment(self, image: np.ndarray) -> SegmentationResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        h, w = image.shape[:2]
        mask = self.mask if self.mask is not None else np.ones((h, w), dtype=np.uint8)
        return SegmentationResult(foreground=apply_mask(image, mask), mask=mask)


class FakeDetector:
    def __init__(self, detections: Optional[List[Detection]] = None, error: Optional[Exception] = None):
        self.detections = detections or []
        self.error = error

    def detect(self, image: np.ndarray) -> List[Detection]:
        if self.error is not None:
            raise self.error
        return list(self.detections)


class FakeLandmarker:
    def __init__(self, faces: Optional[Callable[[np.ndarray], List[List[Keypoint]]]] = None):
        self.faces = faces or (lambda img: [make_face_keypoints(img.shape[1], img.shape[0])])
        self.calls = 0
        self._lock = threading.Lock()

    def estimate(self, image: np.ndarray) -> List[List[Keypoint]]:
        with self._lock:
            self.calls += 1
        return self.faces(image)


def person(score: float = 0.9, bbox=(20, 20, 160, 160), label: str = "person") -> Detection:
    return Detection(label=label, score=score, bbox=BBox.from_list(bbox))


@pytest.fixture
def frame() -> np.ndarray:
    img = np.full((200, 200, 4), 180, dtype=np.uint8)
    img[..., 3] = 255
    return img


@pytest.fixture
def services() -> ModelServices:
    return ModelServices.from_instances(
        segmenter=FakeSegmenter(),
        detector=FakeDetector([person()]),
        landmarker=FakeLandmarker(),
    )


@pytest.fixture
def inline_cfg():
    return {"runtime": {"workers": 0}}
