from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, List, NamedTuple, Optional, Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")


@dataclass(frozen=True)
class BBox:
    # Global pixel units; floats as returned by the detector
    x: float
    y: float
    w: float
    h: float

    @classmethod
    def from_list(cls, values: Sequence[float]) -> "BBox":
        if len(values) != 4:
            raise ValueError("Bounding box must be [x, y, width, height]")
        x, y, w, h = (float(v) for v in values)
        return cls(x=x, y=y, w=w, h=h)

    def to_list(self) -> List[float]:
        return [self.x, self.y, self.w, self.h]


@dataclass
class ImageMeta:
    path: str
    width: int
    height: int
    channels: Optional[int] = None
    ext: Optional[str] = None


class Keypoint(NamedTuple):
    x: float
    y: float
    z: float = 0.0
    name: Optional[str] = None


@dataclass
class Detection:
    label: str
    score: float
    bbox: BBox


@dataclass
class SegmentationResult:
    # RGBA, alpha zeroed outside the person
    foreground: np.ndarray
    # (H, W) uint8, 1 = person
    mask: np.ndarray


@dataclass
class Crop:
    image: np.ndarray
    # Global coordinates of the crop's (0, 0) pixel
    origin: Tuple[int, int]


@dataclass(frozen=True)
class PairedContour:
    # Subject's own left/right, not the viewer's
    left: np.ndarray
    right: np.ndarray

    def is_empty(self) -> bool:
        return len(self.left) == 0 and len(self.right) == 0


@dataclass(frozen=True)
class FaceAngle:
    roll: float
    pitch: float
    yaw: float


class SlotStatus(str, Enum):
    PENDING = "pending"
    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True)
class Slot(Generic[T]):
    """Outcome of one feature: pending, populated, or failed with a reason."""

    status: SlotStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def pending(cls) -> "Slot[Any]":
        return cls(SlotStatus.PENDING)

    @classmethod
    def ok(cls, value: T) -> "Slot[T]":
        return cls(SlotStatus.OK, value=value)

    @classmethod
    def failed(cls, reason: str) -> "Slot[Any]":
        return cls(SlotStatus.FAILED, reason=reason)

    @property
    def is_pending(self) -> bool:
        return self.status is SlotStatus.PENDING

    @property
    def is_ok(self) -> bool:
        return self.status is SlotStatus.OK

    @property
    def is_failed(self) -> bool:
        return self.status is SlotStatus.FAILED


class RecordState(str, Enum):
    CREATED = "created"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    REFINING = "refining"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class FaceLandmarks:
    """Landmark model output for one face, grouped by anatomical region.

    All arrays are (N, 3) float in the coordinate space of the image the
    model saw (the crop).
    """

    keypoints: List[Keypoint]
    contour: np.ndarray
    left_eye: np.ndarray
    right_eye: np.ndarray
    left_eyebrow: np.ndarray
    right_eyebrow: np.ndarray
    nose: np.ndarray
    mouth: np.ndarray
    left_iris: np.ndarray
    right_iris: np.ndarray
