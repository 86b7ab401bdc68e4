from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np

from .geometry import order_ring
from .types import FaceLandmarks, Keypoint


# MediaPipe FaceMesh landmark indices used for the face angle.
# left_eye/right_eye are image-left/image-right (outer eye corners).
ANGLE_LANDMARKS: Dict[str, int] = {
    "nose": 1,
    "chin": 152,
    "left_eye": 33,
    "right_eye": 263,
}

# Keypoint name prefix -> FaceLandmarks field
REGION_PREFIXES: Dict[str, str] = {
    "faceOval": "contour",
    "leftEye": "left_eye",
    "rightEye": "right_eye",
    "leftEyebrow": "left_eyebrow",
    "rightEyebrow": "right_eyebrow",
    "nose": "nose",
    "lips": "mouth",
    "leftIris": "left_iris",
    "rightIris": "right_iris",
}

# Regions that form closed boundaries and are re-ordered into rings
RING_REGIONS = ("contour", "left_eye", "right_eye", "left_iris", "right_iris")


def region_of(name: Optional[str]) -> Optional[str]:
    """Map a keypoint name to its region, preferring the longest matching
    prefix so that "leftEyebrow" is not taken for "leftEye"."""
    if not name:
        return None
    best = None
    for prefix in REGION_PREFIXES:
        if name.startswith(prefix) and (best is None or len(prefix) > len(best)):
            best = prefix
    return REGION_PREFIXES[best] if best else None


def group_keypoints(keypoints: Sequence[Keypoint]) -> FaceLandmarks:
    """Split one face's keypoints into anatomical regions by name prefix."""
    buckets: Dict[str, List[tuple]] = {field: [] for field in REGION_PREFIXES.values()}
    for kp in keypoints:
        field = region_of(kp.name)
        if field is not None:
            buckets[field].append((kp.x, kp.y, kp.z))

    arrays = {}
    for field, pts in buckets.items():
        arr = np.asarray(pts, dtype=np.float64).reshape(-1, 3)
        if field in RING_REGIONS:
            arr = order_ring(arr)
        arrays[field] = arr
    return FaceLandmarks(keypoints=list(keypoints), **arrays)


__all__ = [
    "ANGLE_LANDMARKS",
    "REGION_PREFIXES",
    "RING_REGIONS",
    "region_of",
    "group_keypoints",
]
