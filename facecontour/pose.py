"""Face angle (roll/pitch/yaw) from sparse 3D landmarks.

Builds an orthonormal head basis from four reference landmarks using the
landmark model's own axes (X right, Y down, Z depth):
  - forward: eye midpoint -> nose tip (chin if degenerate)
  - right:   left eye -> right eye, re-orthogonalised against forward
  - up:      forward x right
Angles are returned in degrees. The axis mapping is fixed; downstream
effects depend on it.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from .keypoints import ANGLE_LANDMARKS
from .types import FaceAngle

logger = logging.getLogger(__name__)

_EPS = 1e-9


def _normalize(v: np.ndarray) -> np.ndarray:
    n = float(np.linalg.norm(v)) or _EPS
    return v / n


def _landmark(points: np.ndarray, idx: int) -> np.ndarray:
    if 0 <= idx < len(points):
        return points[idx]
    # Sparse inputs: fall back to the cloud centre
    return np.mean(points, axis=0)


def estimate_face_angle(keypoints: Sequence) -> FaceAngle:
    """Estimate head rotation from landmarks in mesh index order.

    Accepts an (N, 2|3) array or a sequence of Keypoint/(x, y[, z]) items.
    """
    pts = np.asarray([tuple(p)[:3] for p in keypoints], dtype=np.float64) if len(keypoints) else np.zeros((0, 3))
    if pts.size == 0:
        raise ValueError("keypoints must be a non-empty sequence")
    if pts.shape[1] == 2:
        pts = np.hstack([pts, np.zeros((len(pts), 1))])

    left_eye = _landmark(pts, ANGLE_LANDMARKS["left_eye"])
    right_eye = _landmark(pts, ANGLE_LANDMARKS["right_eye"])
    nose = _landmark(pts, ANGLE_LANDMARKS["nose"])
    chin = _landmark(pts, ANGLE_LANDMARKS["chin"])

    eye_mid = (left_eye + right_eye) * 0.5
    forward = _normalize(nose - eye_mid)
    if np.linalg.norm(nose - eye_mid) < 1e-4:
        forward = _normalize(chin - eye_mid)

    right = _normalize(right_eye - left_eye)
    up = _normalize(np.cross(forward, right))
    right = _normalize(np.cross(up, forward))

    yaw = np.arctan2(forward[0], forward[2])
    pitch = np.arcsin(np.clip(-forward[1], -1.0, 1.0))
    roll = np.arctan2(right[1], right[0])

    roll_deg, pitch_deg, yaw_deg = np.degrees([roll, pitch, yaw])
    return FaceAngle(roll=float(roll_deg), pitch=float(pitch_deg), yaw=float(yaw_deg))


__all__ = ["estimate_face_angle"]
