"""Body silhouette and hair region from the person segmentation mask."""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import StageError
from .geometry import bbox_of_points
from .region import to_global

logger = logging.getLogger(__name__)


def _largest_outer_contour(mask: np.ndarray) -> np.ndarray:
    binary = (np.asarray(mask) > 0).astype(np.uint8)
    contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
    if not contours:
        return np.zeros((0, 2), dtype=np.float64)
    largest = max(contours, key=cv2.contourArea)
    return largest.reshape(-1, 2).astype(np.float64)


def person_component(mask: np.ndarray, window: Tuple[int, int, int, int]) -> np.ndarray:
    """Binary mask (H, W) of the connected person blob covering most of
    `window` (x, y, w, h). Raises StageError if the window holds no person pixels."""
    binary = (np.asarray(mask) > 0).astype(np.uint8)
    n, labels = cv2.connectedComponents(binary, connectivity=8)
    x, y, w, h = window
    counts = np.bincount(labels[y: y + h, x: x + w].ravel(), minlength=n)
    counts[0] = 0
    if n <= 1 or counts.max() == 0:
        raise StageError("segmentation mask has no person pixels in this region")
    return (labels == int(np.argmax(counts))).astype(np.uint8)


def body_boundary(
    mask: np.ndarray,
    window: Optional[Tuple[int, int, int, int]] = None,
    origin: Tuple[int, int] = (0, 0),
) -> np.ndarray:
    """Outer boundary (N, 2) of a person blob, shifted by `origin`.

    With `window`, `mask` is the full-frame mask and only the blob that
    covers the window is traced, so it can extend past the detector box.
    Raises StageError on an empty mask.
    """
    if window is not None:
        mask = person_component(mask, window)
    pts = _largest_outer_contour(mask)
    if len(pts) == 0:
        raise StageError("segmentation mask has no person pixels in this region")
    return to_global(pts, origin)


def hair_region(
    mask: np.ndarray,
    face_contour: np.ndarray,
    origin: Tuple[int, int] = (0, 0),
    head_band: float = 0.5,
) -> np.ndarray:
    """Boundary (N, 2) of the person pixels around the head that are not face.

    `face_contour` is the ordered face oval in the coordinate space of
    `mask`; the result is shifted by `origin`. The search is
    limited to rows above the chin and to the oval's width widened by
    `head_band` on each side.
    """
    if len(face_contour) < 3:
        raise StageError("face contour too short to separate hair")

    h, w = mask.shape[:2]
    min_x, _, max_x, max_y = bbox_of_points(face_contour)
    band = (max_x - min_x) * head_band

    head = np.zeros((h, w), dtype=np.uint8)
    x0 = max(0, int(math.floor(min_x - band)))
    x1 = min(w, int(math.ceil(max_x + band)) + 1)
    y1 = min(h, int(math.ceil(max_y)) + 1)
    head[:y1, x0:x1] = 1

    face = np.zeros((h, w), dtype=np.uint8)
    poly = np.round(np.asarray(face_contour)[:, :2]).astype(np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(face, [poly], 1)

    hair = ((np.asarray(mask) > 0) & (head > 0) & (face == 0)).astype(np.uint8)
    pts = _largest_outer_contour(hair)
    if len(pts) == 0:
        raise StageError("no person pixels outside the face oval")
    logger.debug("Hair region boundary has %d points", len(pts))
    return to_global(pts, origin)


__all__ = ["person_component", "body_boundary", "hair_region"]
