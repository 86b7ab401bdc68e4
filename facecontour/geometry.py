"""Point math, luminance sampling and polygon containment.

Contours are float arrays of shape (N, 2) or (N, 3); only X and Y take part
in 2D tests. Images are (H, W, C) uint8 arrays with R, G, B in the first
three channels.
"""

from __future__ import annotations

import math
import numbers
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidCoordinateError

# Rec. 601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def as_points(points: Any, dims: int = 3) -> np.ndarray:
    """Return `points` as a float (N, dims) array; missing Z is filled with 0."""
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, dims), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] < 2:
        raise ValueError(f"Expected an (N, 2) or (N, 3) point array, got shape {arr.shape}")
    if arr.shape[1] >= dims:
        return arr[:, :dims].copy()
    pad = np.zeros((arr.shape[0], dims - arr.shape[1]), dtype=np.float64)
    return np.hstack([arr, pad])


def luminance(image: np.ndarray) -> np.ndarray:
    """Per-pixel luminance (H, W) float64 of an RGB(A) image."""
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError("Luminance requires an (H, W, 3|4) image")
    return image[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS


def pixel_luminance(image: np.ndarray, x: float, y: float) -> float:
    """Luminance at (x, y), flooring and clamping the position into the image."""
    h, w = image.shape[:2]
    xi = min(max(int(math.floor(x)), 0), w - 1)
    yi = min(max(int(math.floor(y)), 0), h - 1)
    r, g, b = image[yi, xi, :3]
    return 0.299 * float(r) + 0.587 * float(g) + 0.114 * float(b)


def sample_luminance(image: np.ndarray, x: float, y: float) -> Optional[float]:
    """Luminance at (x, y), or None when the floored position is off the image."""
    h, w = image.shape[:2]
    xi = int(math.floor(x))
    yi = int(math.floor(y))
    if xi < 0 or xi >= w or yi < 0 or yi >= h:
        return None
    r, g, b = image[yi, xi, :3]
    return 0.299 * float(r) + 0.587 * float(g) + 0.114 * float(b)


def centroid(points: np.ndarray) -> np.ndarray:
    return np.mean(np.asarray(points, dtype=np.float64), axis=0)


def bbox_of_points(points: np.ndarray) -> Tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) of a point array."""
    pts = np.asarray(points, dtype=np.float64)
    return (
        float(np.min(pts[:, 0])),
        float(np.min(pts[:, 1])),
        float(np.max(pts[:, 0])),
        float(np.max(pts[:, 1])),
    )


def order_ring(points: np.ndarray) -> np.ndarray:
    """Order points by angle around their centroid so they trace a closed ring.

    Landmark models report region members in mesh-index order, which does
    not walk the boundary; containment and drawing need edge order.
    """
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 3:
        return pts.copy()
    c = centroid(pts[:, :2])
    angles = np.arctan2(pts[:, 1] - c[1], pts[:, 0] - c[0])
    return pts[np.argsort(angles, kind="stable")]


def validate_point(point: Any) -> Tuple[float, float]:
    """Return (x, y) or raise InvalidCoordinateError for anything else."""
    if isinstance(point, (str, bytes)) or not isinstance(point, (Sequence, np.ndarray)):
        raise InvalidCoordinateError(f"Coordinate must be an [x, y] pair, got {point!r}")
    if len(point) != 2:
        raise InvalidCoordinateError(f"Coordinate must have exactly two values, got {len(point)}")
    out = []
    for v in point:
        if isinstance(v, (bool, np.bool_)) or not isinstance(v, numbers.Real):
            raise InvalidCoordinateError(f"Coordinate values must be real numbers, got {v!r}")
        fv = float(v)
        if not math.isfinite(fv):
            raise InvalidCoordinateError(f"Coordinate values must be finite, got {v!r}")
        out.append(fv)
    return out[0], out[1]


def _on_segment(px: float, py: float, x1: float, y1: float, x2: float, y2: float, eps: float = 1e-9) -> bool:
    cross = (x2 - x1) * (py - y1) - (y2 - y1) * (px - x1)
    if abs(cross) > eps * max(1.0, abs(x2 - x1) + abs(y2 - y1)):
        return False
    return min(x1, x2) - eps <= px <= max(x1, x2) + eps and min(y1, y2) - eps <= py <= max(y1, y2) + eps


def contains(contour: np.ndarray, point: Any) -> bool:
    """Ray-casting parity test; points lying on an edge count as inside."""
    px, py = validate_point(point)
    verts = np.asarray(contour, dtype=np.float64)
    n = len(verts)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = verts[i, 0], verts[i, 1]
        xj, yj = verts[j, 0], verts[j, 1]
        if _on_segment(px, py, xi, yi, xj, yj):
            return True
        if (yi > py) != (yj > py) and px < (xj - xi) * (py - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


__all__ = [
    "LUMA_WEIGHTS",
    "as_points",
    "luminance",
    "pixel_luminance",
    "sample_luminance",
    "centroid",
    "bbox_of_points",
    "order_ring",
    "validate_point",
    "contains",
]
