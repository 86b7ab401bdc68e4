"""Eyebag (under-eye fold) boundary estimation.

The fold below each eye shows up as the strongest vertical brightness change
in a small window under the eye. One candidate row is picked per column, then
the series is gap-filled and median-smoothed into a polyline.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Mapping, Optional

import numpy as np

from .geometry import as_points, bbox_of_points, luminance
from .types import PairedContour

logger = logging.getLogger(__name__)


@dataclass
class EyebagConfig:
    padding: float = 8.0
    min_width: int = 12
    smooth_radius: int = 3
    max_gap: int = 6


@dataclass
class _ROI:
    x: int
    y: int
    w: int
    h: int


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _eye_roi(eye: np.ndarray, width: int, height: int, cfg: EyebagConfig) -> _ROI:
    min_x, min_y, max_x, max_y = bbox_of_points(eye)
    pad = cfg.padding
    x0 = int(math.floor(_clamp(min_x - pad, 0, width - 1)))
    x1 = int(math.ceil(_clamp(max_x + pad, 0, width - 1)))
    y0 = int(math.floor(_clamp(min_y - pad * 0.2, 0, height - 1)))
    y1 = int(math.ceil(_clamp(max_y + pad * 2.0, 0, height - 1)))
    w = max(cfg.min_width, x1 - x0)
    # min_width may push the window past the right edge
    w = min(w, width - x0)
    return _ROI(x=x0, y=y0, w=w, h=y1 - y0)


def vertical_gradient(gray: np.ndarray) -> np.ndarray:
    """Central difference I(y+1) - I(y-1), repeating the edge rows."""
    padded = np.pad(gray, ((1, 1), (0, 0)), mode="edge")
    return padded[2:, :] - padded[:-2, :]


def fill_short_gaps(values: List[Optional[float]], max_gap: int = 6) -> List[Optional[float]]:
    """Linearly interpolate runs of None no longer than `max_gap` that have
    known values on both sides. Leading/trailing runs stay None."""
    out = list(values)
    n = len(out)
    i = 0
    while i < n:
        if out[i] is not None:
            i += 1
            continue
        j = i + 1
        while j < n and out[j] is None:
            j += 1
        if i > 0 and j < n and (j - i) <= max_gap:
            a, b = out[i - 1], out[j]
            for k in range(i, j):
                t = (k - i + 1) / (j - i + 1)
                out[k] = a * (1 - t) + b * t
        i = j
    return out


def median_smooth(values: List[Optional[float]], radius: int = 3) -> List[Optional[float]]:
    """Sliding median over the known values in each window."""
    r = max(1, int(radius))
    n = len(values)
    out: List[Optional[float]] = []
    for i in range(n):
        window = sorted(v for v in values[max(0, i - r): min(n - 1, i + r) + 1] if v is not None)
        out.append(window[len(window) // 2] if window else None)
    return out


def _edge_polyline(image: np.ndarray, eye: np.ndarray, cfg: EyebagConfig) -> np.ndarray:
    height, width = image.shape[:2]
    roi = _eye_roi(eye, width, height, cfg)
    if roi.w <= 0 or roi.h <= 0:
        return np.zeros((0, 2), dtype=np.float64)

    gray = luminance(image[roi.y: roi.y + roi.h, roi.x: roi.x + roi.w])
    gy = np.abs(vertical_gradient(gray))
    rows = gray.shape[0]

    edges: List[Optional[float]] = [None] * gray.shape[1]
    if rows >= 3:
        # Skip the first and last rows, whose gradient is one-sided
        best = np.argmax(gy[1: rows - 1, :], axis=0) + 1
        edges = [float(r + roi.y) for r in best]

    edges = fill_short_gaps(edges, cfg.max_gap)
    smoothed = median_smooth(edges, cfg.smooth_radius)

    min_x, _, max_x, _ = bbox_of_points(eye)
    lo = max(0, math.floor(min_x - cfg.padding))
    hi = min(width - 1, math.ceil(max_x + cfg.padding))

    pts = [
        (float(roi.x + c), y)
        for c, y in enumerate(smoothed)
        if y is not None and lo <= roi.x + c <= hi
    ]
    return np.asarray(pts, dtype=np.float64).reshape(-1, 2)


def detect_eyebags(
    image: np.ndarray,
    eyes: Mapping[str, np.ndarray],
    cfg: Optional[EyebagConfig] = None,
) -> PairedContour:
    """Return left-to-right eyebag polylines for both eyes.

    Coordinates are in the space of `image`; an eye without landmarks yields
    an empty polyline.
    """
    cfg = cfg or EyebagConfig()
    sides = {}
    for side in ("left", "right"):
        eye = eyes.get(side)
        if eye is None or len(eye) == 0:
            sides[side] = np.zeros((0, 2), dtype=np.float64)
            continue
        sides[side] = _edge_polyline(image, as_points(eye, dims=2), cfg)
    logger.debug("Eyebag polylines: left=%d right=%d points", len(sides["left"]), len(sides["right"]))
    return PairedContour(left=sides["left"], right=sides["right"])


__all__ = [
    "EyebagConfig",
    "vertical_gradient",
    "fill_short_gaps",
    "median_smooth",
    "detect_eyebags",
]
