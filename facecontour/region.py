"""Region extraction and crop <-> global coordinate transforms."""

from __future__ import annotations

import logging
import math
from typing import Tuple

import numpy as np

from .errors import ExtractionError
from .types import BBox, Crop

logger = logging.getLogger(__name__)


def _round_half_up(v: float) -> int:
    return int(math.floor(float(v) + 0.5))


def crop(source: np.ndarray, bbox: BBox) -> Crop:
    """Cut `bbox` out of `source`, clamped to the image bounds.

    Raises ExtractionError when the rounded box is degenerate or lies
    entirely outside the image. The returned pixels are a copy owned by the
    caller; `Crop.origin` is the clamped top-left corner in global space.
    """
    if source is None or source.ndim < 2:
        raise ExtractionError("Source image is missing or not a pixel buffer")

    x, y = _round_half_up(bbox.x), _round_half_up(bbox.y)
    w, h = _round_half_up(bbox.w), _round_half_up(bbox.h)
    if w <= 0 or h <= 0:
        raise ExtractionError(f"Degenerate bounding box {bbox.to_list()} (rounded size {w}x{h})")

    img_h, img_w = source.shape[:2]
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(img_w, x + w), min(img_h, y + h)
    if x2 <= x1 or y2 <= y1:
        raise ExtractionError(f"Bounding box {bbox.to_list()} lies outside the {img_w}x{img_h} image")

    if (x1, y1, x2, y2) != (x, y, x + w, y + h):
        logger.debug("Clamped crop %s to (%d, %d, %d, %d)", bbox.to_list(), x1, y1, x2 - x1, y2 - y1)
    return Crop(image=source[y1:y2, x1:x2].copy(), origin=(x1, y1))


def to_global(points: np.ndarray, origin: Tuple[int, int]) -> np.ndarray:
    """Shift crop-space points into source-image space; Z is untouched."""
    out = np.array(points, dtype=np.float64, copy=True)
    if out.size == 0:
        return out
    out[:, 0] += origin[0]
    out[:, 1] += origin[1]
    return out


def to_local(points: np.ndarray, origin: Tuple[int, int]) -> np.ndarray:
    out = np.array(points, dtype=np.float64, copy=True)
    if out.size == 0:
        return out
    out[:, 0] -= origin[0]
    out[:, 1] -= origin[1]
    return out


__all__ = ["crop", "to_global", "to_local"]
