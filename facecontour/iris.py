"""Radial iris boundary search.

From the centre of the coarse iris ring, rays are cast outward and the
strongest bright-to-dark step (white of the eye into the iris) along each ray
is taken as the iris edge.
"""

from __future__ import annotations

import logging
import math
from typing import Mapping, Tuple

import numpy as np

from .geometry import as_points, sample_luminance
from .types import PairedContour

logger = logging.getLogger(__name__)


def _refine_side(
    ring: np.ndarray,
    image: np.ndarray,
    origin: Tuple[int, int],
    angular_steps: int,
    max_radius_factor: float,
    min_radius_factor: float,
) -> np.ndarray:
    cx, cy = float(np.mean(ring[:, 0])), float(np.mean(ring[:, 1]))
    cz = float(np.mean(ring[:, 2]))
    radius = float(np.mean(np.hypot(ring[:, 0] - cx, ring[:, 1] - cy)))
    r_max = radius * max_radius_factor
    r_min = radius * min_radius_factor

    out = []
    for i in range(angular_steps):
        angle = (i / angular_steps) * 2.0 * math.pi
        cos_a, sin_a = math.cos(angle), math.sin(angle)

        prev = sample_luminance(image, cx, cy)
        if prev is None:
            continue

        best_grad = -math.inf
        boundary = None
        r = 1
        while r < r_max:
            x, y = cx + cos_a * r, cy + sin_a * r
            cur = sample_luminance(image, x, y)
            if cur is None:
                break
            grad = prev - cur
            if r > r_min and grad > best_grad:
                best_grad = grad
                boundary = (x, y)
            prev = cur
            r += 1

        if boundary is not None:
            out.append((boundary[0] + origin[0], boundary[1] + origin[1], cz))

    return np.asarray(out, dtype=np.float64).reshape(-1, 3)


def refine_iris(
    coarse: Mapping[str, np.ndarray],
    image: np.ndarray,
    origin: Tuple[int, int] = (0, 0),
    angular_steps: int = 36,
    max_radius_factor: float = 1.8,
    min_radius_factor: float = 0.4,
) -> PairedContour:
    """Refine both iris rings.

    `coarse` maps "left"/"right" to crop-space (N, 2|3) rings; `image` is the
    crop the rings refer to. Output points are global (crop offset by
    `origin`). A side without landmarks comes back empty instead of failing
    the pair.
    """
    sides = {}
    for side in ("left", "right"):
        ring = coarse.get(side)
        if ring is None or len(ring) == 0:
            logger.warning("Iris landmarks for '%s' not found; skipping refinement", side)
            sides[side] = np.zeros((0, 3), dtype=np.float64)
            continue
        sides[side] = _refine_side(
            as_points(ring, dims=3), image, origin, angular_steps, max_radius_factor, min_radius_factor
        )
    return PairedContour(left=sides["left"], right=sides["right"])


__all__ = ["refine_iris"]
