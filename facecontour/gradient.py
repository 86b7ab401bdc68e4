"""Gradient edge snapping.

Landmark models get the relative structure of a face right but are loose at
the pixel level. The true skin/background edge sits where luminance changes
fastest, so each landmark close to the segmentation boundary is moved to the
strongest luminance step on the segment joining the two.
"""

from __future__ import annotations

import logging

import numpy as np

from .geometry import as_points, pixel_luminance

logger = logging.getLogger(__name__)

MIN_SNAP_DISTANCE = 1.0


def refine_by_gradient(
    landmarks: np.ndarray,
    boundary: np.ndarray,
    image: np.ndarray,
    snap_threshold: float = 15.0,
    steps: int = 10,
) -> np.ndarray:
    """Snap landmark points onto the strongest nearby luminance edge.

    - landmarks: (N, 2|3) global coordinates; Z is preserved.
    - boundary: (M, 2) reference boundary in the same space.
    - image: RGB(A) buffer the coordinates refer to.

    Points whose nearest boundary point is closer than 1px or farther than
    `snap_threshold` are returned unchanged, as is the whole input when
    either point set is empty or `steps` is not positive.
    """
    if landmarks is None or boundary is None or image is None:
        return landmarks
    if len(landmarks) == 0 or len(boundary) == 0:
        return landmarks
    if steps <= 0:
        logger.error("refine_by_gradient: steps must be >= 1 (got %s); keeping input", steps)
        return landmarks

    pts = as_points(landmarks, dims=3)
    ref = as_points(boundary, dims=2)
    refined = pts.copy()

    # (N, M) squared distances; boundaries are a few hundred points at most
    d2 = np.sum((pts[:, None, :2] - ref[None, :, :]) ** 2, axis=2)
    nearest = np.argmin(d2, axis=1)
    dist = np.sqrt(d2[np.arange(len(pts)), nearest])

    snapped = 0
    for k, (lx, ly, lz) in enumerate(pts):
        if dist[k] > snap_threshold or dist[k] < MIN_SNAP_DISTANCE:
            continue
        bx, by = ref[nearest[k]]
        vx, vy = bx - lx, by - ly

        max_grad = -1.0
        best = (lx, ly)
        last = pixel_luminance(image, lx, ly)
        for i in range(1, steps + 1):
            t = i / steps
            cx, cy = lx + vx * t, ly + vy * t
            cur = pixel_luminance(image, cx, cy)
            grad = abs(cur - last)
            if grad > max_grad:
                max_grad = grad
                pt = (i - 1) / steps
                px, py = lx + vx * pt, ly + vy * pt
                best = ((px + cx) / 2.0, (py + cy) / 2.0)
            last = cur

        refined[k, 0], refined[k, 1], refined[k, 2] = best[0], best[1], lz
        snapped += 1

    logger.debug("Gradient refinement snapped %d/%d points", snapped, len(pts))
    if np.asarray(landmarks).shape[1] == 2:
        return refined[:, :2]
    return refined


__all__ = ["refine_by_gradient", "MIN_SNAP_DISTANCE"]
