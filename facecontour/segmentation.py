"""Person segmentation backed by MediaPipe Selfie Segmentation."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

try:
    import mediapipe as mp
except Exception:  # pragma: no cover - environment import guard
    mp = None  # type: ignore

from .types import SegmentationResult

logger = logging.getLogger(__name__)


@dataclass
class SegmenterConfig:
    model_selection: int = 0
    mask_threshold: float = 0.5


def apply_mask(image: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """RGBA copy of `image` with every pixel outside `mask` fully transparent."""
    h, w = image.shape[:2]
    out = np.zeros((h, w, 4), dtype=np.uint8)
    keep = mask.astype(bool)
    out[..., :3][keep] = image[..., :3][keep]
    if image.shape[2] == 4:
        out[..., 3][keep] = image[..., 3][keep]
    else:
        out[..., 3][keep] = 255
    return out


class SelfieSegmenter:
    """Background removal for one captured frame.

    Returns an all-transparent foreground and an all-zero mask when nobody
    is in the picture.
    """

    def __init__(self, cfg: Optional[SegmenterConfig] = None):
        if mp is None:
            raise ImportError("mediapipe must be installed to use SelfieSegmenter")
        self.cfg = cfg or SegmenterConfig()
        self._model = None
        self._lock = threading.Lock()

    def __enter__(self):
        self._model = mp.solutions.selfie_segmentation.SelfieSegmentation(
            model_selection=self.cfg.model_selection
        )
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self._model is not None:
            self._model.close()
            self._model = None

    def segment(self, image: np.ndarray) -> SegmentationResult:
        rgb = np.ascontiguousarray(image[:, :, :3], dtype=np.uint8)
        with self._lock:
            if self._model is None:
                self.__enter__()
            results = self._model.process(rgb)

        h, w = rgb.shape[:2]
        if results is None or results.segmentation_mask is None:
            logger.info("Segmentation produced no mask; returning empty result")
            mask = np.zeros((h, w), dtype=np.uint8)
        else:
            mask = (results.segmentation_mask > self.cfg.mask_threshold).astype(np.uint8)
        return SegmentationResult(foreground=apply_mask(image, mask), mask=mask)


__all__ = ["SegmenterConfig", "SelfieSegmenter", "apply_mask"]
