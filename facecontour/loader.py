"""Image loading for the CLI.

- Recursive image enumeration with extension whitelist and optional `max_files`.
- Unicode-safe image reading via OpenCV (imdecode) with fallback.
- Frames are returned as RGBA uint8, the layout the detection core expects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Generator, Iterable, Optional, Tuple

import numpy as np
import cv2

from .types import ImageMeta

logger = logging.getLogger(__name__)


def to_rgba(img: np.ndarray) -> np.ndarray:
    """Convert an OpenCV-decoded (BGR/BGRA/gray) image to RGBA."""
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)


class ImageLoader:
    def __init__(
        self,
        input_dir: str | Path,
        exts: Optional[Iterable[str]] = None,
        max_files: Optional[int] = None,
    ):
        self.input_dir = Path(input_dir)
        self.exts = set(e.lower() for e in (exts or {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tiff"}))
        self.max_files = max_files

    def enumerate(self) -> Generator[Path, None, None]:
        count = 0
        if not self.input_dir.exists():
            logger.warning("Input directory does not exist: %s", self.input_dir)
            return
        for p in sorted(self.input_dir.rglob("*")):
            if p.is_file() and p.suffix.lower() in self.exts:
                yield p
                count += 1
                if self.max_files is not None and count >= self.max_files:
                    return

    @staticmethod
    def _imread_unicode(path: Path) -> Optional[np.ndarray]:
        try:
            data = np.fromfile(str(path), dtype=np.uint8)
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            return None
        if data.size == 0:
            return None
        img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
        if img is None:
            # Fallback to standard imread
            img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        return img

    def read_image(self, path: str | Path) -> Tuple[Optional[np.ndarray], Optional[ImageMeta], Optional[str]]:
        p = Path(path)
        img = self._imread_unicode(p)
        if img is None:
            return None, None, "unreadable"
        rgba = to_rgba(img)
        h, w = rgba.shape[:2]
        meta = ImageMeta(path=str(p), width=w, height=h, channels=img.shape[2] if img.ndim == 3 else 1, ext=p.suffix.lower())
        return rgba, meta, None


__all__ = ["ImageLoader", "to_rgba"]
