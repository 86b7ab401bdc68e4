"""Capture pipeline: segment the frame, find people, build one FaceRecord each."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, List, Mapping, Optional

import numpy as np

from .config import section
from .detector import filter_persons
from .record import FaceRecord
from .services import ModelServices

logger = logging.getLogger(__name__)


class FacePipeline:
    """Runs detection for captured frames against a shared ModelServices.

    Closing the pipeline with `cancel=True` abandons in-flight captures
    without waiting for them: builders raise CaptureDiscarded and stage
    results that arrive later are dropped.
    """

    def __init__(self, services: ModelServices, cfg: Optional[Mapping[str, Any]] = None):
        self.services = services
        self.cfg = cfg or {}
        rt = section(self.cfg, "runtime")
        dc = section(self.cfg, "detection")
        self.label = str(dc["label"])
        self.score_threshold = float(dc["score_threshold"])

        workers = int(rt.get("workers") or 0)
        self._stage_pool: Optional[ThreadPoolExecutor] = None
        if workers > 0:
            self._stage_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="facecontour-stage")
        self._capture_pool: Optional[ThreadPoolExecutor] = None
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._closed = False

    def detect_faces(self, image: np.ndarray) -> List[FaceRecord]:
        """Return one processed FaceRecord per accepted person in `image`.

        Collaborator failures before any record exists (segmentation,
        detection) are logged and give an empty list.
        """
        if self._closed:
            raise RuntimeError("FacePipeline is closed")

        try:
            seg = self.services.segmenter.segment(image)
        except Exception:
            logger.exception("Background removal failed; skipping person detection")
            return []

        try:
            detections = self.services.detector.detect(seg.foreground)
        except Exception:
            logger.exception("Person detection failed")
            return []

        persons = filter_persons(detections, self.label, self.score_threshold)
        logger.info("Detected %d person(s) (%d candidate box(es))", len(persons), len(detections))

        records = []
        for det in persons:
            rec = FaceRecord.build(
                seg.foreground,
                seg.mask,
                det.bbox,
                self.services,
                cfg=self.cfg,
                executor=self._stage_pool,
                cancel_event=self._cancel,
            )
            records.append(rec)
        return records

    def submit(self, image: np.ndarray) -> "Future[List[FaceRecord]]":
        """Run `detect_faces` in the background; the future's result is the record list."""
        with self._lock:
            if self._closed:
                raise RuntimeError("FacePipeline is closed")
            if self._capture_pool is None:
                self._capture_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="facecontour-capture")
            return self._capture_pool.submit(self.detect_faces, image)

    def close(self, cancel: bool = False) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if cancel:
            self._cancel.set()
        for pool in (self._capture_pool, self._stage_pool):
            if pool is not None:
                pool.shutdown(wait=not cancel, cancel_futures=cancel)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close(cancel=exc_type is not None)


def detect_faces(
    image: np.ndarray,
    services: ModelServices,
    cfg: Optional[Mapping[str, Any]] = None,
) -> List[FaceRecord]:
    """One-shot helper: build a pipeline, process `image`, shut it down."""
    with FacePipeline(services, cfg) as pipeline:
        return pipeline.detect_faces(image)


__all__ = ["FacePipeline", "detect_faces"]
