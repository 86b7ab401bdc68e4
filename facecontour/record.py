"""FaceRecord: one detected person and everything derived from them.

A record is produced by `FaceRecord.build`, which runs the whole lifecycle
before handing the record out:

    CREATED -> EXTRACTING -> ANALYZING -> REFINING -> PROCESSED
                    |
                    +-> FAILED (crop impossible; every feature failed)

Analysis stages (landmarks, body boundary) run concurrently and are joined
with a settle-all wait, so one failing stage never stops the other.
Refinement then runs on the calling thread over the settled results. Each
feature ends up Ok or Failed independently; only a failed crop fails the
record as a whole.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ALL_COMPLETED, Executor, Future, wait
from dataclasses import asdict
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from .body import body_boundary, hair_region, person_component
from .config import section
from .errors import (
    CaptureDiscarded,
    ExtractionError,
    FeatureUnavailableError,
    NotProcessedError,
    StageError,
)
from .eyebags import EyebagConfig, detect_eyebags
from .geometry import contains, validate_point
from .gradient import refine_by_gradient
from .iris import refine_iris
from .keypoints import group_keypoints
from .pose import estimate_face_angle
from .region import crop, to_global
from .services import ModelServices
from .types import BBox, Crop, FaceAngle, FaceLandmarks, PairedContour, RecordState, Slot
from .utils import to_list

logger = logging.getLogger(__name__)

FEATURES = (
    "contour",
    "body",
    "eyes",
    "nose",
    "mouth",
    "eyebrows",
    "eyebags",
    "iris",
    "hair",
    "face_angle",
)

# Features that cannot exist without facial landmarks
LANDMARK_FEATURES = ("contour", "eyes", "nose", "mouth", "eyebrows", "eyebags", "iris", "hair", "face_angle")

# (value, error) per analysis stage
Outcome = Tuple[Any, Optional[BaseException]]

_CANCEL_POLL_S = 0.05


def _require(points: np.ndarray, what: str) -> np.ndarray:
    if points is None or len(points) == 0:
        raise StageError(f"landmark model returned no {what} points")
    return points


def _serialise(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return to_list(value)
    if isinstance(value, PairedContour):
        return {"left": to_list(value.left), "right": to_list(value.right)}
    if isinstance(value, FaceAngle):
        return asdict(value)
    return value


class FaceRecord:
    def __init__(self, segmented: np.ndarray, mask: Optional[np.ndarray], bbox: BBox):
        # Shared with other records from the same frame; never written to
        self._segmented = segmented
        self._mask = mask
        self._bbox = bbox
        self._crop: Optional[Crop] = None
        self._slots: Dict[str, Slot] = {name: Slot.pending() for name in FEATURES}
        self._state = RecordState.CREATED
        self._processed = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def build(
        cls,
        segmented: np.ndarray,
        mask: Optional[np.ndarray],
        bbox: BBox,
        services: ModelServices,
        cfg: Optional[Mapping[str, Any]] = None,
        executor: Optional[Executor] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> "FaceRecord":
        """Create a record and run it to completion.

        With `executor=None` the stages run inline, one after the other.
        Raises CaptureDiscarded if `cancel_event` is set before the record
        settles; whatever the stages produce afterwards is dropped.
        """
        record = cls(segmented, mask, bbox)
        record._run(services, cfg or {}, executor, cancel_event)
        return record

    def _run(
        self,
        services: ModelServices,
        cfg: Mapping[str, Any],
        executor: Optional[Executor],
        cancel_event: Optional[threading.Event],
    ) -> None:
        self._state = RecordState.EXTRACTING
        try:
            self._crop = crop(self._segmented, self._bbox)
        except ExtractionError as e:
            logger.error("Failed to extract person region %s: %s", self._bbox.to_list(), e)
            self._fail_all(str(e))
            return

        self._state = RecordState.ANALYZING
        stages: Dict[str, Callable[[], Any]] = {
            "landmarks": lambda: self._landmark_stage(services),
            "body": self._body_stage,
        }
        timeout = section(cfg, "runtime").get("stage_timeout")
        outcomes = self._settle_all(stages, executor, cancel_event, timeout)

        self._state = RecordState.REFINING
        self._refine(outcomes, cfg)
        self._finish()

    def _fail_all(self, reason: str) -> None:
        for name in FEATURES:
            self._slots[name] = Slot.failed(reason)
        self._state = RecordState.FAILED
        self._processed = True

    def _finish(self) -> None:
        for name, slot in self._slots.items():
            if slot.is_pending:
                self._slots[name] = Slot.failed("not attempted")
        self._state = RecordState.PROCESSED
        self._processed = True

    # ------------------------------------------------------------------
    # Analysis stages (run concurrently)
    # ------------------------------------------------------------------
    def _landmark_stage(self, services: ModelServices) -> FaceLandmarks:
        faces = services.landmarker.estimate(self._crop.image)
        if not faces:
            raise StageError("no face found in the person region")
        return group_keypoints(faces[0])

    def _person_mask(self) -> np.ndarray:
        """Full-frame mask of the person blob under this record's crop."""
        if self._mask is None:
            raise StageError("no segmentation mask available")
        x, y = self._crop.origin
        h, w = self._crop.image.shape[:2]
        return person_component(self._mask, (x, y, w, h))

    def _body_stage(self) -> np.ndarray:
        # Traced on the full frame; the person may extend past the crop
        return body_boundary(self._person_mask())

    @staticmethod
    def _settle_all(
        stages: Mapping[str, Callable[[], Any]],
        executor: Optional[Executor],
        cancel_event: Optional[threading.Event],
        timeout: Optional[float],
    ) -> Dict[str, Outcome]:
        outcomes: Dict[str, Outcome] = {}

        if executor is None:
            for name, fn in stages.items():
                if cancel_event is not None and cancel_event.is_set():
                    raise CaptureDiscarded("capture closed during analysis")
                try:
                    outcomes[name] = (fn(), None)
                except Exception as e:
                    outcomes[name] = (None, e)
        else:
            try:
                futures: Dict[str, Future] = {name: executor.submit(fn) for name, fn in stages.items()}
            except RuntimeError:
                # Stage pool already shut down by the owning pipeline
                raise CaptureDiscarded("capture closed before analysis started") from None
            pending = set(futures.values())
            deadline = None if timeout is None else time.monotonic() + float(timeout)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    for f in pending:
                        f.cancel()
                    raise CaptureDiscarded("capture closed during analysis")
                step = _CANCEL_POLL_S if cancel_event is not None else None
                if deadline is not None:
                    remaining = max(0.0, deadline - time.monotonic())
                    step = remaining if step is None else min(step, remaining)
                _, pending = wait(pending, timeout=step, return_when=ALL_COMPLETED)
                if pending and deadline is not None and time.monotonic() >= deadline:
                    for f in pending:
                        f.cancel()
                    break

            for name, f in futures.items():
                if not f.done() or f.cancelled():
                    outcomes[name] = (None, StageError(f"{name} stage did not settle within {timeout}s"))
                elif f.exception() is not None:
                    outcomes[name] = (None, f.exception())
                else:
                    outcomes[name] = (f.result(), None)

        if cancel_event is not None and cancel_event.is_set():
            raise CaptureDiscarded("capture closed during analysis")

        for name, (_, err) in outcomes.items():
            if err is None:
                continue
            if isinstance(err, StageError):
                logger.warning("%s stage failed: %s", name, err)
            else:
                logger.error("%s stage raised %s: %s", name, type(err).__name__, err, exc_info=err)
        return outcomes

    # ------------------------------------------------------------------
    # Refinement (synchronous, over settled results)
    # ------------------------------------------------------------------
    def _attempt(self, name: str, fn: Callable[[], Any]) -> None:
        try:
            self._slots[name] = Slot.ok(fn())
        except StageError as e:
            logger.warning("Feature '%s' unavailable: %s", name, e)
            self._slots[name] = Slot.failed(str(e))
        except Exception as e:
            logger.exception("Feature '%s' failed during refinement", name)
            self._slots[name] = Slot.failed(f"{type(e).__name__}: {e}")

    def _refine(self, outcomes: Mapping[str, Outcome], cfg: Mapping[str, Any]) -> None:
        body, body_err = outcomes["body"]
        if body_err is not None:
            self._slots["body"] = Slot.failed(str(body_err) or type(body_err).__name__)
        else:
            self._slots["body"] = Slot.ok(body)

        lm, lm_err = outcomes["landmarks"]
        if lm_err is not None:
            reason = str(lm_err) or type(lm_err).__name__
            for name in LANDMARK_FEATURES:
                self._slots[name] = Slot.failed(reason)
            return

        origin = self._crop.origin
        image = self._crop.image
        g = section(cfg, "gradient")
        ic = section(cfg, "iris")
        ec = section(cfg, "eyebags")
        hc = section(cfg, "hair")

        def contour() -> np.ndarray:
            pts = to_global(_require(lm.contour, "face oval"), origin)
            if body is None:
                logger.debug("No body boundary; keeping unrefined face contour")
                return pts
            return refine_by_gradient(
                pts, body, self._segmented,
                snap_threshold=float(g["snap_threshold"]), steps=int(g["steps"]),
            )

        def paired(left: np.ndarray, right: np.ndarray, what: str) -> PairedContour:
            return PairedContour(
                left=to_global(_require(left, f"left {what}"), origin),
                right=to_global(_require(right, f"right {what}"), origin),
            )

        def iris() -> PairedContour:
            result = refine_iris(
                {"left": lm.left_iris, "right": lm.right_iris},
                image,
                origin,
                angular_steps=int(ic["angular_steps"]),
                max_radius_factor=float(ic["max_radius_factor"]),
                min_radius_factor=float(ic["min_radius_factor"]),
            )
            if result.is_empty():
                raise StageError("no iris boundary found for either eye")
            return result

        def eyebags() -> PairedContour:
            local = detect_eyebags(
                image,
                {"left": lm.left_eye, "right": lm.right_eye},
                EyebagConfig(
                    padding=float(ec["padding"]),
                    min_width=int(ec["min_width"]),
                    smooth_radius=int(ec["smooth_radius"]),
                    max_gap=int(ec["max_gap"]),
                ),
            )
            if local.is_empty():
                raise StageError("no eyebag edge found below either eye")
            return PairedContour(left=to_global(local.left, origin), right=to_global(local.right, origin))

        def hair() -> np.ndarray:
            return hair_region(self._person_mask(), to_global(lm.contour, origin), head_band=float(hc["head_band"]))

        self._attempt("contour", contour)
        self._attempt("eyes", lambda: paired(lm.left_eye, lm.right_eye, "eye"))
        self._attempt("nose", lambda: to_global(_require(lm.nose, "nose"), origin))
        self._attempt("mouth", lambda: to_global(_require(lm.mouth, "lips"), origin))
        self._attempt("eyebrows", lambda: paired(lm.left_eyebrow, lm.right_eyebrow, "eyebrow"))
        self._attempt("iris", iris)
        self._attempt("eyebags", eyebags)
        self._attempt("face_angle", lambda: estimate_face_angle(lm.keypoints))
        self._attempt("hair", hair)

    # ------------------------------------------------------------------
    # Public, read-only surface
    # ------------------------------------------------------------------
    def has_processed(self) -> bool:
        return self._processed

    @property
    def state(self) -> RecordState:
        return self._state

    def bbox(self) -> BBox:
        return self._bbox

    def segmented(self) -> np.ndarray:
        """Background-removed source frame this record was cut from."""
        return self._segmented

    def cropped(self) -> Optional[np.ndarray]:
        return None if self._crop is None else self._crop.image

    def slot(self, name: str) -> Slot:
        if name not in self._slots:
            raise KeyError(f"Unknown feature '{name}'")
        return self._slots[name]

    def _read(self, name: str) -> Any:
        if not self._processed:
            raise NotProcessedError(name)
        slot = self._slots[name]
        if slot.is_failed:
            raise FeatureUnavailableError(name, slot.reason)
        return slot.value

    def contour(self) -> np.ndarray:
        """Face oval (N, 3), global coordinates, ordered as a closed ring."""
        return self._read("contour")

    def body(self) -> np.ndarray:
        """Person silhouette boundary (N, 2), global coordinates."""
        return self._read("body")

    def eyes(self) -> PairedContour:
        return self._read("eyes")

    def nose(self) -> np.ndarray:
        return self._read("nose")

    def mouth(self) -> np.ndarray:
        return self._read("mouth")

    def eyebrows(self) -> PairedContour:
        return self._read("eyebrows")

    def eyebags(self) -> PairedContour:
        """Left-to-right (N, 2) polylines along the fold under each eye."""
        return self._read("eyebags")

    def iris(self) -> PairedContour:
        return self._read("iris")

    def hair(self) -> np.ndarray:
        """Boundary (N, 2) of the person pixels around the head outside the face oval."""
        return self._read("hair")

    def face_angle(self) -> FaceAngle:
        return self._read("face_angle")

    def is_face_touched(self, point: Any) -> bool:
        """True if `point` ([x, y], global) lies inside or on the face contour.

        Raises InvalidCoordinateError for a malformed point, then the usual
        accessor errors if the contour is not available.
        """
        validate_point(point)
        return contains(self.contour(), point)

    def to_dict(self) -> Dict[str, Any]:
        features: Dict[str, Any] = {}
        failures: Dict[str, Optional[str]] = {}
        for name, slot in self._slots.items():
            if slot.is_ok:
                features[name] = _serialise(slot.value)
            elif slot.is_failed:
                failures[name] = slot.reason
        return {
            "bbox": self._bbox.to_list(),
            "state": self._state.value,
            "features": features,
            "failures": failures,
        }

    def __repr__(self) -> str:
        ok = sum(1 for s in self._slots.values() if s.is_ok)
        return f"FaceRecord(bbox={self._bbox.to_list()}, state={self._state.value}, ok={ok}/{len(FEATURES)})"


__all__ = ["FaceRecord", "FEATURES", "LANDMARK_FEATURES"]
