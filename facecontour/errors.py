from __future__ import annotations

from typing import Optional


class FaceContourError(Exception):
    """Base class for errors raised by facecontour."""


class ExtractionError(FaceContourError):
    """The person region could not be cut out of the source image."""


class StageError(FaceContourError):
    """A single analysis stage failed or produced nothing usable."""


class NotProcessedError(FaceContourError):
    def __init__(self, feature: str):
        super().__init__(f"Face detection has not finished; poll has_processed() before reading '{feature}'")
        self.feature = feature


class FeatureUnavailableError(FaceContourError):
    def __init__(self, feature: str, reason: Optional[str] = None):
        msg = f"Feature '{feature}' could not be detected"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.feature = feature
        self.reason = reason


class InvalidCoordinateError(FaceContourError, ValueError):
    """A coordinate argument was not an [x, y] pair of real numbers."""


class CaptureDiscarded(FaceContourError):
    """The owning capture was closed before analysis settled."""


__all__ = [
    "FaceContourError",
    "ExtractionError",
    "StageError",
    "NotProcessedError",
    "FeatureUnavailableError",
    "InvalidCoordinateError",
    "CaptureDiscarded",
]
