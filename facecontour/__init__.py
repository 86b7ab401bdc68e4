"""Face contour package.

Finds people in a captured frame, cuts each one out and derives face
landmarks, a refined face contour, iris and eyebag boundaries, the body and
hair outlines and the head rotation. The MediaPipe-backed adapters
(`facemesh`, `segmentation`, `detector`) are imported lazily by
`ModelServices` so the core can run against any backend.
"""

from . import config as config
from . import types as types
from . import utils as utils
from . import errors as errors
from . import geometry as geometry
from .pipeline import FacePipeline, detect_faces
from .record import FaceRecord
from .services import ModelServices

__all__ = [
    "config",
    "types",
    "utils",
    "errors",
    "geometry",
    "FacePipeline",
    "FaceRecord",
    "ModelServices",
    "detect_faces",
]
