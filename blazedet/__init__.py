"""BlazePose person detector decoding."""

from __future__ import annotations

import logging

from .models.detectors import BlazePoseDetector, Detection, DetectorDisposedError
from .models.task_modules import Candidate, decode_poses
from .models.utils import (
    AnchorGenerator,
    CoordinateMapper,
    Point,
    Rect,
    StridedTensor,
    generate_anchors,
    rect_iou,
    suppress,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AnchorGenerator",
    "BlazePoseDetector",
    "Candidate",
    "CoordinateMapper",
    "Detection",
    "DetectorDisposedError",
    "Point",
    "Rect",
    "StridedTensor",
    "decode_poses",
    "generate_anchors",
    "rect_iou",
    "suppress",
]
