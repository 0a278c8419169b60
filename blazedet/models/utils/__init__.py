"""Utility modules for detection models."""

from .anchor_generator import AnchorGenerator, generate_anchors
from .geometry import CoordinateMapper, Point, Rect, rects_to_array
from .iou import rect_iou
from .nms import NMSResult, nms, suppress
from .tensor import StridedTensor

__all__ = [
    "AnchorGenerator",
    "CoordinateMapper",
    "NMSResult",
    "Point",
    "Rect",
    "StridedTensor",
    "generate_anchors",
    "nms",
    "rect_iou",
    "rects_to_array",
    "suppress",
]
