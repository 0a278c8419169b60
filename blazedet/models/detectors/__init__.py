"""Detector modules exposed by blazedet."""

from .blazepose_detector import BlazePoseDetector, Detection, DetectorDisposedError

__all__ = ["BlazePoseDetector", "Detection", "DetectorDisposedError"]
