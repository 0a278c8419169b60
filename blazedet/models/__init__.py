"""blazedet model component exports."""

from __future__ import annotations

from .detectors import BlazePoseDetector, Detection, DetectorDisposedError

__all__ = ["BlazePoseDetector", "Detection", "DetectorDisposedError"]
