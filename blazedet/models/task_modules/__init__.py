"""Task-specific modules shared by detectors."""

from __future__ import annotations

from .post_processors import Candidate, decode_poses

__all__ = ["Candidate", "decode_poses"]
