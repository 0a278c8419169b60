"""Post-processing utilities for task-specific outputs."""

from __future__ import annotations

from .pose_decoder import Candidate, decode_poses

__all__ = ["Candidate", "decode_poses"]
