"""Detector configurations."""

from .default import get_config

__all__ = ["get_config"]
