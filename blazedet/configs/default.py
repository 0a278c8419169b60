"""Default BlazePose detector configuration."""

from __future__ import annotations

from ml_collections import ConfigDict

from blazedet.models.utils.anchor_generator import DEFAULT_MAX_SCALE, DEFAULT_MIN_SCALE, DEFAULT_STRIDES


def get_config() -> ConfigDict:
    """Return the detector defaults for the 224x224 BlazePose detector model."""
    config = ConfigDict()
    config.input_size = (224, 224)
    config.min_score = 0.4
    config.max_iou = 0.3

    config.anchors = ConfigDict()
    config.anchors.strides = DEFAULT_STRIDES
    config.anchors.min_scale = DEFAULT_MIN_SCALE
    config.anchors.max_scale = DEFAULT_MAX_SCALE
    config.anchors.base_aspect = 1.0
    return config
