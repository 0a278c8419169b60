"""Pose detector output decoding.

This module turns the classification logits and regression outputs of a
BlazePose-style detector into candidate detections:

* Apply a sigmoid to the per-anchor logits and keep anchors whose score is at
  least ``min_score``.
* Decode the box center and size relative to the anchor center, normalised
  by the model input size.
* Decode four auxiliary keypoints the same way.
* Flip the vertical axis: regressions use a top-left origin while decoded
  geometry uses a bottom-left origin.
* Optionally map the geometry into the caller's coordinate space.

Candidates are returned in anchor order; suppression happens downstream.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from blazedet.models.utils.geometry import CoordinateMapper, Point, Rect
from blazedet.models.utils.tensor import StridedTensor

logger = logging.getLogger(__name__)

NUM_KEYPOINTS = 4
BOX_PARAMS = 4
REGRESSION_PARAMS = BOX_PARAMS + 2 * NUM_KEYPOINTS

Anchors = Float[Array, "num_anchors 2"]


@dataclass(frozen=True)
class Candidate:
    """Decoded detection prior to suppression."""

    box: Rect
    score: float
    points: tuple[Point, ...]


def _as_input_size(input_size: Sequence[int]) -> tuple[int, int]:
    if len(input_size) != 2:
        raise ValueError(f"input_size must contain (width, height); received {input_size}.")
    width, height = int(input_size[0]), int(input_size[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"input_size must be positive; received ({width}, {height}).")
    return width, height


def _validate_inputs(scores: StridedTensor, regressions: StridedTensor, num_anchors: int) -> None:
    if scores.cols != 1:
        raise ValueError(f"scores must have shape (1, N, 1); received (N, C) = {scores.shape}.")
    if scores.rows != num_anchors:
        raise ValueError(f"scores has {scores.rows} rows but {num_anchors} anchors were generated.")
    if regressions.rows != num_anchors:
        raise ValueError(f"regressions has {regressions.rows} rows but {num_anchors} anchors were generated.")
    if regressions.cols < REGRESSION_PARAMS:
        raise ValueError(f"regressions must have at least {REGRESSION_PARAMS} columns; received {regressions.cols}.")


@jax.jit
def _decode_dense(
    logits: Float[Array, "num_anchors"],
    reg: Float[Array, "num_anchors 12"],
    anchors: Anchors,
    inv_size: Float[Array, "2"],
    min_score: Float[Array, ""],
) -> tuple[Array, Array, Array, Array]:
    """Decode every anchor at once so the compiled shape only depends on ``N``."""
    width_inv, height_inv = inv_size[0], inv_size[1]
    probabilities = jax.nn.sigmoid(logits)
    anchor_x, anchor_y = anchors[:, 0], anchors[:, 1]

    cx = reg[:, 0] * width_inv + anchor_x
    cy = reg[:, 1] * height_inv + anchor_y
    w = reg[:, 2] * width_inv
    h = reg[:, 3] * height_inv
    rects = jnp.stack((cx - w / 2, 1.0 - (cy + h / 2), w, h), axis=-1)

    point_x = reg[:, BOX_PARAMS::2] * width_inv + anchor_x[:, None]
    point_y = 1.0 - (reg[:, BOX_PARAMS + 1 :: 2] * height_inv + anchor_y[:, None])
    points = jnp.stack((point_x, point_y), axis=-1)
    return probabilities >= min_score, probabilities, rects, points


def decode_poses(
    scores: Any,
    regressions: Any,
    anchors: Anchors,
    *,
    min_score: float,
    input_size: Sequence[int],
    coordinate_mapper: CoordinateMapper | None = None,
) -> list[Candidate]:
    """Decode raw detector outputs into scored candidates.

    Args:
        scores: Classification logits shaped ``[1, N, 1]`` (or ``[N, 1]``).
        regressions: Box and keypoint regressions shaped ``[1, N, 12]``.
        anchors: Anchor centers shaped ``[N, 2]``.
        min_score: Minimum sigmoid score for a candidate to be emitted.
        input_size: Model input ``(width, height)`` in pixels.
        coordinate_mapper: Optional mapper applied to each decoded rectangle
            and keypoint.

    Returns:
        Candidates in anchor index order.

    Raises:
        ValueError: If tensor shapes do not match the anchor count or the
            regression layout.
    """
    anchors = jnp.asarray(anchors, dtype=jnp.float32)
    if anchors.ndim != 2 or anchors.shape[-1] != 2:
        raise ValueError(f"anchors must have shape (N, 2); received {anchors.shape}.")
    width, height = _as_input_size(input_size)
    score_tensor = StridedTensor.wrap(scores, name="scores")
    regression_tensor = StridedTensor.wrap(regressions, name="regressions")
    _validate_inputs(score_tensor, regression_tensor, anchors.shape[0])

    if anchors.shape[0] == 0:
        return []

    inv_size = jnp.asarray((1.0 / width, 1.0 / height), dtype=jnp.float32)
    mask, probabilities, rects, points = _decode_dense(
        score_tensor.to_array()[:, 0],
        regression_tensor.to_array()[:, :REGRESSION_PARAMS],
        anchors,
        inv_size,
        jnp.asarray(min_score, dtype=jnp.float32),
    )
    mask, probabilities, rects, points = jax.device_get((mask, probabilities, rects, points))
    keep = np.flatnonzero(mask)
    if keep.size == 0:
        logger.debug("No anchors reached min_score=%.3f", min_score)
        return []

    candidates = []
    for rect_row, point_rows, score in zip(rects[keep].tolist(), points[keep].tolist(), probabilities[keep].tolist()):
        box = Rect(*rect_row)
        keypoints = tuple(Point(*p) for p in point_rows)
        if coordinate_mapper is not None:
            box = coordinate_mapper.transform_rect(box, (width, height))
            keypoints = tuple(coordinate_mapper.transform_point(p, (width, height)) for p in keypoints)
        candidates.append(Candidate(box=box, score=score, points=keypoints))

    logger.debug("Decoded %d candidates from %d anchors", len(candidates), anchors.shape[0])
    return candidates


__all__ = ["Candidate", "NUM_KEYPOINTS", "REGRESSION_PARAMS", "decode_poses"]
