"""Intersection-over-Union utilities for ``(x, y, width, height)`` rectangles.

The computation is vectorized with :func:`jax.vmap`. :func:`rect_iou` returns
the full pairwise IoU matrix between two rectangle sets; :func:`iou_row`
compares one rectangle against a set. Rectangles with zero (or
negative) area have an IoU of ``0`` against every rectangle, including
themselves.
"""

from __future__ import annotations

from typing import Any

import jax
import jax.numpy as jnp
from jaxtyping import Array, Float

Rects = Float[Array, "num_rects 4"]
IoUMatrix = Float[Array, "num_rects1 num_rects2"]


def _rect_area(rect: Float[Array, 4]) -> Float[Array, ""]:
    """Compute the non-negative area of a single rectangle."""
    return jnp.maximum(0.0, rect[2]) * jnp.maximum(0.0, rect[3])


def _intersection(rect1: Float[Array, 4], rect2: Float[Array, 4]) -> Float[Array, ""]:
    """Return the intersection area of a rectangle pair."""
    x1 = jnp.maximum(rect1[0], rect2[0])
    y1 = jnp.maximum(rect1[1], rect2[1])
    x2 = jnp.minimum(rect1[0] + rect1[2], rect2[0] + rect2[2])
    y2 = jnp.minimum(rect1[1] + rect1[3], rect2[1] + rect2[3])
    return jnp.maximum(0.0, x2 - x1) * jnp.maximum(0.0, y2 - y1)


def _pair_iou(
    rect1: Float[Array, 4],
    area1: Float[Array, ""],
    rect2: Float[Array, 4],
    area2: Float[Array, ""],
) -> Float[Array, ""]:
    """Return the IoU of a rectangle pair, bounded to ``[0, 1]``."""
    # Edge differences round differently from w * h; cap the overlap at the smaller area.
    intersection = jnp.minimum(_intersection(rect1, rect2), jnp.minimum(area1, area2))
    union = area1 + area2 - intersection
    valid = (area1 > 0.0) & (area2 > 0.0) & (union > 0.0)
    return jnp.where(valid, intersection / jnp.where(valid, union, 1.0), 0.0)


def iou_row(rect: Float[Array, 4], rects: Rects) -> Float[Array, "num_rects"]:
    """Compute the IoU of one rectangle against every rectangle in ``rects``."""
    area = _rect_area(rect)
    areas = jax.vmap(_rect_area)(rects)
    return jax.vmap(_pair_iou, in_axes=(None, None, 0, 0))(rect, area, rects, areas)


def _validate_rects(name: str, rects: jnp.ndarray) -> Rects:
    """Validate rectangle tensor shape."""
    if rects.ndim != 2 or rects.shape[-1] != 4:
        raise ValueError(f"{name} must have shape (N, 4); received {rects.shape}.")
    return rects


def rect_iou(rects1: Rects, rects2: Rects) -> IoUMatrix:
    """Compute the pairwise Intersection-over-Union between two rectangle sets."""
    rects1 = _validate_rects("rects1", jnp.asarray(rects1, dtype=jnp.float32))
    rects2 = _validate_rects("rects2", jnp.asarray(rects2, dtype=jnp.float32))

    if rects1.shape[0] == 0 or rects2.shape[0] == 0:
        return jnp.zeros((rects1.shape[0], rects2.shape[0]), dtype=jnp.float32)

    areas1 = jax.vmap(_rect_area)(rects1)
    areas2 = jax.vmap(_rect_area)(rects2)

    def pairwise(rect1: Float[Array, 4], area1: Float[Array, ""]) -> Any:
        return jax.vmap(_pair_iou, in_axes=(None, None, 0, 0))(rect1, area1, rects2, areas2)

    return jax.vmap(pairwise, in_axes=(0, 0))(rects1, areas1)


__all__ = ["iou_row", "rect_iou"]
