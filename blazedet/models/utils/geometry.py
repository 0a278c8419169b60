"""Geometry primitives shared by the decoder, suppressor and detector.

Rectangles follow a bottom-left origin convention and are stored as
``(x, y, width, height)`` in normalised image coordinates. The optional
:class:`CoordinateMapper` lets a host imaging layer move decoded geometry
into another coordinate space (e.g. to undo letterboxing).
"""

from __future__ import annotations

from typing import NamedTuple, Protocol, runtime_checkable

import jax.numpy as jnp
from jaxtyping import Array, Float

RectArray = Float[Array, "num_rects 4"]


class Point(NamedTuple):
    """2D point in normalised image coordinates."""

    x: float
    y: float


class Rect(NamedTuple):
    """Axis-aligned rectangle with a bottom-left origin."""

    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + 0.5 * self.width, self.y + 0.5 * self.height)


@runtime_checkable
class CoordinateMapper(Protocol):
    """Maps normalised detector geometry into the caller's coordinate space.

    Both methods receive the ``(width, height)`` of the model input so that
    implementations can undo any aspect-ratio padding applied before inference.
    """

    def transform_rect(self, rect: Rect, input_size: tuple[int, int]) -> Rect: ...

    def transform_point(self, point: Point, input_size: tuple[int, int]) -> Point: ...


def rects_to_array(rects: list[Rect] | tuple[Rect, ...]) -> RectArray:
    """Stack rectangles into a ``float32`` ``[N, 4]`` array."""
    if len(rects) == 0:
        return jnp.zeros((0, 4), dtype=jnp.float32)
    return jnp.asarray([tuple(rect) for rect in rects], dtype=jnp.float32)


__all__ = ["CoordinateMapper", "Point", "Rect", "RectArray", "rects_to_array"]
