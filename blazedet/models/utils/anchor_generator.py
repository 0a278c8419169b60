"""Anchor center generator for single-stage BlazePose-style detectors.

Anchors are laid out on one feature grid per distinct stride. Consecutive
layers that share a stride are merged into a single grid whose cells carry
two anchors per merged layer: one at the layer's own scale and one at the
geometric mean of that scale and the next layer's scale. Only anchor centers
are materialised, in normalised ``[0, 1]`` image coordinates, because the
detector regresses box sizes directly rather than relative to anchor size.

Key features:
    * Deterministic, purely functional generation (no global state).
    * Row-major cell ordering that matches the detector's output tensor rows.
    * Both functional and object-oriented APIs, mirroring each other.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import jax.numpy as jnp
from jaxtyping import Array, Float

logger = logging.getLogger(__name__)

Anchors = Float[Array, "num_anchors 2"]

DEFAULT_STRIDES: tuple[int, ...] = (8, 16, 16, 16)
DEFAULT_MIN_SCALE = 0.1484375
DEFAULT_MAX_SCALE = 0.75


def _layer_scale(min_scale: float, max_scale: float, stride_index: int, stride_count: int) -> float:
    """Linearly interpolate the anchor scale of one layer."""
    if stride_count == 1:
        return (min_scale + max_scale) * 0.5
    return min_scale + (max_scale - min_scale) * stride_index / (stride_count - 1.0)


def _clip01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


@dataclass(frozen=True, kw_only=True)
class AnchorGenerator:
    """Generator for normalised anchor centers over a stride schedule.

    Attributes:
        strides: Downsampling factor of each detector layer, in output order.
        min_scale: Scale of the first layer.
        max_scale: Scale of the last layer.
        base_aspect: Anchor aspect ratio. Kept for configuration parity; it
            does not influence anchor centers.

    Notes:
        * Every cell of a stride group with ``k`` layers receives ``2 * k``
          identical anchor centers, one per emitted scale.
        * Anchor centers sit at ``((i + 0.5) / feat_w, (j + 0.5) / feat_h)``.
    """

    strides: Sequence[int] = DEFAULT_STRIDES
    min_scale: float = DEFAULT_MIN_SCALE
    max_scale: float = DEFAULT_MAX_SCALE
    base_aspect: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        object.__setattr__(self, "strides", tuple(int(s) for s in self.strides))
        if any(s <= 0 for s in self.strides):
            raise ValueError(f"strides must be positive; received {self.strides}.")
        for name in ("min_scale", "max_scale"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must lie in (0, 1]; received {value}.")
        if self.base_aspect <= 0:
            raise ValueError(f"base_aspect must be positive; received {self.base_aspect}.")

    def stride_groups(self) -> tuple[tuple[int, int, int], ...]:
        """Return ``(stride, layer_start, layer_count)`` for each stride group."""
        groups = []
        layer = 0
        while layer < len(self.strides):
            last = layer
            while last < len(self.strides) and self.strides[last] == self.strides[layer]:
                last += 1
            groups.append((self.strides[layer], layer, last - layer))
            layer = last
        return tuple(groups)

    def scales_for_group(self, layer_start: int, layer_count: int) -> tuple[float, ...]:
        """Return the ``2 * layer_count`` scales emitted for one stride group."""
        stride_count = len(self.strides)
        scales = []
        for layer in range(layer_start, layer_start + layer_count):
            scale = _layer_scale(self.min_scale, self.max_scale, layer, stride_count)
            next_scale = _clip01(_layer_scale(self.min_scale, self.max_scale, layer + 1, stride_count))
            scales.append(scale)
            scales.append(math.sqrt(scale * next_scale))
        return tuple(scales)

    def num_anchors(self, input_width: int, input_height: int) -> int:
        """Return the anchor count for an input resolution without generating."""
        _validate_input_size(input_width, input_height)
        total = 0
        for stride, _, layer_count in self.stride_groups():
            total += 2 * layer_count * math.ceil(input_width / stride) * math.ceil(input_height / stride)
        return total

    def generate(self, input_width: int, input_height: int) -> Anchors:
        """Generate anchor centers for a model input resolution.

        Args:
            input_width: Model input width in pixels.
            input_height: Model input height in pixels.

        Returns:
            ``float32`` array of shape ``[N, 2]`` holding ``(x, y)`` centers,
            concatenated in stride-schedule order.
        """
        _validate_input_size(input_width, input_height)
        per_group = []
        for stride, layer_start, layer_count in self.stride_groups():
            scales = self.scales_for_group(layer_start, layer_count)
            per_group.append(self._generate_group_centers(input_width, input_height, stride, len(scales)))

        anchors = jnp.concatenate(per_group, axis=0) if per_group else jnp.zeros((0, 2), dtype=jnp.float32)
        logger.debug("Generated %d anchors for %dx%d input over strides %s", anchors.shape[0], input_width, input_height, self.strides)
        return anchors

    @staticmethod
    def _generate_group_centers(
        input_width: int,
        input_height: int,
        stride: int,
        anchors_per_cell: int,
    ) -> Anchors:
        """Generate centers for one stride group, repeated per cell."""
        feature_width = math.ceil(input_width / stride)
        feature_height = math.ceil(input_height / stride)

        grid_x = (jnp.arange(feature_width, dtype=jnp.float32) + 0.5) / feature_width
        grid_y = (jnp.arange(feature_height, dtype=jnp.float32) + 0.5) / feature_height
        centers_x, centers_y = jnp.meshgrid(grid_x, grid_y, indexing="xy")
        centers = jnp.stack((centers_x.reshape(-1), centers_y.reshape(-1)), axis=-1)
        return jnp.repeat(centers, anchors_per_cell, axis=0)


def _validate_input_size(input_width: int, input_height: int) -> None:
    if input_width <= 0 or input_height <= 0:
        raise ValueError(f"Input size must be positive, got ({input_width}, {input_height}).")


def generate_anchors(
    input_width: int,
    input_height: int,
    strides: Sequence[int] = DEFAULT_STRIDES,
    min_scale: float = DEFAULT_MIN_SCALE,
    max_scale: float = DEFAULT_MAX_SCALE,
    base_aspect: float = 1.0,
) -> Anchors:
    """Functional API for anchor generation.

    Args:
        input_width: Model input width in pixels.
        input_height: Model input height in pixels.
        strides: Stride of each detector layer.
        min_scale: Scale of the first layer.
        max_scale: Scale of the last layer.
        base_aspect: Anchor aspect ratio (unused by center computation).

    Returns:
        All anchor centers with shape ``[N, 2]``.
    """
    generator = AnchorGenerator(
        strides=strides,
        min_scale=min_scale,
        max_scale=max_scale,
        base_aspect=base_aspect,
    )
    return generator.generate(input_width, input_height)


__all__ = [
    "AnchorGenerator",
    "Anchors",
    "DEFAULT_MAX_SCALE",
    "DEFAULT_MIN_SCALE",
    "DEFAULT_STRIDES",
    "generate_anchors",
]
