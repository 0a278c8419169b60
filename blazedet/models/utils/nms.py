"""Greedy non-maximum suppression utilities.

Rectangles are visited in descending score order (stable for ties, so equal
scores keep their input order). Each rectangle not yet suppressed is kept and
suppresses every remaining rectangle whose IoU with it is strictly greater
than the threshold. The loop is expressed with JAX control flow primitives
and compiled once per padded input size: inputs are padded to a fixed length
(a power of two by default) and the padding is masked out.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import NamedTuple, Protocol

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Bool, Float, Int

from .geometry import Rect
from .iou import iou_row

logger = logging.getLogger(__name__)

Rects = Float[Array, "num_rects 4"]
Scores = Float[Array, "num_rects"]
Indices = Int[Array, "num_rects"]
CountScalar = Int[Array, ""]

_NEGATIVE_ONE = -1
_MIN_PADDED_SIZE = 8


class NMSResult(NamedTuple):
    """Container for NMS outputs.

    Attributes:
        indices: Indices of the kept rectangles in descending score order. The
            array has one slot per input rectangle; unused slots hold ``-1``.
        valid_count: Number of kept rectangles.
    """

    indices: Indices
    valid_count: CountScalar

    def kept(self) -> list[int]:
        """Return the kept indices as Python integers."""
        count = int(self.valid_count)
        return [int(i) for i in jax.device_get(self.indices[:count])]


class ScoredBox(Protocol):
    """Anything exposing a ``box`` rectangle and a ``score``."""

    @property
    def box(self) -> Rect: ...

    @property
    def score(self) -> float: ...


def _validate_threshold(iou_threshold: float) -> None:
    if not 0.0 <= iou_threshold <= 1.0:
        raise ValueError(f"iou_threshold must lie in [0, 1]; received {iou_threshold}.")


def padded_size(num_rects: int) -> int:
    """Return the power-of-two length ``num_rects`` rectangles are padded to."""
    return max(_MIN_PADDED_SIZE, 1 << max(num_rects - 1, 0).bit_length())


@jax.jit
def _nms_padded(
    rects: Rects,
    scores: Scores,
    valid: Bool[Array, "num_rects"],
    iou_threshold: Float[Array, ""],
) -> tuple[Indices, CountScalar]:
    """Run greedy NMS over a padded rectangle set; invalid slots are never kept."""
    num_rects = rects.shape[0]
    num_valid = jnp.sum(valid, dtype=jnp.int32)
    # Padding trails the real entries, so the stable sort keeps it last.
    sort_keys = jnp.where(valid, -scores, jnp.inf)
    sorted_indices = jnp.argsort(sort_keys, stable=True).astype(jnp.int32)

    suppressed = jnp.logical_not(valid)
    kept_indices = jnp.full((num_rects,), _NEGATIVE_ONE, dtype=jnp.int32)

    def cond_fn(state: tuple[Int[Array, ""], Int[Array, ""], Array, Array]) -> Array:
        i, _, _, _ = state
        return i < num_valid

    def body_fn(state: tuple[Int[Array, ""], Int[Array, ""], Array, Array]) -> tuple[Int[Array, ""], Int[Array, ""], Array, Array]:
        i, kept_count, suppressed_mask, kept = state
        current_index = jax.lax.dynamic_index_in_dim(sorted_indices, i, axis=0, keepdims=False)

        def skip_fn(
            operand: tuple[Int[Array, ""], Int[Array, ""], Array, Array, Int[Array, ""]],
        ) -> tuple[Int[Array, ""], Int[Array, ""], Array, Array]:
            idx_i, count, mask, selected, _ = operand
            return idx_i + 1, count, mask, selected

        def select_fn(
            operand: tuple[Int[Array, ""], Int[Array, ""], Array, Array, Int[Array, ""]],
        ) -> tuple[Int[Array, ""], Int[Array, ""], Array, Array]:
            idx_i, count, mask, selected, candidate = operand
            candidate_rect = jax.lax.dynamic_index_in_dim(rects, candidate, axis=0, keepdims=False)
            candidate_ious = iou_row(candidate_rect, rects)
            new_mask = jnp.logical_or(mask, candidate_ious > iou_threshold)
            new_mask = new_mask.at[candidate].set(True)
            new_selected = selected.at[count].set(candidate)
            return idx_i + 1, count + 1, new_mask, new_selected

        current_suppressed = jax.lax.dynamic_index_in_dim(suppressed_mask, current_index, axis=0, keepdims=False)
        return jax.lax.cond(
            current_suppressed,
            skip_fn,
            select_fn,
            (i, kept_count, suppressed_mask, kept, current_index),
        )

    initial_state = (
        jnp.asarray(0, dtype=jnp.int32),
        jnp.asarray(0, dtype=jnp.int32),
        suppressed,
        kept_indices,
    )
    _, valid_count, _, final_indices = jax.lax.while_loop(cond_fn, body_fn, initial_state)
    return final_indices, valid_count


def nms(rects: Rects, scores: Scores, iou_threshold: float = 0.3, *, pad_to: int | None = None) -> NMSResult:
    """Run greedy non-maximum suppression.

    Args:
        rects: Rectangles in ``(x, y, width, height)`` format, shape ``(N, 4)``.
        scores: Confidence scores with shape ``(N,)``.
        iou_threshold: Rectangles with ``IoU > iou_threshold`` against a kept
            rectangle are removed.
        pad_to: Length the inputs are padded to before running the compiled
            loop. Defaults to the next power of two. Callers with a known upper
            bound (e.g. the anchor count) can pass it to compile only once.

    Returns:
        An :class:`NMSResult` with kept indices sorted by descending score.
    """
    rects = np.asarray(rects, dtype=np.float32)
    scores = np.asarray(scores, dtype=np.float32)

    if rects.ndim != 2 or rects.shape[-1] != 4:
        raise ValueError(f"rects must have shape (N, 4); received {rects.shape}.")
    if scores.ndim != 1 or scores.shape[0] != rects.shape[0]:
        raise ValueError(f"scores must have shape (N,); received {scores.shape} for {rects.shape[0]} rects.")
    _validate_threshold(iou_threshold)

    num_rects = rects.shape[0]
    if num_rects == 0:
        return NMSResult(indices=jnp.zeros((0,), dtype=jnp.int32), valid_count=jnp.asarray(0, dtype=jnp.int32))

    size = padded_size(num_rects) if pad_to is None else int(pad_to)
    if size < num_rects:
        raise ValueError(f"pad_to must be at least the number of rects ({num_rects}); received {pad_to}.")
    padded_rects = np.zeros((size, 4), dtype=np.float32)
    padded_rects[:num_rects] = rects
    padded_scores = np.zeros((size,), dtype=np.float32)
    padded_scores[:num_rects] = scores
    valid = np.arange(size) < num_rects

    indices, valid_count = _nms_padded(padded_rects, padded_scores, valid, jnp.asarray(iou_threshold, dtype=jnp.float32))
    return NMSResult(indices=indices[:num_rects], valid_count=valid_count)


def suppress(candidates: Sequence[ScoredBox], max_iou: float, *, pad_to: int | None = None) -> list[int]:
    """Return the indices of the candidates that survive greedy NMS.

    Args:
        candidates: Objects exposing ``box`` (a :class:`Rect`) and ``score``.
        max_iou: Maximum IoU allowed between two retained candidates.
        pad_to: Forwarded to :func:`nms`.

    Returns:
        Indices into ``candidates`` in descending score order.
    """
    _validate_threshold(max_iou)
    if len(candidates) == 0:
        return []
    rects = np.asarray([tuple(candidate.box) for candidate in candidates], dtype=np.float32)
    scores = np.asarray([candidate.score for candidate in candidates], dtype=np.float32)
    kept = nms(rects, scores, iou_threshold=max_iou, pad_to=pad_to).kept()
    logger.debug("NMS kept %d of %d candidates (max_iou=%.3f)", len(kept), len(candidates), max_iou)
    return kept


__all__ = ["NMSResult", "ScoredBox", "nms", "padded_size", "suppress"]
