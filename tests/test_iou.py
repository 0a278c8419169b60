"""Tests for IoU computations."""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np
import pytest

from blazedet.models.utils import rect_iou
from blazedet.models.utils.iou import iou_row


def test_perfect_overlap_returns_one() -> None:
    rects = jnp.asarray([[0.0, 0.0, 2.0, 2.0]], dtype=jnp.float32)
    result = rect_iou(rects, rects)
    np.testing.assert_array_equal(result, np.ones((1, 1), dtype=np.float32))


def test_non_overlapping_rects_return_zero() -> None:
    rect_a = jnp.asarray([[0.0, 0.0, 1.0, 1.0]], dtype=jnp.float32)
    rect_b = jnp.asarray([[2.0, 2.0, 1.0, 1.0]], dtype=jnp.float32)
    np.testing.assert_array_equal(rect_iou(rect_a, rect_b), np.zeros((1, 1), dtype=np.float32))


def test_touching_edges_return_zero() -> None:
    rect_a = jnp.asarray([[0.0, 0.0, 1.0, 1.0]], dtype=jnp.float32)
    rect_b = jnp.asarray([[1.0, 0.0, 1.0, 1.0]], dtype=jnp.float32)
    np.testing.assert_array_equal(rect_iou(rect_a, rect_b), np.zeros((1, 1), dtype=np.float32))


def test_partial_overlap_matches_expected_value() -> None:
    rects1 = jnp.asarray([[0.0, 0.0, 2.0, 2.0]], dtype=jnp.float32)
    rects2 = jnp.asarray([[1.0, 1.0, 2.0, 2.0]], dtype=jnp.float32)
    expected = 1.0 / 7.0  # intersection=1, union=7
    np.testing.assert_allclose(rect_iou(rects1, rects2), np.full((1, 1), expected), rtol=1e-6, atol=1e-6)


def test_negative_origin_rects() -> None:
    """Decoded rects can start below zero after the vertical flip."""
    rects1 = jnp.asarray([[-1.0, -1.0, 2.0, 2.0]], dtype=jnp.float32)
    rects2 = jnp.asarray([[0.0, 0.0, 2.0, 2.0]], dtype=jnp.float32)
    np.testing.assert_allclose(rect_iou(rects1, rects2), np.full((1, 1), 1.0 / 7.0), rtol=1e-6)


def test_vectorized_pairwise_result_matches_manual_loop() -> None:
    rects1 = np.asarray(
        [
            [0.0, 0.0, 2.0, 2.0],
            [1.0, 1.0, 3.0, 3.0],
        ],
        dtype=np.float32,
    )
    rects2 = np.asarray(
        [
            [0.5, 0.5, 1.0, 1.0],
            [2.0, 2.0, 1.0, 1.5],
            [4.0, 4.0, 1.0, 1.0],
        ],
        dtype=np.float32,
    )
    result = np.asarray(rect_iou(rects1, rects2))

    def manual_iou(rect_a: np.ndarray, rect_b: np.ndarray) -> float:
        xa, ya, wa, ha = rect_a
        xb, yb, wb, hb = rect_b
        inter_w = max(0.0, min(xa + wa, xb + wb) - max(xa, xb))
        inter_h = max(0.0, min(ya + ha, yb + hb) - max(ya, yb))
        inter = inter_w * inter_h
        union = wa * ha + wb * hb - inter
        return inter / union if union > 0.0 else 0.0

    expected = np.empty_like(result)
    for i, rect_a in enumerate(rects1):
        for j, rect_b in enumerate(rects2):
            expected[i, j] = manual_iou(rect_a, rect_b)

    np.testing.assert_allclose(result, expected, rtol=1e-6, atol=1e-6)


@pytest.mark.parametrize(
    "degenerate",
    [
        [1.0, 1.0, 0.0, 2.0],
        [1.0, 1.0, 2.0, 0.0],
        [0.0, 0.0, 0.0, 0.0],
    ],
)
def test_zero_area_rects_produce_zero_iou(degenerate: list[float]) -> None:
    zero_rect = jnp.asarray([degenerate], dtype=jnp.float32)
    normal_rect = jnp.asarray([[0.0, 0.0, 3.0, 3.0]], dtype=jnp.float32)
    np.testing.assert_array_equal(rect_iou(zero_rect, normal_rect), np.zeros((1, 1), dtype=np.float32))
    np.testing.assert_array_equal(rect_iou(zero_rect, zero_rect), np.zeros((1, 1), dtype=np.float32))


def test_iou_symmetry_property(rng: np.random.Generator) -> None:
    rects_a = rng.uniform(0.0, 1.0, size=(6, 4)).astype(np.float32)
    rects_b = rng.uniform(0.0, 1.0, size=(4, 4)).astype(np.float32)
    iou_ab = np.asarray(rect_iou(rects_a, rects_b))
    iou_ba = np.asarray(rect_iou(rects_b, rects_a))
    np.testing.assert_allclose(iou_ab, iou_ba.T, rtol=1e-6, atol=1e-6)
    assert np.all((iou_ab >= 0.0) & (iou_ab <= 1.0))


def test_empty_inputs_return_empty_matrix() -> None:
    rects = jnp.asarray([[0.0, 0.0, 1.0, 1.0]], dtype=jnp.float32)
    assert rect_iou(jnp.zeros((0, 4)), rects).shape == (0, 1)


def test_invalid_shape_raises() -> None:
    with pytest.raises(ValueError, match="must have shape"):
        rect_iou(jnp.zeros((2, 3)), jnp.zeros((2, 4)))


def test_identical_fractional_rects_do_not_exceed_one(rng: np.random.Generator) -> None:
    xy = rng.uniform(0.0, 1.0, size=(64, 2))
    wh = rng.uniform(0.01, 0.7, size=(64, 2))
    rects = np.concatenate((xy, wh), axis=-1).astype(np.float32)

    ious = np.asarray(rect_iou(rects, rects))

    assert np.all((ious >= 0.0) & (ious <= 1.0))
    np.testing.assert_allclose(np.diag(ious), np.ones(64, dtype=np.float32), rtol=0, atol=1e-6)


def test_iou_row_matches_pairwise_matrix(rng: np.random.Generator) -> None:
    rects = np.concatenate((rng.uniform(0.0, 0.8, (10, 2)), rng.uniform(0.05, 0.4, (10, 2))), axis=-1).astype(np.float32)
    matrix = np.asarray(rect_iou(rects, rects))
    for index in range(rects.shape[0]):
        np.testing.assert_array_equal(np.asarray(iou_row(jnp.asarray(rects[index]), jnp.asarray(rects))), matrix[index])
