"""Row/column view over detector output tensors.

The detector emits tensors of logical shape ``[1, N, C]``. :class:`StridedTensor`
drops the unit batch axis and exposes the data as an ``N x C`` matrix with
bounds-checked element access, independent of the array library that
produced it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float


class StridedTensor:
    """Read-only ``rows x cols`` view over a flat ``float32`` buffer.

    Args:
        data: Array-like of shape ``(1, rows, cols)`` or ``(rows, cols)``.
        name: Name used in error messages.

    Raises:
        ValueError: If ``data`` has an unsupported rank or a batch size other
            than one.
    """

    def __init__(self, data: Any, *, name: str = "tensor") -> None:
        array = np.asarray(data, dtype=np.float32)
        if array.ndim == 3:
            if array.shape[0] != 1:
                raise ValueError(f"{name} must have a batch size of 1; received shape {array.shape}.")
            array = array[0]
        elif array.ndim != 2:
            raise ValueError(f"{name} must have shape (1, N, C) or (N, C); received shape {array.shape}.")
        self._name = name
        self._rows, self._cols = array.shape
        self._buffer = np.array(array, dtype=np.float32).reshape(-1)
        self._buffer.flags.writeable = False

    @classmethod
    def wrap(cls, data: Any, *, name: str = "tensor") -> StridedTensor:
        """Return ``data`` unchanged if it is already a :class:`StridedTensor`."""
        if isinstance(data, StridedTensor):
            return data
        return cls(data, name=name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def shape(self) -> tuple[int, int]:
        return self._rows, self._cols

    def get(self, row: int, col: int) -> float:
        """Return the element at ``(row, col)``."""
        if not 0 <= row < self._rows:
            raise IndexError(f"{self._name} row {row} out of range for {self._rows} rows.")
        if not 0 <= col < self._cols:
            raise IndexError(f"{self._name} column {col} out of range for {self._cols} columns.")
        return float(self._buffer[row * self._cols + col])

    def row(self, row: int) -> Sequence[float]:
        """Return a copy of one row as a list of Python floats."""
        if not 0 <= row < self._rows:
            raise IndexError(f"{self._name} row {row} out of range for {self._rows} rows.")
        start = row * self._cols
        return self._buffer[start : start + self._cols].tolist()

    def to_array(self) -> Float[Array, "rows cols"]:
        """Return the tensor as a JAX array of shape ``(rows, cols)``."""
        return jnp.asarray(self._buffer.reshape(self._rows, self._cols))

    def __repr__(self) -> str:
        return f"StridedTensor(name={self._name!r}, shape={self.shape})"


__all__ = ["StridedTensor"]
