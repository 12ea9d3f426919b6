"""Zero-copy matrix views used by the forward and backward passes.

Each view wraps an existing 2-D array and exposes the same small matrix
surface (``shape``, ``dims``, ``at``, ``materialize``, ``matmul`` and the numpy
``__array__`` protocol) without building the logical matrix up front:

``BiasAugmentedView``
    ``[1 | x]``: a constant column of ones prepended to ``x``. Multiplying it
    by weights whose row 0 holds the biases folds the bias into one product.
``MappedView``
    ``f(x)`` evaluated per element on read.
``TrimmedTransposeView``
    ``W[1:].T``: the transpose of a weight matrix with its bias row dropped.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from .types import Array, Shape


class MatrixView:
    """Base wrapper; subclasses define the logical matrix over ``base``."""

    __slots__ = ("base",)

    def __init__(self, base: Array) -> None:
        if np.ndim(base) != 2:
            raise ValueError(f"views wrap 2-D arrays, got shape {np.shape(base)}")
        self.base = base

    @property
    def shape(self) -> Shape:
        raise NotImplementedError

    def dims(self) -> Shape:
        return self.shape

    def at(self, row: int, col: int) -> float:
        raise NotImplementedError

    def materialize(self, out: Array | None = None) -> Array:
        raise NotImplementedError

    def matmul(self, other: Array, out: Array | None = None) -> Array:
        return np.matmul(self.materialize(), np.asarray(other), out=out)

    def __array__(self, dtype=None, copy=None) -> Array:
        array = self.materialize()
        if dtype is not None:
            array = array.astype(dtype, copy=False)
        return array

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape})"


class BiasAugmentedView(MatrixView):
    """``[1 | x]`` with logical shape ``(n, d + 1)``."""

    __slots__ = ()

    @property
    def shape(self) -> Shape:
        rows, cols = self.base.shape
        return rows, cols + 1

    def at(self, row: int, col: int) -> float:
        if col == 0:
            return 1.0
        return float(self.base[row, col - 1])

    def materialize(self, out: Array | None = None) -> Array:
        if out is None:
            out = np.empty(self.shape, dtype=np.float64)
        out[:, 0] = 1.0
        out[:, 1:] = self.base
        return out

    def matmul(self, other: Array, out: Array | None = None) -> Array:
        """Return ``[1 | x] @ other`` as ``x @ other[1:] + other[0]``."""

        if other.shape[0] != self.shape[1]:
            raise ValueError(
                f"cannot multiply {self.shape} by {other.shape}: bias row missing?"
            )
        out = np.matmul(self.base, other[1:], out=out)
        out += other[0]
        return out

    def tmatmul(self, other: Array, out: Array | None = None) -> Array:
        """Return ``[1 | x].T @ other``; row 0 is the column sum of ``other``."""

        rows, cols = self.shape
        if other.shape[0] != rows:
            raise ValueError(f"cannot multiply {(cols, rows)} by {other.shape}")
        if out is None:
            out = np.empty((cols, other.shape[1]), dtype=np.float64)
        np.sum(other, axis=0, out=out[0])
        np.matmul(self.base.T, other, out=out[1:])
        return out


class MappedView(MatrixView):
    """``func`` applied elementwise to ``base`` whenever it is read."""

    __slots__ = ("func",)

    def __init__(self, base: Array, func: Callable[..., Array]) -> None:
        super().__init__(base)
        self.func = func

    @property
    def shape(self) -> Shape:
        return self.base.shape

    def at(self, row: int, col: int) -> float:
        return float(self.func(np.asarray(self.base[row, col], dtype=np.float64)))

    def materialize(self, out: Array | None = None) -> Array:
        """Evaluate ``func`` over the whole base; ``out`` may alias ``base``."""

        return self.func(self.base, out=out)


class TrimmedTransposeView(MatrixView):
    """``W[1:].T`` for a weight matrix ``W`` of shape ``(1 + inputs, outputs)``."""

    __slots__ = ()

    @property
    def shape(self) -> Shape:
        rows, cols = self.base.shape
        return cols, rows - 1

    def at(self, row: int, col: int) -> float:
        return float(self.base[col + 1, row])

    def materialize(self, out: Array | None = None) -> Array:
        trimmed = self.base[1:].T
        if out is None:
            return trimmed
        np.copyto(out, trimmed)
        return out

    def matmul(self, other: Array, out: Array | None = None) -> Array:
        return np.matmul(self.base[1:].T, other, out=out)

    def rmatmul(self, other: Array, out: Array | None = None) -> Array:
        """Return ``other @ W[1:].T`` without copying the weights."""

        return np.matmul(other, self.base[1:].T, out=out)


__all__ = ["BiasAugmentedView", "MappedView", "MatrixView", "TrimmedTransposeView"]
