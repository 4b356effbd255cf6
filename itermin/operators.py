"""
Linear operators consumed by the iterative linear solvers.

An operator only has to know its ``shape`` and how to ``apply`` itself to a
vector, so dense arrays, SciPy sparse matrices or fully implicit operators can
all drive the same solvers. Preconditioners expose ``precondition(v)`` which
approximates ``M^{-1} v`` for some preconditioning matrix ``M``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np

from .core import Array, DimensionMismatchError


class LinearOperator(ABC):
    """Matrix-like object that can be applied to a vector."""

    @property
    @abstractmethod
    def shape(self) -> tuple[int, int]:
        """``(rows, columns)`` of the represented matrix."""

    @abstractmethod
    def apply(self, v: Array) -> Array:
        """Return ``A @ v``."""

    @property
    def is_square(self) -> bool:
        rows, cols = self.shape
        return rows == cols

    def __call__(self, v: Array) -> Array:
        return self.apply(v)


def _snapshot_matrix(matrix: Any) -> Any:
    """Copy ``matrix`` once so later caller mutations cannot reach a solve."""
    if isinstance(matrix, np.ndarray):
        mat = np.array(matrix, dtype=float, copy=True)
    elif hasattr(matrix, "shape") and hasattr(matrix, "__matmul__"):
        mat = matrix.copy() if hasattr(matrix, "copy") else matrix
    else:
        mat = np.array(matrix, dtype=float, copy=True)
    if len(mat.shape) != 2:
        raise DimensionMismatchError(
            f"Operator matrix must be two-dimensional, got shape {mat.shape}"
        )
    return mat


class MatrixOperator(LinearOperator):
    """Operator backed by an explicit (dense or sparse) matrix."""

    def __init__(self, matrix: Any):
        self._matrix = _snapshot_matrix(matrix)

    @property
    def matrix(self) -> Any:
        return self._matrix

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self._matrix.shape
        return int(rows), int(cols)

    def apply(self, v: Array) -> Array:
        return np.asarray(self._matrix @ v, dtype=float).reshape(-1)

    def apply_transpose(self, v: Array) -> Array:
        return np.asarray(self._matrix.T @ v, dtype=float).reshape(-1)


class TransposeOperator(MatrixOperator):
    """Applies ``A^T`` without materializing the transposed matrix."""

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self._matrix.shape
        return int(cols), int(rows)

    def apply(self, v: Array) -> Array:
        return MatrixOperator.apply_transpose(self, v)

    def apply_transpose(self, v: Array) -> Array:
        return MatrixOperator.apply(self, v)


class OverconstrainedOperator(MatrixOperator):
    """
    Tall matrix (rows >= columns) for least-squares solves.

    Used by the normal-equation conjugate gradient, which needs both ``A v``
    and ``A^T u``.
    """

    def __init__(self, matrix: Any):
        super().__init__(matrix)
        rows, cols = self.shape
        if rows < cols:
            raise DimensionMismatchError(
                f"Over-constrained operator needs rows >= columns, got {rows}x{cols}"
            )


class UnderconstrainedOperator(MatrixOperator):
    """Wide matrix (rows <= columns) for minimum-norm solves."""

    def __init__(self, matrix: Any):
        super().__init__(matrix)
        rows, cols = self.shape
        if rows > cols:
            raise DimensionMismatchError(
                f"Under-constrained operator needs rows <= columns, got {rows}x{cols}"
            )


class Preconditioner(ABC):
    """Approximate inverse ``M^{-1}`` used to accelerate conjugate gradient."""

    @abstractmethod
    def precondition(self, v: Array) -> Array:
        """Return an approximation of ``M^{-1} v``."""


class IdentityPreconditioner(Preconditioner):
    """``M = I``; preconditioned CG reduces to plain CG."""

    def precondition(self, v: Array) -> Array:
        return np.array(v, dtype=float, copy=True)


class DiagonalPreconditioner(Preconditioner):
    """Jacobi preconditioner ``M = diag(A)``."""

    def __init__(self, diagonal: Any):
        diag = np.array(diagonal, dtype=float, copy=True).reshape(-1)
        if np.any(diag == 0.0):
            raise ValueError("Diagonal preconditioner requires a non-zero diagonal.")
        self._inverse = 1.0 / diag

    @classmethod
    def from_matrix(cls, matrix: Any) -> "DiagonalPreconditioner":
        if isinstance(matrix, MatrixOperator):
            matrix = matrix.matrix
        return cls(matrix.diagonal())

    @property
    def size(self) -> int:
        return int(self._inverse.size)

    def precondition(self, v: Array) -> Array:
        return self._inverse * v


class PreconditionedOperator(LinearOperator, Preconditioner):
    """Operator carrying its own preconditioner."""

    def __init__(
        self,
        operator: Any,
        preconditioner: Optional[Preconditioner] = None,
    ):
        self._operator = as_operator(operator)
        if preconditioner is None:
            preconditioner = IdentityPreconditioner()
        if (
            isinstance(preconditioner, DiagonalPreconditioner)
            and preconditioner.size != self._operator.shape[1]
        ):
            raise DimensionMismatchError(
                f"Preconditioner size {preconditioner.size} does not match "
                f"operator shape {self._operator.shape}"
            )
        self._preconditioner = preconditioner

    @classmethod
    def jacobi(cls, matrix: Any) -> "PreconditionedOperator":
        """Wrap ``matrix`` with its diagonal as preconditioner."""
        operator = as_operator(matrix)
        if not isinstance(operator, MatrixOperator):
            raise TypeError("Jacobi preconditioning needs an explicit matrix.")
        return cls(operator, DiagonalPreconditioner.from_matrix(operator))

    @property
    def shape(self) -> tuple[int, int]:
        return self._operator.shape

    def apply(self, v: Array) -> Array:
        return self._operator.apply(v)

    def precondition(self, v: Array) -> Array:
        return self._preconditioner.precondition(v)


class CountingOperator(LinearOperator):
    """
    Intercepts ``apply`` and counts how often it is called.

    ``apply_transpose`` is only exposed when the wrapped operator has one, and
    a wrapped preconditioner stays reachable through
    :func:`find_preconditioner`.
    """

    def __init__(self, operator: Any):
        self._operator = as_operator(operator)
        self.count = 0
        if hasattr(self._operator, "apply_transpose"):
            self.apply_transpose = self._apply_transpose

    @property
    def operator(self) -> LinearOperator:
        return self._operator

    @property
    def shape(self) -> tuple[int, int]:
        return self._operator.shape

    def apply(self, v: Array) -> Array:
        self.count += 1
        return self._operator.apply(v)

    def _apply_transpose(self, v: Array) -> Array:
        self.count += 1
        return self._operator.apply_transpose(v)


def find_preconditioner(operator: LinearOperator) -> Optional[Preconditioner]:
    """Return the preconditioner an operator carries, looking through counters."""
    while isinstance(operator, CountingOperator):
        operator = operator.operator
    if isinstance(operator, Preconditioner):
        return operator
    return None


def as_operator(obj: Any) -> LinearOperator:
    """Return ``obj`` if it already is an operator, else wrap it as a matrix."""
    if isinstance(obj, LinearOperator):
        return obj
    return MatrixOperator(obj)


__all__ = [
    "LinearOperator",
    "MatrixOperator",
    "TransposeOperator",
    "OverconstrainedOperator",
    "UnderconstrainedOperator",
    "Preconditioner",
    "IdentityPreconditioner",
    "DiagonalPreconditioner",
    "PreconditionedOperator",
    "CountingOperator",
    "as_operator",
    "find_preconditioner",
]
