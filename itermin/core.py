"""Core interfaces shared across the minimizers and linear solvers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Union

import numpy as np

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]

ATOL = 1e-15


class DimensionMismatchError(ValueError):
    """Raised when operator, right-hand side and initial guess disagree in size."""


class Status(Enum):
    """Exit state of a minimizer or linear solver."""

    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    STALLED = "stalled"


@dataclass(frozen=True)
class Problem:
    """Container describing an unconstrained minimization problem."""

    fun: Objective
    grad: Optional[Gradient] = None
    dim: Optional[int] = None


@dataclass
class OptimizeResult:
    """
    Standard result object returned by all function minimizers.

    ``restarts`` counts resets to steepest descent and ``skipped_updates``
    counts quasi-Newton updates rejected by the curvature test; both stay 0
    for methods without such transitions.
    """

    x: Array
    fun: float
    status: Status
    message: str
    nit: int
    grad_norm: Optional[float]
    nfev: int
    njev: int
    history: List[Array] = field(default_factory=list)
    restarts: int = 0
    skipped_updates: int = 0

    @property
    def success(self) -> bool:
        return self.status is Status.CONVERGED


@dataclass
class LinearSolveResult:
    """
    Result of an iterative linear solve.

    Attributes:
        x0: Initial guess the solve started from (a copy).
        x: Final solution estimate.
        status: How the iteration ended.
        message: Human-readable explanation of ``status``.
        nit: Number of iterations performed.
        residual_norm: Norm of the final residual.
        history: Iterates, when requested.
    """

    x0: Array
    x: Array
    status: Status
    message: str
    nit: int
    residual_norm: float
    history: List[Array] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is Status.CONVERGED


def as_problem(problem: Union[Problem, Objective]) -> Problem:
    """Wrap a bare callable into a :class:`Problem`."""
    if isinstance(problem, Problem):
        return problem
    if callable(problem):
        return Problem(fun=problem)
    raise TypeError(f"Expected a Problem or callable, got {type(problem).__name__}")


def as_vector(values: Any, name: str = "vector") -> Array:
    """Return a fresh 1-D float copy of ``values``."""
    if values is None:
        raise ValueError(f"{name} must not be None")
    vec = np.array(values, dtype=float, copy=True).reshape(-1)
    if vec.size == 0:
        raise ValueError(f"{name} must not be empty")
    return vec


def validate_tolerance(tolerance: float) -> float:
    tolerance = float(tolerance)
    if not tolerance > 0.0:
        raise ValueError("Tolerance must be positive.")
    return tolerance


def validate_max_iterations(max_iterations: int) -> int:
    if int(max_iterations) != max_iterations:
        raise ValueError("Max iterations must be an integer.")
    max_iterations = int(max_iterations)
    if max_iterations < 0:
        raise ValueError("Max iterations must be non-negative.")
    return max_iterations


def check_convergence(grad_norm: float, tol: float) -> bool:
    """Return True if gradient norm satisfies tolerance."""
    return grad_norm <= max(tol, ATOL)


__all__ = [
    "Array",
    "Objective",
    "Gradient",
    "Problem",
    "Status",
    "OptimizeResult",
    "LinearSolveResult",
    "DimensionMismatchError",
    "as_problem",
    "as_vector",
    "validate_tolerance",
    "validate_max_iterations",
    "check_convergence",
    "ATOL",
]
