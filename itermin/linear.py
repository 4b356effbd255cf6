"""
Iterative solvers for linear systems ``A x = b``.

All solvers share one loop (:meth:`IterativeLinearSolver.solve`): initialize
the working set, iterate until the residual norm drops below ``tolerance`` or
the iteration cap is reached, then package the initial guess and the final
estimate into a :class:`~itermin.core.LinearSolveResult`. Subclasses only
provide ``_initialize`` and ``_iterate``.

The residual is updated incrementally (``r -= alpha * A d``) and recomputed
from scratch every ``recompute_period`` iterations to cancel accumulated
floating-point drift. The period is fixed rather than adaptive so that runs
are reproducible.

References:
    - J. R. Shewchuk, *An Introduction to the Conjugate Gradient Method
      Without the Agonizing Pain* (1994)
    - Nocedal & Wright, *Numerical Optimization*, ch. 5 (2006)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .core import (
    Array,
    DimensionMismatchError,
    LinearSolveResult,
    Status,
    as_vector,
    validate_max_iterations,
    validate_tolerance,
)
from .debug import is_debug_enabled
from .logging import get_logger
from .operators import (
    IdentityPreconditioner,
    LinearOperator,
    Preconditioner,
    as_operator,
    find_preconditioner,
)

logger = get_logger(__name__)

DEFAULT_TOLERANCE = 1e-10
DEFAULT_MAX_ITERATIONS = 100
# Empirical choice; exposed as ``recompute_period`` for tuning.
DEFAULT_RECOMPUTE_PERIOD = 50


@dataclass
class LinearSolverState:
    """Working set owned by a single :meth:`IterativeLinearSolver.solve` call."""

    x: Array
    r: Optional[Array]
    d: Optional[Array]
    delta: float
    residual_norm: float
    nit: int = 0
    work: Dict[str, Any] = field(default_factory=dict)


class IterativeLinearSolver(ABC):
    """Generic initialize / iterate / complete loop for linear systems."""

    requires_square = True

    def __init__(
        self,
        initial_guess: Optional[Array] = None,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        recompute_period: int = DEFAULT_RECOMPUTE_PERIOD,
        history: bool = False,
        callback: Optional[Callable[[LinearSolverState], None]] = None,
    ):
        self.initial_guess = initial_guess
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.recompute_period = recompute_period
        self.history = history
        self.callback = callback

    @property
    def initial_guess(self) -> Optional[Array]:
        if self._initial_guess is None:
            return None
        return self._initial_guess.copy()

    @initial_guess.setter
    def initial_guess(self, value: Optional[Array]) -> None:
        self._initial_guess = None if value is None else as_vector(value, "initial_guess")

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value: float) -> None:
        self._tolerance = validate_tolerance(value)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        self._max_iterations = validate_max_iterations(value)

    @property
    def recompute_period(self) -> int:
        return self._recompute_period

    @recompute_period.setter
    def recompute_period(self, value: int) -> None:
        if int(value) <= 0:
            raise ValueError("recompute_period must be positive.")
        self._recompute_period = int(value)

    def _check_dimensions(self, operator: LinearOperator, rhs: Array, x0: Array) -> None:
        rows, cols = operator.shape
        if self.requires_square and rows != cols:
            raise DimensionMismatchError(
                f"{type(self).__name__} requires a square operator, got {rows}x{cols}"
            )
        if rhs.size != rows:
            raise DimensionMismatchError(
                f"Right-hand side has length {rhs.size}, operator has {rows} rows"
            )
        if x0.size != cols:
            raise DimensionMismatchError(
                f"Initial guess has length {x0.size}, operator has {cols} columns"
            )

    def _prepare_operator(self, operator: Any) -> LinearOperator:
        """Wrap ``operator`` for the solve; subclasses add capability checks."""
        return as_operator(operator)

    def _recompute_due(self, state: LinearSolverState) -> bool:
        return state.nit % self.recompute_period == 0

    def solve(
        self,
        operator: Any,
        rhs: Array,
        x0: Optional[Array] = None,
    ) -> LinearSolveResult:
        """Iteratively solve ``operator @ x = rhs``."""
        op = self._prepare_operator(operator)
        b = as_vector(rhs, "rhs")
        if x0 is not None:
            start = as_vector(x0, "x0")
        elif self._initial_guess is not None:
            start = self._initial_guess.copy()
        else:
            start = np.zeros(op.shape[1], dtype=float)
        self._check_dimensions(op, b, start)

        name = type(self).__name__
        logger.debug("%s: solving %dx%d system", name, *op.shape)
        state = self._initialize(op, b, start.copy())
        hist: List[Array] = []
        if self.history:
            hist.append(state.x.copy())

        status = Status.MAX_ITERATIONS
        message = "Maximum iterations reached."
        if state.residual_norm < self.tolerance:
            status = Status.CONVERGED
            message = "Residual tolerance satisfied."
        else:
            while state.nit < self.max_iterations:
                state.nit += 1
                outcome = self._iterate(op, b, state)
                if self.history:
                    hist.append(state.x.copy())
                if self.callback is not None:
                    self.callback(state)
                if is_debug_enabled():
                    logger.debug(
                        "%s iteration %d: residual=%.6e", name, state.nit, state.residual_norm
                    )
                if outcome is Status.STALLED:
                    status = Status.STALLED
                    message = "Degenerate curvature along search direction."
                    logger.info("%s stalled at iteration %d", name, state.nit)
                    break
                if state.residual_norm < self.tolerance:
                    status = Status.CONVERGED
                    message = "Residual tolerance satisfied."
                    break

        result = self._complete(state, start, status, message, hist)
        logger.debug(
            "%s finished: status=%s nit=%d residual=%.3e",
            name,
            status.value,
            result.nit,
            result.residual_norm,
        )
        return result

    @abstractmethod
    def _initialize(self, operator: LinearOperator, rhs: Array, x0: Array) -> LinearSolverState:
        """Create the working set for a fresh solve."""

    @abstractmethod
    def _iterate(
        self, operator: LinearOperator, rhs: Array, state: LinearSolverState
    ) -> Optional[Status]:
        """Advance one step; return ``Status.STALLED`` on degenerate curvature."""

    def _complete(
        self,
        state: LinearSolverState,
        x0: Array,
        status: Status,
        message: str,
        hist: List[Array],
    ) -> LinearSolveResult:
        result = LinearSolveResult(
            x0=x0,
            x=state.x,
            status=status,
            message=message,
            nit=state.nit,
            residual_norm=float(state.residual_norm),
            history=hist,
        )
        state.r = None
        state.d = None
        state.work.clear()
        return result


class SteepestDescentSolver(IterativeLinearSolver):
    """Steepest descent for symmetric positive-definite systems."""

    def _initialize(self, operator, rhs, x0):
        r = rhs - operator.apply(x0)
        delta = float(r @ r)
        return LinearSolverState(x=x0, r=r, d=r, delta=delta, residual_norm=np.sqrt(delta))

    def _iterate(self, operator, rhs, state):
        q = operator.apply(state.r)
        curvature = float(state.r @ q)
        if curvature <= 0.0:
            return Status.STALLED
        alpha = state.delta / curvature
        state.x += alpha * state.r
        if self._recompute_due(state):
            state.r = rhs - operator.apply(state.x)
        else:
            state.r -= alpha * q
        state.d = state.r
        state.delta = float(state.r @ state.r)
        state.residual_norm = np.sqrt(state.delta)
        return None


class ConjugateGradientSolver(IterativeLinearSolver):
    """Conjugate gradient for symmetric positive-definite systems."""

    def _initialize(self, operator, rhs, x0):
        r = rhs - operator.apply(x0)
        delta = float(r @ r)
        return LinearSolverState(
            x=x0, r=r, d=r.copy(), delta=delta, residual_norm=np.sqrt(delta)
        )

    def _iterate(self, operator, rhs, state):
        q = operator.apply(state.d)
        curvature = float(state.d @ q)
        if curvature <= 0.0:
            return Status.STALLED
        alpha = state.delta / curvature
        state.x += alpha * state.d
        if self._recompute_due(state):
            state.r = rhs - operator.apply(state.x)
        else:
            state.r -= alpha * q
        delta_old = state.delta
        state.delta = float(state.r @ state.r)
        state.residual_norm = np.sqrt(state.delta)
        beta = state.delta / delta_old
        state.d *= beta
        state.d += state.r
        return None


class PreconditionedConjugateGradientSolver(IterativeLinearSolver):
    """
    Conjugate gradient on the preconditioned system.

    The preconditioner is taken from the ``preconditioner`` option, otherwise
    from the operator itself when it implements
    :class:`~itermin.operators.Preconditioner`, otherwise the identity.
    Convergence is still measured on the unpreconditioned residual ``r``.
    """

    def __init__(self, *args, preconditioner: Optional[Preconditioner] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.preconditioner = preconditioner

    def _resolve_preconditioner(self, operator: LinearOperator) -> Preconditioner:
        if self.preconditioner is not None:
            return self.preconditioner
        carried = find_preconditioner(operator)
        return IdentityPreconditioner() if carried is None else carried

    def _initialize(self, operator, rhs, x0):
        precond = self._resolve_preconditioner(operator)
        r = rhs - operator.apply(x0)
        z = precond.precondition(r)
        state = LinearSolverState(
            x=x0,
            r=r,
            d=z.copy(),
            delta=float(r @ z),
            residual_norm=float(np.sqrt(r @ r)),
        )
        state.work["preconditioner"] = precond
        return state

    def _iterate(self, operator, rhs, state):
        precond = state.work["preconditioner"]
        q = operator.apply(state.d)
        curvature = float(state.d @ q)
        if curvature <= 0.0 or state.delta == 0.0:
            return Status.STALLED
        alpha = state.delta / curvature
        state.x += alpha * state.d
        if self._recompute_due(state):
            state.r = rhs - operator.apply(state.x)
        else:
            state.r -= alpha * q
        z = precond.precondition(state.r)
        delta_old = state.delta
        state.delta = float(state.r @ z)
        state.residual_norm = float(np.sqrt(state.r @ state.r))
        beta = state.delta / delta_old
        state.d *= beta
        state.d += z
        return None


class OverconstrainedConjugateGradientSolver(IterativeLinearSolver):
    """
    Least-squares solve of a tall system via the normal equations (CGNR).

    Minimizes ``||A x - b||`` by running conjugate gradient on
    ``A^T A x = A^T b`` without forming ``A^T A``. The reported residual is
    the normal-equation residual ``||A^T (b - A x)||``, which vanishes at the
    least-squares minimizer even when ``A x = b`` has no solution.
    """

    requires_square = False

    def _prepare_operator(self, operator):
        op = as_operator(operator)
        if not hasattr(op, "apply_transpose"):
            raise TypeError("Normal-equation CG needs an operator with apply_transpose.")
        return op

    def _initialize(self, operator, rhs, x0):
        r = rhs - operator.apply(x0)
        s = operator.apply_transpose(r)
        delta = float(s @ s)
        state = LinearSolverState(x=x0, r=r, d=s.copy(), delta=delta, residual_norm=np.sqrt(delta))
        state.work["normal_residual"] = s
        return state

    def _iterate(self, operator, rhs, state):
        q = operator.apply(state.d)
        curvature = float(q @ q)
        if curvature <= 0.0:
            return Status.STALLED
        alpha = state.delta / curvature
        state.x += alpha * state.d
        if self._recompute_due(state):
            state.r = rhs - operator.apply(state.x)
        else:
            state.r -= alpha * q
        s = operator.apply_transpose(state.r)
        state.work["normal_residual"] = s
        delta_old = state.delta
        state.delta = float(s @ s)
        state.residual_norm = np.sqrt(state.delta)
        beta = state.delta / delta_old
        state.d *= beta
        state.d += s
        return None


class UnderconstrainedConjugateGradientSolver(IterativeLinearSolver):
    """
    Minimum-norm solve of a wide system (CGNE, Craig's method).

    Runs conjugate gradient on ``A A^T y = b`` and maps back with
    ``x = A^T y``. Starting from ``x0 = 0`` (the default) the iterates stay in
    the row space of ``A`` and converge to the minimum-norm solution.
    """

    requires_square = False

    def _prepare_operator(self, operator):
        op = as_operator(operator)
        if not hasattr(op, "apply_transpose"):
            raise TypeError("Minimum-norm CG needs an operator with apply_transpose.")
        return op

    def _initialize(self, operator, rhs, x0):
        r = rhs - operator.apply(x0)
        delta = float(r @ r)
        return LinearSolverState(
            x=x0, r=r, d=operator.apply_transpose(r), delta=delta, residual_norm=np.sqrt(delta)
        )

    def _iterate(self, operator, rhs, state):
        curvature = float(state.d @ state.d)
        if curvature <= 0.0:
            return Status.STALLED
        alpha = state.delta / curvature
        state.x += alpha * state.d
        if self._recompute_due(state):
            state.r = rhs - operator.apply(state.x)
        else:
            state.r -= alpha * operator.apply(state.d)
        delta_old = state.delta
        state.delta = float(state.r @ state.r)
        state.residual_norm = np.sqrt(state.delta)
        beta = state.delta / delta_old
        state.d *= beta
        state.d += operator.apply_transpose(state.r)
        return None


def steepest_descent(
    operator: Any,
    rhs: Array,
    x0: Optional[Array] = None,
    tol: float = DEFAULT_TOLERANCE,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    history: bool = False,
) -> LinearSolveResult:
    """Solve an SPD system by steepest descent."""
    solver = SteepestDescentSolver(tolerance=tol, max_iterations=maxiter, history=history)
    return solver.solve(operator, rhs, x0)


def conjugate_gradient(
    operator: Any,
    rhs: Array,
    x0: Optional[Array] = None,
    tol: float = DEFAULT_TOLERANCE,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    history: bool = False,
) -> LinearSolveResult:
    """Solve an SPD system by conjugate gradient."""
    solver = ConjugateGradientSolver(tolerance=tol, max_iterations=maxiter, history=history)
    return solver.solve(operator, rhs, x0)


def preconditioned_conjugate_gradient(
    operator: Any,
    rhs: Array,
    x0: Optional[Array] = None,
    preconditioner: Optional[Preconditioner] = None,
    tol: float = DEFAULT_TOLERANCE,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    history: bool = False,
) -> LinearSolveResult:
    """Solve an SPD system by preconditioned conjugate gradient."""
    solver = PreconditionedConjugateGradientSolver(
        tolerance=tol,
        max_iterations=maxiter,
        history=history,
        preconditioner=preconditioner,
    )
    return solver.solve(operator, rhs, x0)


def least_squares_cg(
    operator: Any,
    rhs: Array,
    x0: Optional[Array] = None,
    tol: float = DEFAULT_TOLERANCE,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
) -> LinearSolveResult:
    """Least-squares solution of an over-constrained system."""
    solver = OverconstrainedConjugateGradientSolver(tolerance=tol, max_iterations=maxiter)
    return solver.solve(operator, rhs, x0)


def min_norm_cg(
    operator: Any,
    rhs: Array,
    x0: Optional[Array] = None,
    tol: float = DEFAULT_TOLERANCE,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
) -> LinearSolveResult:
    """Minimum-norm solution of an under-constrained system."""
    solver = UnderconstrainedConjugateGradientSolver(tolerance=tol, max_iterations=maxiter)
    return solver.solve(operator, rhs, x0)


__all__ = [
    "DEFAULT_TOLERANCE",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_RECOMPUTE_PERIOD",
    "LinearSolverState",
    "IterativeLinearSolver",
    "SteepestDescentSolver",
    "ConjugateGradientSolver",
    "PreconditionedConjugateGradientSolver",
    "OverconstrainedConjugateGradientSolver",
    "UnderconstrainedConjugateGradientSolver",
    "steepest_descent",
    "conjugate_gradient",
    "preconditioned_conjugate_gradient",
    "least_squares_cg",
    "min_norm_cg",
]
