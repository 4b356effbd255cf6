"""Quasi-Newton optimization algorithms (BFGS and DFP).

Both methods keep a dense approximation ``H`` of the inverse Hessian, start
from the identity and differ only in the rank-two update applied after each
accepted step. The update rule is a strategy object so that one minimizer
class serves both.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

import numpy as np

from .core import Array, Objective, OptimizeResult, Problem, Status
from .line_search import wolfe_line_search
from .logging import get_logger
from .minimizer import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    EvaluationCounter,
    LineSearchMinimizer,
    MinimizerState,
)

logger = get_logger(__name__)

# Relative threshold for the curvature condition s.y > eps * |s| * |y|.
CURVATURE_EPS = 1e-10


class InverseHessianUpdate(ABC):
    """Rank-two update of the inverse Hessian approximation."""

    def __init__(self, curvature_eps: float = CURVATURE_EPS):
        self.curvature_eps = curvature_eps

    def curvature_ok(self, s: Array, y: Array) -> bool:
        sy = float(s @ y)
        return sy > self.curvature_eps * float(np.linalg.norm(s) * np.linalg.norm(y))

    @abstractmethod
    def update(self, H: Array, s: Array, y: Array) -> bool:
        """Update ``H`` in place; return False when the update was skipped."""


class BFGSUpdate(InverseHessianUpdate):
    """
    Broyden-Fletcher-Goldfarb-Shanno update::

        H+ = (I - rho s y^T) H (I - rho y s^T) + rho s s^T,  rho = 1 / (s^T y)
    """

    def update(self, H: Array, s: Array, y: Array) -> bool:
        if not self.curvature_ok(s, y):
            return False
        rho = 1.0 / float(s @ y)
        Hy = H @ y
        yHy = float(y @ Hy)
        H += (rho * (1.0 + rho * yHy)) * np.outer(s, s)
        H -= rho * (np.outer(Hy, s) + np.outer(s, Hy))
        return True


class DFPUpdate(InverseHessianUpdate):
    """
    Davidon-Fletcher-Powell update::

        H+ = H + s s^T / (s^T y) - (H y)(H y)^T / (y^T H y)
    """

    def update(self, H: Array, s: Array, y: Array) -> bool:
        if not self.curvature_ok(s, y):
            return False
        Hy = H @ y
        yHy = float(y @ Hy)
        if yHy <= 0.0:
            return False
        H += np.outer(s, s) / float(s @ y)
        H -= np.outer(Hy, Hy) / yHy
        return True


class QuasiNewtonMinimizer(LineSearchMinimizer):
    """
    Line-search quasi-Newton minimizer.

    Each step searches along ``p = -H g``. When ``p`` is not a descent
    direction, or when the line search fails with a non-identity ``H``, the
    approximation is reset to the identity and the iteration restarts from
    steepest descent. A line-search failure along steepest descent ends the
    run with :attr:`Status.STALLED`. Updates violating the curvature condition
    are skipped and counted.
    """

    default_update = BFGSUpdate

    def __init__(self, *args, update: Optional[InverseHessianUpdate] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.update = self.default_update() if update is None else update

    def _initialize(self, counter, x0):
        state = super()._initialize(counter, x0)
        state.work["inverse_hessian"] = np.eye(x0.size)
        state.work["fresh"] = True
        state.work["restarts"] = 0
        state.work["skipped_updates"] = 0
        return state

    def _reset(self, state: MinimizerState, reason: str) -> None:
        H = state.work["inverse_hessian"]
        H[...] = 0.0
        np.fill_diagonal(H, 1.0)
        state.work["fresh"] = True
        state.work["restarts"] += 1
        logger.debug("%s restart at iteration %d: %s", type(self).__name__, state.nit, reason)

    def _step(self, counter: EvaluationCounter, state: MinimizerState) -> Optional[Status]:
        H = state.work["inverse_hessian"]
        direction = -(H @ state.grad)
        if float(direction @ state.grad) >= 0.0:
            self._reset(state, "not a descent direction")
            direction = -state.grad
        search = self._search(counter, state, direction)
        if not search.success:
            if not state.work["fresh"]:
                self._reset(state, search.message)
                return None
            state.message = f"Line search failed along steepest descent: {search.message}"
            return Status.STALLED

        s, y = self._accept(counter, state, direction, search)
        if self.update.update(H, s, y):
            state.work["fresh"] = False
        else:
            state.work["skipped_updates"] += 1
            logger.debug(
                "%s skipped update at iteration %d (curvature condition)",
                type(self).__name__,
                state.nit,
            )
        if self._converged(state):
            state.message = "Gradient tolerance satisfied."
            return Status.CONVERGED
        return None


class BFGS(QuasiNewtonMinimizer):
    """Quasi-Newton minimizer with the BFGS update."""

    default_update = BFGSUpdate


class DFP(QuasiNewtonMinimizer):
    """Quasi-Newton minimizer with the DFP update."""

    default_update = DFPUpdate


def bfgs(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    line_search: Callable = wolfe_line_search,
    history: bool = False,
) -> OptimizeResult:
    """Full-memory BFGS with strong Wolfe line search."""
    minimizer = BFGS(
        tolerance=tol, max_iterations=maxiter, history=history, line_search=line_search
    )
    return minimizer.learn(problem, x0)


def dfp(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    line_search: Callable = wolfe_line_search,
    history: bool = False,
) -> OptimizeResult:
    """Davidon-Fletcher-Powell quasi-Newton method with strong Wolfe line search."""
    minimizer = DFP(
        tolerance=tol, max_iterations=maxiter, history=history, line_search=line_search
    )
    return minimizer.learn(problem, x0)


__all__ = [
    "CURVATURE_EPS",
    "InverseHessianUpdate",
    "BFGSUpdate",
    "DFPUpdate",
    "QuasiNewtonMinimizer",
    "BFGS",
    "DFP",
    "bfgs",
    "dfp",
]
