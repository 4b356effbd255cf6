"""Nonlinear conjugate gradient minimizers.

Only the current point, gradient and search direction are kept, so memory is
``O(n)``. Variants differ in the ``beta`` rule used to mix the new steepest
descent direction with the previous search direction:

* Fletcher-Reeves: ``g+.g+ / g.g``
* Polak-Ribiere (clamped at zero): ``max(0, g+.(g+ - g) / g.g)``
* Liu-Storey: ``g+.(g+ - g) / (-d.g)``

The direction is reset to steepest descent every ``2 n`` iterations and
whenever the mixed direction is not a descent direction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

import numpy as np

from .core import Array, Objective, OptimizeResult, Problem, Status
from .logging import get_logger
from .minimizer import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    EvaluationCounter,
    LineSearchMinimizer,
    MinimizerState,
)

logger = get_logger(__name__)


class BetaRule(ABC):
    """Strategy computing the conjugacy coefficient ``beta``."""

    @abstractmethod
    def beta(self, grad_new: Array, grad_old: Array, direction: Array) -> float:
        """Return ``beta`` for ``d+ = -g+ + beta * d``."""


class FletcherReeves(BetaRule):
    def beta(self, grad_new, grad_old, direction):
        denom = float(grad_old @ grad_old)
        if denom == 0.0:
            return 0.0
        return float(grad_new @ grad_new) / denom


class PolakRibiere(BetaRule):
    def beta(self, grad_new, grad_old, direction):
        denom = float(grad_old @ grad_old)
        if denom == 0.0:
            return 0.0
        return max(0.0, float(grad_new @ (grad_new - grad_old)) / denom)


class LiuStorey(BetaRule):
    def beta(self, grad_new, grad_old, direction):
        denom = -float(direction @ grad_old)
        if denom == 0.0:
            return 0.0
        return float(grad_new @ (grad_new - grad_old)) / denom


class ConjugateGradientMinimizer(LineSearchMinimizer):
    """
    Nonlinear conjugate gradient with a pluggable ``beta`` rule.

    The default line search is strong Wolfe with ``c2 = 0.1``; the tighter
    curvature constant keeps successive directions close to conjugate. A
    line-search failure along a conjugate direction restarts from steepest
    descent, a failure along steepest descent ends the run with
    :attr:`Status.STALLED`.
    """

    default_beta = PolakRibiere
    default_line_search_options = {"c2": 0.1}

    def __init__(self, *args, beta: Optional[BetaRule] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.beta = self.default_beta() if beta is None else beta

    def _initialize(self, counter, x0):
        state = super()._initialize(counter, x0)
        self._restart(state)
        state.work["restarts"] = 0
        return state

    def _restart(self, state: MinimizerState) -> None:
        state.work["direction"] = -state.grad
        state.work["steepest"] = True
        state.work["since_restart"] = 0

    def _step(self, counter: EvaluationCounter, state: MinimizerState) -> Optional[Status]:
        direction = state.work["direction"]
        search = self._search(counter, state, direction)
        if not search.success:
            if state.work["steepest"]:
                state.message = f"Line search failed along steepest descent: {search.message}"
                return Status.STALLED
            logger.debug(
                "%s restart at iteration %d: %s", type(self).__name__, state.nit, search.message
            )
            self._restart(state)
            state.work["restarts"] += 1
            return None

        grad_old = state.grad
        self._accept(counter, state, direction, search)
        if self._converged(state):
            state.message = "Gradient tolerance satisfied."
            return Status.CONVERGED

        state.work["since_restart"] += 1
        if state.work["since_restart"] >= 2 * state.x.size:
            self._restart(state)
            state.work["restarts"] += 1
            return None
        beta = self.beta.beta(state.grad, grad_old, direction)
        direction *= beta
        direction -= state.grad
        state.work["steepest"] = False
        if float(direction @ state.grad) >= 0.0:
            logger.debug(
                "%s restart at iteration %d: not a descent direction",
                type(self).__name__,
                state.nit,
            )
            self._restart(state)
            state.work["restarts"] += 1
        return None


class FletcherReevesCG(ConjugateGradientMinimizer):
    default_beta = FletcherReeves


class PolakRibiereCG(ConjugateGradientMinimizer):
    default_beta = PolakRibiere


class LiuStoreyCG(ConjugateGradientMinimizer):
    default_beta = LiuStorey


def _run(
    cls,
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int,
    tol: float,
    line_search: Optional[Callable],
    history: bool,
) -> OptimizeResult:
    minimizer = cls(
        tolerance=tol, max_iterations=maxiter, history=history, line_search=line_search
    )
    return minimizer.learn(problem, x0)


def fletcher_reeves(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    line_search: Optional[Callable] = None,
    history: bool = False,
) -> OptimizeResult:
    """Fletcher-Reeves nonlinear conjugate gradient."""
    return _run(FletcherReevesCG, problem, x0, maxiter, tol, line_search, history)


def polak_ribiere(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    line_search: Optional[Callable] = None,
    history: bool = False,
) -> OptimizeResult:
    """Polak-Ribiere (PR+) nonlinear conjugate gradient."""
    return _run(PolakRibiereCG, problem, x0, maxiter, tol, line_search, history)


def liu_storey(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    line_search: Optional[Callable] = None,
    history: bool = False,
) -> OptimizeResult:
    """Liu-Storey nonlinear conjugate gradient."""
    return _run(LiuStoreyCG, problem, x0, maxiter, tol, line_search, history)


__all__ = [
    "BetaRule",
    "FletcherReeves",
    "PolakRibiere",
    "LiuStorey",
    "ConjugateGradientMinimizer",
    "FletcherReevesCG",
    "PolakRibiereCG",
    "LiuStoreyCG",
    "fletcher_reeves",
    "polak_ribiere",
    "liu_storey",
]
