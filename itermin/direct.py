"""Derivative-free minimizers: Powell's direction-set method and Nelder-Mead.

Neither method ever evaluates a gradient, so ``grad_norm`` in their results is
``None`` and ``njev`` stays zero even when the problem supplies ``grad``.

References:
    - Press et al., *Numerical Recipes*, sections 10.5 (Powell) and 10.4
      (downhill simplex)
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from .core import Array, Objective, OptimizeResult, Problem, Status
from .line_search import line_minimize
from .logging import get_logger
from .minimizer import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    EvaluationCounter,
    FunctionMinimizer,
    MinimizerState,
)

logger = get_logger(__name__)

_TINY = 1e-25
# Normalized displacement below which a Powell cycle counts as stationary.
DISPLACEMENT_TOLERANCE = 1e-7


class DirectionSetPowell(FunctionMinimizer):
    """
    Powell's conjugate direction-set method.

    Each iteration is one cycle of line minimizations along every direction in
    the set (initially the coordinate axes). The run converges when a cycle
    decreases the cost by less than ``tolerance`` relative to its magnitude,
    or when the point barely moves. The direction of largest decrease is
    replaced by the net displacement of the cycle unless Powell's test says
    doing so would make the set linearly dependent.
    """

    requires_gradient = False

    def __init__(self, *args, line_tolerance: float = 1e-8, **kwargs):
        super().__init__(*args, **kwargs)
        self.line_tolerance = line_tolerance

    def _initialize(self, counter, x0):
        state = super()._initialize(counter, x0)
        state.work["directions"] = np.eye(x0.size)
        state.work["replacements"] = 0
        return state

    def _minimize_along(
        self, counter: EvaluationCounter, state: MinimizerState, direction: Array
    ) -> float:
        """Line-minimize from ``state.x`` along ``direction``; return the decrease."""
        search = line_minimize(
            counter.fun, state.x, direction, fx=state.fun, tol=self.line_tolerance
        )
        if not search.success:
            return 0.0
        decrease = state.fun - search.fun
        state.x = state.x + search.alpha * direction
        state.fun = search.fun
        return decrease

    def _step(self, counter: EvaluationCounter, state: MinimizerState) -> Optional[Status]:
        directions = state.work["directions"]
        x_start = state.x.copy()
        f_start = state.fun

        biggest = 0.0
        index_biggest = 0
        for i in range(directions.shape[0]):
            decrease = self._minimize_along(counter, state, directions[i])
            if decrease > biggest:
                biggest = decrease
                index_biggest = i

        if 2.0 * abs(f_start - state.fun) <= self.tolerance * (
            abs(f_start) + abs(state.fun)
        ) + _TINY:
            state.message = "Relative decrease below tolerance."
            return Status.CONVERGED

        displacement = state.x - x_start
        scale = max(1.0, float(np.linalg.norm(state.x)))
        if float(np.linalg.norm(displacement)) / scale < DISPLACEMENT_TOLERANCE:
            state.message = "Displacement below tolerance."
            return Status.CONVERGED

        f_extrapolated = counter.fun(state.x + displacement)
        if f_extrapolated < f_start:
            test = 2.0 * (f_start - 2.0 * state.fun + f_extrapolated) * (
                f_start - state.fun - biggest
            ) ** 2 - biggest * (f_start - f_extrapolated) ** 2
            if test < 0.0:
                unit = displacement / np.linalg.norm(displacement)
                self._minimize_along(counter, state, unit)
                directions[index_biggest] = directions[-1]
                directions[-1] = unit
                state.work["replacements"] += 1
                logger.debug(
                    "Powell replaced direction %d at iteration %d", index_biggest, state.nit
                )
        return None


class NelderMead(FunctionMinimizer):
    """
    Downhill simplex method of Nelder and Mead.

    The simplex starts at ``x0`` and ``x0 + e_i``. Each iteration reflects the
    worst vertex through the centroid of the others, then tries an expansion
    (if the reflection is a new best), a contraction (if it is still the worst
    but one) and finally shrinks every vertex toward the best one. The run
    converges when ``2 |f_high - f_low| / (|f_high| + |f_low| + 1e-10)`` drops
    to ``tolerance``.
    """

    default_tolerance = 1e-3
    default_max_iterations = 4000
    requires_gradient = False

    def _initialize(self, counter, x0):
        state = super()._initialize(counter, x0)
        n = x0.size
        simplex = np.tile(x0, (n + 1, 1))
        simplex[1:] += np.eye(n)
        values = np.empty(n + 1)
        values[0] = state.fun
        for i in range(1, n + 1):
            values[i] = counter.fun(simplex[i].copy())
        state.work["simplex"] = simplex
        state.work["values"] = values
        return state

    def _sync_best(self, state: MinimizerState) -> None:
        low = int(np.argmin(state.work["values"]))
        state.x = state.work["simplex"][low].copy()
        state.fun = float(state.work["values"][low])

    def _try(
        self, counter: EvaluationCounter, state: MinimizerState, high: int, factor: float
    ) -> float:
        """Move the vertex ``high`` along the line through the centroid of the others.

        The trial point is ``c + factor * (x_high - c)``; it replaces the high
        vertex when it improves on it.
        """
        simplex = state.work["simplex"]
        values = state.work["values"]
        centroid = (simplex.sum(axis=0) - simplex[high]) / (simplex.shape[0] - 1)
        trial = centroid + factor * (simplex[high] - centroid)
        f_trial = counter.fun(trial.copy())
        if f_trial < values[high]:
            simplex[high] = trial
            values[high] = f_trial
        return f_trial

    def _step(self, counter: EvaluationCounter, state: MinimizerState) -> Optional[Status]:
        simplex = state.work["simplex"]
        values = state.work["values"]
        order = np.argsort(values, kind="stable")
        low, second_high, high = int(order[0]), int(order[-2]), int(order[-1])
        f_low = values[low]
        f_high = values[high]

        rtol = 2.0 * abs(f_high - f_low) / (abs(f_high) + abs(f_low) + 1e-10)
        if rtol <= self.tolerance:
            self._sync_best(state)
            state.message = "Simplex spread below tolerance."
            return Status.CONVERGED

        f_trial = self._try(counter, state, high, -1.0)
        if f_trial <= f_low:
            self._try(counter, state, high, 2.0)
        elif f_trial >= values[second_high]:
            f_saved = values[high]
            f_trial = self._try(counter, state, high, 0.5)
            if f_trial > f_saved:
                logger.debug("Nelder-Mead shrink at iteration %d", state.nit)
                for i in range(simplex.shape[0]):
                    if i != low:
                        simplex[i] = 0.5 * (simplex[i] + simplex[low])
                        values[i] = counter.fun(simplex[i].copy())
        self._sync_best(state)
        return None


def powell(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    history: bool = False,
) -> OptimizeResult:
    """Powell's direction-set method; never evaluates a gradient."""
    minimizer = DirectionSetPowell(tolerance=tol, max_iterations=maxiter, history=history)
    return minimizer.learn(problem, x0)


def nelder_mead(
    problem: Union[Problem, Objective],
    x0: Array,
    maxiter: int = NelderMead.default_max_iterations,
    tol: float = NelderMead.default_tolerance,
    history: bool = False,
) -> OptimizeResult:
    """Nelder-Mead downhill simplex; never evaluates a gradient."""
    minimizer = NelderMead(tolerance=tol, max_iterations=maxiter, history=history)
    return minimizer.learn(problem, x0)


__all__ = [
    "DISPLACEMENT_TOLERANCE",
    "DirectionSetPowell",
    "NelderMead",
    "powell",
    "nelder_mead",
]
