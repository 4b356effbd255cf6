"""
Common loop shared by every unconstrained function minimizer.

:class:`FunctionMinimizer` owns configuration (initial guess, tolerance,
iteration cap, history, callback) and runs the loop
``_initialize -> _initial_status -> _step ... -> _cleanup``. Concrete
minimizers only fill in the customization points; each ``_step`` returns
``None`` to keep going or a terminal :class:`~itermin.core.Status`.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from .core import (
    Array,
    DimensionMismatchError,
    Objective,
    OptimizeResult,
    Problem,
    Status,
    as_problem,
    as_vector,
    check_convergence,
    validate_max_iterations,
    validate_tolerance,
)
from .debug import is_debug_enabled
from .line_search import LineSearchResult, wolfe_line_search
from .logging import get_logger
from .utils import approx_grad

logger = get_logger(__name__)

DEFAULT_TOLERANCE = 1e-5
DEFAULT_MAX_ITERATIONS = 1000

_MESSAGES = {
    Status.CONVERGED: "Tolerance satisfied.",
    Status.MAX_ITERATIONS: "Maximum iterations reached.",
    Status.STALLED: "No further progress possible.",
}


class EvaluationCounter:
    """
    Wraps a :class:`Problem` and counts objective and gradient calls.

    When the problem has no analytic gradient, :meth:`gradient` falls back to
    central differences and the extra objective calls are added to ``nfev``.
    """

    def __init__(self, problem: Problem):
        self.problem = problem
        self.nfev = 0
        self.njev = 0

    @property
    def has_gradient(self) -> bool:
        return self.problem.grad is not None

    def fun(self, x: Array) -> float:
        self.nfev += 1
        return float(self.problem.fun(x))

    def gradient(self, x: Array) -> Array:
        if self.problem.grad is not None:
            self.njev += 1
            return np.asarray(self.problem.grad(x), dtype=float).reshape(-1)
        grad, evals = approx_grad(self.problem.fun, x, return_evals=True)
        self.nfev += int(evals)
        return grad


@dataclass
class MinimizerState:
    """Working set owned by a single :meth:`FunctionMinimizer.learn` call."""

    x: Array
    fun: float
    grad: Optional[Array] = None
    nit: int = 0
    message: str = ""
    work: Dict[str, Any] = field(default_factory=dict)

    @property
    def grad_norm(self) -> Optional[float]:
        if self.grad is None:
            return None
        return float(np.linalg.norm(self.grad))


def _line_search_requires_grad(func: Callable) -> bool:
    sig = inspect.signature(func)
    params = list(sig.parameters.values())
    return len(params) >= 2 and params[1].name == "grad"


class FunctionMinimizer(ABC):
    """Base class for iterative minimizers of ``f: R^n -> R``."""

    default_tolerance = DEFAULT_TOLERANCE
    default_max_iterations = DEFAULT_MAX_ITERATIONS
    requires_gradient = True

    def __init__(
        self,
        initial_guess: Optional[Array] = None,
        tolerance: Optional[float] = None,
        max_iterations: Optional[int] = None,
        history: bool = False,
        callback: Optional[Callable[[MinimizerState], None]] = None,
    ):
        self.initial_guess = initial_guess
        self.tolerance = self.default_tolerance if tolerance is None else tolerance
        self.max_iterations = (
            self.default_max_iterations if max_iterations is None else max_iterations
        )
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

    def learn(
        self,
        problem: Union[Problem, Objective],
        x0: Optional[Array] = None,
    ) -> OptimizeResult:
        """Minimize ``problem`` starting from ``x0`` or the configured initial guess."""
        problem = as_problem(problem)
        if x0 is not None:
            start = as_vector(x0, "x0")
        elif self._initial_guess is not None:
            start = self._initial_guess.copy()
        else:
            raise ValueError("An initial guess is required; pass x0 or set initial_guess.")
        if problem.dim is not None and problem.dim != start.size:
            raise DimensionMismatchError(
                f"Initial guess has length {start.size}, problem expects {problem.dim}"
            )

        name = type(self).__name__
        logger.debug("%s: minimizing in %d dimensions", name, start.size)
        counter = EvaluationCounter(problem)
        state = self._initialize(counter, start.copy())
        hist: List[Array] = []
        if self.history:
            hist.append(state.x.copy())

        status: Optional[Status] = None
        if self.max_iterations > 0:
            status = self._initial_status(state)
            while status is None and state.nit < self.max_iterations:
                state.nit += 1
                status = self._step(counter, state)
                if self.history:
                    hist.append(state.x.copy())
                if self.callback is not None:
                    self.callback(state)
                if is_debug_enabled():
                    grad_norm = state.grad_norm
                    logger.debug(
                        "%s iteration %d: f=%.6e |g|=%s",
                        name,
                        state.nit,
                        state.fun,
                        "n/a" if grad_norm is None else f"{grad_norm:.3e}",
                    )
        if status is None:
            status = Status.MAX_ITERATIONS
        if status is Status.STALLED:
            logger.info("%s stalled at iteration %d: %s", name, state.nit, state.message)

        result = OptimizeResult(
            x=state.x.copy(),
            fun=float(state.fun),
            status=status,
            message=state.message or _MESSAGES[status],
            nit=state.nit,
            grad_norm=state.grad_norm,
            nfev=counter.nfev,
            njev=counter.njev,
            history=hist,
            restarts=int(state.work.get("restarts", 0)),
            skipped_updates=int(state.work.get("skipped_updates", 0)),
        )
        self._cleanup(state)
        logger.debug(
            "%s finished: status=%s nit=%d f=%.6e nfev=%d njev=%d",
            name,
            status.value,
            result.nit,
            result.fun,
            result.nfev,
            result.njev,
        )
        return result

    def _initialize(self, counter: EvaluationCounter, x0: Array) -> MinimizerState:
        """Evaluate the starting point; subclasses extend ``state.work``."""
        fx = counter.fun(x0)
        grad = counter.gradient(x0) if self.requires_gradient else None
        return MinimizerState(x=x0, fun=fx, grad=grad)

    def _initial_status(self, state: MinimizerState) -> Optional[Status]:
        grad_norm = state.grad_norm
        if grad_norm is not None and check_convergence(grad_norm, self.tolerance):
            state.message = "Gradient tolerance satisfied at the initial guess."
            return Status.CONVERGED
        return None

    @abstractmethod
    def _step(self, counter: EvaluationCounter, state: MinimizerState) -> Optional[Status]:
        """Advance one iteration."""

    def _cleanup(self, state: MinimizerState) -> None:
        state.work.clear()


class LineSearchMinimizer(FunctionMinimizer):
    """
    Gradient-based minimizer that moves along a direction chosen per step.

    ``line_search`` is either a Wolfe-style routine called as
    ``line_search(f, grad, x, p, fx=..., gx=..., **options)`` or an
    Armijo-style one called as ``line_search(f, x, p, grad_fx, fx=..., **options)``;
    the calling convention is detected from the signature.
    """

    default_line_search_options: Dict[str, Any] = {}

    def __init__(
        self,
        *args,
        line_search: Optional[Callable[..., LineSearchResult]] = None,
        line_search_options: Optional[Dict[str, Any]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        # Default options are tuned for the default search only.
        options = dict(self.default_line_search_options) if line_search is None else {}
        self.line_search = wolfe_line_search if line_search is None else line_search
        if line_search_options:
            options.update(line_search_options)
        self.line_search_options = options

    def _search(
        self, counter: EvaluationCounter, state: MinimizerState, direction: Array
    ) -> LineSearchResult:
        if _line_search_requires_grad(self.line_search):
            return self.line_search(
                counter.fun,
                counter.gradient,
                state.x,
                direction,
                fx=state.fun,
                gx=state.grad,
                **self.line_search_options,
            )
        return self.line_search(
            counter.fun, state.x, direction, state.grad, fx=state.fun, **self.line_search_options
        )

    def _accept(
        self,
        counter: EvaluationCounter,
        state: MinimizerState,
        direction: Array,
        search: LineSearchResult,
    ) -> tuple[Array, Array]:
        """Move to the accepted step; return ``(s, y)`` for the update rules."""
        x_new = state.x + search.alpha * direction
        grad_new = search.grad if search.grad is not None else counter.gradient(x_new)
        s = x_new - state.x
        y = grad_new - state.grad
        state.x = x_new
        state.fun = float(search.fun)
        state.grad = grad_new
        return s, y

    def _converged(self, state: MinimizerState) -> bool:
        return check_convergence(state.grad_norm, self.tolerance)


__all__ = [
    "DEFAULT_TOLERANCE",
    "DEFAULT_MAX_ITERATIONS",
    "EvaluationCounter",
    "MinimizerState",
    "FunctionMinimizer",
    "LineSearchMinimizer",
]
