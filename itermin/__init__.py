"""itermin - deterministic iterative minimizers and linear-system solvers.

Example
-------
>>> import numpy as np
>>> from itermin import Problem, bfgs
>>> def rosen(x):
...     return (1 - x[0])**2 + 100 * (x[1] - x[0]**2)**2
>>> def rosen_grad(x):
...     return np.array([
...         -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
...         200 * (x[1] - x[0] ** 2),
...     ])
>>> problem = Problem(fun=rosen, grad=rosen_grad, dim=2)
>>> res = bfgs(problem, np.array([-1.2, 1.0]))
>>> bool(res.success)
True
"""

__version__ = "0.1.0"

# Nonlinear conjugate gradient
from .conjugate_gradient import (
    BetaRule,
    ConjugateGradientMinimizer,
    FletcherReeves,
    FletcherReevesCG,
    LiuStorey,
    LiuStoreyCG,
    PolakRibiere,
    PolakRibiereCG,
    fletcher_reeves,
    liu_storey,
    polak_ribiere,
)

# Core abstractions
from .core import (
    ATOL,
    DimensionMismatchError,
    LinearSolveResult,
    OptimizeResult,
    Problem,
    Status,
    check_convergence,
)

# Diagnostics
from .debug import debug_context, is_debug_enabled, set_debug_enabled

# Derivative-free minimizers
from .direct import DirectionSetPowell, NelderMead, nelder_mead, powell

# Line searches
from .line_search import (
    LineSearchResult,
    backtracking_armijo,
    bracket_minimum,
    brent_minimize,
    line_minimize,
    strong_curvature,
    sufficient_decrease,
    wolfe_line_search,
)

# Linear solvers
from .linear import (
    ConjugateGradientSolver,
    IterativeLinearSolver,
    OverconstrainedConjugateGradientSolver,
    PreconditionedConjugateGradientSolver,
    SteepestDescentSolver,
    UnderconstrainedConjugateGradientSolver,
    conjugate_gradient,
    least_squares_cg,
    min_norm_cg,
    preconditioned_conjugate_gradient,
    steepest_descent,
)
from .logging import configure_logging, get_logger, set_log_level
from .minimizer import FunctionMinimizer, LineSearchMinimizer, MinimizerState

# Operators
from .operators import (
    CountingOperator,
    DiagonalPreconditioner,
    IdentityPreconditioner,
    LinearOperator,
    MatrixOperator,
    OverconstrainedOperator,
    PreconditionedOperator,
    Preconditioner,
    TransposeOperator,
    UnderconstrainedOperator,
    as_operator,
    find_preconditioner,
)

# Quasi-Newton
from .quasi_newton import BFGS, DFP, BFGSUpdate, DFPUpdate, QuasiNewtonMinimizer, bfgs, dfp
from .utils import approx_grad, is_pos_def

__all__ = [
    "__version__",
    # core
    "ATOL",
    "DimensionMismatchError",
    "LinearSolveResult",
    "OptimizeResult",
    "Problem",
    "Status",
    "check_convergence",
    # operators
    "CountingOperator",
    "DiagonalPreconditioner",
    "IdentityPreconditioner",
    "LinearOperator",
    "MatrixOperator",
    "OverconstrainedOperator",
    "PreconditionedOperator",
    "Preconditioner",
    "TransposeOperator",
    "UnderconstrainedOperator",
    "as_operator",
    "find_preconditioner",
    # linear solvers
    "ConjugateGradientSolver",
    "IterativeLinearSolver",
    "OverconstrainedConjugateGradientSolver",
    "PreconditionedConjugateGradientSolver",
    "SteepestDescentSolver",
    "UnderconstrainedConjugateGradientSolver",
    "conjugate_gradient",
    "least_squares_cg",
    "min_norm_cg",
    "preconditioned_conjugate_gradient",
    "steepest_descent",
    # line searches
    "LineSearchResult",
    "backtracking_armijo",
    "bracket_minimum",
    "brent_minimize",
    "line_minimize",
    "strong_curvature",
    "sufficient_decrease",
    "wolfe_line_search",
    # minimizers
    "FunctionMinimizer",
    "LineSearchMinimizer",
    "MinimizerState",
    "BFGS",
    "DFP",
    "BFGSUpdate",
    "DFPUpdate",
    "QuasiNewtonMinimizer",
    "bfgs",
    "dfp",
    "BetaRule",
    "ConjugateGradientMinimizer",
    "FletcherReeves",
    "FletcherReevesCG",
    "LiuStorey",
    "LiuStoreyCG",
    "PolakRibiere",
    "PolakRibiereCG",
    "fletcher_reeves",
    "liu_storey",
    "polak_ribiere",
    "DirectionSetPowell",
    "NelderMead",
    "nelder_mead",
    "powell",
    # utilities
    "approx_grad",
    "is_pos_def",
    # logging / diagnostics
    "configure_logging",
    "get_logger",
    "set_log_level",
    "debug_context",
    "is_debug_enabled",
    "set_debug_enabled",
]
