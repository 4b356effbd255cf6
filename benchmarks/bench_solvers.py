"""Benchmark linear solvers and minimizers."""

import time
from typing import Dict

import numpy as np

from itermin import (
    BFGS,
    ConjugateGradientSolver,
    CountingOperator,
    DiagonalPreconditioner,
    NelderMead,
    PolakRibiereCG,
    PreconditionedConjugateGradientSolver,
    Problem,
)


def _laplacian(n: int, shift: float) -> np.ndarray:
    """Shifted 1-D Laplacian with a spread-out diagonal."""
    diag = 2.0 + shift * np.arange(n)
    return np.diag(diag) - np.eye(n, k=1) - np.eye(n, k=-1)


def benchmark_linear_solver(
    n: int, preconditioned: bool = False, repeats: int = 20
) -> Dict[str, float]:
    """Benchmark CG or Jacobi-preconditioned CG on a tridiagonal system.

    Args:
        n: System size.
        preconditioned: Use a diagonal preconditioner.
        repeats: Number of timed solves.

    Returns:
        Dictionary with timing results.
    """
    A = _laplacian(n, shift=0.5)
    b = np.ones(n)
    if preconditioned:
        solver = PreconditionedConjugateGradientSolver(
            max_iterations=10 * n, preconditioner=DiagonalPreconditioner.from_matrix(A)
        )
    else:
        solver = ConjugateGradientSolver(max_iterations=10 * n)

    # Warmup
    solver.solve(A, b)

    counted = CountingOperator(A)
    start = time.perf_counter()
    for _ in range(repeats):
        result = solver.solve(counted, b)
    end = time.perf_counter()

    total_time = end - start
    return {
        "n": n,
        "nit": result.nit,
        "applies_per_solve": counted.count / repeats,
        "time_per_solve_sec": total_time / repeats,
    }


def benchmark_minimizer(name: str, n: int = 4, repeats: int = 5) -> Dict[str, float]:
    """Benchmark a minimizer on the extended Rosenbrock function."""

    def fun(x):
        return float(np.sum(100.0 * (x[1:] - x[:-1] ** 2) ** 2 + (1.0 - x[:-1]) ** 2))

    def grad(x):
        g = np.zeros_like(x)
        g[:-1] = -400.0 * x[:-1] * (x[1:] - x[:-1] ** 2) - 2.0 * (1.0 - x[:-1])
        g[1:] += 200.0 * (x[1:] - x[:-1] ** 2)
        return g

    minimizers = {
        "bfgs": BFGS,
        "polak_ribiere": PolakRibiereCG,
        "nelder_mead": NelderMead,
    }
    problem = Problem(fun=fun, grad=grad, dim=n)
    x0 = np.full(n, -1.0)
    minimizer = minimizers[name](max_iterations=20000)

    start = time.perf_counter()
    for _ in range(repeats):
        result = minimizer.learn(problem, x0)
    end = time.perf_counter()

    return {
        "nit": result.nit,
        "nfev": result.nfev,
        "fun": result.fun,
        "time_per_run_sec": (end - start) / repeats,
    }


if __name__ == "__main__":
    print("Benchmarking linear solvers...")
    for preconditioned in (False, True):
        results = benchmark_linear_solver(n=200, preconditioned=preconditioned)
        label = "PCG (Jacobi)" if preconditioned else "CG"
        print(f"{label} (n=200):")
        print(f"  Iterations: {results['nit']}")
        print(f"  Operator applications per solve: {results['applies_per_solve']:.0f}")
        print(f"  Time per solve: {results['time_per_solve_sec']*1e3:.2f} ms")

    print("Benchmarking minimizers...")
    for name in ("bfgs", "polak_ribiere", "nelder_mead"):
        results = benchmark_minimizer(name)
        print(f"{name} (extended Rosenbrock, n=4):")
        print(f"  Iterations: {results['nit']}, evaluations: {results['nfev']}")
        print(f"  Final value: {results['fun']:.3e}")
        print(f"  Time per run: {results['time_per_run_sec']*1e3:.2f} ms")
