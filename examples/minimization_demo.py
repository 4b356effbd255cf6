"""
Example: Iterative minimization with itermin

This example walks through the main entry points of the package: iterative
solvers for linear systems, least-squares and minimum-norm solves, quasi-Newton
and nonlinear conjugate gradient minimizers, and the derivative-free Powell and
Nelder-Mead methods.
"""

import numpy as np

from itermin import (
    BFGS,
    CountingOperator,
    DiagonalPreconditioner,
    OverconstrainedOperator,
    Problem,
    Status,
    UnderconstrainedOperator,
    conjugate_gradient,
    dfp,
    least_squares_cg,
    min_norm_cg,
    nelder_mead,
    polak_ribiere,
    powell,
    preconditioned_conjugate_gradient,
)


def rosenbrock(x):
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosenbrock_grad(x):
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def example_linear_systems():
    """Example: Poisson-like system solved by CG and Jacobi-preconditioned CG."""
    print("=" * 60)
    print("Example 1: Linear Systems - Conjugate Gradient")
    print("=" * 60)

    n = 10
    diag = np.linspace(2.0, 50.0, n)
    A = np.diag(diag) - 0.5 * np.eye(n, k=1) - 0.5 * np.eye(n, k=-1)
    b = np.ones(n)

    counted = CountingOperator(A)
    plain = conjugate_gradient(counted, b)
    print(f"CG status: {plain.status.value}, iterations: {plain.nit}")
    print(f"Operator applications: {counted.count}")

    jacobi = preconditioned_conjugate_gradient(
        A, b, preconditioner=DiagonalPreconditioner.from_matrix(A)
    )
    print(f"Jacobi PCG status: {jacobi.status.value}, iterations: {jacobi.nit}")
    error = np.max(np.abs(jacobi.x - np.linalg.solve(A, b)))
    print(f"Max difference to direct solve: {error:.2e}")
    print()


def example_least_squares():
    """Example: Line fit (over-constrained) and minimum-norm solve (under-constrained)."""
    print("=" * 60)
    print("Example 2: Least Squares and Minimum-Norm Solutions")
    print("=" * 60)

    t = np.linspace(0.0, 1.0, 8)
    A = np.column_stack([np.ones_like(t), t])
    y = 1.5 + 2.0 * t + 0.01 * np.sin(10 * t)
    fit = least_squares_cg(OverconstrainedOperator(A), y)
    print(f"Fitted intercept/slope: {fit.x}")

    W = np.array([[1.0, 1.0, 0.0], [0.0, 1.0, 1.0]])
    mn = min_norm_cg(UnderconstrainedOperator(W), np.array([1.0, 2.0]))
    print(f"Minimum-norm solution: {mn.x} (norm {np.linalg.norm(mn.x):.4f})")
    print()


def example_quasi_newton():
    """Example: Rosenbrock valley with BFGS, DFP and Polak-Ribiere CG."""
    print("=" * 60)
    print("Example 3: Quasi-Newton and Nonlinear CG on Rosenbrock")
    print("=" * 60)

    problem = Problem(fun=rosenbrock, grad=rosenbrock_grad, dim=2)
    x0 = np.array([-1.2, 1.0])

    result = BFGS(tolerance=1e-8).learn(problem, x0)
    print(f"BFGS: x = {result.x}, f = {result.fun:.3e}, nit = {result.nit}")

    result = dfp(problem, x0, maxiter=2000)
    print(f"DFP: x = {result.x}, f = {result.fun:.3e}, status = {result.status.value}")

    result = polak_ribiere(problem, x0, maxiter=5000)
    print(f"Polak-Ribiere: x = {result.x}, f = {result.fun:.3e}, nit = {result.nit}")
    print()


def example_derivative_free():
    """Example: Powell and Nelder-Mead without gradients."""
    print("=" * 60)
    print("Example 4: Derivative-Free Minimization")
    print("=" * 60)

    x0 = np.array([-1.2, 1.0])
    result = powell(rosenbrock, x0, tol=1e-10)
    print(f"Powell: x = {result.x}, nfev = {result.nfev}, njev = {result.njev}")

    result = nelder_mead(rosenbrock, x0, tol=1e-10)
    print(f"Nelder-Mead: x = {result.x}, nfev = {result.nfev}")
    if result.status == Status.CONVERGED:
        print(f"Nelder-Mead converged after {result.nit} iterations")
    print()


def main():
    """Run all examples."""
    print("\n" + "=" * 60)
    print("itermin Examples")
    print("=" * 60 + "\n")

    example_linear_systems()
    example_least_squares()
    example_quasi_newton()
    example_derivative_free()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
