import numpy as np
import pytest

from itermin import (
    ConjugateGradientSolver,
    CountingOperator,
    DiagonalPreconditioner,
    DimensionMismatchError,
    IdentityPreconditioner,
    PreconditionedConjugateGradientSolver,
    PreconditionedOperator,
    SteepestDescentSolver,
    Status,
    conjugate_gradient,
    preconditioned_conjugate_gradient,
    steepest_descent,
)
from itermin.linear import DEFAULT_RECOMPUTE_PERIOD

SQUARE_SOLVERS = [
    SteepestDescentSolver,
    ConjugateGradientSolver,
    PreconditionedConjugateGradientSolver,
]


@pytest.mark.parametrize("cls", SQUARE_SOLVERS)
def test_scaled_identity_converges_in_one_iteration(cls):
    A = 2.0 * np.eye(3)
    b = np.array([1.0, 2.0, 3.0])
    res = cls().solve(A, b)
    assert res.success
    assert res.nit == 1
    assert np.allclose(res.x, b / 2.0)
    assert np.array_equal(res.x0, np.zeros(3))


def test_cg_terminates_within_distinct_eigenvalue_count():
    A = np.diag([1.0, 2.0, 2.0, 2.0, 3.0])
    b = np.ones(5)
    res = conjugate_gradient(A, b)
    assert res.success
    assert res.nit <= 3
    assert np.allclose(res.x, b / np.diag(A))


def test_jacobi_pcg_on_diagonal_system_takes_one_iteration():
    A = np.diag([1.0, 2.0, 2.0, 2.0, 3.0])
    b = np.ones(5)
    res = preconditioned_conjugate_gradient(
        A, b, preconditioner=DiagonalPreconditioner.from_matrix(A)
    )
    assert res.success
    assert res.nit == 1

    carried = PreconditionedConjugateGradientSolver().solve(PreconditionedOperator.jacobi(A), b)
    assert carried.nit == 1
    assert np.allclose(carried.x, res.x)


def test_cg_exact_in_n_steps(spd_matrix):
    b = np.ones(5)
    res = conjugate_gradient(spd_matrix, b)
    assert res.success
    assert res.nit <= 5
    assert np.allclose(res.x, np.linalg.solve(spd_matrix, b), atol=1e-8)


def test_steepest_descent_converges_on_spd(spd_matrix):
    b = np.ones(5)
    res = steepest_descent(spd_matrix, b, maxiter=2000)
    assert res.success
    assert np.allclose(res.x, np.linalg.solve(spd_matrix, b), atol=1e-8)
    assert res.nit > 5


def test_pcg_with_identity_matches_cg_iterates(spd_matrix, rng):
    b = rng.normal(size=5)
    cg = conjugate_gradient(spd_matrix, b, history=True)
    pcg = preconditioned_conjugate_gradient(
        spd_matrix, b, preconditioner=IdentityPreconditioner(), history=True
    )
    assert cg.nit == pcg.nit
    assert len(cg.history) == len(pcg.history)
    for x_cg, x_pcg in zip(cg.history, pcg.history):
        assert np.allclose(x_cg, x_pcg, rtol=0.0, atol=1e-12)


def test_jacobi_pcg_handles_badly_scaled_system(rng):
    n = 8
    scales = np.logspace(0, 4, n)
    M = rng.normal(size=(n, n))
    core = M @ M.T / n + np.eye(n)
    A = np.diag(np.sqrt(scales)) @ core @ np.diag(np.sqrt(scales))
    b = rng.normal(size=n)
    jacobi = preconditioned_conjugate_gradient(
        A, b, preconditioner=DiagonalPreconditioner.from_matrix(A), maxiter=500, tol=1e-8
    )
    assert jacobi.success
    assert np.allclose(jacobi.x, np.linalg.solve(A, b), atol=1e-6)
    assert jacobi.nit <= n + 2


def test_solution_as_initial_guess_converges_immediately(spd_matrix):
    b = np.ones(5)
    x_star = np.linalg.solve(spd_matrix, b)
    res = ConjugateGradientSolver(initial_guess=x_star, tolerance=1e-8).solve(spd_matrix, b)
    assert res.status is Status.CONVERGED
    assert res.nit == 0


@pytest.mark.parametrize("cls", SQUARE_SOLVERS)
def test_zero_iterations_returns_initial_guess(cls, spd_matrix):
    x0 = np.full(5, 0.25)
    res = cls(max_iterations=0).solve(spd_matrix, np.ones(5), x0)
    assert res.status is Status.MAX_ITERATIONS
    assert res.nit == 0
    assert np.array_equal(res.x, x0)


@pytest.mark.parametrize("cls", SQUARE_SOLVERS)
def test_inputs_are_not_mutated(cls, spd_matrix):
    A = spd_matrix.copy()
    b = np.ones(5)
    x0 = np.zeros(5)
    cls().solve(A, b, x0)
    assert np.array_equal(A, spd_matrix)
    assert np.array_equal(b, np.ones(5))
    assert np.array_equal(x0, np.zeros(5))


def test_indefinite_system_stalls():
    A = np.diag([1.0, -1.0])
    b = np.array([0.0, 1.0])
    res = conjugate_gradient(A, b)
    assert res.status is Status.STALLED
    assert not res.success
    assert res.nit == 1
    assert np.array_equal(res.x, np.zeros(2))


def test_dimension_checks():
    with pytest.raises(DimensionMismatchError):
        conjugate_gradient(np.eye(3), np.ones(2))
    with pytest.raises(DimensionMismatchError):
        conjugate_gradient(np.ones((3, 2)), np.ones(3))
    with pytest.raises(DimensionMismatchError):
        conjugate_gradient(np.eye(3), np.ones(3), x0=np.ones(4))


def test_configuration_validation():
    with pytest.raises(ValueError):
        ConjugateGradientSolver(tolerance=0.0)
    with pytest.raises(ValueError):
        ConjugateGradientSolver(max_iterations=-1)
    with pytest.raises(ValueError):
        ConjugateGradientSolver(recompute_period=0)
    assert ConjugateGradientSolver().recompute_period == DEFAULT_RECOMPUTE_PERIOD


def test_recompute_period_does_not_change_solution(spd_matrix):
    b = np.ones(5)
    every_step = ConjugateGradientSolver(recompute_period=1).solve(spd_matrix, b)
    default = ConjugateGradientSolver().solve(spd_matrix, b)
    assert np.allclose(every_step.x, default.x, atol=1e-10)


def test_operator_applications_are_counted():
    op = CountingOperator(2.0 * np.eye(3))
    res = ConjugateGradientSolver().solve(op, np.ones(3))
    assert res.nit == 1
    # One product for the initial residual, one per iteration.
    assert op.count == 2


def test_counting_wrapper_keeps_operator_preconditioner(rng):
    n = 8
    scales = np.logspace(0, 4, n)
    M = rng.normal(size=(n, n))
    A = np.diag(np.sqrt(scales)) @ (M @ M.T / n + np.eye(n)) @ np.diag(np.sqrt(scales))
    b = rng.normal(size=n)
    solver = PreconditionedConjugateGradientSolver(max_iterations=500, tolerance=1e-8, history=True)

    direct = solver.solve(PreconditionedOperator.jacobi(A), b)
    counted = CountingOperator(PreconditionedOperator.jacobi(A))
    wrapped = solver.solve(counted, b)

    assert direct.success
    assert wrapped.nit == direct.nit
    for x_direct, x_wrapped in zip(direct.history, wrapped.history):
        assert np.array_equal(x_direct, x_wrapped)
    assert counted.count == wrapped.nit + 1


def test_callback_sees_state(spd_matrix):
    residuals = []
    solver = ConjugateGradientSolver(callback=lambda state: residuals.append(state.residual_norm))
    res = solver.solve(spd_matrix, np.ones(5))
    assert len(residuals) == res.nit
    assert residuals[-1] == pytest.approx(res.residual_norm)


def test_scipy_sparse_system():
    sparse = pytest.importorskip("scipy.sparse")
    n = 20
    A = sparse.diags(
        [-np.ones(n - 1), 2.0 * np.ones(n), -np.ones(n - 1)], [-1, 0, 1], format="csr"
    )
    b = np.ones(n)
    res = conjugate_gradient(A, b, maxiter=4 * n)
    assert res.success
    assert np.allclose(A @ res.x, b, atol=1e-8)
