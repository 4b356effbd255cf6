import itertools

import numpy as np
import pytest

from itermin import (
    BetaRule,
    ConjugateGradientMinimizer,
    FletcherReeves,
    LineSearchResult,
    LiuStorey,
    PolakRibiere,
    PolakRibiereCG,
    Problem,
    Status,
    backtracking_armijo,
    fletcher_reeves,
    liu_storey,
    polak_ribiere,
)

A3 = np.array([[4.0, 1.0, 0.0], [1.0, 3.0, 1.0], [0.0, 1.0, 2.0]])
B3 = np.array([1.0, 2.0, 3.0])


def quadratic_problem() -> Problem:
    return Problem(
        fun=lambda x: float(0.5 * x @ (A3 @ x) - B3 @ x),
        grad=lambda x: A3 @ x - B3,
        dim=3,
    )


@pytest.mark.parametrize("method", [fletcher_reeves, polak_ribiere, liu_storey])
def test_nonlinear_cg_solves_quadratic(method):
    res = method(quadratic_problem(), np.zeros(3), tol=1e-8)
    assert res.success
    assert np.allclose(res.x, np.linalg.solve(A3, B3), atol=1e-6)
    assert res.nit <= 50


def test_beta_rules():
    g_old = np.array([1.0, 0.0])
    g_new = np.array([0.5, 0.5])
    d = np.array([-1.0, 0.0])
    assert FletcherReeves().beta(g_new, g_old, d) == pytest.approx(0.5)
    # g_new . (g_new - g_old) = 0.5 * -0.5 + 0.5 * 0.5 = 0
    assert PolakRibiere().beta(g_new, g_old, d) == pytest.approx(0.0)
    assert LiuStorey().beta(g_new, g_old, d) == pytest.approx(0.0)

    g_new = np.array([2.0, 1.0])
    assert PolakRibiere().beta(g_new, g_old, d) == pytest.approx(3.0)
    assert LiuStorey().beta(g_new, g_old, d) == pytest.approx(3.0)


def test_polak_ribiere_is_clamped_at_zero():
    g_old = np.array([1.0, 0.0])
    g_new = np.array([0.5, 0.0])
    assert PolakRibiere().beta(g_new, g_old, -g_old) == 0.0
    assert LiuStorey().beta(g_new, g_old, -g_old) == pytest.approx(-0.25)


def test_working_set_holds_vectors_only():
    shapes = []

    def grab(state):
        for value in state.work.values():
            if isinstance(value, np.ndarray):
                shapes.append(value.shape)

    PolakRibiereCG(callback=grab).learn(quadratic_problem(), np.zeros(3))
    assert shapes
    assert all(shape == (3,) for shape in shapes)


def test_default_line_search_uses_tight_curvature():
    assert PolakRibiereCG().line_search_options == {"c2": 0.1}
    custom = PolakRibiereCG(line_search=backtracking_armijo)
    assert custom.line_search_options == {}


def test_nonlinear_cg_with_armijo_line_search():
    minimizer = ConjugateGradientMinimizer(
        beta=FletcherReeves(), line_search=backtracking_armijo, max_iterations=2000
    )
    res = minimizer.learn(quadratic_problem(), np.zeros(3))
    assert np.allclose(res.x, np.linalg.solve(A3, B3), atol=1e-3)


def test_nonlinear_cg_without_gradient():
    problem = Problem(fun=lambda x: float(np.sum((x - 2.0) ** 2)), dim=4)
    res = polak_ribiere(problem, np.zeros(4))
    assert res.success
    assert res.njev == 0
    assert np.allclose(res.x, 2.0, atol=1e-4)


def sphere_problem(dim: int) -> Problem:
    return Problem(fun=lambda x: float(x @ x), grad=lambda x: 2.0 * x, dim=dim)


def scripted_search(steps):
    """Wolfe-style search taking the given step sizes, then failing for good."""
    steps = iter(steps)

    def search(f, grad, x, p, fx=None, gx=None):
        alpha = next(steps, None)
        if alpha is None:
            return LineSearchResult(0.0, fx, 0, 0, False, "scripted failure")
        return LineSearchResult(alpha, f(x + alpha * p), 1, 0, True, "scripted step")

    return search


class UphillBeta(BetaRule):
    def beta(self, grad_new, grad_old, direction):
        return -10.0


def test_failure_along_steepest_descent_stalls():
    res = PolakRibiereCG(line_search=scripted_search([])).learn(
        sphere_problem(2), np.array([1.0, -1.0])
    )
    assert res.status is Status.STALLED
    assert res.message.startswith("Line search failed along steepest descent")
    assert res.nit == 1
    assert res.restarts == 0


def test_failure_along_conjugate_direction_restarts():
    res = PolakRibiereCG(line_search=scripted_search([0.1])).learn(
        sphere_problem(2), np.array([1.0, -1.0])
    )
    assert res.status is Status.STALLED
    assert res.nit == 3
    assert res.restarts == 1
    assert np.allclose(res.x, [0.8, -0.8])


def test_non_descent_direction_restarts():
    minimizer = ConjugateGradientMinimizer(
        beta=UphillBeta(),
        line_search=scripted_search(itertools.repeat(0.1)),
        max_iterations=2,
    )
    res = minimizer.learn(sphere_problem(2), np.array([1.0, -1.0]))
    assert res.status is Status.MAX_ITERATIONS
    assert res.restarts == 2
    assert np.allclose(res.x, [0.64, -0.64])


def test_periodic_restart_is_counted():
    minimizer = PolakRibiereCG(
        line_search=scripted_search(itertools.repeat(0.1)), max_iterations=2
    )
    res = minimizer.learn(sphere_problem(1), np.array([1.0]))
    assert res.status is Status.MAX_ITERATIONS
    assert res.restarts == 1
