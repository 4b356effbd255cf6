import numpy as np
import pytest

from itermin import (
    DirectionSetPowell,
    NelderMead,
    Problem,
    Status,
    nelder_mead,
    powell,
)


def rosenbrock(x: np.ndarray) -> float:
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def forbidden_grad(x: np.ndarray) -> np.ndarray:
    raise AssertionError("derivative-free method evaluated the gradient")


def shifted_quadratic(x: np.ndarray) -> float:
    return float((x[0] - 1.0) ** 2 + 3.0 * (x[1] + 2.0) ** 2 + 0.5 * (x[2] - 0.5) ** 2 + 1.0)


@pytest.mark.parametrize("method", [powell, nelder_mead])
def test_never_calls_gradient(method):
    problem = Problem(fun=shifted_quadratic, grad=forbidden_grad, dim=3)
    res = method(problem, np.zeros(3))
    assert res.njev == 0
    assert res.grad_norm is None


def test_powell_quadratic():
    problem = Problem(fun=shifted_quadratic, grad=forbidden_grad, dim=3)
    res = powell(problem, np.zeros(3), tol=1e-10)
    assert res.success
    assert np.allclose(res.x, [1.0, -2.0, 0.5], atol=1e-5)
    assert res.fun == pytest.approx(1.0)


def test_powell_rosenbrock():
    res = powell(rosenbrock, np.array([-1.2, 1.0]), tol=1e-10)
    assert np.linalg.norm(res.x - np.ones(2)) < 1e-1
    assert res.fun < 1e-2


def test_powell_rotated_valley_replaces_directions():
    replacements = []

    def grab(state):
        replacements.append(state.work["replacements"])

    def valley(x):
        u = x[0] + x[1]
        v = x[0] - x[1]
        return float(u**2 + 25.0 * (v - 1.0) ** 2)

    res = DirectionSetPowell(tolerance=1e-12, callback=grab).learn(valley, np.array([3.0, 4.0]))
    assert np.allclose(res.x, [0.5, -0.5], atol=1e-4)
    assert replacements[-1] >= 1


def test_nelder_mead_defaults():
    minimizer = NelderMead()
    assert minimizer.tolerance == 1e-3
    assert minimizer.max_iterations == 4000


def test_nelder_mead_quadratic():
    res = nelder_mead(shifted_quadratic, np.zeros(3), tol=1e-10)
    assert res.status is Status.CONVERGED
    assert np.allclose(res.x, [1.0, -2.0, 0.5], atol=1e-3)


def test_nelder_mead_rosenbrock():
    res = nelder_mead(rosenbrock, np.array([-1.2, 1.0]), tol=1e-12)
    assert np.linalg.norm(res.x - np.ones(2)) < 1e-1


def test_nelder_mead_result_is_best_vertex():
    values = []

    def fun(x):
        value = shifted_quadratic(x)
        values.append(value)
        return value

    res = nelder_mead(fun, np.zeros(3), maxiter=25)
    assert res.fun == pytest.approx(min(values))
