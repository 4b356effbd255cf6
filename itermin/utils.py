"""Utility helpers for finite differences and small linear-algebra checks.

Pure NumPy; no SciPy dependency at runtime.
"""

from __future__ import annotations

import numpy as np

from .core import Array, Objective


def approx_grad(
    fun: Objective, x: Array, eps: float = 1e-6, return_evals: bool = False
) -> Array | tuple[Array, int]:
    """Compute a central-difference gradient approximation.

    Parameters
    ----------
    fun:
        Objective function returning a scalar given x.
    x:
        Point where the gradient is approximated. Never modified.
    eps:
        Perturbation size for finite differences.
    return_evals:
        Also return the number of objective evaluations (``2 * x.size``).
    """
    if eps <= 0:
        raise ValueError("eps must be positive")
    point = np.array(x, dtype=float, copy=True)
    grad = np.zeros_like(point)
    evals = 0
    for i in range(point.size):
        saved = point[i]
        point[i] = saved + eps
        f_plus = fun(point.copy())
        point[i] = saved - eps
        f_minus = fun(point.copy())
        point[i] = saved
        evals += 2
        grad[i] = (f_plus - f_minus) / (2.0 * eps)
    if return_evals:
        return grad, evals
    return grad


def is_pos_def(mat: Array, tol: float = 1e-12) -> bool:
    """Check if a matrix is positive definite via eigenvalues of its symmetric part."""
    mat = np.asarray(mat, dtype=float)
    sym = 0.5 * (mat + mat.T)
    eigvals = np.linalg.eigvalsh(sym)
    return bool(np.all(eigvals > tol))


__all__ = ["approx_grad", "is_pos_def"]
