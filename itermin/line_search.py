"""Deterministic line-search routines following Nocedal & Wright and Fletcher.

Every routine returns a :class:`LineSearchResult`. A search that cannot find a
decreasing step reports ``success=False`` with ``alpha == 0.0`` instead of
raising, so the minimizers can restart or stop cleanly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .core import Array, Gradient, Objective

GOLDEN_RATIO = 0.5 * (1.0 + math.sqrt(5.0))
_CGOLD = 0.3819660112501051
_TINY = 1e-20


@dataclass
class LineSearchResult:
    """Outcome of a one-dimensional search along ``x + alpha * p``."""

    alpha: float
    fun: float
    nfev: int
    njev: int
    success: bool
    message: str = ""
    grad: Optional[Array] = None


def sufficient_decrease(
    phi0: float, der0: float, alpha: float, phi_alpha: float, c1: float
) -> bool:
    """Armijo (Goldstein) condition ``phi(a) <= phi(0) + c1 * a * phi'(0)``."""
    return phi_alpha <= phi0 + c1 * alpha * der0


def strong_curvature(der0: float, der_alpha: float, c2: float) -> bool:
    """Strong Wolfe curvature condition ``|phi'(a)| <= -c2 * phi'(0)``."""
    if der0 >= 0.0:
        raise ValueError("Curvature condition requires a negative initial slope.")
    return abs(der_alpha) <= -c2 * der0


def backtracking_armijo(
    f: Objective,
    x: Array,
    p: Array,
    grad_fx: Array,
    fx: Optional[float] = None,
    alpha0: float = 1.0,
    rho: float = 0.5,
    c: float = 1e-4,
    max_iter: int = 50,
) -> LineSearchResult:
    """Classic Armijo backtracking line search."""
    if not (0 < c < 1):
        raise ValueError("Armijo constant c must lie in (0, 1)")
    if not (0 < rho < 1):
        raise ValueError("rho must lie in (0, 1)")
    nfev = 0
    if fx is None:
        fx = f(x)
        nfev += 1
    grad_dot = float(np.dot(grad_fx, p))
    if grad_dot >= 0:
        return LineSearchResult(0.0, fx, nfev, 0, False, "Not a descent direction.")
    alpha = float(alpha0)
    for _ in range(max_iter):
        f_new = f(x + alpha * p)
        nfev += 1
        if sufficient_decrease(fx, grad_dot, alpha, f_new, c):
            return LineSearchResult(alpha, f_new, nfev, 0, True, "Armijo condition satisfied.")
        alpha *= rho
    return LineSearchResult(0.0, fx, nfev, 0, False, "No step satisfied the Armijo condition.")


def wolfe_line_search(
    f: Objective,
    grad: Gradient,
    x: Array,
    p: Array,
    fx: Optional[float] = None,
    gx: Optional[Array] = None,
    alpha0: float = 1.0,
    c1: float = 1e-4,
    c2: float = 0.9,
    max_iter: int = 40,
) -> LineSearchResult:
    """Perform a strong Wolfe line search using bracketing and zoom."""
    if not (0 < c1 < c2 < 1):
        raise ValueError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")

    nfev = 0
    njev = 0
    grads: dict[float, Array] = {}

    def phi(alpha: float) -> float:
        nonlocal nfev
        nfev += 1
        return float(f(x + alpha * p))

    def phi_prime(alpha: float) -> float:
        nonlocal njev
        njev += 1
        g = np.asarray(grad(x + alpha * p), dtype=float)
        grads[alpha] = g
        return float(np.dot(g, p))

    def finish(alpha: float, phi_alpha: float, message: str) -> LineSearchResult:
        return LineSearchResult(alpha, phi_alpha, nfev, njev, True, message, grads.get(alpha))

    def fail(message: str) -> LineSearchResult:
        return LineSearchResult(0.0, phi0, nfev, njev, False, message)

    phi0 = phi(0.0) if fx is None else float(fx)
    if gx is None:
        der0 = phi_prime(0.0)
    else:
        der0 = float(np.dot(gx, p))
    if not der0 < 0:
        return fail("Not a descent direction.")

    alpha_prev = 0.0
    phi_prev = phi0
    der_prev = der0
    alpha = float(alpha0)

    for iteration in range(max_iter):
        phi_alpha = phi(alpha)
        if not math.isfinite(phi_alpha):
            alpha = 0.5 * (alpha_prev + alpha)
            continue
        if not sufficient_decrease(phi0, der0, alpha, phi_alpha, c1) or (
            iteration > 0 and phi_alpha >= phi_prev
        ):
            return _zoom(
                phi,
                phi_prime,
                finish,
                fail,
                (alpha_prev, phi_prev, der_prev),
                (alpha, phi_alpha),
                (phi0, der0),
                c1,
                c2,
            )
        der_alpha = phi_prime(alpha)
        if strong_curvature(der0, der_alpha, c2):
            return finish(alpha, phi_alpha, "Strong Wolfe conditions satisfied.")
        if der_alpha >= 0:
            return _zoom(
                phi,
                phi_prime,
                finish,
                fail,
                (alpha, phi_alpha, der_alpha),
                (alpha_prev, phi_prev),
                (phi0, der0),
                c1,
                c2,
            )
        alpha_prev = alpha
        phi_prev = phi_alpha
        der_prev = der_alpha
        alpha *= 2.0

    if alpha_prev > 0.0:
        return finish(alpha_prev, phi_prev, "Bracketing limit reached; sufficient decrease only.")
    return fail("Bracketing failed.")


def _zoom(
    phi: Callable[[float], float],
    phi_prime: Callable[[float], float],
    finish: Callable[[float, float, str], LineSearchResult],
    fail: Callable[[str], LineSearchResult],
    lo: tuple[float, float, float],
    hi: tuple[float, float],
    origin: tuple[float, float],
    c1: float,
    c2: float,
    max_iter: int = 32,
) -> LineSearchResult:
    """Zoom stage enforcing strong Wolfe conditions.

    ``lo`` is ``(alpha, phi, phi')`` at the low end, ``hi`` is ``(alpha, phi)``
    and ``origin`` is ``(phi(0), phi'(0))``. The low end always satisfies
    sufficient decrease and has the lowest value seen so far; when the
    interval collapses it is returned as the best effort.
    """
    alo, phi_lo, der_lo = lo
    ahi, phi_hi = hi
    phi0, der0 = origin
    for _ in range(max_iter):
        delta = ahi - alo
        if abs(delta) < 1e-12 * max(1.0, abs(alo)):
            break
        alpha = _interpolate(alo, phi_lo, der_lo, ahi, phi_hi)
        phi_alpha = phi(alpha)
        if not sufficient_decrease(phi0, der0, alpha, phi_alpha, c1) or phi_alpha >= phi_lo:
            ahi, phi_hi = alpha, phi_alpha
        else:
            der_alpha = phi_prime(alpha)
            if strong_curvature(der0, der_alpha, c2):
                return finish(alpha, phi_alpha, "Strong Wolfe conditions satisfied.")
            if der_alpha * (ahi - alo) >= 0:
                ahi, phi_hi = alo, phi_lo
            alo, phi_lo, der_lo = alpha, phi_alpha, der_alpha
    if alo > 0.0:
        return finish(alo, phi_lo, "Zoom interval collapsed; sufficient decrease only.")
    return fail("Zoom failed to find a decreasing step.")


def _interpolate(alo: float, phi_lo: float, der_lo: float, ahi: float, phi_hi: float) -> float:
    """Safeguarded quadratic interpolation inside ``[alo, ahi]``."""
    delta = ahi - alo
    lower = alo + 0.1 * delta
    upper = alo + 0.5 * delta
    if lower > upper:
        lower, upper = upper, lower
    denom = 2.0 * (phi_hi - phi_lo - der_lo * delta)
    if denom > 0.0:
        candidate = alo - der_lo * delta * delta / denom
        if math.isfinite(candidate):
            return min(max(candidate, lower), upper)
    return alo + 0.5 * delta


def bracket_minimum(
    phi: Callable[[float], float],
    a: float = 0.0,
    b: float = 1.0,
    fa: Optional[float] = None,
    grow_limit: float = 100.0,
    max_iter: int = 50,
) -> tuple[tuple[float, float, float], tuple[float, float, float], int]:
    """
    Bracket a minimum of ``phi`` starting from the points ``a`` and ``b``.

    Golden-ratio expansion with parabolic extrapolation (Numerical Recipes
    ``mnbrak``). Returns the abscissae ``(a, b, c)`` with ``f(b) <= f(a)`` and
    ``f(b) <= f(c)``, their values and the number of evaluations. If the
    expansion limit is hit the last triple is returned unchanged.
    """
    nfev = 0
    if fa is None:
        fa = phi(a)
        nfev += 1
    fb = phi(b)
    nfev += 1
    if fb > fa:
        a, b = b, a
        fa, fb = fb, fa
    c = b + GOLDEN_RATIO * (b - a)
    fc = phi(c)
    nfev += 1
    for _ in range(max_iter):
        if fb <= fc:
            break
        r = (b - a) * (fb - fc)
        q = (b - c) * (fb - fa)
        denom = 2.0 * math.copysign(max(abs(q - r), _TINY), q - r)
        u = b - ((b - c) * q - (b - a) * r) / denom
        ulim = b + grow_limit * (c - b)
        if (b - u) * (u - c) > 0.0:
            fu = phi(u)
            nfev += 1
            if fu < fc:
                a, b, fa, fb = b, u, fb, fu
                break
            if fu > fb:
                c, fc = u, fu
                break
            u = c + GOLDEN_RATIO * (c - b)
            fu = phi(u)
            nfev += 1
        elif (c - u) * (u - ulim) > 0.0:
            fu = phi(u)
            nfev += 1
            if fu < fc:
                b, c, u = c, u, u + GOLDEN_RATIO * (u - c)
                fb, fc = fc, fu
                fu = phi(u)
                nfev += 1
        elif (u - ulim) * (ulim - c) >= 0.0:
            u = ulim
            fu = phi(u)
            nfev += 1
        else:
            u = c + GOLDEN_RATIO * (c - b)
            fu = phi(u)
            nfev += 1
        a, b, c = b, c, u
        fa, fb, fc = fb, fc, fu
    return (a, b, c), (fa, fb, fc), nfev


def brent_minimize(
    phi: Callable[[float], float],
    bracket: tuple[float, float, float],
    fb: Optional[float] = None,
    tol: float = 1e-8,
    max_iter: int = 100,
) -> tuple[float, float, int]:
    """
    Brent's method on a bracketing triple ``(a, b, c)``.

    Combines parabolic interpolation with golden-section steps. Returns
    ``(x_min, f_min, nfev)``.
    """
    a, b, c = bracket
    lo, hi = (a, c) if a < c else (c, a)
    nfev = 0
    x = w = v = b
    if fb is None:
        fb = phi(b)
        nfev += 1
    fx = fw = fv = fb
    d = e = 0.0
    for _ in range(max_iter):
        xm = 0.5 * (lo + hi)
        tol1 = tol * abs(x) + 1e-12
        tol2 = 2.0 * tol1
        if abs(x - xm) <= tol2 - 0.5 * (hi - lo):
            break
        take_golden = True
        if abs(e) > tol1:
            r = (x - w) * (fx - fv)
            q = (x - v) * (fx - fw)
            p = (x - v) * q - (x - w) * r
            q = 2.0 * (q - r)
            if q > 0.0:
                p = -p
            q = abs(q)
            e_prev = e
            e = d
            if abs(p) < abs(0.5 * q * e_prev) and q * (lo - x) < p < q * (hi - x):
                d = p / q
                u = x + d
                if u - lo < tol2 or hi - u < tol2:
                    d = math.copysign(tol1, xm - x)
                take_golden = False
        if take_golden:
            e = (lo - x) if x >= xm else (hi - x)
            d = _CGOLD * e
        u = x + d if abs(d) >= tol1 else x + math.copysign(tol1, d)
        fu = phi(u)
        nfev += 1
        if fu <= fx:
            if u >= x:
                lo = x
            else:
                hi = x
            v, w, x = w, x, u
            fv, fw, fx = fw, fx, fu
        else:
            if u < x:
                lo = u
            else:
                hi = u
            if fu <= fw or w == x:
                v, w = w, u
                fv, fw = fw, fu
            elif fu <= fv or v == x or v == w:
                v, fv = u, fu
    return x, fx, nfev


def line_minimize(
    f: Objective,
    x: Array,
    p: Array,
    fx: Optional[float] = None,
    tol: float = 1e-8,
    step: float = 1.0,
) -> LineSearchResult:
    """
    Derivative-free minimization of ``f(x + alpha * p)`` over ``alpha``.

    Negative steps are allowed. ``success`` is False when no point with a
    strictly lower value than ``f(x)`` was found; ``alpha`` is then ``0.0``.
    """
    nfev = 0

    def phi(alpha: float) -> float:
        nonlocal nfev
        nfev += 1
        return float(f(x + alpha * p))

    phi0 = phi(0.0) if fx is None else float(fx)
    bracket, values, _ = bracket_minimum(phi, 0.0, step, fa=phi0)
    alpha, phi_alpha, _ = brent_minimize(phi, bracket, fb=values[1], tol=tol)
    if not phi_alpha < phi0:
        return LineSearchResult(0.0, phi0, nfev, 0, False, "No decrease along direction.")
    return LineSearchResult(alpha, phi_alpha, nfev, 0, True, "Line minimum located.")


__all__ = [
    "LineSearchResult",
    "sufficient_decrease",
    "strong_curvature",
    "backtracking_armijo",
    "wolfe_line_search",
    "bracket_minimum",
    "brent_minimize",
    "line_minimize",
]
