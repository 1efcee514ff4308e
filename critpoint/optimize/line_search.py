"""Strong Wolfe line search (Nocedal & Wright, Algorithms 3.5 and 3.6)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .core import Array, Gradient, Objective


@dataclass(frozen=True)
class LineSearchResult:
    """Accepted step length with the objective and gradient at the new point."""

    alpha: float
    fun: float
    grad: Array


def wolfe_line_search(
    f: Objective,
    grad: Gradient,
    x: Array,
    p: Array,
    f0: Optional[float] = None,
    g0: Optional[Array] = None,
    alpha0: float = 1.0,
    c1: float = 1e-4,
    c2: float = 0.9,
    max_iter: int = 40,
) -> LineSearchResult:
    """Find a step satisfying the strong Wolfe conditions along ``p``.

    Objective and gradient values computed during the search are cached,
    so the caller receives ``f(x + alpha p)`` and its gradient without
    re-evaluating them. Non-finite objective values count as a failed
    sufficient-decrease test and shrink the bracket.

    Raises
    ------
    ValueError
        If the Wolfe constants are invalid or ``p`` is not a descent direction.
    """
    if not (0 < c1 < c2 < 1):
        raise ValueError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")

    values: dict[float, float] = {}
    grads: dict[float, Array] = {}

    def phi(alpha: float) -> float:
        if alpha not in values:
            value = float(f(x + alpha * p))
            values[alpha] = value if np.isfinite(value) else np.inf
        return values[alpha]

    def phi_prime(alpha: float) -> float:
        if alpha not in grads:
            grads[alpha] = np.asarray(grad(x + alpha * p), dtype=float)
        return float(np.dot(grads[alpha], p))

    if f0 is not None:
        values[0.0] = float(f0)
    if g0 is not None:
        grads[0.0] = np.asarray(g0, dtype=float)

    phi0 = phi(0.0)
    der0 = phi_prime(0.0)
    if der0 >= 0:
        raise ValueError("Search direction must be a descent direction.")

    def finish(alpha: float) -> LineSearchResult:
        phi(alpha)
        phi_prime(alpha)
        return LineSearchResult(alpha=alpha, fun=values[alpha], grad=grads[alpha])

    alpha_prev = 0.0
    alpha = float(alpha0)
    phi_prev = phi0
    for iteration in range(max_iter):
        phi_alpha = phi(alpha)
        if phi_alpha > phi0 + c1 * alpha * der0 or (
            iteration > 0 and phi_alpha >= phi_prev
        ):
            return finish(_zoom(phi, phi_prime, alpha_prev, alpha, phi0, der0, c1, c2))
        der_alpha = phi_prime(alpha)
        if abs(der_alpha) <= -c2 * der0:
            return finish(alpha)
        if der_alpha >= 0:
            return finish(_zoom(phi, phi_prime, alpha, alpha_prev, phi0, der0, c1, c2))
        alpha_prev = alpha
        phi_prev = phi_alpha
        alpha *= 2.0
    return finish(alpha_prev if alpha_prev > 0 else alpha)


def _zoom(
    phi: Callable[[float], float],
    phi_prime: Callable[[float], float],
    alo: float,
    ahi: float,
    phi0: float,
    der0: float,
    c1: float,
    c2: float,
) -> float:
    """Bisection zoom between ``alo`` (sufficient decrease holds) and ``ahi``."""
    phi_alo = phi(alo)
    best = alo
    for _ in range(32):
        alpha = 0.5 * (alo + ahi)
        phi_alpha = phi(alpha)
        if phi_alpha > phi0 + c1 * alpha * der0 or phi_alpha >= phi_alo:
            ahi = alpha
        else:
            best = alpha
            der_alpha = phi_prime(alpha)
            if abs(der_alpha) <= -c2 * der0:
                return alpha
            if der_alpha * (ahi - alo) > 0:
                ahi = alo
            alo = alpha
            phi_alo = phi_alpha
        if abs(ahi - alo) < 1e-12:
            break
    return best


__all__ = ["LineSearchResult", "wolfe_line_search"]
