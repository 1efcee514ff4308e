"""Derivative-free Nelder-Mead simplex search."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .core import Callback, OptimizeResult, Problem
from .utils import Bounds, clamp_to_bounds, split_bounds


def _simplex_parameters(n: int, adaptive: bool) -> tuple[float, float, float, float]:
    """Reflection, expansion, contraction and shrink coefficients.

    The adaptive variant (Gao & Han, 2012) scales the coefficients with the
    dimension, which keeps the simplex from collapsing in higher dimensions.
    """
    if adaptive and n >= 2:
        return 1.0, 1.0 + 2.0 / n, 0.75 - 1.0 / (2.0 * n), 1.0 - 1.0 / n
    return 1.0, 2.0, 0.5, 0.5


def nelder_mead(
    problem: Problem,
    x0: np.ndarray,
    maxiter: int = 1000,
    xtol: float = 1e-6,
    ftol: float = 1e-6,
    initial_step: float = 0.05,
    adaptive: bool = True,
    bounds: Optional[Bounds] = None,
    callback: Optional[Callback] = None,
    history: bool = False,
) -> OptimizeResult:
    """Minimize ``problem.fun`` with the Nelder-Mead simplex method.

    Parameters
    ----------
    problem:
        Objective to minimize. Derivatives are never used.
    x0:
        Starting point; it becomes the first simplex vertex.
    maxiter:
        Maximum number of simplex iterations.
    xtol:
        The run stops with ``x_converged`` once every vertex lies within
        ``xtol`` (Euclidean) of the best vertex.
    ftol:
        The run stops with ``f_converged`` once the spread of objective
        values over the simplex is at most ``ftol``.
    initial_step:
        Relative edge length of the initial simplex: vertex ``i`` is
        displaced by ``initial_step * max(1, |x0_i|)`` along axis ``i``.
    adaptive:
        Use dimension-dependent coefficients.
    bounds:
        Optional ``(lo, hi)`` pairs; every trial vertex is clamped to the box.
    callback:
        Called with the best vertex after every iteration.
    """
    x0 = np.asarray(x0, dtype=float).copy()
    if x0.ndim != 1 or x0.size == 0:
        raise ValueError(f"x0 must be a non-empty 1D array, got shape {x0.shape}")
    if initial_step <= 0:
        raise ValueError(f"initial_step must be positive, got {initial_step}")
    n = x0.size
    box = split_bounds(bounds, n)
    alpha, gamma, rho, sigma = _simplex_parameters(n, adaptive)
    nfev = 0

    def fun(point: np.ndarray) -> float:
        nonlocal nfev
        nfev += 1
        value = float(problem.fun(point))
        return value if np.isfinite(value) else np.inf

    x0 = clamp_to_bounds(x0, box)
    simplex = np.empty((n + 1, n), dtype=float)
    simplex[0] = x0
    for i in range(n):
        vertex = x0.copy()
        step = initial_step * max(1.0, abs(x0[i]))
        vertex[i] += step
        if box is not None and vertex[i] > box[1][i]:
            vertex[i] = x0[i] - step
        simplex[i + 1] = clamp_to_bounds(vertex, box)
    fvals = np.array([fun(vertex) for vertex in simplex])

    hist: list[np.ndarray] = [x0.copy()] if history else []
    nit = 0
    x_conv = f_conv = False
    while True:
        order = np.argsort(fvals, kind="stable")
        simplex = simplex[order]
        fvals = fvals[order]

        spread = fvals[-1] - fvals[0]
        if np.isfinite(spread) and spread <= ftol:
            f_conv = True
            break
        if float(np.max(np.linalg.norm(simplex[1:] - simplex[0], axis=1))) <= xtol:
            x_conv = True
            break
        if nit >= maxiter:
            break

        centroid = simplex[:-1].mean(axis=0)
        worst = simplex[-1]
        xr = clamp_to_bounds(centroid + alpha * (centroid - worst), box)
        fr = fun(xr)
        if fr < fvals[0]:
            xe = clamp_to_bounds(centroid + gamma * (xr - centroid), box)
            fe = fun(xe)
            if fe < fr:
                simplex[-1], fvals[-1] = xe, fe
            else:
                simplex[-1], fvals[-1] = xr, fr
        elif fr < fvals[-2]:
            simplex[-1], fvals[-1] = xr, fr
        else:
            if fr < fvals[-1]:
                xc = clamp_to_bounds(centroid + rho * (xr - centroid), box)
                fc = fun(xc)
                accept = fc <= fr
            else:
                xc = clamp_to_bounds(centroid + rho * (worst - centroid), box)
                fc = fun(xc)
                accept = fc < fvals[-1]
            if accept:
                simplex[-1], fvals[-1] = xc, fc
            else:
                for i in range(1, n + 1):
                    simplex[i] = clamp_to_bounds(
                        simplex[0] + sigma * (simplex[i] - simplex[0]), box
                    )
                    fvals[i] = fun(simplex[i])
        nit += 1
        best = simplex[int(np.argmin(fvals))]
        if history:
            hist.append(best.copy())
        if callback is not None:
            callback(best)

    if f_conv:
        message = "Function tolerance satisfied."
    elif x_conv:
        message = "Simplex size tolerance satisfied."
    else:
        message = "Maximum iterations reached."
    return OptimizeResult(
        x=simplex[0].copy(),
        fun=float(fvals[0]),
        nit=nit,
        success=x_conv or f_conv,
        message=message,
        grad_norm=float("nan"),
        nfev=nfev,
        njev=0,
        nhev=0,
        history=hist,
        x_converged=x_conv,
        f_converged=f_conv,
        iteration_limit_reached=not (x_conv or f_conv),
    )


__all__ = ["nelder_mead"]
