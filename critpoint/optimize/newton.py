"""Damped Newton iteration on the gradient for locating critical points.

Unlike a minimizer, this routine solves ``grad f(x) = 0`` and therefore
converges to minima, maxima and saddles alike. Near-singular Hessians are
handled with an eigen-decomposition pseudo-inverse.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .core import Callback, OptimizeResult, Problem, check_convergence
from .utils import Bounds, approx_grad, approx_hessian, clamp_to_bounds, split_bounds


def _compute_gradient(problem: Problem, x: np.ndarray) -> tuple[np.ndarray, int, int]:
    if problem.grad is not None:
        return np.asarray(problem.grad(x), dtype=float), 0, 1
    grad, evals = approx_grad(problem.fun, x, return_evals=True)
    return grad, int(evals), 0


def _compute_hessian(problem: Problem, x: np.ndarray) -> tuple[np.ndarray, int, int]:
    if problem.hess is not None:
        return np.asarray(problem.hess(x), dtype=float), 0, 1
    hess, evals = approx_hessian(problem.fun, x, return_evals=True)
    return hess, int(evals), 0


def pseudo_inverse_step(hess: np.ndarray, grad: np.ndarray, rcond: float = 1e-10) -> np.ndarray:
    """Newton step ``-H^+ g`` using only well-conditioned eigen-directions.

    Eigenvalues with ``|lambda| <= max(1e-12, rcond * max|lambda|)`` are
    treated as zero and their directions are left out of the step.
    """
    sym = 0.5 * (hess + hess.T)
    eigvals, eigvecs = np.linalg.eigh(sym)
    cutoff = max(1e-12, rcond * float(np.max(np.abs(eigvals))))
    keep = np.abs(eigvals) > cutoff
    coeffs = eigvecs[:, keep].T @ grad
    return -eigvecs[:, keep] @ (coeffs / eigvals[keep])


def newton_critical_point(
    problem: Problem,
    x0: np.ndarray,
    maxiter: int = 100,
    tol: float = 1e-8,
    xtol: float = 0.0,
    min_damping: float = 0.01,
    bounds: Optional[Bounds] = None,
    callback: Optional[Callback] = None,
    history: bool = False,
) -> OptimizeResult:
    """Solve ``grad f(x) = 0`` by damped Newton steps.

    Each full step is halved while it increases the gradient norm, down to
    a damping factor of ``min_damping``. Iterates are clamped to ``bounds``.
    The run stops with ``g_converged`` once the gradient norm drops to
    ``tol`` and with ``x_converged`` once an accepted step is at most
    ``xtol`` long.
    """
    if not 0 < min_damping <= 1:
        raise ValueError(f"min_damping must lie in (0, 1], got {min_damping}")
    x = np.asarray(x0, dtype=float).copy()
    if x.ndim != 1:
        raise ValueError(f"x0 must be a 1D array, got shape {x.shape}")
    box = split_bounds(bounds, x.size)
    x = clamp_to_bounds(x, box)
    hist: list[np.ndarray] = [x.copy()] if history else []
    nfev = njev = nhev = 0

    def gradient(point: np.ndarray) -> np.ndarray:
        nonlocal nfev, njev
        g, fe, je = _compute_gradient(problem, point)
        nfev += fe
        njev += je
        return g

    grad = gradient(x)
    grad_norm = float(np.linalg.norm(grad))
    nit = 0
    x_conv = g_conv = False
    message = "Maximum iterations reached."
    while True:
        if check_convergence(grad_norm, tol):
            g_conv = True
            message = "Gradient tolerance satisfied."
            break
        if nit >= maxiter:
            break
        hess, fe, he = _compute_hessian(problem, x)
        nfev += fe
        nhev += he
        step = pseudo_inverse_step(hess, grad)
        damping = 1.0
        x_new = clamp_to_bounds(x + step, box)
        grad_new = gradient(x_new)
        norm_new = float(np.linalg.norm(grad_new))
        while not norm_new <= grad_norm and damping * 0.5 >= min_damping:
            damping *= 0.5
            x_new = clamp_to_bounds(x + damping * step, box)
            grad_new = gradient(x_new)
            norm_new = float(np.linalg.norm(grad_new))
        step_length = float(np.linalg.norm(x_new - x))
        x, grad, grad_norm = x_new, grad_new, norm_new
        nit += 1
        if history:
            hist.append(x.copy())
        if callback is not None:
            callback(x)
        if step_length <= xtol and not check_convergence(grad_norm, tol):
            x_conv = True
            message = "Step tolerance satisfied."
            break

    fx = float(problem.fun(x))
    nfev += 1
    return OptimizeResult(
        x=x,
        fun=fx,
        nit=nit,
        success=x_conv or g_conv,
        message=message,
        grad_norm=grad_norm,
        nfev=nfev,
        njev=njev,
        nhev=nhev,
        history=hist,
        x_converged=x_conv,
        g_converged=g_conv,
        iteration_limit_reached=not (x_conv or g_conv),
    )


__all__ = ["newton_critical_point", "pseudo_inverse_step"]
