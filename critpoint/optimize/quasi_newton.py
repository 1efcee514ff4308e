"""Quasi-Newton optimization algorithms (BFGS and L-BFGS).

Both methods share one driver loop that reports the native stopping flags
used by the refinement layer: ``g_converged`` (gradient norm), ``f_converged``
(absolute change of the objective between iterates) and ``x_converged``
(length of the accepted step).
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Optional

import numpy as np

from .core import Callback, OptimizeResult, Problem, check_convergence
from .line_search import wolfe_line_search
from .utils import approx_grad


def _compute_gradient(problem: Problem, x: np.ndarray) -> tuple[np.ndarray, int, int]:
    if problem.grad is not None:
        return np.asarray(problem.grad(x), dtype=float), 0, 1
    grad, evals = approx_grad(problem.fun, x, return_evals=True)
    return grad, int(evals), 0


def _quasi_newton(
    problem: Problem,
    x0: np.ndarray,
    direction: Callable[[np.ndarray], np.ndarray],
    update: Callable[[np.ndarray, np.ndarray], None],
    reset: Callable[[], None],
    maxiter: int,
    gtol: float,
    ftol: float,
    xtol: float,
    line_search: Callable,
    callback: Optional[Callback],
    history: bool,
) -> OptimizeResult:
    x = np.asarray(x0, dtype=float).copy()
    if x.ndim != 1:
        raise ValueError(f"x0 must be a 1D array, got shape {x.shape}")
    hist: list[np.ndarray] = [x.copy()] if history else []
    nfev = 0
    njev = 0

    def fun(point: np.ndarray) -> float:
        nonlocal nfev
        nfev += 1
        return float(problem.fun(point))

    def gradient(point: np.ndarray) -> np.ndarray:
        nonlocal nfev, njev
        g, fe, je = _compute_gradient(problem, point)
        nfev += fe
        njev += je
        return g

    fx = fun(x)
    grad = gradient(x)
    nit = 0
    x_conv = f_conv = g_conv = False
    message = "Maximum iterations reached."

    while True:
        grad_norm = float(np.linalg.norm(grad))
        if check_convergence(grad_norm, gtol):
            g_conv = True
            message = "Gradient tolerance satisfied."
            break
        if nit >= maxiter:
            break
        p = direction(grad)
        if not float(np.dot(p, grad)) < 0:
            reset()
            p = -grad
        step = line_search(fun, gradient, x, p, f0=fx, g0=grad)
        if not np.isfinite(step.fun) or step.fun > fx or step.alpha <= 0:
            message = "Line search could not make progress."
            break
        s = step.alpha * p
        y = step.grad - grad
        update(s, y)
        f_change = abs(fx - step.fun)
        x = x + s
        fx = step.fun
        grad = step.grad
        nit += 1
        if history:
            hist.append(x.copy())
        if callback is not None:
            callback(x)
        if check_convergence(float(np.linalg.norm(grad)), gtol):
            g_conv = True
            message = "Gradient tolerance satisfied."
            break
        if f_change <= ftol:
            f_conv = True
            message = "Function tolerance satisfied."
            break
        if float(np.linalg.norm(s)) <= xtol:
            x_conv = True
            message = "Step tolerance satisfied."
            break

    return OptimizeResult(
        x=x,
        fun=float(fx),
        nit=nit,
        success=x_conv or f_conv or g_conv,
        message=message,
        grad_norm=float(np.linalg.norm(grad)),
        nfev=nfev,
        njev=njev,
        nhev=0,
        history=hist,
        x_converged=x_conv,
        f_converged=f_conv,
        g_converged=g_conv,
        iteration_limit_reached=not (x_conv or f_conv or g_conv) and nit >= maxiter,
    )


def bfgs(
    problem: Problem,
    x0: np.ndarray,
    maxiter: int = 1000,
    gtol: float = 1e-8,
    ftol: float = 0.0,
    xtol: float = 0.0,
    line_search: Callable = wolfe_line_search,
    callback: Optional[Callback] = None,
    history: bool = False,
) -> OptimizeResult:
    """Full-memory BFGS with strong Wolfe line search.

    Parameters
    ----------
    problem:
        Objective with an optional analytic gradient; central differences
        are used otherwise.
    x0:
        Starting point.
    maxiter:
        Maximum number of accepted steps.
    gtol, ftol, xtol:
        Absolute tolerances on the gradient norm, the change of the objective
        and the step length. A zero tolerance disables that test.
    callback:
        Called with the new iterate after every accepted step.
    """
    n = np.asarray(x0).size
    state = {"inv_hessian": np.eye(n)}

    def direction(g: np.ndarray) -> np.ndarray:
        return -state["inv_hessian"] @ g

    def update(s: np.ndarray, y: np.ndarray) -> None:
        ys = float(np.dot(y, s))
        if ys <= 1e-12:
            state["inv_hessian"] = np.eye(n)
            return
        rho = 1.0 / ys
        identity = np.eye(n)
        outer_sy = np.outer(s, y)
        state["inv_hessian"] = (
            (identity - rho * outer_sy)
            @ state["inv_hessian"]
            @ (identity - rho * outer_sy.T)
            + rho * np.outer(s, s)
        )

    def reset() -> None:
        state["inv_hessian"] = np.eye(n)

    return _quasi_newton(
        problem, x0, direction, update, reset, maxiter, gtol, ftol, xtol,
        line_search, callback, history,
    )


def lbfgs(
    problem: Problem,
    x0: np.ndarray,
    m: int = 10,
    maxiter: int = 1000,
    gtol: float = 1e-8,
    ftol: float = 0.0,
    xtol: float = 0.0,
    line_search: Callable = wolfe_line_search,
    callback: Optional[Callback] = None,
    history: bool = False,
) -> OptimizeResult:
    """Limited-memory BFGS using the two-loop recursion."""
    if m <= 0:
        raise ValueError("Memory parameter m must be positive.")
    s_history: Deque[np.ndarray] = deque(maxlen=m)
    y_history: Deque[np.ndarray] = deque(maxlen=m)

    def direction(g: np.ndarray) -> np.ndarray:
        q = g.copy()
        alpha_vals = []
        for s, y in reversed(list(zip(s_history, y_history))):
            rho = 1.0 / float(np.dot(y, s))
            alpha_i = rho * float(np.dot(s, q))
            q = q - alpha_i * y
            alpha_vals.append((rho, alpha_i, s, y))
        if s_history:
            last_s, last_y = s_history[-1], y_history[-1]
            gamma = float(np.dot(last_s, last_y) / np.dot(last_y, last_y))
        else:
            gamma = 1.0
        r = gamma * q
        for rho, alpha_i, s, y in reversed(alpha_vals):
            beta = rho * float(np.dot(y, r))
            r = r + s * (alpha_i - beta)
        return -r

    def update(s: np.ndarray, y: np.ndarray) -> None:
        if float(np.dot(y, s)) > 1e-12:
            s_history.append(s)
            y_history.append(y)

    def reset() -> None:
        s_history.clear()
        y_history.clear()

    return _quasi_newton(
        problem, x0, direction, update, reset, maxiter, gtol, ftol, xtol,
        line_search, callback, history,
    )


__all__ = ["bfgs", "lbfgs"]
