"""Gradient and Hessian oracles: analytic, finite-difference and autograd.

Automatic differentiation runs the objective on a ``torch.float64`` tensor,
so objectives meant for ``"autodiff"`` must be written with operations
that accept both NumPy arrays and tensors (arithmetic, ``.sum()``,
``torch`` functions).
"""

from __future__ import annotations

from typing import Callable

import numpy as np
import torch

from .core import Array, Objective, Problem
from .utils import approx_grad, approx_hessian

GRADIENT_METHODS = ("finite_diff", "autodiff", "analytic")


def _check_method(method: str) -> None:
    if method not in GRADIENT_METHODS:
        raise ValueError(
            f"Unknown gradient method {method!r}; expected one of {GRADIENT_METHODS}"
        )


def _as_params(x: Array) -> torch.Tensor:
    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"x must be a 1D array, got shape {x.shape} with ndim={x.ndim}")
    return torch.as_tensor(x, dtype=torch.float64)


def _scalar_value(fun: Objective, params: torch.Tensor) -> torch.Tensor:
    value = fun(params)
    if not isinstance(value, torch.Tensor):
        raise TypeError(
            "objective must return a torch scalar when differentiated with autodiff, "
            f"got {type(value).__name__}"
        )
    if value.ndim != 0:
        raise ValueError(
            f"objective must return a scalar tensor (0D), got shape {tuple(value.shape)}"
        )
    return value


def autodiff_gradient(fun: Objective, x: Array) -> Array:
    """Gradient of ``fun`` at ``x`` through ``torch.autograd``.

    Args:
        fun: Objective accepting a 1D float64 tensor and returning a 0D tensor.
        x: Point at which to differentiate.

    Returns:
        NumPy gradient with the same shape as ``x``.

    Raises:
        ValueError: If ``x`` is not 1D or the objective is not scalar.
        TypeError: If the objective does not return a tensor.
    """
    params = _as_params(x).clone().detach().requires_grad_(True)
    value = _scalar_value(fun, params)
    if not value.requires_grad:
        return np.zeros(params.shape[0], dtype=float)
    (grad,) = torch.autograd.grad(value, params, allow_unused=True)
    if grad is None:
        return np.zeros(params.shape[0], dtype=float)
    return grad.detach().cpu().numpy().astype(float)


def autodiff_hessian(fun: Objective, x: Array) -> Array:
    """Hessian of ``fun`` at ``x`` via ``torch.autograd.functional.hessian``."""
    params = _as_params(x)
    hess = torch.autograd.functional.hessian(lambda p: _scalar_value(fun, p), params)
    hess = hess.detach().cpu().numpy().astype(float)
    return 0.5 * (hess + hess.T)


def gradient_function(problem: Problem, method: str = "finite_diff") -> Callable[[Array], Array]:
    """Return a callable computing the gradient of ``problem`` with ``method``.

    ``"analytic"`` requires ``problem.grad``; the other methods only need
    ``problem.fun``.
    """
    _check_method(method)
    if method == "analytic":
        if problem.grad is None:
            raise ValueError("gradient method 'analytic' requires problem.grad")
        grad = problem.grad
        return lambda x: np.asarray(grad(np.asarray(x, dtype=float)), dtype=float)
    if method == "autodiff":
        return lambda x: autodiff_gradient(problem.fun, x)
    return lambda x: approx_grad(problem.fun, x)


def hessian_function(problem: Problem, method: str = "finite_diff") -> Callable[[Array], Array]:
    """Return a callable computing the Hessian of ``problem`` with ``method``."""
    _check_method(method)
    if method == "analytic":
        if problem.hess is None:
            raise ValueError("gradient method 'analytic' requires problem.hess for Hessians")
        hess = problem.hess
        return lambda x: np.asarray(hess(np.asarray(x, dtype=float)), dtype=float)
    if method == "autodiff":
        return lambda x: autodiff_hessian(problem.fun, x)
    return lambda x: approx_hessian(problem.fun, x)


__all__ = [
    "GRADIENT_METHODS",
    "autodiff_gradient",
    "autodiff_hessian",
    "gradient_function",
    "hessian_function",
]
