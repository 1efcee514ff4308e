"""Finite-difference derivatives and small vector helpers.

These utilities are pure NumPy and deterministic, suitable for the small
dimensional objectives refined point by point.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .core import Array, Objective

Bounds = Sequence[Tuple[float, float]]


def _steps(x: Array, eps: float) -> Array:
    # relative step, floored at eps for coordinates near zero
    return eps * np.maximum(1.0, np.abs(x))


def approx_grad(
    fun: Objective, x: Array, eps: float = 1e-6, return_evals: bool = False
) -> Array | tuple[Array, int]:
    """Central-difference gradient with steps ``eps * max(1, |x_i|)``.

    Parameters
    ----------
    fun:
        Objective function returning a scalar given x.
    x:
        Point where the gradient is approximated.
    eps:
        Relative perturbation size.
    return_evals:
        If True, also return the number of objective evaluations used
        (always ``2 * x.size``).
    """
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float)
    steps = _steps(x, eps)
    basis = np.diag(steps)
    grad = np.array(
        [(float(fun(x + e)) - float(fun(x - e))) / (2.0 * h) for e, h in zip(basis, steps)],
        dtype=float,
    )
    if return_evals:
        return grad, 2 * x.size
    return grad


def approx_hessian(
    fun: Objective, x: Array, eps: float = 1e-4, return_evals: bool = False
) -> Array | tuple[Array, int]:
    """Second-order central-difference Hessian, symmetric by construction."""
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float)
    n = x.size
    steps = _steps(x, eps)
    basis = np.diag(steps)
    f0 = float(fun(x))
    hess = np.empty((n, n), dtype=float)
    for i in range(n):
        ei, hi = basis[i], steps[i]
        hess[i, i] = (float(fun(x + ei)) - 2.0 * f0 + float(fun(x - ei))) / hi**2
        for j in range(i):
            ej, hj = basis[j], steps[j]
            cross = (
                float(fun(x + ei + ej))
                - float(fun(x + ei - ej))
                - float(fun(x - ei + ej))
                + float(fun(x - ei - ej))
            )
            hess[i, j] = hess[j, i] = cross / (4.0 * hi * hj)
    if return_evals:
        return hess, 1 + 2 * n + 2 * n * (n - 1)
    return hess


def split_bounds(bounds: Optional[Bounds], dim: int) -> Optional[tuple[Array, Array]]:
    """Convert ``[(lo, hi), ...]`` pairs into lower and upper arrays.

    Raises
    ------
    ValueError
        If the number of pairs differs from ``dim`` or a pair has ``lo > hi``.
    """
    if bounds is None:
        return None
    pairs = np.asarray(bounds, dtype=float)
    if pairs.ndim != 2 or pairs.shape[1] != 2:
        raise ValueError(f"bounds must be a sequence of (lo, hi) pairs, got shape {pairs.shape}")
    if pairs.shape[0] != dim:
        raise ValueError(
            f"Vector dimension mismatch: {pairs.shape[0]} bounds for a {dim}-dimensional point"
        )
    lower, upper = pairs[:, 0].copy(), pairs[:, 1].copy()
    if np.any(lower > upper):
        raise ValueError("Each bound must satisfy lo <= hi")
    return lower, upper


def clamp_to_bounds(x: Array, bounds: Optional[tuple[Array, Array]]) -> Array:
    """Project ``x`` onto the box ``bounds`` (no-op when bounds is None)."""
    if bounds is None:
        return x
    lower, upper = bounds
    return np.clip(x, lower, upper)


__all__ = [
    "Bounds",
    "approx_grad",
    "approx_hessian",
    "clamp_to_bounds",
    "split_bounds",
]
