"""Core interfaces shared by the local optimizers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

import numpy as np

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]
Hessian = Callable[[Array], Array]
Callback = Callable[[Array], None]

RTOL = 1e-8
ATOL = 1e-10


@dataclass(frozen=True)
class Problem:
    """Container describing an objective and its optional derivatives."""

    fun: Objective
    grad: Optional[Gradient] = None
    hess: Optional[Hessian] = None
    dim: Optional[int] = None

    def __post_init__(self) -> None:
        if not callable(self.fun):
            raise TypeError(f"fun must be callable, got {type(self.fun).__name__}")
        if self.grad is not None and not callable(self.grad):
            raise TypeError("grad must be callable or None")
        if self.hess is not None and not callable(self.hess):
            raise TypeError("hess must be callable or None")
        if self.dim is not None and self.dim <= 0:
            raise ValueError(f"dim must be positive, got {self.dim}")


@dataclass
class OptimizeResult:
    """Result object returned by every optimizer in this package.

    Besides the usual solution summary the result carries the optimizer's
    native stopping flags. ``x_converged``, ``f_converged`` and
    ``g_converged`` record which tolerance test fired on the final
    iteration; ``iteration_limit_reached`` is set when ``maxiter`` ran out.
    """

    x: Array
    fun: float
    nit: int
    success: bool
    message: str
    grad_norm: float
    nfev: int
    njev: int
    nhev: int
    history: List[Array] = field(default_factory=list)
    x_converged: bool = False
    f_converged: bool = False
    g_converged: bool = False
    iteration_limit_reached: bool = False


def check_convergence(grad_norm: float, tol: float) -> bool:
    """Return True if gradient norm satisfies tolerance."""
    return grad_norm <= max(tol, ATOL)


def as_problem(objective: Union[Problem, Objective]) -> Problem:
    """Wrap a bare callable into a :class:`Problem`; pass problems through."""
    if isinstance(objective, Problem):
        return objective
    return Problem(fun=objective)


__all__ = [
    "Array",
    "Callback",
    "Objective",
    "Gradient",
    "Hessian",
    "Problem",
    "OptimizeResult",
    "as_problem",
    "check_convergence",
    "RTOL",
    "ATOL",
]
