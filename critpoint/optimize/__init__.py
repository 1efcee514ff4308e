"""Deterministic local optimizers used to refine candidate points.

Example
-------
>>> import numpy as np
>>> from critpoint.optimize import Problem, nelder_mead
>>> problem = Problem(fun=lambda x: float(((x - 0.5) ** 2).sum()), dim=2)
>>> res = nelder_mead(problem, np.array([0.4, 0.6]), ftol=1e-14)
>>> bool(np.allclose(res.x, 0.5, atol=1e-5))
True
"""

from .core import ATOL, RTOL, OptimizeResult, Problem, as_problem, check_convergence
from .derivatives import (
    GRADIENT_METHODS,
    autodiff_gradient,
    autodiff_hessian,
    gradient_function,
    hessian_function,
)
from .line_search import LineSearchResult, wolfe_line_search
from .nelder_mead import nelder_mead
from .newton import newton_critical_point, pseudo_inverse_step
from .quasi_newton import bfgs, lbfgs
from .utils import approx_grad, approx_hessian, clamp_to_bounds, split_bounds

__all__ = [
    "ATOL",
    "GRADIENT_METHODS",
    "LineSearchResult",
    "OptimizeResult",
    "Problem",
    "RTOL",
    "approx_grad",
    "approx_hessian",
    "as_problem",
    "autodiff_gradient",
    "autodiff_hessian",
    "bfgs",
    "check_convergence",
    "clamp_to_bounds",
    "gradient_function",
    "hessian_function",
    "lbfgs",
    "nelder_mead",
    "newton_critical_point",
    "pseudo_inverse_step",
    "split_bounds",
    "wolfe_line_search",
]
