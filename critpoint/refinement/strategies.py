"""Optimizer strategies available to the refiner.

The refiner depends only on :class:`OptimizerStrategy`; concrete strategies
adapt one optimizer from :mod:`critpoint.optimize` to the settings of a
refinement config. The registry is closed: :data:`STRATEGIES` maps every
accepted ``method`` name to its strategy class.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Optional, Type

import numpy as np

from ..optimize import OptimizeResult, Problem, bfgs, lbfgs, nelder_mead, newton_critical_point
from ..optimize.core import Callback

if TYPE_CHECKING:
    from .config import RefinementConfig


class OptimizerStrategy(ABC):
    """Run one local optimization and report its native diagnostics."""

    name: str = ""
    uses_gradient: bool = False

    @abstractmethod
    def run(
        self,
        problem: Problem,
        x0: np.ndarray,
        config: "RefinementConfig",
        callback: Optional[Callback] = None,
    ) -> tuple[np.ndarray, OptimizeResult]:
        """Optimize from ``x0``; return the final point and the diagnostics."""


class NelderMeadStrategy(OptimizerStrategy):
    name = "nelder_mead"

    def run(self, problem, x0, config, callback=None):
        result = nelder_mead(
            problem,
            x0,
            maxiter=config.max_iterations,
            xtol=config.x_abstol,
            ftol=config.f_abstol,
            initial_step=config.initial_step,
            bounds=config.bounds,
            callback=callback,
        )
        return result.x, result


class _QuasiNewtonStrategy(OptimizerStrategy):
    uses_gradient = True

    def _check_unbounded(self, config: "RefinementConfig") -> None:
        if config.bounds is not None:
            raise ValueError(f"method {self.name!r} does not support bounds")


class BFGSStrategy(_QuasiNewtonStrategy):
    name = "bfgs"

    def run(self, problem, x0, config, callback=None):
        self._check_unbounded(config)
        result = bfgs(
            problem,
            x0,
            maxiter=config.max_iterations,
            gtol=config.g_abstol,
            ftol=config.f_abstol,
            xtol=config.x_abstol,
            callback=callback,
        )
        return result.x, result


class LBFGSStrategy(_QuasiNewtonStrategy):
    name = "lbfgs"

    def __init__(self, memory: int = 10):
        self.memory = memory

    def run(self, problem, x0, config, callback=None):
        self._check_unbounded(config)
        result = lbfgs(
            problem,
            x0,
            m=self.memory,
            maxiter=config.max_iterations,
            gtol=config.g_abstol,
            ftol=config.f_abstol,
            xtol=config.x_abstol,
            callback=callback,
        )
        return result.x, result


class NewtonStrategy(OptimizerStrategy):
    """Newton on the gradient; converges to critical points of any type."""

    name = "newton"
    uses_gradient = True

    def run(self, problem, x0, config, callback=None):
        result = newton_critical_point(
            problem,
            x0,
            maxiter=config.max_iterations,
            tol=config.g_abstol,
            xtol=config.x_abstol,
            bounds=config.bounds,
            callback=callback,
        )
        return result.x, result


STRATEGIES: Dict[str, Type[OptimizerStrategy]] = {
    NelderMeadStrategy.name: NelderMeadStrategy,
    BFGSStrategy.name: BFGSStrategy,
    LBFGSStrategy.name: LBFGSStrategy,
    NewtonStrategy.name: NewtonStrategy,
}


def get_strategy(method: str) -> OptimizerStrategy:
    """Instantiate the strategy registered under ``method``."""
    try:
        return STRATEGIES[method]()
    except KeyError:
        raise ValueError(
            f"Unknown refinement method {method!r}; expected one of {sorted(STRATEGIES)}"
        ) from None


__all__ = [
    "BFGSStrategy",
    "LBFGSStrategy",
    "NelderMeadStrategy",
    "NewtonStrategy",
    "OptimizerStrategy",
    "STRATEGIES",
    "get_strategy",
]
