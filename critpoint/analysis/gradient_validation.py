"""Gradient-norm validation of refined critical points.

A converged refinement is only a claimed critical point: a parameter or
function tolerance can fire in a flat region far from stationarity. The
validator is the authoritative check that ``||grad f(x)|| < tolerance``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import numpy as np

from ..logging import get_logger
from ..optimize import Problem, as_problem
from ..optimize.core import Objective
from ..optimize.derivatives import GRADIENT_METHODS, gradient_function

logger = get_logger(__name__)


@dataclass(frozen=True)
class PointGradient:
    norm: float
    valid: bool


@dataclass(frozen=True)
class GradientValidationResult:
    """
    Gradient norms and validity flags for a set of points.

    Statistics cover finite norms only and are ``inf`` when no norm is
    finite.
    """

    norms: np.ndarray
    valid: np.ndarray
    n_valid: int
    n_invalid: int
    tolerance: float
    mean_norm: float
    max_norm: float
    min_norm: float

    def __post_init__(self) -> None:
        norms = np.array(self.norms, dtype=float, copy=True)
        valid = np.array(self.valid, dtype=bool, copy=True)
        if norms.shape != valid.shape:
            raise ValueError(f"norms and valid must align, got {norms.shape} and {valid.shape}")
        norms.setflags(write=False)
        valid.setflags(write=False)
        object.__setattr__(self, "norms", norms)
        object.__setattr__(self, "valid", valid)

    @property
    def n_points(self) -> int:
        return int(self.norms.size)

    @property
    def validation_rate(self) -> float:
        """Fraction of valid points (0.0 for an empty set)."""
        return self.n_valid / self.n_points if self.n_points else 0.0

    @property
    def per_point(self) -> tuple[PointGradient, ...]:
        return tuple(PointGradient(float(n), bool(v)) for n, v in zip(self.norms, self.valid))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_valid": self.n_valid,
            "n_invalid": self.n_invalid,
            "tolerance": self.tolerance,
            "mean_norm": self.mean_norm,
            "max_norm": self.max_norm,
            "min_norm": self.min_norm,
            "validation_rate": self.validation_rate,
        }


class GradientValidator:
    """
    Compute gradient norms at points and flag those below ``tolerance``.

    Args:
        tolerance: A point is valid iff its gradient norm is strictly below it.
        method: ``"finite_diff"``, ``"autodiff"`` or ``"analytic"``.
    """

    def __init__(self, tolerance: float = 1e-6, method: str = "finite_diff"):
        if not tolerance > 0:
            raise ValueError(f"tolerance must be positive, got {tolerance}")
        if method not in GRADIENT_METHODS:
            raise ValueError(f"Unknown gradient method {method!r}; expected one of {GRADIENT_METHODS}")
        self.tolerance = float(tolerance)
        self.method = method

    def validate(
        self,
        points,
        objective: Union[Problem, Objective],
        tolerance: Optional[float] = None,
    ) -> GradientValidationResult:
        """Validate every row of ``points`` (shape ``(n, d)``)."""
        tol = self.tolerance if tolerance is None else float(tolerance)
        if not tol > 0:
            raise ValueError(f"tolerance must be positive, got {tol}")
        points = np.asarray(points, dtype=float)
        if points.ndim == 1 and points.size == 0:
            points = points.reshape(0, 0)
        if points.ndim != 2:
            raise ValueError(f"points must have shape (n, d), got {points.shape}")
        gradient = gradient_function(as_problem(objective), self.method)

        norms = np.array([self._norm(gradient, x) for x in points], dtype=float)
        valid = norms < tol
        finite = norms[np.isfinite(norms)]
        if finite.size:
            mean_norm, max_norm, min_norm = float(finite.mean()), float(finite.max()), float(finite.min())
        else:
            mean_norm = max_norm = min_norm = float("inf")
        n_valid = int(valid.sum())
        return GradientValidationResult(
            norms=norms,
            valid=valid,
            n_valid=n_valid,
            n_invalid=int(norms.size - n_valid),
            tolerance=tol,
            mean_norm=mean_norm,
            max_norm=max_norm,
            min_norm=min_norm,
        )

    @staticmethod
    def _norm(gradient, x: np.ndarray) -> float:
        if np.any(np.isnan(x)):
            return float("inf")
        try:
            grad = gradient(x)
        except Exception as exc:
            logger.warning("Gradient evaluation failed at %s: %s", x.tolist(), exc)
            return float("inf")
        norm = float(np.linalg.norm(grad))
        return norm if np.isfinite(norm) else float("inf")


def validate_critical_points(
    points,
    objective: Union[Problem, Objective],
    tolerance: float = 1e-6,
    method: str = "finite_diff",
) -> GradientValidationResult:
    """Functional shortcut for :meth:`GradientValidator.validate`."""
    return GradientValidator(tolerance, method).validate(points, objective)


__all__ = [
    "GradientValidationResult",
    "GradientValidator",
    "PointGradient",
    "validate_critical_points",
]
