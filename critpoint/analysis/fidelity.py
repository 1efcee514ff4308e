"""Landscape fidelity: does a polynomial candidate share its refined point's basin?

Two criteria are combined:

1. **Objective proximity**. Relative objective difference between the
   candidate ``x_star`` and its refined counterpart ``x_min``. When
   ``f(x_min)`` is numerically zero a relative difference is meaningless,
   so ``|f(x_star)|`` itself is compared against the tolerance.
2. **Hessian basin radius**. A quadratic model around ``x_min`` gives the
   radius within which the objective rises by at most a fraction
   ``threshold_factor`` of ``|f(x_min)|``; the candidate must lie inside it.
   Only assessed when the Hessian at ``x_min`` is positive definite.

``confidence`` is the fraction of assessed criteria that pass and the
candidate is declared in-basin when ``confidence >= 0.5``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from ..optimize.core import Objective
from .classification import CriticalPointKind, HessianClassifier

OBJECTIVE_PROXIMITY = "objective_proximity"
HESSIAN_BASIN = "hessian_basin"


@dataclass(frozen=True)
class FidelityConfig:
    """
    Thresholds for basin-fidelity assessment.

    Attributes:
        tolerance: Relative objective tolerance for criterion 1.
        abs_tolerance: ``|f(x_min)|`` below this is treated as zero.
        threshold_factor: Allowed relative rise of the objective defining the
            basin radius (absolute rise when ``f(x_min)`` is zero).
        eigenvalue_tol: Relative zero threshold for Hessian eigenvalues.
    """

    tolerance: float = 0.05
    abs_tolerance: float = 1e-6
    threshold_factor: float = 0.1
    eigenvalue_tol: float = 1e-6

    def __post_init__(self) -> None:
        for name in ("tolerance", "abs_tolerance", "threshold_factor", "eigenvalue_tol"):
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class ObjectiveProximityResult:
    is_same_basin: bool
    metric: float
    f_star: float
    f_min: float


@dataclass(frozen=True)
class HessianBasinResult:
    """
    Outcome of the Hessian basin-radius criterion.

    ``assessed`` is False when the Hessian is not positive definite; the
    radius and metric are then NaN and the criterion does not count
    towards the confidence.
    """

    is_same_basin: bool
    metric: float
    distance: float
    basin_radius: float
    min_eigenvalue: float
    assessed: bool = True


@dataclass(frozen=True)
class FidelityCriterion:
    name: str
    passed: bool
    metric: float
    description: str


@dataclass(frozen=True)
class BasinFidelityResult:
    is_same_basin: bool
    confidence: float
    criteria: tuple[FidelityCriterion, ...]
    objective_proximity: ObjectiveProximityResult
    hessian_basin: Optional[HessianBasinResult]
    x_star: np.ndarray
    x_min: np.ndarray

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_same_basin": self.is_same_basin,
            "confidence": self.confidence,
            "criteria": [
                {"name": c.name, "passed": c.passed, "metric": c.metric, "description": c.description}
                for c in self.criteria
            ],
        }


def _paired_points(x_star, x_min) -> tuple[np.ndarray, np.ndarray]:
    x_star = np.asarray(x_star, dtype=float).reshape(-1)
    x_min = np.asarray(x_min, dtype=float).reshape(-1)
    if x_star.size != x_min.size:
        raise ValueError(
            f"Vector dimension mismatch: x_star has {x_star.size} coordinates, x_min has {x_min.size}"
        )
    return x_star, x_min


def _square_hessian(hessian, dim: int) -> np.ndarray:
    hess = np.asarray(hessian, dtype=float)
    if hess.shape != (dim, dim):
        raise ValueError(
            f"Vector dimension mismatch: Hessian has shape {hess.shape}, expected ({dim}, {dim})"
        )
    return 0.5 * (hess + hess.T)


def _proximity(f_star: float, f_min: float, tolerance: float, abs_tolerance: float) -> ObjectiveProximityResult:
    if abs(f_min) < abs_tolerance:
        return ObjectiveProximityResult(
            is_same_basin=bool(abs(f_star) < tolerance),
            metric=abs(f_star - f_min),
            f_star=f_star,
            f_min=f_min,
        )
    rel_diff = abs(f_star - f_min) / abs(f_min)
    return ObjectiveProximityResult(
        is_same_basin=bool(rel_diff < tolerance), metric=rel_diff, f_star=f_star, f_min=f_min
    )


def check_objective_proximity(
    x_star,
    x_min,
    objective: Objective,
    tolerance: float = 0.05,
    abs_tolerance: float = 1e-6,
) -> ObjectiveProximityResult:
    """
    Compare ``objective(x_star)`` against ``objective(x_min)``.

    Raises:
        ValueError: If the two points differ in dimension.

    Example:
        >>> f = lambda x: float(((x - 0.5) ** 2).sum())
        >>> check_objective_proximity([0.48, 0.52, 0.49, 0.51], [0.5] * 4, f).is_same_basin
        True
    """
    x_star, x_min = _paired_points(x_star, x_min)
    return _proximity(float(objective(x_star)), float(objective(x_min)), tolerance, abs_tolerance)


def estimate_basin_radius(
    f_min: float,
    hessian,
    threshold_factor: float = 0.1,
    abs_tolerance: float = 1e-6,
    eigenvalue_tol: float = 1e-6,
) -> float:
    """
    Radius of the quadratic basin ``{x : f(x) - f_min <= delta_f}``.

    With ``lambda_min`` the smallest Hessian eigenvalue the radius is
    ``sqrt(2 * delta_f / lambda_min)``, where ``delta_f`` is
    ``threshold_factor * |f_min|``, or ``threshold_factor`` itself when
    ``|f_min| < abs_tolerance``. Returns NaN unless the Hessian is
    positive definite.
    """
    hess = np.asarray(hessian, dtype=float)
    if hess.ndim != 2 or hess.shape[0] != hess.shape[1]:
        raise ValueError(f"Hessian must be a square matrix, got shape {hess.shape}")
    eigs = np.linalg.eigvalsh(0.5 * (hess + hess.T))
    return _basin_radius(f_min, eigs, threshold_factor, abs_tolerance, eigenvalue_tol)


def _basin_radius(f_min, eigs, threshold_factor, abs_tolerance, eigenvalue_tol) -> float:
    if HessianClassifier(eigenvalue_tol).classify(eigs) is not CriticalPointKind.MINIMUM:
        return float("nan")
    delta_f = threshold_factor * abs(f_min) if abs(f_min) >= abs_tolerance else threshold_factor
    return float(np.sqrt(2.0 * delta_f / float(np.min(eigs))))


def _hessian_basin(x_star, x_min, f_min, hess, config: FidelityConfig) -> HessianBasinResult:
    eigs = np.linalg.eigvalsh(hess)
    distance = float(np.linalg.norm(x_star - x_min))
    radius = _basin_radius(f_min, eigs, config.threshold_factor, config.abs_tolerance, config.eigenvalue_tol)
    if np.isnan(radius):
        return HessianBasinResult(
            is_same_basin=False,
            metric=float("nan"),
            distance=distance,
            basin_radius=float("nan"),
            min_eigenvalue=float(np.min(eigs)),
            assessed=False,
        )
    metric = distance / radius
    return HessianBasinResult(
        is_same_basin=bool(metric < 1.0),
        metric=metric,
        distance=distance,
        basin_radius=radius,
        min_eigenvalue=float(np.min(eigs)),
    )


def check_hessian_basin(
    x_star,
    x_min,
    objective: Objective,
    hessian,
    config: Optional[FidelityConfig] = None,
) -> HessianBasinResult:
    """Check whether ``x_star`` lies within the Hessian basin radius of ``x_min``."""
    config = config or FidelityConfig()
    x_star, x_min = _paired_points(x_star, x_min)
    hess = _square_hessian(hessian, x_min.size)
    return _hessian_basin(x_star, x_min, float(objective(x_min)), hess, config)


class BasinFidelityAssessor:
    """Combine the proximity and basin-radius criteria into one verdict."""

    def __init__(self, config: Optional[FidelityConfig] = None):
        self.config = config if config is not None else FidelityConfig()

    def assess(self, x_star, x_min, objective: Objective, hessian_min=None) -> BasinFidelityResult:
        """
        Assess basin membership of the candidate ``x_star``.

        Args:
            x_star: Polynomial-identified candidate.
            x_min: Its locally refined counterpart.
            objective: True objective.
            hessian_min: Optional Hessian at ``x_min``; enables criterion 2.

        Raises:
            ValueError: On any dimension mismatch between the inputs.
        """
        x_star, x_min = _paired_points(x_star, x_min)
        hess = None if hessian_min is None else _square_hessian(hessian_min, x_min.size)
        f_star, f_min = float(objective(x_star)), float(objective(x_min))

        proximity = _proximity(f_star, f_min, self.config.tolerance, self.config.abs_tolerance)
        criteria = [
            FidelityCriterion(
                name=OBJECTIVE_PROXIMITY,
                passed=proximity.is_same_basin,
                metric=proximity.metric,
                description="f(x*) ≈ f(x_min)",
            )
        ]
        basin = None
        if hess is not None:
            basin = _hessian_basin(x_star, x_min, f_min, hess, self.config)
            if basin.assessed:
                criteria.append(
                    FidelityCriterion(
                        name=HESSIAN_BASIN,
                        passed=basin.is_same_basin,
                        metric=basin.metric,
                        description="||x* - x_min|| < r_basin",
                    )
                )

        confidence = sum(c.passed for c in criteria) / len(criteria)
        return BasinFidelityResult(
            is_same_basin=confidence >= 0.5,
            confidence=confidence,
            criteria=tuple(criteria),
            objective_proximity=proximity,
            hessian_basin=basin,
            x_star=x_star,
            x_min=x_min,
        )


def assess_landscape_fidelity(
    x_star,
    x_min,
    objective: Objective,
    hessian_min=None,
    tolerance: float = 0.05,
    abs_tolerance: float = 1e-6,
    threshold_factor: float = 0.1,
) -> BasinFidelityResult:
    """Functional shortcut for :meth:`BasinFidelityAssessor.assess`."""
    config = FidelityConfig(tolerance=tolerance, abs_tolerance=abs_tolerance, threshold_factor=threshold_factor)
    return BasinFidelityAssessor(config).assess(x_star, x_min, objective, hessian_min)


def batch_assess_fidelity(
    candidates: Sequence,
    refined: Sequence,
    objective: Objective,
    hessians: Optional[Sequence] = None,
    config: Optional[FidelityConfig] = None,
) -> list[BasinFidelityResult]:
    """Assess paired candidates and refined points; ``hessians`` may hold None entries."""
    if len(candidates) != len(refined):
        raise ValueError(f"Got {len(candidates)} candidates but {len(refined)} refined points")
    if hessians is not None and len(hessians) != len(candidates):
        raise ValueError(f"Got {len(hessians)} Hessians for {len(candidates)} candidates")
    assessor = BasinFidelityAssessor(config)
    return [
        assessor.assess(x_star, x_min, objective, None if hessians is None else hessians[i])
        for i, (x_star, x_min) in enumerate(zip(candidates, refined))
    ]


__all__ = [
    "BasinFidelityAssessor",
    "BasinFidelityResult",
    "FidelityConfig",
    "FidelityCriterion",
    "HessianBasinResult",
    "ObjectiveProximityResult",
    "assess_landscape_fidelity",
    "batch_assess_fidelity",
    "check_hessian_basin",
    "check_objective_proximity",
    "estimate_basin_radius",
]
