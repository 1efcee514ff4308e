"""Configuration for local refinement of candidate points."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence, Tuple

from .strategies import STRATEGIES

# Validation threshold used when neither gradient_tolerance nor f_abstol is positive.
DEFAULT_GRADIENT_TOLERANCE = 1e-8


@dataclass(frozen=True)
class RefinementConfig:
    """
    Settings for refining one candidate point, shared by every point in a batch.

    Attributes:
        method: Optimizer strategy name, one of ``"nelder_mead"`` (derivative
            free), ``"bfgs"``, ``"lbfgs"`` or ``"newton"``.
        max_time_per_point: Wall-clock budget in seconds for one point, or None
            to run without a deadline.
        f_abstol: Absolute tolerance on objective change (simplex spread for
            Nelder-Mead).
        x_abstol: Absolute tolerance on step length (simplex size for
            Nelder-Mead).
        g_abstol: Absolute tolerance on the gradient norm for gradient-based
            strategies.
        max_iterations: Iteration cap for the optimizer.
        robust_mode: Record exceptions raised during refinement instead of
            propagating them.
        show_progress: Log per-point progress at INFO level in batch runs.
        gradient_method: ``"finite_diff"`` or ``"autodiff"``; used whenever the
            objective carries no analytic gradient.
        gradient_tolerance: Threshold for gradient validation after
            refinement. None means "use ``f_abstol``", or
            ``DEFAULT_GRADIENT_TOLERANCE`` when ``f_abstol`` is zero.
        bounds: Optional box constraints as ``(lo, hi)`` pairs.
        initial_step: Relative size of the initial Nelder-Mead simplex.
        max_workers: Number of worker threads used by batch refinement.
    """

    method: str = "nelder_mead"
    max_time_per_point: Optional[float] = 30.0
    f_abstol: float = 1e-6
    x_abstol: float = 1e-6
    g_abstol: float = 1e-8
    max_iterations: int = 300
    robust_mode: bool = True
    show_progress: bool = True
    gradient_method: str = "finite_diff"
    gradient_tolerance: Optional[float] = None
    bounds: Optional[Sequence[Tuple[float, float]]] = None
    initial_step: float = 0.05
    max_workers: int = 1

    def __post_init__(self) -> None:
        """Validate RefinementConfig invariants."""
        if self.method not in STRATEGIES:
            raise ValueError(
                f"Unknown refinement method {self.method!r}; "
                f"expected one of {sorted(STRATEGIES)}."
            )
        if self.max_time_per_point is not None and self.max_time_per_point <= 0:
            raise ValueError(
                f"max_time_per_point must be positive or None, got {self.max_time_per_point}."
            )
        for name in ("f_abstol", "x_abstol", "g_abstol"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}.")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}.")
        if self.gradient_method not in ("finite_diff", "autodiff"):
            raise ValueError(
                f"gradient_method must be 'finite_diff' or 'autodiff', got {self.gradient_method!r}."
            )
        if self.gradient_tolerance is not None and self.gradient_tolerance <= 0:
            raise ValueError(
                f"gradient_tolerance must be positive, got {self.gradient_tolerance}."
            )
        if self.initial_step <= 0:
            raise ValueError(f"initial_step must be positive, got {self.initial_step}.")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}.")
        if self.bounds is not None:
            pairs = tuple((float(lo), float(hi)) for lo, hi in self.bounds)
            for lo, hi in pairs:
                if not lo <= hi:
                    raise ValueError(f"Invalid bound ({lo}, {hi}): require lo <= hi.")
            object.__setattr__(self, "bounds", pairs)

    @property
    def validation_tolerance(self) -> float:
        """Gradient-norm threshold used to validate refined points."""
        if self.gradient_tolerance is not None:
            return self.gradient_tolerance
        if self.f_abstol > 0:
            return self.f_abstol
        return DEFAULT_GRADIENT_TOLERANCE

    def check_dimension(self, dim: int) -> None:
        """Raise ValueError if ``bounds`` does not match a ``dim``-dimensional point."""
        if self.bounds is not None and len(self.bounds) != dim:
            raise ValueError(
                f"Vector dimension mismatch: {len(self.bounds)} bounds for a "
                f"{dim}-dimensional point."
            )

    def to_dict(self) -> dict[str, Any]:
        """Settings summary embedded in batch summaries."""
        return {
            "method": self.method,
            "max_time_per_point": self.max_time_per_point,
            "f_abstol": self.f_abstol,
            "x_abstol": self.x_abstol,
            "g_abstol": self.g_abstol,
            "max_iterations": self.max_iterations,
            "robust_mode": self.robust_mode,
            "gradient_method": self.gradient_method,
            "gradient_tolerance": self.validation_tolerance,
            "bounds": None if self.bounds is None else [list(b) for b in self.bounds],
        }


def ode_refinement_config(**overrides: Any) -> RefinementConfig:
    """
    Preset for expensive, occasionally unstable objectives such as ODE-based
    parameter estimation.

    Uses a 60 s budget per point, robust mode, finite-difference gradients
    and a relaxed gradient tolerance of ``1e-4``. Keyword arguments override
    any field.

    Example:
        >>> config = ode_refinement_config(max_iterations=500)
        >>> config.max_time_per_point, config.max_iterations
        (60.0, 500)
    """
    base = RefinementConfig(
        method="nelder_mead",
        max_time_per_point=60.0,
        robust_mode=True,
        gradient_method="finite_diff",
        gradient_tolerance=1e-4,
    )
    return replace(base, **overrides)


__all__ = ["DEFAULT_GRADIENT_TOLERANCE", "RefinementConfig", "ode_refinement_config"]
