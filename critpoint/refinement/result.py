"""Result types and convergence-reason taxonomy for point refinement."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional

import numpy as np


class ConvergenceReason(Enum):
    """Stopping criterion that ended a refinement run."""

    X_TOL = "x_tol"
    F_TOL = "f_tol"
    G_TOL = "g_tol"
    ITERATIONS = "iterations"
    TIMEOUT = "timeout"
    ERROR = "error"
    UNKNOWN = "unknown"


def determine_convergence_reason(
    *,
    timed_out: bool,
    converged: bool,
    x_converged: bool,
    f_converged: bool,
    g_converged: bool,
    iteration_limit_reached: bool,
) -> ConvergenceReason:
    """Map native optimizer flags to a single reason.

    Precedence is timeout > g_tol > f_tol > x_tol > iterations > error >
    unknown. Gradient convergence ranks first among the successful cases
    because it measures stationarity directly.
    """
    if timed_out:
        return ConvergenceReason.TIMEOUT
    if g_converged:
        return ConvergenceReason.G_TOL
    if f_converged:
        return ConvergenceReason.F_TOL
    if x_converged:
        return ConvergenceReason.X_TOL
    if iteration_limit_reached:
        return ConvergenceReason.ITERATIONS
    if not converged:
        return ConvergenceReason.ERROR
    return ConvergenceReason.UNKNOWN


def _frozen_point(values) -> np.ndarray:
    array = np.array(values, dtype=float, copy=True).reshape(-1)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class RefinementResult:
    """
    Outcome of refining one candidate point.

    Attributes:
        refined: Final point (the starting point on errors, the best point
            seen so far on timeouts).
        value_raw: Objective at the starting point.
        value_refined: Objective at ``refined``; ``inf`` when robust mode
            recorded an exception.
        improvement: ``|value_refined - value_raw|``.
        converged: True when one of the tolerance flags fired.
        iterations, f_calls, g_calls, h_calls: Work performed.
        time_elapsed: Wall-clock seconds spent in the optimizer.
        x_converged, f_converged, g_converged, iteration_limit_reached:
            Native stopping flags of the optimizer.
        convergence_reason: Single reason derived from the flags.
        timed_out: True when the wall-clock budget was exceeded.
        error_message: Description of a recorded failure, or None.

    Two results compare equal when every field except ``time_elapsed``
    matches; array fields are compared element-wise.
    """

    refined: np.ndarray
    value_raw: float
    value_refined: float
    improvement: float
    converged: bool
    iterations: int
    f_calls: int
    g_calls: int
    h_calls: int
    time_elapsed: float
    x_converged: bool
    f_converged: bool
    g_converged: bool
    iteration_limit_reached: bool
    convergence_reason: ConvergenceReason
    timed_out: bool = False
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "refined", _frozen_point(self.refined))
        if self.time_elapsed < 0:
            raise ValueError(f"time_elapsed must be non-negative, got {self.time_elapsed}")
        if min(self.iterations, self.f_calls, self.g_calls, self.h_calls) < 0:
            raise ValueError("iteration and call counts must be non-negative")
        if not isinstance(self.convergence_reason, ConvergenceReason):
            raise TypeError(
                "convergence_reason must be a ConvergenceReason, "
                f"got {type(self.convergence_reason).__name__}"
            )
        if self.timed_out and self.convergence_reason is not ConvergenceReason.TIMEOUT:
            raise ValueError("timed-out results must carry convergence_reason=TIMEOUT")

    @property
    def dim(self) -> int:
        return int(self.refined.size)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RefinementResult):
            return NotImplemented
        for f in fields(self):
            if f.name == "time_elapsed":
                continue
            mine, theirs = getattr(self, f.name), getattr(other, f.name)
            if f.name == "refined":
                if not np.array_equal(mine, theirs, equal_nan=True):
                    return False
            elif isinstance(mine, float) and isinstance(theirs, float):
                if not (mine == theirs or (np.isnan(mine) and np.isnan(theirs))):
                    return False
            elif mine != theirs:
                return False
        return True


__all__ = ["ConvergenceReason", "RefinementResult", "determine_convergence_reason"]
