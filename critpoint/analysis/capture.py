"""Capture analysis: how many known critical points did a computation find?

For every known critical point the nearest computed point is located; the
known point counts as *captured* at tolerance ``t`` when that distance is at
most ``t * domain_diameter``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Union

import numpy as np
from scipy.spatial import cKDTree

from .classification import CriticalPointKind

DEFAULT_TOLERANCE_FRACTIONS = (0.01, 0.025, 0.05, 0.1)
_KNOWN_KINDS = (CriticalPointKind.MINIMUM, CriticalPointKind.MAXIMUM, CriticalPointKind.SADDLE)


@dataclass(frozen=True)
class KnownCriticalPoints:
    """
    Reference set of critical points with their values and kinds.

    Attributes:
        points: Array of shape ``(k, d)``.
        values: Objective value at each point.
        kinds: Minimum, maximum or saddle for each point.
        domain_diameter: Length scale used to turn tolerance fractions into
            distances, normally the diagonal of the search box.
    """

    points: np.ndarray
    values: np.ndarray
    kinds: tuple[CriticalPointKind, ...]
    domain_diameter: float

    def __post_init__(self) -> None:
        points = np.array(self.points, dtype=float, copy=True)
        values = np.array(self.values, dtype=float, copy=True).reshape(-1)
        if points.ndim != 2:
            raise ValueError(f"points must have shape (k, d), got {points.shape}")
        if values.size != points.shape[0]:
            raise ValueError(f"Expected {points.shape[0]} values, got {values.size}")
        kinds = tuple(CriticalPointKind(kind) for kind in self.kinds)
        if len(kinds) != points.shape[0]:
            raise ValueError(f"Expected {points.shape[0]} kinds, got {len(kinds)}")
        for kind in kinds:
            if kind not in _KNOWN_KINDS:
                raise ValueError(f"Known critical points must be minimum, maximum or saddle, got {kind.value}")
        if not self.domain_diameter > 0:
            raise ValueError(f"domain_diameter must be positive, got {self.domain_diameter}")
        points.setflags(write=False)
        values.setflags(write=False)
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "kinds", kinds)
        object.__setattr__(self, "domain_diameter", float(self.domain_diameter))

    @classmethod
    def from_bounds(
        cls,
        points,
        values,
        kinds: Sequence[Union[CriticalPointKind, str]],
        lower,
        upper,
    ) -> "KnownCriticalPoints":
        """Build the set with ``domain_diameter = ||upper - lower||``."""
        lower = np.asarray(lower, dtype=float).reshape(-1)
        upper = np.asarray(upper, dtype=float).reshape(-1)
        if lower.shape != upper.shape:
            raise ValueError(f"lower and upper must match, got {lower.shape} and {upper.shape}")
        dim = np.asarray(points, dtype=float).shape[-1]
        if lower.size != dim:
            raise ValueError(f"Vector dimension mismatch: bounds have {lower.size} entries, points have {dim}")
        return cls(points, values, tuple(kinds), float(np.linalg.norm(upper - lower)))

    @property
    def n_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def dim(self) -> int:
        return int(self.points.shape[1])


@dataclass(frozen=True)
class CaptureResult:
    """
    Attributes:
        distances: Distance from each known point to its nearest computed
            point (``inf`` when nothing was computed).
        nearest_indices: Index of that computed point, ``-1`` when none.
        tolerance_fractions: Sorted tolerance fractions.
        tolerance_values: Fractions times the domain diameter.
        captured: Boolean matrix ``(n_known, n_tolerances)``.
        capture_rates: Fraction captured per tolerance.
        kind_capture_rates: Capture rates per tolerance for each kind present.
        kind_counts: Number of known points of each kind present.
        n_computed: Number of computed points.
    """

    distances: np.ndarray
    nearest_indices: np.ndarray
    tolerance_fractions: np.ndarray
    tolerance_values: np.ndarray
    captured: np.ndarray
    capture_rates: np.ndarray
    kind_capture_rates: Dict[CriticalPointKind, np.ndarray]
    kind_counts: Dict[CriticalPointKind, int]
    n_computed: int

    @property
    def n_known(self) -> int:
        return int(self.distances.size)


def compute_capture_analysis(
    known: KnownCriticalPoints,
    computed,
    tolerance_fractions: Sequence[float] = DEFAULT_TOLERANCE_FRACTIONS,
) -> CaptureResult:
    """
    Match each known critical point to its nearest computed point.

    Raises:
        ValueError: On an empty or non-positive tolerance list or a
            dimension mismatch between known and computed points.
    """
    fractions = np.sort(np.asarray(tolerance_fractions, dtype=float).reshape(-1))
    if fractions.size == 0 or np.any(fractions <= 0):
        raise ValueError(f"tolerance_fractions must be non-empty and positive, got {tolerance_fractions}")
    computed = np.asarray(computed, dtype=float)
    if computed.size == 0:
        computed = computed.reshape(0, known.dim)
    if computed.ndim != 2 or computed.shape[1] != known.dim:
        raise ValueError(
            f"Vector dimension mismatch: computed points have shape {computed.shape}, "
            f"known points have dimension {known.dim}"
        )

    if computed.shape[0] == 0:
        distances = np.full(known.n_points, np.inf)
        nearest = np.full(known.n_points, -1, dtype=int)
    else:
        distances, nearest = cKDTree(computed).query(known.points, k=1)
        distances = np.asarray(distances, dtype=float).reshape(-1)
        nearest = np.asarray(nearest, dtype=int).reshape(-1)

    tolerance_values = fractions * known.domain_diameter
    captured = distances[:, None] <= tolerance_values[None, :]
    if known.n_points:
        capture_rates = captured.mean(axis=0)
    else:
        capture_rates = np.zeros(fractions.size)

    kinds = np.array([kind.value for kind in known.kinds])
    kind_rates: Dict[CriticalPointKind, np.ndarray] = {}
    kind_counts: Dict[CriticalPointKind, int] = {}
    for kind in _KNOWN_KINDS:
        mask = kinds == kind.value
        if mask.any():
            kind_counts[kind] = int(mask.sum())
            kind_rates[kind] = captured[mask].mean(axis=0)

    return CaptureResult(
        distances=distances,
        nearest_indices=nearest,
        tolerance_fractions=fractions,
        tolerance_values=tolerance_values,
        captured=captured,
        capture_rates=capture_rates,
        kind_capture_rates=kind_rates,
        kind_counts=kind_counts,
        n_computed=int(computed.shape[0]),
    )


def missed_critical_points(result: CaptureResult, known: KnownCriticalPoints, tolerance_index: int = -1) -> np.ndarray:
    """Indices of known points not captured at ``tolerance_fractions[tolerance_index]``."""
    if result.n_known != known.n_points:
        raise ValueError(f"Result covers {result.n_known} known points, set has {known.n_points}")
    n_tol = result.captured.shape[1]
    if not -n_tol <= tolerance_index < n_tol:
        raise ValueError(f"tolerance_index {tolerance_index} out of range for {n_tol} tolerances")
    return np.flatnonzero(~result.captured[:, tolerance_index])


__all__ = [
    "CaptureResult",
    "DEFAULT_TOLERANCE_FRACTIONS",
    "KnownCriticalPoints",
    "compute_capture_analysis",
    "missed_critical_points",
]
