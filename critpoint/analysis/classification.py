"""Hessian-based classification of critical points."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import numpy as np


class CriticalPointKind(Enum):
    """Type of a critical point as read from its Hessian spectrum."""

    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    SADDLE = "saddle"
    DEGENERATE = "degenerate"


@dataclass(frozen=True)
class HessianClassification:
    """Eigenvalues of the Hessian at a point together with the derived kind."""

    eigenvalues: np.ndarray
    kind: CriticalPointKind

    def __post_init__(self) -> None:
        eigenvalues = np.array(self.eigenvalues, dtype=float, copy=True).reshape(-1)
        eigenvalues.setflags(write=False)
        object.__setattr__(self, "eigenvalues", eigenvalues)

    @property
    def morse_index(self) -> int:
        """Number of negative eigenvalues."""
        return int(np.sum(self.eigenvalues < 0))

    @property
    def is_minimum(self) -> bool:
        return self.kind is CriticalPointKind.MINIMUM


class HessianClassifier:
    """
    Classify critical points from Hessian eigenvalues.

    An eigenvalue counts as zero when ``|lambda| < tol * max(1, max|lambda|)``.
    Any such eigenvalue makes the point ``DEGENERATE``; otherwise the signs
    decide between ``MINIMUM`` (all positive), ``MAXIMUM`` (all negative) and
    ``SADDLE`` (mixed).

    Args:
        tol: Relative zero threshold for eigenvalues.
    """

    def __init__(self, tol: float = 1e-6):
        if tol <= 0:
            raise ValueError(f"tol must be positive, got {tol}")
        self.tol = tol

    def classify(self, eigenvalues: Union[Sequence[float], np.ndarray]) -> CriticalPointKind:
        """Return the kind for an eigenvalue vector.

        Raises:
            ValueError: If the vector is empty or contains NaN/inf.
        """
        eigs = np.asarray(eigenvalues, dtype=float).reshape(-1)
        if eigs.size == 0:
            raise ValueError("Cannot classify an empty eigenvalue vector")
        if not np.all(np.isfinite(eigs)):
            raise ValueError(f"Eigenvalues must be finite, got {eigs}")
        zero_tol = self.tol * max(1.0, float(np.max(np.abs(eigs))))
        if np.any(np.abs(eigs) < zero_tol):
            return CriticalPointKind.DEGENERATE
        if np.all(eigs > 0):
            return CriticalPointKind.MINIMUM
        if np.all(eigs < 0):
            return CriticalPointKind.MAXIMUM
        return CriticalPointKind.SADDLE

    def classify_eigenvalues(self, eigenvalues) -> HessianClassification:
        eigs = np.sort(np.asarray(eigenvalues, dtype=float).reshape(-1))
        return HessianClassification(eigenvalues=eigs, kind=self.classify(eigs))

    def classify_hessian(self, hessian) -> HessianClassification:
        """Classify from a (possibly slightly asymmetric) Hessian matrix."""
        hess = np.asarray(hessian, dtype=float)
        if hess.ndim != 2 or hess.shape[0] != hess.shape[1]:
            raise ValueError(f"Hessian must be a square matrix, got shape {hess.shape}")
        if not np.all(np.isfinite(hess)):
            raise ValueError("Hessian contains non-finite entries")
        eigs = np.linalg.eigvalsh(0.5 * (hess + hess.T))
        return HessianClassification(eigenvalues=eigs, kind=self.classify(eigs))

    def classify_point(self, point, hessian) -> HessianClassification:
        """Classify the Hessian at ``point`` after checking their dimensions agree."""
        point = np.asarray(point, dtype=float).reshape(-1)
        hess = np.asarray(hessian, dtype=float)
        if hess.shape != (point.size, point.size):
            raise ValueError(
                f"Vector dimension mismatch: point has {point.size} coordinates, "
                f"Hessian has shape {hess.shape}"
            )
        return self.classify_hessian(hess)


def classify_critical_point(eigenvalues, tol: float = 1e-6) -> CriticalPointKind:
    """Functional shortcut for :meth:`HessianClassifier.classify`."""
    return HessianClassifier(tol).classify(eigenvalues)


def _kind_of(item: Union[HessianClassification, CriticalPointKind, str]) -> CriticalPointKind:
    if isinstance(item, HessianClassification):
        return item.kind
    return CriticalPointKind(item)


def count_classifications(
    items: Iterable[Union[HessianClassification, CriticalPointKind, str]],
) -> Dict[str, int]:
    """Count points per kind; every kind appears in the result, possibly with 0."""
    counts = Counter(_kind_of(item) for item in items)
    return {kind.value: counts.get(kind, 0) for kind in CriticalPointKind}


def classification_summary(
    items: Iterable[Union[HessianClassification, CriticalPointKind, str]],
    n_distinct_minima: Optional[int] = None,
) -> Dict[str, Any]:
    """Counts and percentages (rounded to 2 decimals) per kind."""
    counts = count_classifications(items)
    total = sum(counts.values())
    percentages = {
        kind: round(100.0 * count / total, 2) if total else 0.0
        for kind, count in counts.items()
    }
    return {
        "total": total,
        "counts": counts,
        "percentages": percentages,
        "distinct_local_minima": n_distinct_minima,
    }


__all__ = [
    "CriticalPointKind",
    "HessianClassification",
    "HessianClassifier",
    "classification_summary",
    "classify_critical_point",
    "count_classifications",
]
