"""Batch refinement and per-batch reporting.

Each candidate is refined independently on a thread pool; results are
written into slots by input index, so output order always matches input
order regardless of completion order or worker count. After refinement
the converged points are gradient-validated, classified from their
Hessians and clustered into distinct minima. Points classified as minima
are paired with their candidates for a basin-fidelity verdict.
"""

from __future__ import annotations

import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from ..analysis.classification import HessianClassification, HessianClassifier
from ..analysis.clustering import DistinctMinima, DistinctMinimaClusterer
from ..analysis.fidelity import BasinFidelityAssessor, BasinFidelityResult
from ..analysis.gradient_validation import GradientValidationResult, GradientValidator
from ..logging import get_logger
from ..optimize import Problem, as_problem
from ..optimize.core import Objective
from ..optimize.derivatives import hessian_function
from .config import RefinementConfig
from .refiner import Refiner
from .result import ConvergenceReason, RefinementResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class ComparisonRecord:
    """Raw candidate, its refinement and the gradient check, for one point."""

    index: int
    raw_point: np.ndarray
    result: RefinementResult
    gradient_norm: float
    gradient_valid: bool
    classification: Optional[HessianClassification] = None
    fidelity: Optional[BasinFidelityResult] = None

    def to_dict(self) -> Dict[str, Any]:
        """Flat record: raw/refined coordinates, values and diagnostics.

        Refined coordinates and value are NaN for non-converged points.
        """
        result = self.result
        record: Dict[str, Any] = {}
        for i, value in enumerate(self.raw_point, start=1):
            record[f"raw_dim{i}"] = float(value)
        record["raw_value"] = result.value_raw
        for i, value in enumerate(result.refined, start=1):
            record[f"refined_dim{i}"] = float(value) if result.converged else float("nan")
        record["refined_value"] = result.value_refined if result.converged else float("nan")
        record.update(
            converged=result.converged,
            iterations=result.iterations,
            f_calls=result.f_calls,
            g_calls=result.g_calls,
            h_calls=result.h_calls,
            time_elapsed=result.time_elapsed,
            x_converged=result.x_converged,
            f_converged=result.f_converged,
            g_converged=result.g_converged,
            iter_limit=result.iteration_limit_reached,
            convergence_reason=result.convergence_reason.value,
            gradient_norm=self.gradient_norm,
            gradient_valid=self.gradient_valid,
        )
        return record


def _stats(values: Sequence[float]) -> Dict[str, Optional[float]]:
    if len(values) == 0:
        return {"mean": None, "max": None, "min": None}
    array = np.asarray(values, dtype=float)
    return {"mean": float(array.mean()), "max": float(array.max()), "min": float(array.min())}


@dataclass(frozen=True)
class BatchSummary:
    """
    Aggregate statistics over one batch.

    Values that are undefined for the batch (for example the best refined
    value when nothing converged) are None.
    """

    n_raw_points: int
    n_converged: int
    n_failed: int
    n_timeout: int
    convergence_rate: float
    mean_improvement: Optional[float]
    max_improvement: Optional[float]
    best_raw_value: Optional[float]
    best_raw_index: Optional[int]
    best_refined_value: Optional[float]
    best_refined_index: Optional[int]
    total_refinement_time: float
    convergence_breakdown: Dict[str, int]
    call_counts: Dict[str, Optional[float]]
    timing: Dict[str, Any]
    gradient_validation: Optional[GradientValidationResult]
    n_distinct_minima: Optional[int]
    config: Dict[str, Any]

    @classmethod
    def from_results(
        cls,
        results: Sequence[RefinementResult],
        config: RefinementConfig,
        gradient_validation: Optional[GradientValidationResult] = None,
        n_distinct_minima: Optional[int] = None,
    ) -> "BatchSummary":
        n = len(results)
        converged = [i for i, r in enumerate(results) if r.converged]
        improvements = [results[i].improvement for i in converged]
        raw_values = np.array([r.value_raw for r in results], dtype=float)
        finite_raw = np.flatnonzero(np.isfinite(raw_values))

        best_raw_index = int(finite_raw[np.argmin(raw_values[finite_raw])]) if finite_raw.size else None
        best_refined_index = (
            min(converged, key=lambda i: results[i].value_refined) if converged else None
        )
        reasons = Counter(r.convergence_reason for r in results)
        f_calls = _stats([r.f_calls for r in results])
        g_calls = _stats([r.g_calls for r in results])
        times = _stats([r.time_elapsed for r in results])
        n_timeout = sum(r.timed_out for r in results)
        return cls(
            n_raw_points=n,
            n_converged=len(converged),
            n_failed=n - len(converged),
            n_timeout=n_timeout,
            convergence_rate=len(converged) / n if n else 0.0,
            mean_improvement=float(np.mean(improvements)) if improvements else None,
            max_improvement=float(np.max(improvements)) if improvements else None,
            best_raw_value=None if best_raw_index is None else float(raw_values[best_raw_index]),
            best_raw_index=best_raw_index,
            best_refined_value=(
                None if best_refined_index is None else results[best_refined_index].value_refined
            ),
            best_refined_index=best_refined_index,
            total_refinement_time=float(sum(r.time_elapsed for r in results)),
            convergence_breakdown={reason.value: reasons.get(reason, 0) for reason in ConvergenceReason},
            call_counts={
                "mean_f_calls": f_calls["mean"],
                "max_f_calls": f_calls["max"],
                "min_f_calls": f_calls["min"],
                "mean_g_calls": g_calls["mean"],
                "max_g_calls": g_calls["max"],
                "min_g_calls": g_calls["min"],
            },
            timing={
                "mean_time_per_point": times["mean"],
                "max_time_per_point": times["max"],
                "min_time_per_point": times["min"],
                "points_timed_out": n_timeout,
            },
            gradient_validation=gradient_validation,
            n_distinct_minima=n_distinct_minima,
            config=config.to_dict(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_raw_points": self.n_raw_points,
            "n_converged": self.n_converged,
            "n_failed": self.n_failed,
            "n_timeout": self.n_timeout,
            "convergence_rate": self.convergence_rate,
            "mean_improvement": self.mean_improvement,
            "max_improvement": self.max_improvement,
            "best_raw_value": self.best_raw_value,
            "best_raw_index": self.best_raw_index,
            "best_refined_value": self.best_refined_value,
            "best_refined_index": self.best_refined_index,
            "total_refinement_time": self.total_refinement_time,
            "convergence_breakdown": dict(self.convergence_breakdown),
            "call_counts": dict(self.call_counts),
            "timing": dict(self.timing),
            "gradient_validation": (
                None if self.gradient_validation is None else self.gradient_validation.to_dict()
            ),
            "n_distinct_minima": self.n_distinct_minima,
            "config": dict(self.config),
        }


@dataclass(frozen=True)
class BatchReport:
    """Everything produced by :meth:`BatchOrchestrator.run`."""

    results: tuple[RefinementResult, ...]
    records: tuple[ComparisonRecord, ...]
    summary: BatchSummary
    gradient_validation: Optional[GradientValidationResult]
    classifications: tuple[Optional[HessianClassification], ...]
    distinct_minima: Optional[DistinctMinima]
    fidelity: tuple[Optional[BasinFidelityResult], ...]

    @property
    def distinct_minima_points(self) -> np.ndarray:
        """Refined coordinates of the distinct minima representatives."""
        if self.distinct_minima is None:
            dim = self.results[0].dim if self.results else 0
            return np.zeros((0, dim))
        return np.array([self.results[i].refined for i in self.distinct_minima.representatives])


class BatchOrchestrator:
    """
    Refine and analyse a batch of candidate points.

    Args:
        config: Refinement settings shared by every point.
        classifier: Hessian classifier; defaults to ``HessianClassifier()``.
        fidelity: Basin-fidelity assessor; defaults to ``BasinFidelityAssessor()``.
        clusterer: Distinct-minima clusterer; defaults to
            ``DistinctMinimaClusterer()``.
        validator: Gradient validator. Defaults to one using
            ``config.validation_tolerance`` and the config's gradient method.
    """

    def __init__(
        self,
        config: Optional[RefinementConfig] = None,
        classifier: Optional[HessianClassifier] = None,
        fidelity: Optional[BasinFidelityAssessor] = None,
        clusterer: Optional[DistinctMinimaClusterer] = None,
        validator: Optional[GradientValidator] = None,
    ):
        self.config = config if config is not None else RefinementConfig()
        self.refiner = Refiner(self.config)
        self.classifier = classifier if classifier is not None else HessianClassifier()
        self.fidelity = fidelity if fidelity is not None else BasinFidelityAssessor()
        self.clusterer = clusterer if clusterer is not None else DistinctMinimaClusterer()
        self.validator = validator

    def refine(self, objective: Union[Problem, Objective], candidates) -> List[RefinementResult]:
        """
        Refine every candidate; the returned list follows the input order.

        With ``robust_mode=False`` the first exception (in input order) is
        re-raised once all sibling points have finished.
        """
        points = _as_points(candidates, allow_empty=True)
        n = len(points)
        if n == 0:
            return []
        problem = as_problem(objective)
        results: List[Optional[RefinementResult]] = [None] * n
        lock = threading.Lock()
        done = 0

        def work(index: int) -> RefinementResult:
            nonlocal done
            result = self.refiner.refine(problem, points[index])
            with lock:
                done += 1
                completed = done
            if self.config.show_progress:
                logger.info("Refined point %d/%d (%s)", completed, n, result.convergence_reason.value)
            return result

        with ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="critpoint-batch"
        ) as executor:
            futures = [executor.submit(work, i) for i in range(n)]
            for i, future in enumerate(futures):
                results[i] = future.result()
        return results

    def run(
        self,
        objective: Union[Problem, Objective],
        candidates,
        hessians: Optional[Sequence] = None,
    ) -> BatchReport:
        """
        Refine ``candidates`` and analyse the converged points.

        Args:
            objective: Callable or :class:`~critpoint.optimize.Problem`.
            candidates: Array of shape ``(n, d)``.
            hessians: Optional Hessians at the refined points, one per
                candidate (entries may be None). Missing Hessians are
                computed with ``config.gradient_method``.

        Only points classified as minima get a basin-fidelity verdict; the
        ``fidelity`` entries of saddles, maxima, degenerate and unclassified
        points are None.

        Raises:
            ValueError: If ``candidates`` is empty or malformed, or
                ``hessians`` does not have one entry per candidate.
        """
        points = _as_points(candidates, allow_empty=False)
        n, dim = points.shape
        if hessians is not None:
            if len(hessians) != n:
                raise ValueError(f"Got {len(hessians)} Hessians for {n} candidates")
            for i, hess in enumerate(hessians):
                if hess is not None and np.shape(hess) != (dim, dim):
                    raise ValueError(
                        f"Vector dimension mismatch: Hessian {i} has shape {np.shape(hess)}, "
                        f"expected ({dim}, {dim})"
                    )
        problem = as_problem(objective)
        results = self.refine(problem, points)
        converged = [i for i, r in enumerate(results) if r.converged]

        validation = None
        norms = np.full(n, np.inf)
        valid = np.zeros(n, dtype=bool)
        if converged:
            method = "analytic" if problem.grad is not None else self.config.gradient_method
            validator = self.validator or GradientValidator(self.config.validation_tolerance, method)
            refined = np.array([results[i].refined for i in converged])
            validation = validator.validate(refined, problem)
            norms[converged] = validation.norms
            valid[converged] = validation.valid

        classifications: List[Optional[HessianClassification]] = [None] * n
        fidelity: List[Optional[BasinFidelityResult]] = [None] * n
        hess_method = "analytic" if problem.hess is not None else self.config.gradient_method
        hessian_at = hessian_function(problem, hess_method)
        for i in converged:
            result = results[i]
            hess = None if hessians is None else hessians[i]
            try:
                if hess is None:
                    hess = hessian_at(result.refined)
                classifications[i] = self.classifier.classify_point(result.refined, hess)
            except Exception as exc:
                if not self.config.robust_mode:
                    raise
                logger.warning("Hessian analysis failed for point %d: %s", i, exc)
                continue
            if classifications[i].is_minimum:
                fidelity[i] = self.fidelity.assess(points[i], result.refined, problem.fun, hess)

        classified = [i for i in converged if classifications[i] is not None]
        distinct = None
        if classified:
            local = self.clusterer.distinct_minima(
                np.array([results[i].refined for i in classified]),
                [classifications[i] for i in classified],
                [results[i].value_refined for i in classified],
            )
            distinct = DistinctMinima(
                minima_indices=tuple(classified[j] for j in local.minima_indices),
                assignment=local.assignment,
            )

        records = tuple(
            ComparisonRecord(
                index=i,
                raw_point=points[i],
                result=results[i],
                gradient_norm=float(norms[i]),
                gradient_valid=bool(valid[i]),
                classification=classifications[i],
                fidelity=fidelity[i],
            )
            for i in range(n)
        )
        summary = BatchSummary.from_results(
            results,
            self.config,
            gradient_validation=validation,
            n_distinct_minima=None if distinct is None else distinct.n_distinct,
        )
        logger.info(
            "Batch done: %d/%d converged, %d timed out",
            summary.n_converged,
            summary.n_raw_points,
            summary.n_timeout,
        )
        return BatchReport(
            results=tuple(results),
            records=records,
            summary=summary,
            gradient_validation=validation,
            classifications=tuple(classifications),
            distinct_minima=distinct,
            fidelity=tuple(fidelity),
        )


def _as_points(candidates, allow_empty: bool) -> np.ndarray:
    points = np.asarray(candidates, dtype=float)
    if points.size == 0:
        if allow_empty:
            return points.reshape(0, 0) if points.ndim < 2 else points
        raise ValueError("candidates must contain at least one point")
    if points.ndim != 2:
        raise ValueError(f"candidates must have shape (n, d), got {points.shape}")
    return points


def refine_critical_points_batch(
    objective: Union[Problem, Objective],
    candidates,
    config: Optional[RefinementConfig] = None,
) -> List[RefinementResult]:
    """Refine a batch of candidates; see :meth:`BatchOrchestrator.refine`."""
    return BatchOrchestrator(config).refine(objective, candidates)


__all__ = [
    "BatchOrchestrator",
    "BatchReport",
    "BatchSummary",
    "ComparisonRecord",
    "refine_critical_points_batch",
]
