"""Local refinement of a single candidate point.

The :class:`Refiner` runs one optimizer strategy from a candidate under a
hard wall-clock deadline and turns the outcome into a
:class:`~critpoint.refinement.result.RefinementResult`. Failures follow a
fixed policy:

* a non-finite objective at the candidate short-circuits to an error result;
* a timeout always yields a result carrying the best point seen so far;
* any other exception is recorded when ``robust_mode`` is set and
  re-raised otherwise.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Optional, Union

import numpy as np

from ..logging import get_logger
from ..optimize import OptimizeResult, Problem, as_problem
from ..optimize.core import Objective
from ..optimize.derivatives import gradient_function, hessian_function
from .config import RefinementConfig
from .result import ConvergenceReason, RefinementResult, determine_convergence_reason
from .strategies import OptimizerStrategy, get_strategy

logger = get_logger(__name__)


class RefinementTimeout(Exception):
    """Raised inside a refinement once its deadline passed or it was cancelled."""


class _EvaluationTracker:
    """Counts oracle calls, remembers the best point and enforces the deadline.

    The tracker wraps the objective handed to the optimizer. Every call
    first checks for cancellation, so an optimizer abandoned after a
    timeout stops at its next evaluation.
    """

    def __init__(self, problem: Problem, config: RefinementConfig, x0: np.ndarray, f0: float):
        self._problem = problem
        self._config = config
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._deadline: Optional[float] = None
        self.f_calls = 0
        self.g_calls = 0
        self.h_calls = 0
        self.iterations = 0
        self._best_x = x0.copy()
        self._best_value = f0

    def start_deadline(self, seconds: float) -> None:
        self._deadline = time.monotonic() + seconds

    def cancel(self) -> None:
        self._cancelled.set()

    def _check(self) -> None:
        if self._cancelled.is_set():
            raise RefinementTimeout("refinement cancelled")
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise RefinementTimeout("refinement deadline exceeded")

    def fun(self, x: np.ndarray) -> float:
        self._check()
        value = float(self._problem.fun(x))
        with self._lock:
            self.f_calls += 1
            if value < self._best_value:
                self._best_value = value
                self._best_x = np.array(x, dtype=float, copy=True)
        return value

    def iteration(self, x: np.ndarray) -> None:
        self._check()
        with self._lock:
            self.iterations += 1

    def problem(self) -> Problem:
        """Instrumented problem handed to the optimizer strategy."""
        grad_method = "analytic" if self._problem.grad is not None else self._config.gradient_method
        hess_method = "analytic" if self._problem.hess is not None else self._config.gradient_method
        grad_fn = gradient_function(self._problem, grad_method)
        hess_fn = hessian_function(self._problem, hess_method)

        def grad(x: np.ndarray) -> np.ndarray:
            self._check()
            with self._lock:
                self.g_calls += 1
            return grad_fn(x)

        def hess(x: np.ndarray) -> np.ndarray:
            self._check()
            with self._lock:
                self.h_calls += 1
            return hess_fn(x)

        return Problem(fun=self.fun, grad=grad, hess=hess, dim=self._problem.dim)

    def snapshot(self) -> tuple[np.ndarray, float, int, int, int, int]:
        with self._lock:
            return (
                self._best_x.copy(),
                self._best_value,
                self.iterations,
                self.f_calls,
                self.g_calls,
                self.h_calls,
            )


class Refiner:
    """Refine candidate points with one configured optimizer strategy.

    Args:
        config: Refinement settings; defaults to :class:`RefinementConfig`.
        strategy: Strategy instance overriding the one named by
            ``config.method``.

    With a deadline, each point runs on its own ``critpoint-refine`` worker
    thread. A point that exceeds ``max_time_per_point`` is abandoned rather
    than killed: cancellation takes effect at its next objective, gradient,
    Hessian or iteration callback. An objective blocked inside a single long
    call keeps its worker thread alive until that call returns, and
    interpreter exit waits for it.

    Example:
        >>> import numpy as np
        >>> refiner = Refiner(RefinementConfig(max_time_per_point=None, f_abstol=1e-12))
        >>> result = refiner.refine(lambda x: float(((x - 0.5) ** 2).sum()), np.array([0.4, 0.6]))
        >>> result.converged, result.value_refined < result.value_raw
        (True, True)
    """

    def __init__(
        self,
        config: Optional[RefinementConfig] = None,
        strategy: Optional[OptimizerStrategy] = None,
    ):
        self.config = config if config is not None else RefinementConfig()
        self.strategy = strategy if strategy is not None else get_strategy(self.config.method)

    def refine(self, objective: Union[Problem, Objective], x0) -> RefinementResult:
        """Refine ``x0`` against ``objective`` and return the annotated result.

        Raises:
            ValueError: If ``x0`` is not a non-empty 1D vector or its length
                disagrees with ``problem.dim`` or ``config.bounds``.
        """
        problem = as_problem(objective)
        x0 = np.asarray(x0, dtype=float)
        if x0.ndim != 1 or x0.size == 0:
            raise ValueError(f"x0 must be a non-empty 1D vector, got shape {x0.shape}")
        if problem.dim is not None and problem.dim != x0.size:
            raise ValueError(
                f"Vector dimension mismatch: problem has dim={problem.dim}, x0 has {x0.size}"
            )
        self.config.check_dimension(x0.size)

        try:
            value_raw = float(problem.fun(x0))
        except Exception as exc:
            if not self.config.robust_mode:
                raise
            logger.warning("Initial evaluation failed: %s", exc)
            return self._failure(
                x0, np.inf, np.inf, f"Initial evaluation failed: {exc}", 0.0
            )
        if not np.isfinite(value_raw):
            logger.warning("Initial evaluation returned non-finite value %s", value_raw)
            return self._failure(
                x0,
                value_raw,
                value_raw,
                f"Initial evaluation returned non-finite value: {value_raw}",
                0.0,
            )

        tracker = _EvaluationTracker(problem, self.config, x0, value_raw)
        start = time.perf_counter()
        try:
            point, diagnostics = self._run(tracker, x0)
        except RefinementTimeout:
            return self._timed_out(tracker, value_raw, time.perf_counter() - start)
        except Exception as exc:
            if not self.config.robust_mode:
                raise
            logger.warning("Optimization error from %s: %s", x0.tolist(), exc)
            _, _, iterations, f_calls, g_calls, h_calls = tracker.snapshot()
            return RefinementResult(
                refined=x0,
                value_raw=value_raw,
                value_refined=np.inf,
                improvement=np.inf,
                converged=False,
                iterations=iterations,
                f_calls=f_calls + 1,
                g_calls=g_calls,
                h_calls=h_calls,
                time_elapsed=time.perf_counter() - start,
                x_converged=False,
                f_converged=False,
                g_converged=False,
                iteration_limit_reached=False,
                convergence_reason=ConvergenceReason.ERROR,
                error_message=f"Optimization error: {exc}",
            )
        elapsed = time.perf_counter() - start
        return self._from_diagnostics(point, diagnostics, tracker, value_raw, elapsed)

    def _run(self, tracker: _EvaluationTracker, x0: np.ndarray) -> tuple[np.ndarray, OptimizeResult]:
        problem = tracker.problem()
        max_time = self.config.max_time_per_point
        if max_time is None:
            return self.strategy.run(problem, x0, self.config, tracker.iteration)

        tracker.start_deadline(max_time)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="critpoint-refine")
        try:
            future = executor.submit(self.strategy.run, problem, x0, self.config, tracker.iteration)
            try:
                return future.result(timeout=max_time)
            except FuturesTimeoutError:
                tracker.cancel()
                raise RefinementTimeout(f"exceeded {max_time}s") from None
        finally:
            executor.shutdown(wait=False)

    def _from_diagnostics(
        self,
        point: np.ndarray,
        diagnostics: OptimizeResult,
        tracker: _EvaluationTracker,
        value_raw: float,
        elapsed: float,
    ) -> RefinementResult:
        _, _, _, f_calls, g_calls, h_calls = tracker.snapshot()
        converged = bool(diagnostics.success)
        flags = dict(
            x_converged=bool(diagnostics.x_converged),
            f_converged=bool(diagnostics.f_converged),
            g_converged=bool(diagnostics.g_converged),
            iteration_limit_reached=bool(diagnostics.iteration_limit_reached),
        )
        reason = determine_convergence_reason(timed_out=False, converged=converged, **flags)
        value_refined = float(diagnostics.fun)
        logger.debug(
            "Refined in %d iterations (%s): %.6g -> %.6g",
            diagnostics.nit,
            reason.value,
            value_raw,
            value_refined,
        )
        return RefinementResult(
            refined=point,
            value_raw=value_raw,
            value_refined=value_refined,
            improvement=abs(value_refined - value_raw),
            converged=converged,
            iterations=int(diagnostics.nit),
            f_calls=f_calls + 1,
            g_calls=g_calls,
            h_calls=h_calls,
            time_elapsed=elapsed,
            convergence_reason=reason,
            **flags,
        )

    def _timed_out(
        self, tracker: _EvaluationTracker, value_raw: float, elapsed: float
    ) -> RefinementResult:
        best_x, best_value, iterations, f_calls, g_calls, h_calls = tracker.snapshot()
        logger.warning(
            "Refinement timed out after %.1fs; keeping best value %.6g",
            self.config.max_time_per_point,
            best_value,
        )
        return RefinementResult(
            refined=best_x,
            value_raw=value_raw,
            value_refined=best_value,
            improvement=abs(best_value - value_raw),
            converged=False,
            iterations=iterations,
            f_calls=f_calls + 1,
            g_calls=g_calls,
            h_calls=h_calls,
            time_elapsed=elapsed,
            x_converged=False,
            f_converged=False,
            g_converged=False,
            iteration_limit_reached=False,
            convergence_reason=ConvergenceReason.TIMEOUT,
            timed_out=True,
        )

    @staticmethod
    def _failure(
        x0: np.ndarray, value_raw: float, value_refined: float, message: str, improvement: float
    ) -> RefinementResult:
        return RefinementResult(
            refined=x0,
            value_raw=value_raw,
            value_refined=value_refined,
            improvement=improvement,
            converged=False,
            iterations=0,
            f_calls=1,
            g_calls=0,
            h_calls=0,
            time_elapsed=0.0,
            x_converged=False,
            f_converged=False,
            g_converged=False,
            iteration_limit_reached=False,
            convergence_reason=ConvergenceReason.ERROR,
            error_message=message,
        )


def refine_critical_point(
    objective: Union[Problem, Objective],
    x0,
    config: Optional[RefinementConfig] = None,
) -> RefinementResult:
    """Refine a single candidate point; see :meth:`Refiner.refine`."""
    return Refiner(config).refine(objective, x0)


__all__ = ["Refiner", "RefinementTimeout", "refine_critical_point"]
