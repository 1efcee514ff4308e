import threading
import time

import numpy as np
import pytest

from critpoint.optimize import OptimizeResult, Problem
from critpoint.refinement import (
    ConvergenceReason,
    OptimizerStrategy,
    RefinementConfig,
    Refiner,
    refine_critical_point,
)

TIGHT = dict(f_abstol=1e-14, x_abstol=1e-10, max_iterations=5000)


def test_refines_sphere_to_minimum(sphere):
    result = refine_critical_point(sphere, np.array([0.4, 0.6, 0.45]), RefinementConfig(**TIGHT))
    assert result.converged
    assert result.convergence_reason in (ConvergenceReason.F_TOL, ConvergenceReason.X_TOL)
    assert np.allclose(result.refined, 0.5, atol=1e-5)
    assert result.value_refined <= result.value_raw
    assert result.improvement == pytest.approx(result.value_raw - result.value_refined)
    assert result.f_calls > 1 and result.g_calls == 0 and result.h_calls == 0
    assert result.time_elapsed >= 0
    assert not result.timed_out and result.error_message is None


def test_converged_results_never_worsen(well, rng):
    refiner = Refiner(RefinementConfig(max_time_per_point=None))
    for _ in range(10):
        result = refiner.refine(well, rng.uniform(-1.5, 1.5, size=3))
        if result.converged:
            assert result.value_refined <= result.value_raw


@pytest.mark.parametrize("robust", [True, False])
def test_non_finite_start_short_circuits(robust):
    calls = []

    def objective(x):
        calls.append(1)
        return float("nan")

    result = Refiner(RefinementConfig(robust_mode=robust)).refine(objective, np.zeros(2))
    assert len(calls) == 1
    assert not result.converged
    assert result.convergence_reason is ConvergenceReason.ERROR
    assert (result.iterations, result.f_calls, result.g_calls, result.h_calls) == (0, 1, 0, 0)
    assert result.time_elapsed == 0.0
    assert result.improvement == 0.0
    assert "non-finite" in result.error_message
    assert np.array_equal(result.refined, np.zeros(2))


def failing_after(n_calls):
    count = {"n": 0}

    def objective(x):
        count["n"] += 1
        if count["n"] > n_calls:
            raise RuntimeError("solver diverged")
        return float(np.sum(x**2))

    return objective


def test_robust_mode_records_optimizer_errors():
    result = Refiner(RefinementConfig(robust_mode=True)).refine(failing_after(3), np.ones(2))
    assert result.convergence_reason is ConvergenceReason.ERROR
    assert not result.converged
    assert result.value_refined == np.inf
    assert "solver diverged" in result.error_message
    assert np.array_equal(result.refined, np.ones(2))


def test_errors_propagate_without_robust_mode():
    with pytest.raises(RuntimeError, match="solver diverged"):
        Refiner(RefinementConfig(robust_mode=False)).refine(failing_after(3), np.ones(2))


def test_initial_evaluation_error_policy():
    result = Refiner(RefinementConfig(robust_mode=True)).refine(failing_after(0), np.ones(2))
    assert result.convergence_reason is ConvergenceReason.ERROR
    assert result.value_raw == np.inf and result.value_refined == np.inf
    with pytest.raises(RuntimeError):
        Refiner(RefinementConfig(robust_mode=False)).refine(failing_after(0), np.ones(2))


def test_timeout_keeps_best_point(sphere):
    def slow(x):
        time.sleep(0.01)
        return sphere(x)

    config = RefinementConfig(max_time_per_point=0.2, **TIGHT)
    result = Refiner(config).refine(slow, np.array([0.0, 0.0, 0.0]))
    assert result.timed_out
    assert result.convergence_reason is ConvergenceReason.TIMEOUT
    assert not result.converged
    assert result.error_message is None
    assert result.value_refined <= result.value_raw
    assert result.value_refined == pytest.approx(sphere(result.refined))
    assert result.f_calls > 1


def test_timeout_is_a_hard_deadline_for_hanging_objectives():
    release = threading.Event()
    count = {"n": 0}

    def hangs(x):
        count["n"] += 1
        if count["n"] == 4:
            release.wait(2.0)
        return float(np.sum(x**2))

    start = time.perf_counter()
    result = Refiner(RefinementConfig(max_time_per_point=0.2)).refine(hangs, np.ones(2))
    elapsed = time.perf_counter() - start
    release.set()
    assert result.timed_out
    assert elapsed < 1.5
    assert result.value_refined <= result.value_raw


def test_abandoned_worker_exits_once_its_blocked_call_returns():
    release = threading.Event()
    entered = threading.Event()
    count = {"n": 0}

    def blocks(x):
        count["n"] += 1
        if count["n"] == 4:
            entered.set()
            release.wait(5.0)
        return float(np.sum(x**2))

    result = Refiner(RefinementConfig(max_time_per_point=0.2)).refine(blocks, np.ones(2))
    assert result.timed_out
    assert entered.is_set()
    workers = [t for t in threading.enumerate() if t.name.startswith("critpoint-refine") and t.is_alive()]
    assert workers
    calls_at_timeout = count["n"]
    release.set()
    for worker in workers:
        worker.join(timeout=5.0)
    assert not any(worker.is_alive() for worker in workers)
    # cancellation fires on the first call after the blocked one returns
    assert count["n"] <= calls_at_timeout + 1


def test_iteration_limit_reason(sphere):
    config = RefinementConfig(max_iterations=3, f_abstol=0.0, x_abstol=0.0)
    result = Refiner(config).refine(sphere, np.zeros(2))
    assert not result.converged
    assert result.iteration_limit_reached
    assert result.convergence_reason is ConvergenceReason.ITERATIONS
    assert result.iterations == 3


def test_bfgs_with_analytic_gradient_reports_gradient_convergence():
    problem = Problem(fun=lambda x: float(np.sum((x - 0.5) ** 2)), grad=lambda x: 2 * (x - 0.5))
    config = RefinementConfig(method="bfgs", f_abstol=0.0, x_abstol=0.0, g_abstol=1e-8)
    result = Refiner(config).refine(problem, np.zeros(3))
    assert result.g_converged
    assert result.convergence_reason is ConvergenceReason.G_TOL
    assert result.g_calls > 0


def test_autodiff_gradients_are_counted(tensor_sphere):
    config = RefinementConfig(method="lbfgs", gradient_method="autodiff", f_abstol=0.0, x_abstol=0.0)
    result = Refiner(config).refine(tensor_sphere, np.zeros(3))
    assert result.converged
    assert result.g_calls > 0
    assert np.allclose(result.refined, 0.5, atol=1e-6)


def test_newton_reaches_saddle_of_double_well(tensor_well):
    config = RefinementConfig(method="newton", gradient_method="autodiff", g_abstol=1e-9, x_abstol=0.0)
    result = Refiner(config).refine(tensor_well, np.array([0.1, 0.9]))
    assert result.converged
    assert result.convergence_reason is ConvergenceReason.G_TOL
    assert result.h_calls > 0
    assert result.refined[0] == pytest.approx(0.0501, abs=1e-3)


def test_dimension_mismatches_raise():
    with pytest.raises(ValueError, match="dimension mismatch"):
        Refiner().refine(Problem(fun=lambda x: 0.0, dim=3), np.zeros(2))
    with pytest.raises(ValueError, match="dimension mismatch"):
        Refiner(RefinementConfig(bounds=[(0, 1)])).refine(lambda x: 0.0, np.zeros(2))
    with pytest.raises(ValueError):
        Refiner().refine(lambda x: 0.0, np.zeros((2, 2)))


class SilentStrategy(OptimizerStrategy):
    """Claims success without raising any native flag."""

    name = "silent"

    def run(self, problem, x0, config, callback=None):
        value = problem.fun(x0)
        return x0, OptimizeResult(
            x=x0, fun=value, nit=0, success=True, message="", grad_norm=float("nan"),
            nfev=1, njev=0, nhev=0,
        )


def test_success_without_flags_is_unknown():
    result = Refiner(RefinementConfig(), strategy=SilentStrategy()).refine(lambda x: 1.0, np.zeros(2))
    assert result.converged
    assert result.convergence_reason is ConvergenceReason.UNKNOWN
    assert result.f_calls == 2
