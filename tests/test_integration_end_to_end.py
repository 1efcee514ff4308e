"""End-to-end integration tests.

This test module validates:
1. Batch refinement + gradient validation + classification + clustering on a
   4D multi-modal objective
2. Capture of the known minima by the deduplicated refined points
3. Timeouts and failures inside a batch leave sibling points untouched
"""

import itertools
import time

import numpy as np
import pytest

from critpoint.analysis import (
    CriticalPointKind,
    KnownCriticalPoints,
    classification_summary,
    compute_capture_analysis,
)
from critpoint.refinement import BatchOrchestrator, ConvergenceReason, RefinementConfig

# Coordinates of the critical points of x^4 - 2x^2 + 0.2x: two minima and a maximum.
WELL_ROOTS = np.sort(np.roots([4.0, 0.0, -4.0, 0.2]).real)
WELL_MINIMA = WELL_ROOTS[[0, 2]]


def jittered_grid(rng, levels=(-0.9, 0.05, 0.95), dim=4, scale=0.02):
    grid = np.array(list(itertools.product(levels, repeat=dim)), dtype=float)
    return grid + rng.uniform(-scale, scale, size=grid.shape)


@pytest.fixture
def end_to_end_config():
    return RefinementConfig(
        method="nelder_mead",
        max_time_per_point=30.0,
        f_abstol=1e-15,
        x_abstol=1e-10,
        max_iterations=5000,
        gradient_tolerance=1e-6,
        show_progress=False,
    )


class TestFourDimensionalDoubleWell:
    """Refine 81 polynomial-style candidates of a 4D double well."""

    def test_batch_meets_quality_targets(self, well, rng, end_to_end_config):
        candidates = jittered_grid(rng)
        assert candidates.shape == (81, 4)

        report = BatchOrchestrator(end_to_end_config).run(well, candidates)
        summary = report.summary

        assert summary.n_raw_points == 81
        assert summary.convergence_rate >= 0.7
        assert summary.n_timeout == 0
        assert summary.best_refined_value <= summary.best_raw_value
        assert report.gradient_validation.validation_rate >= 0.8
        assert report.gradient_validation.tolerance == 1e-6

        for result in report.results:
            if result.converged:
                assert result.value_refined <= result.value_raw

    def test_distinct_minima_cover_all_sixteen_basins(self, well, rng, end_to_end_config):
        report = BatchOrchestrator(end_to_end_config).run(well, jittered_grid(rng))

        kinds = [c.kind for c in report.classifications if c is not None]
        summary = classification_summary(kinds, report.distinct_minima.n_distinct)
        assert summary["counts"]["minimum"] == len(kinds)
        assert summary["distinct_local_minima"] == 16

        minima = report.distinct_minima_points
        assert minima.shape == (16, 4)
        nearest = np.min(np.abs(minima[..., None] - WELL_MINIMA), axis=-1)
        assert np.all(nearest < 1e-4)
        assert len({tuple(np.sign(m)) for m in minima}) == 16

        known_points = np.array(list(itertools.product(WELL_MINIMA, repeat=4)))
        known = KnownCriticalPoints.from_bounds(
            known_points,
            [well(p) for p in known_points],
            [CriticalPointKind.MINIMUM] * len(known_points),
            lower=[-1.5] * 4,
            upper=[1.5] * 4,
        )
        capture = compute_capture_analysis(known, minima)
        assert capture.capture_rates[0] == 1.0

    def test_fidelity_verdicts_for_converged_minima(self, well, rng, end_to_end_config):
        candidates = jittered_grid(rng)
        report = BatchOrchestrator(end_to_end_config).run(well, candidates)
        for classification, verdict in zip(report.classifications, report.fidelity):
            assert (verdict is None) == (classification is None or not classification.is_minimum)
            if verdict is not None:
                assert 0.0 <= verdict.confidence <= 1.0

        # all coordinates near the right-hand well: f_min is far from zero and the
        # candidate sits well inside the quadratic basin
        corner = int(np.flatnonzero(np.all(candidates > 0.5, axis=1))[0])
        verdict = report.fidelity[corner]
        assert verdict.is_same_basin
        assert verdict.confidence == 1.0
        assert verdict.hessian_basin.assessed

    def test_records_are_exportable(self, well, rng, end_to_end_config):
        report = BatchOrchestrator(end_to_end_config).run(well, jittered_grid(rng)[:5])
        rows = [record.to_dict() for record in report.records]
        assert all(len(row) == 4 + 1 + 4 + 1 + 13 for row in rows)
        breakdown = report.summary.to_dict()["convergence_breakdown"]
        assert sum(breakdown.values()) == 5


class TestBatchIsolation:
    """One misbehaving point never affects its siblings."""

    def test_slow_and_failing_points_are_recorded(self, sphere):
        def objective(x):
            if x[0] > 10:
                raise RuntimeError("model integration failed")
            if x[0] < -10:
                time.sleep(0.05)
            return sphere(x)

        config = RefinementConfig(
            max_time_per_point=0.5, f_abstol=1e-12, max_iterations=5000, max_workers=3, show_progress=False
        )
        points = np.array([[0.0, 0.0], [20.0, 0.0], [-20.0, 0.0], [1.0, 1.0]])
        report = BatchOrchestrator(config).run(objective, points)
        reasons = [r.convergence_reason for r in report.results]

        assert reasons[1] is ConvergenceReason.ERROR
        assert reasons[2] is ConvergenceReason.TIMEOUT
        assert report.results[2].timed_out
        assert report.results[2].value_refined <= report.results[2].value_raw
        assert report.results[0].converged and report.results[3].converged
        assert report.summary.n_timeout == 1
        assert report.summary.timing["points_timed_out"] == 1
