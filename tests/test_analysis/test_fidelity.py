import math

import numpy as np
import pytest

from critpoint.analysis import (
    BasinFidelityAssessor,
    FidelityConfig,
    assess_landscape_fidelity,
    batch_assess_fidelity,
    check_hessian_basin,
    check_objective_proximity,
    estimate_basin_radius,
)

X_MIN = np.full(4, 0.5)


def test_near_zero_minimum_uses_absolute_comparison(sphere):
    result = check_objective_proximity([0.48, 0.52, 0.49, 0.51], X_MIN, sphere, tolerance=0.05)
    assert result.is_same_basin
    assert result.f_min == 0.0
    assert result.metric == pytest.approx(1e-3)


def test_far_point_is_rejected(sphere):
    result = check_objective_proximity([0.9, 0.9, 0.9, 0.9], X_MIN, sphere, tolerance=0.05)
    assert not result.is_same_basin
    assert result.metric == pytest.approx(0.64)


def test_relative_comparison_away_from_zero():
    objective = lambda x: float(np.sum(x**2)) + 10.0
    close = check_objective_proximity([0.1, 0.1], [0.0, 0.0], objective)
    far = check_objective_proximity([1.0, 1.0], [0.0, 0.0], objective)
    assert close.is_same_basin and close.metric == pytest.approx(0.002)
    assert not far.is_same_basin and far.metric == pytest.approx(0.2)


def test_dimension_mismatch_raises(sphere):
    with pytest.raises(ValueError, match="dimension mismatch"):
        check_objective_proximity([0.5, 0.5], X_MIN, sphere)
    with pytest.raises(ValueError, match="dimension mismatch"):
        check_hessian_basin([0.5] * 3, X_MIN, sphere, 2 * np.eye(4))
    with pytest.raises(ValueError, match="dimension mismatch"):
        BasinFidelityAssessor().assess(X_MIN, X_MIN, sphere, hessian_min=np.eye(3))


def test_basin_radius_for_zero_and_nonzero_minimum():
    assert estimate_basin_radius(0.0, 2 * np.eye(2)) == pytest.approx(math.sqrt(0.1))
    assert estimate_basin_radius(4.0, np.diag([8.0, 10.0])) == pytest.approx(math.sqrt(2 * 0.4 / 8.0))
    assert estimate_basin_radius(4.0, np.diag([8.0, 10.0]), threshold_factor=0.2) == pytest.approx(
        math.sqrt(2 * 0.8 / 8.0)
    )


@pytest.mark.parametrize("hessian", [np.diag([2.0, -1.0]), np.diag([2.0, 0.0]), -np.eye(2)])
def test_basin_radius_undefined_unless_positive_definite(hessian):
    assert math.isnan(estimate_basin_radius(1.0, hessian))


def test_hessian_basin_inside_and_outside(sphere):
    inside = check_hessian_basin([0.48, 0.52, 0.49, 0.51], X_MIN, sphere, 2 * np.eye(4))
    assert inside.is_same_basin and inside.assessed
    assert inside.distance == pytest.approx(math.sqrt(1e-3))
    assert inside.metric == pytest.approx(0.1)
    assert inside.min_eigenvalue == pytest.approx(2.0)

    outside = check_hessian_basin([1.0] * 4, X_MIN, sphere, 2 * np.eye(4))
    assert not outside.is_same_basin
    assert outside.metric > 1.0


def test_degenerate_hessian_is_not_assessed(sphere):
    basin = check_hessian_basin(X_MIN, X_MIN, sphere, np.diag([2.0, 2.0, 2.0, 0.0]))
    assert not basin.assessed
    assert not basin.is_same_basin
    assert math.isnan(basin.basin_radius) and math.isnan(basin.metric)
    assert basin.distance == 0.0


def test_assess_combines_both_criteria(sphere):
    result = BasinFidelityAssessor().assess([0.48, 0.52, 0.49, 0.51], X_MIN, sphere, hessian_min=2 * np.eye(4))
    assert result.is_same_basin
    assert result.confidence == 1.0
    assert [c.name for c in result.criteria] == ["objective_proximity", "hessian_basin"]
    assert all(c.passed for c in result.criteria)


def test_assess_without_hessian_is_binary(sphere):
    near = assess_landscape_fidelity([0.48, 0.52, 0.49, 0.51], X_MIN, sphere)
    far = assess_landscape_fidelity([0.9] * 4, X_MIN, sphere)
    assert near.confidence == 1.0 and near.is_same_basin
    assert far.confidence == 0.0 and not far.is_same_basin
    assert near.hessian_basin is None
    assert len(near.criteria) == 1


def test_split_verdict_counts_as_same_basin(sphere):
    result = BasinFidelityAssessor().assess(
        [0.48, 0.52, 0.49, 0.51], X_MIN, sphere, hessian_min=1e6 * np.eye(4)
    )
    assert result.confidence == 0.5
    assert result.is_same_basin
    assert not result.hessian_basin.is_same_basin


def test_saddle_hessian_drops_second_criterion(sphere):
    result = BasinFidelityAssessor().assess(
        [0.48, 0.52, 0.49, 0.51], X_MIN, sphere, hessian_min=np.diag([2.0, 2.0, 2.0, -2.0])
    )
    assert [c.name for c in result.criteria] == ["objective_proximity"]
    assert result.confidence == 1.0
    assert result.hessian_basin is not None and not result.hessian_basin.assessed


def test_to_dict(sphere):
    data = BasinFidelityAssessor().assess(X_MIN, X_MIN, sphere).to_dict()
    assert data["is_same_basin"] is True
    assert data["criteria"][0]["name"] == "objective_proximity"


def test_custom_config_tightens_tolerance(sphere):
    strict = BasinFidelityAssessor(FidelityConfig(tolerance=1e-4))
    assert not strict.assess([0.48, 0.52, 0.49, 0.51], X_MIN, sphere).is_same_basin
    with pytest.raises(ValueError):
        FidelityConfig(threshold_factor=0.0)


def test_batch_assess(sphere):
    candidates = [[0.48, 0.52, 0.49, 0.51], [0.9] * 4]
    refined = [X_MIN, X_MIN]
    results = batch_assess_fidelity(candidates, refined, sphere, hessians=[2 * np.eye(4), None])
    assert [r.is_same_basin for r in results] == [True, False]
    assert results[1].hessian_basin is None
    with pytest.raises(ValueError):
        batch_assess_fidelity(candidates, refined[:1], sphere)
    with pytest.raises(ValueError):
        batch_assess_fidelity(candidates, refined, sphere, hessians=[None])
