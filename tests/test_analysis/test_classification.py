import numpy as np
import pytest

from critpoint.analysis import (
    CriticalPointKind,
    HessianClassifier,
    classification_summary,
    classify_critical_point,
    count_classifications,
)


@pytest.mark.parametrize(
    "eigenvalues, kind",
    [
        ([2.0, 2.0, 2.0, 2.0], CriticalPointKind.MINIMUM),
        ([-1.0, -3.0], CriticalPointKind.MAXIMUM),
        ([2.0, -2.0], CriticalPointKind.SADDLE),
        ([2.0, 0.0], CriticalPointKind.DEGENERATE),
        ([-2.0, 1e-9], CriticalPointKind.DEGENERATE),
        ([5.0], CriticalPointKind.MINIMUM),
    ],
)
def test_classify_eigenvalues(eigenvalues, kind):
    assert classify_critical_point(eigenvalues) is kind


def test_zero_threshold_scales_with_spectrum():
    classifier = HessianClassifier(tol=1e-6)
    assert classifier.classify([1e6, 0.5]) is CriticalPointKind.DEGENERATE
    assert classifier.classify([1.0, 0.5]) is CriticalPointKind.MINIMUM
    assert classifier.classify([1e-3, 2e-3]) is CriticalPointKind.MINIMUM


def test_classify_rejects_empty_and_non_finite():
    classifier = HessianClassifier()
    with pytest.raises(ValueError):
        classifier.classify([])
    with pytest.raises(ValueError):
        classifier.classify([1.0, np.nan])
    with pytest.raises(ValueError):
        HessianClassifier(tol=0.0)


def test_classify_hessian_symmetrizes():
    hessian = np.array([[2.0, 1e-12], [0.0, 3.0]])
    classification = HessianClassifier().classify_hessian(hessian)
    assert classification.kind is CriticalPointKind.MINIMUM
    assert np.allclose(classification.eigenvalues, [2.0, 3.0])
    assert classification.is_minimum
    assert classification.morse_index == 0


def test_morse_index_counts_negative_directions():
    classification = HessianClassifier().classify_hessian(np.diag([-1.0, 2.0, -3.0]))
    assert classification.kind is CriticalPointKind.SADDLE
    assert classification.morse_index == 2
    assert np.allclose(classification.eigenvalues, [-3.0, -1.0, 2.0])


def test_classify_hessian_rejects_bad_matrices():
    classifier = HessianClassifier()
    with pytest.raises(ValueError):
        classifier.classify_hessian(np.ones((2, 3)))
    with pytest.raises(ValueError):
        classifier.classify_hessian(np.array([[np.inf, 0.0], [0.0, 1.0]]))


def test_classify_point_checks_dimension():
    classifier = HessianClassifier()
    with pytest.raises(ValueError, match="dimension mismatch"):
        classifier.classify_point(np.zeros(3), np.eye(2))
    assert classifier.classify_point(np.zeros(2), np.eye(2)).kind is CriticalPointKind.MINIMUM


def test_eigenvalues_are_read_only():
    classification = HessianClassifier().classify_eigenvalues([3.0, 1.0])
    assert classification.eigenvalues.tolist() == [1.0, 3.0]
    with pytest.raises(ValueError):
        classification.eigenvalues[0] = 0.0


def test_count_classifications_lists_every_kind():
    counts = count_classifications(["minimum", CriticalPointKind.SADDLE, "minimum"])
    assert counts == {"minimum": 2, "maximum": 0, "saddle": 1, "degenerate": 0}


def test_classification_summary_percentages():
    classifier = HessianClassifier()
    items = [
        classifier.classify_eigenvalues([1.0, 1.0]),
        classifier.classify_eigenvalues([1.0, -1.0]),
        classifier.classify_eigenvalues([-1.0, -1.0]),
    ]
    summary = classification_summary(items, n_distinct_minima=1)
    assert summary["total"] == 3
    assert summary["percentages"]["minimum"] == 33.33
    assert summary["percentages"]["degenerate"] == 0.0
    assert summary["distinct_local_minima"] == 1


def test_classification_summary_of_nothing():
    summary = classification_summary([])
    assert summary["total"] == 0
    assert set(summary["percentages"].values()) == {0.0}
    assert summary["distinct_local_minima"] is None
