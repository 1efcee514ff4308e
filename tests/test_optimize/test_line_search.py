import numpy as np
import pytest

from critpoint.optimize.line_search import wolfe_line_search


def quadratic_fun(x: np.ndarray) -> float:
    return float(x.T @ x)


def quadratic_grad(x: np.ndarray) -> np.ndarray:
    return 2 * x


def rosen(x: np.ndarray) -> float:
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosen_grad(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def test_wolfe_conditions_rosenbrock():
    x = np.array([-1.2, 1.0])
    grad = rosen_grad(x)
    direction = -grad
    step = wolfe_line_search(rosen, rosen_grad, x, direction)
    phi0 = rosen(x)
    assert step.fun <= phi0 + 1e-4 * step.alpha * (grad @ direction)
    assert abs(step.grad @ direction) <= 0.9 * abs(grad @ direction)


def test_returns_values_at_accepted_point():
    x = np.array([1.0, -2.0])
    step = wolfe_line_search(quadratic_fun, quadratic_grad, x, -quadratic_grad(x))
    new_x = x - step.alpha * quadratic_grad(x)
    assert step.fun == pytest.approx(quadratic_fun(new_x))
    assert np.allclose(step.grad, quadratic_grad(new_x))
    assert step.fun < quadratic_fun(x)


def test_reuses_supplied_start_values():
    calls = []

    def counted(x):
        calls.append(x.copy())
        return quadratic_fun(x)

    x = np.array([1.0, 1.0])
    wolfe_line_search(counted, quadratic_grad, x, -quadratic_grad(x), f0=2.0, g0=quadratic_grad(x))
    assert not any(np.array_equal(c, x) for c in calls)


def test_zoom_phase_triggered():
    x = np.array([-1.2, 1.0])
    step = wolfe_line_search(rosen, rosen_grad, x, -rosen_grad(x), alpha0=5.0)
    assert step.alpha < 1.0


def test_non_finite_trial_values_shrink_step():
    def guarded(x):
        return np.inf if x[0] > 2.0 else float((x[0] - 1.5) ** 2)

    def guarded_grad(x):
        return np.array([2 * (x[0] - 1.5)])

    x = np.array([0.0])
    step = wolfe_line_search(guarded, guarded_grad, x, np.array([3.0]), alpha0=1.0)
    assert np.isfinite(step.fun)
    assert step.fun < guarded(x)


def test_rejects_ascent_direction():
    x = np.array([1.0])
    with pytest.raises(ValueError):
        wolfe_line_search(quadratic_fun, quadratic_grad, x, quadratic_grad(x))


def test_invalid_constants():
    x = np.array([1.0])
    with pytest.raises(ValueError):
        wolfe_line_search(quadratic_fun, quadratic_grad, x, -x, c1=0.9, c2=0.1)
