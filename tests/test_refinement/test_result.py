import numpy as np
import pytest

from critpoint.refinement import ConvergenceReason, RefinementResult, determine_convergence_reason

FLAG_NAMES = ("x_converged", "f_converged", "g_converged", "iteration_limit_reached")


def make_result(**overrides):
    fields = dict(
        refined=np.array([0.5, 0.5]),
        value_raw=1.0,
        value_refined=0.0,
        improvement=1.0,
        converged=True,
        iterations=10,
        f_calls=20,
        g_calls=0,
        h_calls=0,
        time_elapsed=0.01,
        x_converged=False,
        f_converged=True,
        g_converged=False,
        iteration_limit_reached=False,
        convergence_reason=ConvergenceReason.F_TOL,
    )
    fields.update(overrides)
    return RefinementResult(**fields)


def test_reason_precedence_order():
    base = dict(timed_out=False, converged=True, x_converged=True, f_converged=True, g_converged=True,
                iteration_limit_reached=True)
    assert determine_convergence_reason(**base) is ConvergenceReason.G_TOL
    base["g_converged"] = False
    assert determine_convergence_reason(**base) is ConvergenceReason.F_TOL
    base["f_converged"] = False
    assert determine_convergence_reason(**base) is ConvergenceReason.X_TOL
    base["x_converged"] = False
    assert determine_convergence_reason(**base) is ConvergenceReason.ITERATIONS
    base["iteration_limit_reached"] = False
    assert determine_convergence_reason(**base) is ConvergenceReason.UNKNOWN
    base["converged"] = False
    assert determine_convergence_reason(**base) is ConvergenceReason.ERROR


def test_timeout_beats_every_flag():
    for mask in range(16):
        flags = {name: bool(mask >> bit & 1) for bit, name in enumerate(FLAG_NAMES)}
        for converged in (False, True):
            reason = determine_convergence_reason(timed_out=True, converged=converged, **flags)
            assert reason is ConvergenceReason.TIMEOUT


def test_exactly_one_reason_for_every_flag_combination():
    for mask in range(64):
        flags = {name: bool(mask >> bit & 1) for bit, name in enumerate(FLAG_NAMES)}
        reason = determine_convergence_reason(
            timed_out=bool(mask & 16), converged=bool(mask & 32), **flags
        )
        assert isinstance(reason, ConvergenceReason)


def test_reason_values_are_stable_strings():
    assert [r.value for r in ConvergenceReason] == [
        "x_tol", "f_tol", "g_tol", "iterations", "timeout", "error", "unknown"
    ]


def test_refined_point_is_read_only_copy():
    point = np.array([0.1, 0.2])
    result = make_result(refined=point)
    point[0] = 9.0
    assert result.refined[0] == 0.1
    with pytest.raises(ValueError):
        result.refined[0] = 1.0
    assert result.dim == 2


def test_equality_ignores_elapsed_time():
    assert make_result(time_elapsed=0.1) == make_result(time_elapsed=5.0)
    assert make_result() != make_result(refined=np.array([0.5, 0.6]))
    assert make_result(value_refined=np.nan) == make_result(value_refined=np.nan)


def test_timed_out_requires_timeout_reason():
    with pytest.raises(ValueError):
        make_result(timed_out=True)


def test_negative_elapsed_time_rejected():
    with pytest.raises(ValueError):
        make_result(time_elapsed=-1.0)


def test_reason_must_be_enum():
    with pytest.raises(TypeError):
        make_result(convergence_reason="f_tol")
