import numpy as np
import pytest
import torch

from critpoint.optimize import Problem
from critpoint.optimize.derivatives import (
    autodiff_gradient,
    autodiff_hessian,
    gradient_function,
    hessian_function,
)


def cubic(x):
    return (x**3).sum() + x[0] * x[1]


def test_autodiff_gradient_matches_closed_form():
    x = np.array([0.5, -1.0])
    grad = autodiff_gradient(cubic, x)
    assert grad.dtype == np.float64
    assert np.allclose(grad, [3 * 0.25 - 1.0, 3 * 1.0 + 0.5])


def test_autodiff_hessian_matches_closed_form():
    x = np.array([0.5, -1.0])
    hess = autodiff_hessian(cubic, x)
    assert np.allclose(hess, [[3.0, 1.0], [1.0, -6.0]])


def test_autodiff_requires_tensor_output():
    with pytest.raises(TypeError):
        autodiff_gradient(lambda x: 1.0, np.array([0.0]))


def test_autodiff_requires_scalar_output():
    with pytest.raises(ValueError):
        autodiff_gradient(lambda x: x * 2, np.array([0.0, 1.0]))


def test_autodiff_of_constant_is_zero():
    grad = autodiff_gradient(lambda x: torch.tensor(3.0, dtype=torch.float64), np.zeros(3))
    assert np.array_equal(grad, np.zeros(3))


def test_gradient_function_methods_agree():
    problem = Problem(fun=cubic, grad=lambda x: np.array([3 * x[0] ** 2 + x[1], 3 * x[1] ** 2 + x[0]]))
    x = np.array([0.3, 0.7])
    expected = problem.grad(x)
    for method in ("analytic", "autodiff", "finite_diff"):
        assert np.allclose(gradient_function(problem, method)(x), expected, atol=1e-6)


def test_hessian_function_methods_agree():
    problem = Problem(fun=cubic)
    x = np.array([0.3, 0.7])
    expected = np.array([[1.8, 1.0], [1.0, 4.2]])
    assert np.allclose(hessian_function(problem, "autodiff")(x), expected)
    assert np.allclose(hessian_function(problem, "finite_diff")(x), expected, atol=1e-4)


def test_analytic_method_requires_derivative():
    problem = Problem(fun=cubic)
    with pytest.raises(ValueError):
        gradient_function(problem, "analytic")
    with pytest.raises(ValueError):
        hessian_function(problem, "analytic")


def test_unknown_method_rejected():
    with pytest.raises(ValueError):
        gradient_function(Problem(fun=cubic), "symbolic")
