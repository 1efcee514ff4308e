"""Pytest configuration and shared fixtures for critpoint tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Objectives shared across the refinement and analysis tests
"""

import os

import numpy as np
import pytest
import torch


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function")
def torch_rng() -> torch.Generator:
    """Provide a deterministic CPU torch RNG for tests."""
    generator = torch.Generator()
    generator.manual_seed(_seed())
    return generator


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds(rng: np.random.Generator, torch_rng: torch.Generator) -> None:
    """Seed the global numpy and torch RNGs before every test."""
    np.random.seed(_seed())
    torch.manual_seed(_seed())


def shifted_sphere(x):
    """f(x) = sum (x_i - 0.5)^2; works on numpy arrays and torch tensors."""
    return ((x - 0.5) ** 2).sum()


def double_well(x):
    """f(x) = sum (x_i^2 - 1)^2 + 0.2 sum x_i; 3^n critical points, 2^n minima."""
    return ((x**2 - 1.0) ** 2).sum() + 0.2 * x.sum()


@pytest.fixture
def sphere():
    return lambda x: float(shifted_sphere(np.asarray(x, dtype=float)))


@pytest.fixture
def well():
    return lambda x: float(double_well(np.asarray(x, dtype=float)))


@pytest.fixture
def tensor_sphere():
    """Shifted sphere accepting numpy arrays or torch tensors (for autodiff)."""
    return shifted_sphere


@pytest.fixture
def tensor_well():
    """Double well accepting numpy arrays or torch tensors (for autodiff)."""
    return double_well
