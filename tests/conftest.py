"""Pytest configuration and shared fixtures for itermin tests.

This module provides:
- A deterministic numpy RNG fixture
- A symmetric positive-definite test matrix
"""

import os

import numpy as np
import pytest


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    This ensures tests are reproducible while allowing override for debugging.

    Returns:
        A seeded numpy.random.Generator instance.
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set the legacy numpy global seed for every test."""
    np.random.seed(int(os.environ.get("TEST_RNG_SEED", "0")))


@pytest.fixture
def spd_matrix() -> np.ndarray:
    """5x5 second-difference matrix (tridiagonal 2, -1), symmetric positive definite."""
    n = 5
    return 2.0 * np.eye(n) - np.eye(n, k=1) - np.eye(n, k=-1)
