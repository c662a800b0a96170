"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: statistical end-to-end runs")


@pytest.fixture
def rng():
    """Fixed-seed generator."""
    return np.random.default_rng(12345)


@pytest.fixture
def two_state_generator():
    """Chain that flips 0 -> 1 at rate 2 and 1 -> 0 at rate 1."""
    return [[-2.0, 2.0], [1.0, -1.0]]


@pytest.fixture
def absorbing_generator():
    """Three states; state 2 has no way out."""
    return [
        [-3.0, 1.0, 2.0],
        [1.0, -2.0, 1.0],
        [0.0, 0.0, 0.0],
    ]


@pytest.fixture
def four_state_generator():
    """Irreducible four-state generator."""
    return [
        [-1.0, 0.5, 0.5, 0.0],
        [0.25, -0.75, 0.25, 0.25],
        [0.0, 1.0, -2.0, 1.0],
        [0.5, 0.0, 0.5, -1.0],
    ]
