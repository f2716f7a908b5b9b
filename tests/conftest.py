"""Shared fixtures for patchwork GP tests."""

import numpy as np
import pytest

from patchwork_gp.gp import IntervalPatchworkFunctions, SquaredExponential


@pytest.fixture
def kernel():
    """Unit SE kernel with unit lengthscale."""
    return SquaredExponential(signal_variance=1.0, lengthscales=1.0)


@pytest.fixture
def interval_functions():
    """Intervals of width 5 starting at 0."""
    return IntervalPatchworkFunctions(width=5.0)


@pytest.fixture
def step_data():
    """Two groups on either side of x = 5 with different constant levels."""
    x_left = np.linspace(0.0, 4.5, 10)
    x_right = np.linspace(5.5, 9.5, 10)
    X = np.concatenate([x_left, x_right])
    y = np.concatenate([np.zeros(10), np.ones(10)])
    return X, y


@pytest.fixture
def rng():
    return np.random.default_rng(42)
