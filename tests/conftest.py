import numpy as np
import pytest


@pytest.fixture
def constant_series():
    return [10.0] * 12


@pytest.fixture
def linear_series():
    return [float(i) for i in range(1, 11)]


@pytest.fixture
def seasonal_series():
    """Two years of monthly data with an upward trend and a yearly cycle."""
    index = np.arange(24)
    return list(100 + 2 * index + 5 * np.sin(2 * np.pi * index / 12))
