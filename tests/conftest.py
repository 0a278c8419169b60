"""Pytest configuration for blazedet tests."""

import numpy as np
import pytest


def pytest_configure(config):
    """Configure pytest before collecting tests."""
    import os
    os.environ['JAX_PLATFORMS'] = 'cpu'


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator for property-style tests."""
    return np.random.default_rng(0)
