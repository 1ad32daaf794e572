"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from emleak.config import SimulationConfig
from emleak.core.field_volume import FieldVolume


@pytest.fixture
def grid_size():
    """Small grid for fast unit tests."""
    return 12


@pytest.fixture
def volume(grid_size):
    """Zero-initialised field volume."""
    return FieldVolume(grid_size)


@pytest.fixture
def sample_config_dict(grid_size):
    """Minimal valid SimulationConfig as a dictionary."""
    return {
        "grid_size": grid_size,
        "dt": 1e-9,
        "dx": 1.0,
        "steps": 5,
        "leakage_threshold": 1.0,
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Small SimulationConfig for fast unit tests."""
    return SimulationConfig(**sample_config_dict)


@pytest.fixture
def hot_config_dict(sample_config_dict, grid_size):
    """Uniform E touching the boundary, so leakage exceeds the threshold."""
    return {
        **sample_config_dict,
        "initial_condition": {"kind": "uniform", "amplitude": 1.0},
        "shielding": {"origin": [0, 0, 0], "thickness": 4, "damping": 0.1},
    }
