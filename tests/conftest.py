"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from xerxes.config import SimulationConfig
from xerxes.core.domain import Domain
from xerxes.field.spectral import SpectralFieldAdapter


@pytest.fixture
def grid_shape():
    """Small grid for fast unit tests."""
    return (8, 8, 8)


@pytest.fixture
def domain(grid_shape):
    return Domain(grid_shape)


@pytest.fixture
def adapter(domain):
    """Spectral field library on the small test domain."""
    return SpectralFieldAdapter(domain, order=9, threshold=1e-7, max_refine_level=4)


@pytest.fixture
def two_body_particles():
    """Two unit masses one unit apart along z."""
    return [
        {"position": [4.0, 4.0, 4.0], "velocity": [0.0, 0.0, 0.0], "mass": 1.0},
        {"position": [4.0, 4.0, 5.0], "velocity": [0.0, 0.0, 0.0], "mass": 1.0},
    ]


@pytest.fixture
def sample_config_dict(grid_shape, two_body_particles):
    """Minimal valid SimulationConfig as a dictionary (no file output)."""
    return {
        "grid_shape": list(grid_shape),
        "n_steps": 1,
        "dt": 0.1,
        "particles": {
            "n_particles": 2,
            "initializer": "explicit",
            "explicit": two_body_particles,
        },
        "diagnostics": {"hdf5_filename": None},
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Two-body SimulationConfig for fast unit tests."""
    return SimulationConfig(**sample_config_dict)
