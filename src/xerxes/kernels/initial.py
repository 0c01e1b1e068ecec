"""Startup kernels: initial particle populations.

An initializer takes the domain and the particle count and returns the seven
structure-of-arrays columns (``x, y, z, vx, vy, vz, mass``) as a dict. The
engine copies them into its particle store, which may live in shared memory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np

from xerxes.core.domain import Domain

logger = logging.getLogger(__name__)

Initializer = Callable[[Domain, int], dict[str, np.ndarray]]


def _columns(positions: np.ndarray, velocities: np.ndarray, mass: np.ndarray) -> dict[str, np.ndarray]:
    return {
        "x": positions[:, 0].copy(),
        "y": positions[:, 1].copy(),
        "z": positions[:, 2].copy(),
        "vx": velocities[:, 0].copy(),
        "vy": velocities[:, 1].copy(),
        "vz": velocities[:, 2].copy(),
        "mass": np.asarray(mass, dtype=np.float64).copy(),
    }


def uniform_initializer(
    seed: int | None = None,
    mass: float = 1.0,
    velocity_dispersion: float = 0.0,
) -> Initializer:
    """Particles uniformly distributed over the box.

    Args:
        seed: Seed for ``numpy.random.default_rng``.
        mass: Mass of every particle.
        velocity_dispersion: Standard deviation of the Gaussian velocity
            components (0 = cold start).
    """

    def init(domain: Domain, n_particles: int) -> dict[str, np.ndarray]:
        rng = np.random.default_rng(seed)
        positions = domain.lo + rng.random((n_particles, 3)) * domain.lengths
        if velocity_dispersion > 0.0:
            velocities = rng.normal(0.0, velocity_dispersion, size=(n_particles, 3))
            # Remove net drift so the centre of mass stays put
            if n_particles > 1:
                velocities -= velocities.mean(axis=0)
        else:
            velocities = np.zeros((n_particles, 3))
        return _columns(positions, velocities, np.full(n_particles, mass))

    return init


def lattice_initializer(mass: float = 1.0) -> Initializer:
    """Particles on a cubic lattice filling the box, cold start.

    The lattice has ``ceil(N ** (1/3))`` sites per axis placed at cell
    centres; the first ``N`` sites in C order are occupied.
    """

    def init(domain: Domain, n_particles: int) -> dict[str, np.ndarray]:
        per_axis = max(1, int(np.ceil(round(n_particles ** (1.0 / 3.0), 9))))
        axes = [
            domain.lo + (np.arange(per_axis) + 0.5) * (length / per_axis)
            for length in domain.lengths
        ]
        X, Y, Z = np.meshgrid(*axes, indexing="ij")
        sites = np.stack([X.ravel(), Y.ravel(), Z.ravel()], axis=1)[:n_particles]
        return _columns(sites, np.zeros_like(sites), np.full(n_particles, mass))

    return init


def explicit_initializer(particles: Sequence[dict[str, Any]]) -> Initializer:
    """Particles listed one by one.

    Each entry holds ``position`` (3 floats), optional ``velocity`` (3
    floats, default zero) and optional ``mass`` (default 1).
    """
    positions = np.array([p["position"] for p in particles], dtype=np.float64).reshape(-1, 3)
    velocities = np.array(
        [p.get("velocity", (0.0, 0.0, 0.0)) for p in particles], dtype=np.float64,
    ).reshape(-1, 3)
    masses = np.array([p.get("mass", 1.0) for p in particles], dtype=np.float64)

    def init(domain: Domain, n_particles: int) -> dict[str, np.ndarray]:
        if n_particles != positions.shape[0]:
            raise ValueError(
                f"explicit initializer lists {positions.shape[0]} particles, "
                f"{n_particles} requested"
            )
        outside = ~domain.contains(positions) if n_particles else np.zeros(0, dtype=bool)
        if np.any(outside):
            raise ValueError(
                f"explicit particle {int(np.argmax(outside))} lies outside the box "
                f"[{domain.lo}, {domain.hi.tolist()}]"
            )
        return _columns(positions, velocities, masses)

    return init


def make_initializer(particles_cfg: Any) -> Initializer:
    """Resolve the initializer described by a ``ParticleConfig``."""
    kind = particles_cfg.initializer
    if kind == "uniform":
        return uniform_initializer(
            seed=particles_cfg.seed,
            mass=particles_cfg.mass,
            velocity_dispersion=particles_cfg.velocity_dispersion,
        )
    if kind == "lattice":
        return lattice_initializer(mass=particles_cfg.mass)
    if kind == "explicit":
        return explicit_initializer([p.model_dump() for p in particles_cfg.explicit])
    raise ValueError(f"unknown initializer '{kind}'")
