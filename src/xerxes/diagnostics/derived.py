"""Derived diagnostic quantities of the particle population.

Functions are pure numpy. No Numba needed since these are called once per
recorded step, not per particle phase.
"""

from __future__ import annotations

import numpy as np

from xerxes.particles.store import ParticleStore


def kinetic_energy(store: ParticleStore) -> float:
    """Total kinetic energy ``sum(m * |v|^2) / 2``."""
    v2 = store.vx**2 + store.vy**2 + store.vz**2
    return float(0.5 * np.sum(store.mass * v2))


def total_momentum(store: ParticleStore) -> tuple[float, float, float]:
    """Total momentum ``sum(m * v)`` per axis."""
    m = store.mass
    return (
        float(np.sum(m * store.vx)),
        float(np.sum(m * store.vy)),
        float(np.sum(m * store.vz)),
    )


def total_mass(store: ParticleStore) -> float:
    return float(np.sum(store.mass))


def max_speed(store: ParticleStore) -> float:
    """Largest particle speed, 0 for an empty population."""
    if store.n_particles == 0:
        return 0.0
    return float(np.sqrt(np.max(store.vx**2 + store.vy**2 + store.vz**2)))


def center_of_mass(store: ParticleStore) -> tuple[float, float, float]:
    """Mass-weighted mean position (not unwrapped across the periodic boundary)."""
    m = store.mass
    mtot = float(np.sum(m))
    if mtot == 0.0:
        return (0.0, 0.0, 0.0)
    return (
        float(np.sum(m * store.x) / mtot),
        float(np.sum(m * store.y) / mtot),
        float(np.sum(m * store.z) / mtot),
    )
