"""Particle population: storage, ownership partition and time integration."""

from xerxes.particles.integrator import WRAP_MODES, ParticleIntegrator, wrap_positions
from xerxes.particles.partition import is_owned, owned_indices, owner_of, partition
from xerxes.particles.store import FIELDS, OwnedParticles, ParticleStore

__all__ = [
    "FIELDS",
    "OwnedParticles",
    "ParticleIntegrator",
    "ParticleStore",
    "WRAP_MODES",
    "is_owned",
    "owned_indices",
    "owner_of",
    "partition",
    "wrap_positions",
]
