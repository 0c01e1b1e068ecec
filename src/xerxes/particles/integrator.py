"""Particle integrator: semi-implicit Euler with periodic wrap-around.

For every particle the calling worker owns:

1. ``v += F(x_old) * dt`` with the force sampled once at the old position,
2. ``x += v * dt`` with the freshly updated velocity,
3. positions leaving ``[lo, hi]`` are wrapped back by the periodic length.

Particles are independent, so each worker advances its own stride partition
without reading or writing any other particle.
"""

from __future__ import annotations

import logging

import numpy as np

from xerxes.core.domain import Domain
from xerxes.particles.store import OwnedParticles
from xerxes.solver.force import ForceField

logger = logging.getLogger(__name__)

WRAP_MODES = ("single", "modulo")


def wrap_positions(positions: np.ndarray, domain: Domain, mode: str = "modulo") -> np.ndarray:
    """Map positions back into the periodic box.

    Coordinates already inside ``[lo, hi]`` are left untouched. In
    ``"single"`` mode an out-of-range coordinate is shifted by exactly one
    periodic length, which is only correct for overshoots shorter than one
    period. ``"modulo"`` reduces any overshoot.

    Args:
        positions: Array of shape ``(P, 3)``.
        domain: Periodic box.
        mode: ``"single"`` or ``"modulo"``.

    Returns:
        New array of wrapped positions.
    """
    if mode not in WRAP_MODES:
        raise ValueError(f"wrap mode must be one of {WRAP_MODES}, got '{mode}'")

    pos = np.array(positions, dtype=np.float64, copy=True).reshape(-1, 3)
    lo = domain.lo
    hi = domain.hi
    length = domain.lengths

    above = pos > hi
    below = pos < lo
    if mode == "single":
        pos = np.where(above, pos - length, np.where(below, pos + length, pos))
    else:
        outside = above | below
        pos = np.where(outside, lo + np.mod(pos - lo, length), pos)
    return pos


class ParticleIntegrator:
    """Advance owned particles through one time step.

    Args:
        domain: Periodic box.
        dt: Time step.
        wrap_mode: Periodic wrap rule, see :func:`wrap_positions`.
    """

    def __init__(self, domain: Domain, dt: float, wrap_mode: str = "modulo") -> None:
        if dt <= 0:
            raise ValueError(f"time step must be positive, got {dt}")
        if wrap_mode not in WRAP_MODES:
            raise ValueError(f"wrap mode must be one of {WRAP_MODES}, got '{wrap_mode}'")
        self.domain = domain
        self.dt = dt
        self.wrap_mode = wrap_mode

    def advance(self, particles: OwnedParticles, force: ForceField) -> int:
        """Kick, drift and wrap every particle in ``particles``.

        Returns:
            Number of particles advanced.
        """
        if len(particles) == 0:
            return 0

        positions = particles.positions()
        velocities = particles.velocities()

        velocities += force.evaluate_many(positions) * self.dt
        positions += velocities * self.dt
        wrapped = wrap_positions(positions, self.domain, self.wrap_mode)

        n_wrapped = int(np.count_nonzero(np.any(wrapped != positions, axis=1)))
        if n_wrapped:
            logger.debug("rank %d: %d particles wrapped", particles.rank, n_wrapped)

        particles.write(wrapped, velocities)
        return len(particles)
