"""Density projector: discretized density array to continuous field.

The array is wrapped as a :class:`GridSampler` whose node ``(i, j, k)`` sits
at ``lo + (i, j, k) * spacing`` of the domain grid. Requests for finer
lattices are answered with the trigonometric interpolant of the array
(Fourier resampling), so the adaptive construction converges at the first
refinement level and the projected field reproduces the array exactly at the
grid nodes.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy import signal

from xerxes.core.domain import Domain
from xerxes.field.adapter import Field, FieldAdapter, Sampler

logger = logging.getLogger(__name__)


def as_grid(density: np.ndarray, domain: Domain) -> np.ndarray:
    """Return ``density`` as a 3-D ``(nx, ny, nz)`` view.

    Flat arrays of length ``nx*ny*nz`` are interpreted with x varying
    fastest, the layout used by Fortran rasterization kernels.
    """
    arr = np.asarray(density, dtype=np.float64)
    if arr.shape == domain.shape:
        return arr
    if arr.ndim == 1 and arr.size == int(np.prod(domain.shape)):
        return arr.reshape(domain.shape, order="F")
    raise ValueError(
        f"density array of shape {arr.shape} does not match grid {domain.shape}"
    )


def total_mass(density: np.ndarray, domain: Domain) -> float:
    """Total mass held by a density array (sum of samples times node volume)."""
    return float(np.sum(as_grid(density, domain))) * domain.node_volume


class GridSampler(Sampler):
    """Sampler over a density array on the domain grid."""

    def __init__(self, domain: Domain, density: np.ndarray) -> None:
        super().__init__(domain)
        self.values = as_grid(density, domain)
        self.resolution = domain.shape

    def sample(self, shape: tuple[int, int, int]) -> np.ndarray:
        out = self.values
        for axis, n in enumerate(shape):
            if out.shape[axis] != n:
                out = signal.resample(out, n, axis=axis)
        return np.array(out, dtype=np.float64)


def project_density(adapter: FieldAdapter, density: np.ndarray) -> Field:
    """Build the continuous density field for a discretized density array.

    Args:
        adapter: Field library bound to the simulation domain.
        density: Array of shape ``(nx, ny, nz)`` or flat ``nx*ny*nz``.

    Returns:
        Field whose integral equals :func:`total_mass` of the array within
        the construction tolerance.
    """
    sampler = GridSampler(adapter.domain, density)
    field = adapter.build_field(sampler)
    logger.debug(
        "Projected density: grid mass %.6e, field integral %.6e",
        total_mass(sampler.values, adapter.domain), field.integrate(),
    )
    return field
