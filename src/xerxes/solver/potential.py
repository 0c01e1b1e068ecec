"""Periodic Poisson solve with gauge fixing.

On a periodic box the Green's-function solution of the Poisson equation is
only defined up to an additive constant. After the convolution the domain
mean of the raw potential is subtracted, pinning the gauge so that the
potential integrates to zero over the cell.
"""

from __future__ import annotations

import logging

from xerxes.field.adapter import Field, FieldAdapter

logger = logging.getLogger(__name__)


def compute_potential(
    adapter: FieldAdapter,
    density: Field,
    precision: float,
    threshold: float,
) -> Field:
    """Solve for the gauge-fixed potential of a density field.

    Args:
        adapter: Field library bound to the simulation domain.
        density: Continuous density field.
        precision: Regularization length of the Green's function.
        threshold: Truncation tolerance of the convolution.

    Returns:
        Potential field with zero domain mean.
    """
    raw = adapter.convolve(density, precision, threshold)
    mean = adapter.integrate(raw) / adapter.cell_volume()
    logger.debug("Raw potential mean %.6e removed", mean)
    return raw - mean
