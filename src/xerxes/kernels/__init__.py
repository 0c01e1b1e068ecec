"""Default startup and density-rasterization kernels.

Both are plain callables injected into the engine, so tests and callers can
substitute synthetic generators.
"""

from xerxes.kernels.deposit import (
    DensityKernel,
    bandlimited_density_kernel,
    cic_density_kernel,
    cic_shape_factor,
    get_density_kernel,
    ngp_density_kernel,
)
from xerxes.kernels.initial import (
    Initializer,
    explicit_initializer,
    lattice_initializer,
    make_initializer,
    uniform_initializer,
)

__all__ = [
    "DensityKernel",
    "Initializer",
    "bandlimited_density_kernel",
    "cic_density_kernel",
    "cic_shape_factor",
    "explicit_initializer",
    "get_density_kernel",
    "lattice_initializer",
    "make_initializer",
    "ngp_density_kernel",
    "uniform_initializer",
]
