"""Field-side solvers: density projection, Poisson solve and gradient."""

from xerxes.solver.force import ForceField, compute_gradient
from xerxes.solver.potential import compute_potential
from xerxes.solver.projector import GridSampler, as_grid, project_density, total_mass

__all__ = [
    "ForceField",
    "GridSampler",
    "as_grid",
    "compute_gradient",
    "compute_potential",
    "project_density",
    "total_mass",
]
