"""Simulation engine: orchestrates the particle-field step loop.

Every step runs the same fixed sequence of phases on every worker:

1. ``RESET_DENSITY``: zero the discretized density array
2. ``DEPOSIT``: rasterize particle mass onto the array
3. ``PROJECT``: build the continuous density field
4. ``SOLVE``: periodic Poisson convolution + gauge fix
5. ``DIFFERENTIATE``: gradient of the potential along x, y, z
6. ``INTEGRATE``: kick/drift/wrap the particles this worker owns

and takes a collective barrier after each phase. Density, potential and
force fields are worker-local and rebuilt from scratch every step; only the
particle arrays are shared, each worker writing its own stride partition.

The loop runs a fixed number of steps. Any exception aborts the process
group and propagates; there is no degraded mode.
"""

from __future__ import annotations

import logging
import time as wall_time
from enum import IntEnum
from pathlib import Path
from typing import Any

import numpy as np

from xerxes.config import SimulationConfig
from xerxes.core.bases import StepResult
from xerxes.core.domain import Domain
from xerxes.diagnostics.checkpoint import load_checkpoint, save_checkpoint
from xerxes.diagnostics.derived import (
    center_of_mass,
    kinetic_energy,
    max_speed,
    total_mass,
    total_momentum,
)
from xerxes.diagnostics.hdf5_writer import HDF5Writer
from xerxes.diagnostics.vtk import write_field_vts
from xerxes.field.adapter import Field, FieldAdapter
from xerxes.field.spectral import SpectralFieldAdapter
from xerxes.kernels.deposit import DensityKernel, get_density_kernel
from xerxes.kernels.initial import Initializer, make_initializer
from xerxes.parallel.group import ProcessGroup, SerialGroup
from xerxes.particles.integrator import ParticleIntegrator
from xerxes.particles.store import ParticleStore
from xerxes.solver.force import ForceField, compute_gradient
from xerxes.solver.potential import compute_potential
from xerxes.solver.projector import project_density

logger = logging.getLogger(__name__)


class Phase(IntEnum):
    """Phases of one step, in execution order."""

    RESET_DENSITY = 0
    DEPOSIT = 1
    PROJECT = 2
    SOLVE = 3
    DIFFERENTIATE = 4
    INTEGRATE = 5

    @property
    def label(self) -> str:
        return self.name.lower()


class SimulationEngine:
    """Particle-field simulation engine for one worker.

    Args:
        config: Validated SimulationConfig.
        group: Process group this worker belongs to (default: serial).
        store: Particle store to advance. When omitted the engine allocates
            its own and fills it with the configured startup kernel.
        adapter: Field library (default: spectral, from ``config.field``).
        initializer: Startup kernel overriding ``config.particles``.
        density_kernel: Rasterization kernel overriding ``config.deposit``.
    """

    def __init__(
        self,
        config: SimulationConfig,
        *,
        group: ProcessGroup | None = None,
        store: ParticleStore | None = None,
        adapter: FieldAdapter | None = None,
        initializer: Initializer | None = None,
        density_kernel: DensityKernel | None = None,
    ) -> None:
        self.config = config
        self.time = 0.0
        self.step_count = 0

        self.domain = Domain(tuple(config.grid_shape))
        self.group = group if group is not None else SerialGroup()

        fc = config.field
        self.adapter = adapter if adapter is not None else SpectralFieldAdapter(
            self.domain,
            order=fc.order,
            threshold=fc.threshold,
            max_refine_level=fc.max_refine_level,
        )
        self.density_kernel = (
            density_kernel if density_kernel is not None else get_density_kernel(config.deposit)
        )

        n = config.particles.n_particles
        if self.is_root:
            logger.info("Dimensions: %d %d %d", *self.domain.shape)
            logger.info("Number of particles: %d", n)

        if store is None:
            t0 = wall_time.monotonic()
            init = initializer if initializer is not None else make_initializer(config.particles)
            store = ParticleStore.from_dict(init(self.domain, n))
            if self.is_root:
                logger.info("Initialization time: %.3f s", wall_time.monotonic() - t0)
        elif store.n_particles != n:
            raise ValueError(
                f"particle store holds {store.n_particles} particles, config expects {n}"
            )

        self.store = store
        self.owned = self.group.owned(store)
        self.integrator = ParticleIntegrator(self.domain, config.dt, config.wrap_mode)

        self.density = np.zeros(self.domain.shape, dtype=np.float64)
        self.density_field: Field | None = None
        self.potential: Field | None = None
        self.force: ForceField | None = None

        dc = config.diagnostics
        self.diagnostics: HDF5Writer | None = None
        if self.is_root and dc.hdf5_filename:
            self.diagnostics = HDF5Writer(dc.hdf5_filename, snapshot_interval=dc.snapshot_interval)
        self.checkpoint_interval = dc.checkpoint_interval
        self.checkpoint_filename = dc.checkpoint_filename

        logger.debug(
            "rank %d/%d owns %d of %d particles",
            self.group.rank, self.group.size, len(self.owned), n,
        )

    @property
    def is_root(self) -> bool:
        return self.group.is_root

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _reset_density(self) -> None:
        self.density.fill(0.0)

    def _deposit(self) -> None:
        self.density_kernel(self.store, self.domain, self.step_count, self.density)

    def _project(self) -> None:
        self.density_field = project_density(self.adapter, self.density)

    def _solve(self) -> None:
        sc = self.config.solver
        self.potential = compute_potential(
            self.adapter, self.density_field, sc.precision, sc.threshold,
        )

    def _differentiate(self) -> None:
        self.force = compute_gradient(self.adapter, self.potential)

    def _integrate(self) -> None:
        self.integrator.advance(self.owned, self.force)

    def _phase_actions(self) -> list[tuple[Phase, Any]]:
        return [
            (Phase.RESET_DENSITY, self._reset_density),
            (Phase.DEPOSIT, self._deposit),
            (Phase.PROJECT, self._project),
            (Phase.SOLVE, self._solve),
            (Phase.DIFFERENTIATE, self._differentiate),
            (Phase.INTEGRATE, self._integrate),
        ]

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def step(self, *, _max_steps: int | None = None) -> StepResult:
        """Advance the simulation by one step.

        Returns:
            StepResult for the completed step; ``finished`` is set once the
            configured number of steps (or ``_max_steps`` for this call
            sequence) has been reached.
        """
        if self.step_count >= self.config.n_steps:
            raise RuntimeError(
                f"simulation already completed {self.step_count} of {self.config.n_steps} steps"
            )

        phase_times: dict[str, float] = {}
        step_start = wall_time.monotonic()

        for phase, action in self._phase_actions():
            t0 = wall_time.monotonic()
            action()
            self.group.barrier(self.step_count, int(phase))
            phase_times[phase.label] = wall_time.monotonic() - t0
            if self.is_root:
                logger.debug(
                    "Step %d %s: %.3f s", self.step_count, phase.label, phase_times[phase.label],
                )

        self.step_count += 1
        self.time += self.config.dt

        finished = self.step_count >= self.config.n_steps
        if _max_steps is not None and self.step_count >= _max_steps:
            finished = True

        result = self._make_step_result(phase_times=phase_times, finished=finished)

        if self.is_root:
            logger.info(
                "Step %d took %.3f s (density %.3f, potential %.3f, update %.3f)",
                self.step_count - 1,
                wall_time.monotonic() - step_start,
                phase_times["deposit"] + phase_times["project"],
                phase_times["solve"],
                phase_times["differentiate"] + phase_times["integrate"],
            )
            self._record(result)

        return result

    def _make_step_result(self, *, phase_times: dict[str, float], finished: bool) -> StepResult:
        return StepResult(
            time=self.time,
            step=self.step_count,
            dt=self.config.dt,
            kinetic_energy=kinetic_energy(self.store),
            momentum=total_momentum(self.store),
            total_mass=total_mass(self.store),
            center_of_mass=center_of_mass(self.store),
            density_integral=self.density_field.integrate(),
            potential_integral=self.potential.integrate(),
            phase_times=phase_times,
            finished=finished,
        )

    def _record(self, result: StepResult) -> None:
        dc = self.config.diagnostics
        if self.diagnostics is not None and self.step_count % dc.output_interval == 0:
            self.diagnostics.record(
                {"result": result, "particles": self.store.to_dict()}, self.time,
            )
        if dc.vtk_interval > 0 and self.step_count % dc.vtk_interval == 0:
            self.export_fields(dc.vtk_dir, npoints=dc.vtk_points)
        if self.checkpoint_interval > 0 and self.step_count % self.checkpoint_interval == 0:
            self.save_checkpoint()

    # ------------------------------------------------------------------
    # Field export / checkpoint
    # ------------------------------------------------------------------

    def export_fields(self, directory: str | Path, npoints: int = 128) -> list[Path]:
        """Write the current density and potential fields as ``.vts`` files."""
        written = []
        lo = self.domain.lo
        hi = tuple(self.domain.hi.tolist())
        for label, field in (("density", self.density_field), ("potential", self.potential)):
            if field is None:
                continue
            filename = Path(directory) / f"xerxes_{label}_{self.step_count:05d}.vts"
            written.append(write_field_vts(field, label, filename, lo, hi, npoints))
        return written

    def save_checkpoint(self, filename: str | None = None) -> None:
        """Save the particle state to an HDF5 checkpoint file.

        Args:
            filename: Output file path (default: self.checkpoint_filename).
        """
        save_checkpoint(
            filename or self.checkpoint_filename,
            self.store.to_dict(),
            self.time,
            self.step_count,
            self.config.model_dump_json(),
        )

    def load_from_checkpoint(self, filename: str) -> None:
        """Restore particle state, step count and time from a checkpoint.

        Args:
            filename: Input checkpoint file path.
        """
        data = load_checkpoint(filename)
        restored = ParticleStore.from_dict(data["particles"])
        self.store.load(restored)
        self.time = data["time"]
        self.step_count = data["step_count"]
        logger.info(
            "Restored from checkpoint: t=%.4e, step=%d, particles=%d",
            self.time, self.step_count, restored.n_particles,
        )

    # ------------------------------------------------------------------
    # Batch run (uses step() internally)
    # ------------------------------------------------------------------

    def run(self, max_steps: int | None = None) -> dict[str, Any]:
        """Execute the step loop.

        Args:
            max_steps: Stop after this many total steps even if the
                configured count is larger (None = run to ``n_steps``).

        Returns:
            Dictionary with summary statistics.
        """
        t_wall_start = wall_time.monotonic()
        if self.is_root:
            logger.info(
                "Starting simulation: %d steps of dt=%.3e on %d worker(s)",
                self.config.n_steps, self.config.dt, self.group.size,
            )

        try:
            while self.step_count < self.config.n_steps:
                if max_steps is not None and self.step_count >= max_steps:
                    break
                result = self.step(_max_steps=max_steps)
                if result.finished:
                    break
        except Exception:
            logger.error("rank %d: step %d failed, aborting", self.group.rank, self.step_count)
            self.group.abort()
            raise

        if self.diagnostics is not None:
            self.diagnostics.finalize()

        t_wall = wall_time.monotonic() - t_wall_start
        px, py, pz = total_momentum(self.store)
        summary = {
            "steps": self.step_count,
            "sim_time": self.time,
            "wall_time_s": t_wall,
            "n_particles": self.store.n_particles,
            "workers": self.group.size,
            "kinetic_energy": kinetic_energy(self.store),
            "momentum_x": px,
            "momentum_y": py,
            "momentum_z": pz,
            "max_speed": max_speed(self.store),
        }

        if self.is_root:
            logger.info(
                "Simulation complete: %d steps in %.2f s (%.2f steps/s)",
                self.step_count, t_wall, self.step_count / max(t_wall, 1e-10),
            )

        return summary
