"""Pydantic v2 configuration system for particle-field simulations.

Provides validated, typed configuration with submodels for each component.
Supports JSON I/O and cross-field validation. Every invalid configuration
is rejected here, before any worker starts stepping.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class FieldConfig(BaseModel):
    """Adaptive field construction parameters."""

    order: int = Field(9, ge=1, le=64, description="Coarsest lattice size per axis for pointwise samplers")
    threshold: float = Field(1e-7, gt=0, lt=1, description="Relative spectral-tail tolerance")
    max_refine_level: int = Field(4, ge=1, le=8, description="Resolution doublings before giving up")


class SolverConfig(BaseModel):
    """Poisson convolution parameters."""

    precision: float = Field(1e-6, gt=0, description="Green's function regularization length")
    threshold: float = Field(1e-8, gt=0, lt=1, description="Convolution truncation tolerance")


class ParticleSpec(BaseModel):
    """A single explicitly placed particle."""

    position: list[float] = Field(..., min_length=3, max_length=3)
    velocity: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], min_length=3, max_length=3)
    mass: float = Field(1.0, gt=0)


class ParticleConfig(BaseModel):
    """Initial particle population."""

    n_particles: int = Field(..., gt=0, description="Number of particles")
    initializer: str = Field(
        "uniform",
        description="Startup kernel: 'uniform' (random), 'lattice', or 'explicit'",
    )
    seed: int | None = Field(None, description="Random seed for the 'uniform' initializer")
    mass: float = Field(1.0, gt=0, description="Per-particle mass for generated populations")
    velocity_dispersion: float = Field(
        0.0, ge=0, description="Gaussian velocity dispersion for the 'uniform' initializer",
    )
    explicit: list[ParticleSpec] = Field(
        default_factory=list, description="Particles for the 'explicit' initializer",
    )

    @model_validator(mode="after")
    def validate_initializer(self) -> ParticleConfig:
        if self.initializer not in ("uniform", "lattice", "explicit"):
            raise ValueError(
                f"initializer must be 'uniform', 'lattice', or 'explicit', got '{self.initializer}'"
            )
        if self.initializer == "explicit" and len(self.explicit) != self.n_particles:
            raise ValueError(
                f"explicit initializer lists {len(self.explicit)} particles "
                f"but n_particles={self.n_particles}"
            )
        return self


class ParallelConfig(BaseModel):
    """Worker process group parameters."""

    workers: int = Field(1, ge=1, le=1024, description="Number of worker processes")
    barrier_timeout: float = Field(
        300.0, gt=0, description="Seconds a worker waits at a barrier before aborting the group",
    )
    start_method: str = Field("spawn", description="multiprocessing start method")

    @model_validator(mode="after")
    def validate_start_method(self) -> ParallelConfig:
        if self.start_method not in ("fork", "spawn", "forkserver"):
            raise ValueError(
                f"start_method must be 'fork', 'spawn', or 'forkserver', got '{self.start_method}'"
            )
        return self


class DiagnosticsConfig(BaseModel):
    """Diagnostics output parameters."""

    hdf5_filename: str | None = Field("diagnostics.h5", description="Output HDF5 file (None = off)")
    output_interval: int = Field(1, gt=0, description="Steps between scalar records")
    snapshot_interval: int = Field(
        0, ge=0, description="Steps between particle snapshots in HDF5 (0 = off)",
    )
    vtk_interval: int = Field(0, ge=0, description="Steps between VTK field exports (0 = off)")
    vtk_points: int = Field(128, ge=2, description="Samples per axis in VTK exports")
    vtk_dir: str = Field("data", description="Directory for VTK field files")
    checkpoint_interval: int = Field(0, ge=0, description="Steps between checkpoints (0 = off)")
    checkpoint_filename: str = Field("checkpoint.h5", description="Checkpoint file path")


class SimulationConfig(BaseModel):
    """Top-level simulation configuration."""

    grid_shape: list[int] = Field(..., min_length=3, max_length=3, description="Grid (nx, ny, nz)")
    n_steps: int = Field(..., gt=0, description="Number of steps to run")
    dt: float = Field(..., gt=0, description="Time step")
    deposit: str = Field(
        "bandlimited",
        description="Density rasterization: 'bandlimited', 'cic' or 'ngp'",
    )
    wrap_mode: str = Field(
        "modulo",
        description="Periodic wrap: 'single' (one period of correction) or 'modulo'",
    )

    particles: ParticleConfig
    field: FieldConfig = Field(default_factory=FieldConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)

    @model_validator(mode="after")
    def validate_grid(self) -> SimulationConfig:
        if any(n < 2 for n in self.grid_shape):
            raise ValueError(f"grid_shape values must be integers >= 2, got {self.grid_shape}")
        if self.deposit not in ("bandlimited", "cic", "ngp"):
            raise ValueError(
                f"deposit must be 'bandlimited', 'cic' or 'ngp', got '{self.deposit}'"
            )
        if self.wrap_mode not in ("single", "modulo"):
            raise ValueError(f"wrap_mode must be 'single' or 'modulo', got '{self.wrap_mode}'")
        return self

    @model_validator(mode="after")
    def validate_explicit_positions(self) -> SimulationConfig:
        for i, spec in enumerate(self.particles.explicit):
            for axis, (coord, n) in enumerate(zip(spec.position, self.grid_shape)):
                if not 1.0 <= coord <= n:
                    raise ValueError(
                        f"particle {i} coordinate {axis} = {coord} outside [1, {n}]"
                    )
        return self

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out
