"""Core abstract base classes and shared data structures.

Defines the interface contracts the step loop relies on:
- ``StepResult``: per-step summary returned by the engine
- ``DiagnosticsBase``: ABC for diagnostics recorders
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class StepResult:
    """Result of a single simulation step.

    Attributes:
        time: Simulation time after this step.
        step: Number of completed steps.
        dt: Time step used.
        kinetic_energy: Total kinetic energy of all particles.
        momentum: Total momentum ``(px, py, pz)``.
        total_mass: Total particle mass.
        center_of_mass: Mass-weighted mean position ``(x, y, z)``.
        density_integral: Integral of the projected density field.
        potential_integral: Integral of the gauge-fixed potential (should be ~0).
        phase_times: Wall-clock seconds spent in each phase, keyed by phase name.
        finished: True once the configured number of steps has been taken.
    """

    time: float = 0.0
    step: int = 0
    dt: float = 0.0
    kinetic_energy: float = 0.0
    momentum: tuple[float, float, float] = (0.0, 0.0, 0.0)
    total_mass: float = 0.0
    center_of_mass: tuple[float, float, float] = (0.0, 0.0, 0.0)
    density_integral: float = 0.0
    potential_integral: float = 0.0
    phase_times: dict[str, float] = field(default_factory=dict)
    finished: bool = False


class DiagnosticsBase(ABC):
    """Abstract base for diagnostics recorders."""

    @abstractmethod
    def record(
        self,
        state: dict[str, Any],
        time: float,
    ) -> None:
        """Record diagnostic quantities at the current step.

        Args:
            state: Simulation state dictionary.
            time: Current simulation time.
        """

    def finalize(self) -> None:
        """Clean up resources (close files, flush buffers)."""
