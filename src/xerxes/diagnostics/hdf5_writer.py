"""HDF5 time-series diagnostics writer.

Records per-step scalar quantities and optional particle snapshots into an
HDF5 file for post-processing.
"""

from __future__ import annotations

import logging
from typing import Any

import h5py
import numpy as np

from xerxes.core.bases import DiagnosticsBase

logger = logging.getLogger(__name__)

_SCALARS = (
    "time",
    "step",
    "kinetic_energy",
    "momentum_x",
    "momentum_y",
    "momentum_z",
    "total_mass",
    "com_x",
    "com_y",
    "com_z",
    "density_integral",
    "potential_integral",
    "wall_time",
)


class HDF5Writer(DiagnosticsBase):
    """Write simulation diagnostics to an HDF5 file.

    Creates datasets for:
    - Scalar time series: time, step, kinetic energy, momentum components,
      total mass, centre of mass, density and potential integrals, step wall time
    - Particle snapshots (optional): positions and velocities at specified
      intervals

    Args:
        filename: Output HDF5 file path.
        snapshot_interval: Store particle arrays every N record calls (0 = never).
    """

    def __init__(
        self,
        filename: str = "diagnostics.h5",
        snapshot_interval: int = 0,
    ) -> None:
        self.filename = filename
        self.snapshot_interval = snapshot_interval
        self._call_count = 0
        self._scalars: dict[str, list] = {key: [] for key in _SCALARS}
        self._snapshots: list[dict[str, Any]] = []

    def record(self, state: dict[str, Any], time: float) -> None:
        """Record diagnostics from the current simulation state.

        Args:
            state: Dictionary with a ``"result"`` entry (a ``StepResult``) and
                a ``"particles"`` entry (dict of particle columns).
            time: Current simulation time.
        """
        self._call_count += 1
        result = state.get("result")

        self._scalars["time"].append(time)
        self._scalars["step"].append(getattr(result, "step", self._call_count))
        self._scalars["kinetic_energy"].append(getattr(result, "kinetic_energy", 0.0))
        px, py, pz = getattr(result, "momentum", (0.0, 0.0, 0.0))
        self._scalars["momentum_x"].append(px)
        self._scalars["momentum_y"].append(py)
        self._scalars["momentum_z"].append(pz)
        self._scalars["total_mass"].append(getattr(result, "total_mass", 0.0))
        cx, cy, cz = getattr(result, "center_of_mass", (0.0, 0.0, 0.0))
        self._scalars["com_x"].append(cx)
        self._scalars["com_y"].append(cy)
        self._scalars["com_z"].append(cz)
        self._scalars["density_integral"].append(getattr(result, "density_integral", 0.0))
        self._scalars["potential_integral"].append(getattr(result, "potential_integral", 0.0))
        phase_times = getattr(result, "phase_times", {}) or {}
        self._scalars["wall_time"].append(float(sum(phase_times.values())))

        if self.snapshot_interval > 0 and self._call_count % self.snapshot_interval == 0:
            particles = state.get("particles") or {}
            snapshot: dict[str, Any] = {"time": time}
            for key, arr in particles.items():
                if isinstance(arr, np.ndarray):
                    snapshot[key] = arr.copy()
            self._snapshots.append(snapshot)
            logger.debug("Captured particle snapshot %d at t=%.4e", len(self._snapshots), time)

    @property
    def n_records(self) -> int:
        return self._call_count

    def finalize(self) -> None:
        """Write all accumulated data to the HDF5 file."""
        logger.info("Writing diagnostics to %s", self.filename)
        with h5py.File(self.filename, "w") as f:
            grp = f.create_group("scalars")
            for key, values in self._scalars.items():
                grp.create_dataset(key, data=np.array(values, dtype=np.float64))

            if self._snapshots:
                snaps = f.create_group("snapshots")
                for idx, snap in enumerate(self._snapshots):
                    snap_grp = snaps.create_group(f"snapshot_{idx:04d}")
                    snap_grp.attrs["time"] = snap["time"]
                    for key, val in snap.items():
                        if key != "time":
                            snap_grp.create_dataset(key, data=val)
                snaps.attrs["num_snapshots"] = len(self._snapshots)
                logger.info("Wrote %d particle snapshots", len(self._snapshots))

            f.attrs["num_records"] = self._call_count

        logger.info("Wrote %d diagnostic records to %s", self._call_count, self.filename)
