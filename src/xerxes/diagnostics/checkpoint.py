"""Checkpoint/restart support for particle-field simulations.

Saves and loads the full particle state (structure-of-arrays columns), step
count and time to HDF5 files for restart capability. Fields are not saved:
they are rebuilt from the particles at the start of every step.

Usage:
    # Save checkpoint
    save_checkpoint("checkpoint.h5", particles, time, step_count, config_json)

    # Load checkpoint
    data = load_checkpoint("checkpoint.h5")
    particles = data["particles"]
    step = data["step_count"]
"""

from __future__ import annotations

import logging
from typing import Any

import h5py
import numpy as np

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 1


def save_checkpoint(
    filename: str,
    particles: dict[str, np.ndarray],
    time: float,
    step_count: int,
    config_json: str | None = None,
) -> None:
    """Save particle state to an HDF5 checkpoint file.

    Args:
        filename: Output HDF5 file path.
        particles: Particle columns (x, y, z, vx, vy, vz, mass).
        time: Current simulation time.
        step_count: Number of completed steps.
        config_json: JSON string of the simulation config (for reference).
    """
    logger.info("Saving checkpoint to %s at t=%.4e, step=%d", filename, time, step_count)

    with h5py.File(filename, "w") as f:
        f.attrs["time"] = time
        f.attrs["step_count"] = step_count
        f.attrs["n_particles"] = len(next(iter(particles.values()))) if particles else 0
        f.attrs["checkpoint_version"] = CHECKPOINT_VERSION

        if config_json is not None:
            f.attrs["config_json"] = config_json

        grp = f.create_group("particles")
        for key, arr in particles.items():
            grp.create_dataset(key, data=np.asarray(arr, dtype=np.float64))

    logger.info("Checkpoint saved: %s", filename)


def load_checkpoint(filename: str) -> dict[str, Any]:
    """Load particle state from an HDF5 checkpoint file.

    Args:
        filename: Input HDF5 file path.

    Returns:
        Dictionary with keys:
            - "particles": dict of numpy arrays
            - "time": float
            - "step_count": int
            - "config_json": str or None
    """
    logger.info("Loading checkpoint from %s", filename)

    with h5py.File(filename, "r") as f:
        version = int(f.attrs.get("checkpoint_version", 0))
        if version != CHECKPOINT_VERSION:
            raise ValueError(
                f"unsupported checkpoint version {version} in {filename} "
                f"(expected {CHECKPOINT_VERSION})"
            )
        time = float(f.attrs["time"])
        step_count = int(f.attrs["step_count"])

        config_json = None
        if "config_json" in f.attrs:
            config_json = str(f.attrs["config_json"])

        particles = {key: np.array(f["particles"][key]) for key in f["particles"]}

    logger.info(
        "Checkpoint loaded: t=%.4e, step=%d, particles=%d",
        time, step_count, len(particles.get("x", ())),
    )

    return {
        "particles": particles,
        "time": time,
        "step_count": step_count,
        "config_json": config_json,
    }
