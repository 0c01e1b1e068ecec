"""Named configuration presets for common particle-field setups.

Each preset is a dictionary that can be unpacked into SimulationConfig(**preset).
Presets provide meaningful starting points for:
- Two-body attraction (8^3 grid, one step; the smallest end-to-end check)
- Uniform random cloud (small grid, a few steps)
- Cubic lattice (equilibrium configuration, forces cancel by symmetry)

Usage:
    from xerxes.presets import get_preset, list_presets
    config = SimulationConfig(**get_preset("two_body"))
"""

from __future__ import annotations

import copy
from typing import Any

_PRESETS: dict[str, dict[str, Any]] = {
    "two_body": {
        "_meta": {
            "description": "Two unit masses one node apart on an 8^3 grid, one step",
        },
        "grid_shape": [8, 8, 8],
        "n_steps": 1,
        "dt": 0.1,
        "particles": {
            "n_particles": 2,
            "initializer": "explicit",
            "explicit": [
                {"position": [4.0, 4.0, 4.0], "velocity": [0.0, 0.0, 0.0], "mass": 1.0},
                {"position": [4.0, 4.0, 5.0], "velocity": [0.0, 0.0, 0.0], "mass": 1.0},
            ],
        },
    },
    "uniform_cloud": {
        "_meta": {
            "description": "Random uniform cloud of 512 particles on a 16^3 grid",
        },
        "grid_shape": [16, 16, 16],
        "n_steps": 10,
        "dt": 0.01,
        "particles": {
            "n_particles": 512,
            "initializer": "uniform",
            "seed": 42,
            "mass": 1.0,
            "velocity_dispersion": 0.1,
        },
        "diagnostics": {"output_interval": 1, "checkpoint_interval": 5},
    },
    "lattice": {
        "_meta": {
            "description": "512 particles on a regular 8^3 lattice in a 16^3 box",
        },
        "grid_shape": [16, 16, 16],
        "n_steps": 5,
        "dt": 0.05,
        "particles": {
            "n_particles": 512,
            "initializer": "lattice",
            "mass": 1.0,
        },
    },
}


def list_presets() -> list[dict[str, Any]]:
    """Return summary info for all available presets.

    Returns:
        List of dicts with keys: name, description, grid_shape, n_particles.
    """
    result = []
    for name, preset in _PRESETS.items():
        meta = preset.get("_meta", {})
        result.append({
            "name": name,
            "description": meta.get("description", ""),
            "grid_shape": preset.get("grid_shape", []),
            "n_particles": preset["particles"]["n_particles"],
        })
    return result


def get_preset(name: str) -> dict[str, Any]:
    """Return a preset config dict (without _meta) suitable for SimulationConfig.

    Args:
        name: Preset name.

    Returns:
        Config dict ready for ``SimulationConfig(**preset)``.

    Raises:
        KeyError: If the preset name is not found.
    """
    if name not in _PRESETS:
        available = ", ".join(_PRESETS.keys())
        raise KeyError(f"Unknown preset '{name}'. Available: {available}")
    preset = copy.deepcopy(_PRESETS[name])
    preset.pop("_meta", None)
    return preset


def get_preset_names() -> list[str]:
    """Return list of all preset names."""
    return list(_PRESETS.keys())
