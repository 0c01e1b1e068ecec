"""Tests for diagnostics: derived quantities, HDF5 output, checkpoints and VTK export.

Test categories:
1. Derived scalars of the particle population
2. HDF5 time-series writer
3. Checkpoint save/load and engine restart
4. VTK structured-grid field export
"""

from __future__ import annotations

import os
import tempfile
import xml.etree.ElementTree as ET

import h5py
import numpy as np
import pytest

from xerxes.config import SimulationConfig
from xerxes.core.bases import StepResult
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
from xerxes.engine import SimulationEngine
from xerxes.field import FunctionSampler
from xerxes.particles import ParticleStore


def _pair():
    return ParticleStore.from_dict({
        "x": [2.0, 4.0], "y": [2.0, 2.0], "z": [2.0, 2.0],
        "vx": [1.0, -1.0], "vy": [0.0, 2.0], "vz": [0.0, 0.0],
        "mass": [1.0, 3.0],
    })


# ====================================================
# Derived quantities
# ====================================================

class TestDerived:
    """Tests for per-step scalar diagnostics."""

    def test_kinetic_energy(self):
        # 0.5 * (1 * 1 + 3 * (1 + 4))
        assert kinetic_energy(_pair()) == pytest.approx(8.0)

    def test_momentum(self):
        assert total_momentum(_pair()) == pytest.approx((-2.0, 6.0, 0.0))

    def test_mass_and_center(self):
        store = _pair()
        assert total_mass(store) == pytest.approx(4.0)
        assert center_of_mass(store) == pytest.approx((3.5, 2.0, 2.0))

    def test_max_speed(self):
        assert max_speed(_pair()) == pytest.approx(np.sqrt(5.0))
        assert max_speed(ParticleStore.allocate(0)) == 0.0


# ====================================================
# HDF5 writer
# ====================================================

class TestHDF5Writer:
    """Tests for the time-series writer."""

    def test_scalars_written(self, tmp_path):
        fname = str(tmp_path / "diag.h5")
        writer = HDF5Writer(fname)
        for step in range(1, 4):
            result = StepResult(time=0.1 * step, step=step, kinetic_energy=float(step))
            writer.record({"result": result, "particles": {}}, 0.1 * step)
        assert writer.n_records == 3
        writer.finalize()

        with h5py.File(fname, "r") as f:
            np.testing.assert_allclose(f["scalars/time"][:], [0.1, 0.2, 0.3])
            np.testing.assert_allclose(f["scalars/kinetic_energy"][:], [1.0, 2.0, 3.0])
            assert f.attrs["num_records"] == 3
            assert "snapshots" not in f

    def test_snapshots(self, tmp_path):
        fname = str(tmp_path / "diag.h5")
        writer = HDF5Writer(fname, snapshot_interval=2)
        particles = _pair().to_dict()
        for step in range(1, 5):
            writer.record({"result": StepResult(step=step), "particles": particles}, float(step))
        writer.finalize()

        with h5py.File(fname, "r") as f:
            assert f["snapshots"].attrs["num_snapshots"] == 2
            np.testing.assert_array_equal(f["snapshots/snapshot_0000/mass"][:], [1.0, 3.0])
            assert f["snapshots/snapshot_0001"].attrs["time"] == pytest.approx(4.0)

    def test_engine_records_every_step(self, sample_config_dict, tmp_path):
        fname = str(tmp_path / "run.h5")
        sample_config_dict["n_steps"] = 3
        sample_config_dict["diagnostics"] = {"hdf5_filename": fname}
        SimulationEngine(SimulationConfig(**sample_config_dict)).run()

        with h5py.File(fname, "r") as f:
            assert f["scalars/step"].shape == (3,)
            np.testing.assert_allclose(f["scalars/density_integral"][:], 2.0, rtol=1e-9)
            np.testing.assert_allclose(f["scalars/com_z"][:], 4.5, atol=1e-6)


# ====================================================
# Checkpoint
# ====================================================

class TestCheckpoint:
    """Tests for checkpoint save, load and restart."""

    def test_round_trip(self):
        particles = _pair().to_dict()

        with tempfile.NamedTemporaryFile(suffix=".h5", delete=False) as f:
            fname = f.name

        try:
            save_checkpoint(fname, particles, time=0.5, step_count=5, config_json='{"a": 1}')
            data = load_checkpoint(fname)
            assert data["time"] == pytest.approx(0.5)
            assert data["step_count"] == 5
            assert data["config_json"] == '{"a": 1}'
            for key, arr in particles.items():
                np.testing.assert_array_equal(data["particles"][key], arr)
        finally:
            os.unlink(fname)

    def test_version_mismatch(self, tmp_path):
        fname = str(tmp_path / "old.h5")
        with h5py.File(fname, "w") as f:
            f.attrs["checkpoint_version"] = 99
        with pytest.raises(ValueError, match="unsupported checkpoint version"):
            load_checkpoint(fname)

    def test_restart_continues_identically(self, sample_config_dict, tmp_path):
        """Stopping, checkpointing and resuming gives the same final state."""
        sample_config_dict["n_steps"] = 3
        config = SimulationConfig(**sample_config_dict)
        ckpt = str(tmp_path / "ckpt.h5")

        straight = SimulationEngine(config)
        straight.run()

        first = SimulationEngine(config)
        first.run(max_steps=1)
        first.save_checkpoint(ckpt)

        resumed = SimulationEngine(config)
        resumed.load_from_checkpoint(ckpt)
        assert resumed.step_count == 1
        summary = resumed.run()

        assert summary["steps"] == 3
        np.testing.assert_allclose(resumed.store.positions(), straight.store.positions(), rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(resumed.store.velocities(), straight.store.velocities(), rtol=1e-12, atol=1e-12)

    def test_periodic_checkpoint(self, sample_config_dict, tmp_path):
        ckpt = str(tmp_path / "auto.h5")
        sample_config_dict["n_steps"] = 2
        sample_config_dict["diagnostics"] = {
            "hdf5_filename": None, "checkpoint_interval": 2, "checkpoint_filename": ckpt,
        }
        SimulationEngine(SimulationConfig(**sample_config_dict)).run()
        assert load_checkpoint(ckpt)["step_count"] == 2


# ====================================================
# VTK export
# ====================================================

class TestVTK:
    """Tests for structured-grid field files."""

    def test_file_structure(self, domain, adapter, tmp_path):
        field = adapter.build_field(
            FunctionSampler(domain, lambda x, y, z: np.cos(2.0 * np.pi * (x - 1.0) / 7.0) + 0 * y),
        )
        path = write_field_vts(field, "density", tmp_path / "out" / "f.vts", 1.0, 8.0, 4)

        root = ET.parse(path).getroot()
        assert root.attrib["type"] == "StructuredGrid"
        grid = root.find("StructuredGrid")
        assert grid.attrib["WholeExtent"] == "0 3 0 3 0 3"

        arrays = root.findall(".//DataArray")
        values = np.array(arrays[0].text.split(), dtype=float)
        points = np.array(arrays[1].text.split(), dtype=float).reshape(-1, 3)
        assert arrays[0].attrib["Name"] == "density"
        assert values.size == 64
        assert points.shape == (64, 3)
        # x varies fastest
        np.testing.assert_allclose(points[:4, 0], [1.0, 10.0 / 3.0, 17.0 / 3.0, 8.0])
        np.testing.assert_allclose(points[:4, 1], 1.0)

    def test_values_match_field(self, domain, adapter, tmp_path):
        k = 2.0 * np.pi / domain.lengths[1]
        field = adapter.build_field(
            FunctionSampler(domain, lambda x, y, z: np.cos(k * (y - 1.0)) + 0 * x),
        )
        path = write_field_vts(field, "potential", tmp_path / "p.vts", 1.0, 8.0, 3)
        arrays = ET.parse(path).getroot().findall(".//DataArray")
        values = np.array(arrays[0].text.split(), dtype=float)
        points = np.array(arrays[1].text.split(), dtype=float).reshape(-1, 3)
        np.testing.assert_allclose(values, np.cos(k * (points[:, 1] - 1.0)), atol=1e-8)

    def test_rejects_single_point(self, domain, adapter, tmp_path):
        field = adapter.build_field(FunctionSampler(domain, lambda x, y, z: 0 * x))
        with pytest.raises(ValueError):
            write_field_vts(field, "f", tmp_path / "f.vts", 1.0, 8.0, 1)

    def test_engine_exports_fields(self, sample_config_dict, tmp_path):
        sample_config_dict["diagnostics"] = {
            "hdf5_filename": None,
            "vtk_interval": 1,
            "vtk_points": 4,
            "vtk_dir": str(tmp_path / "data"),
        }
        SimulationEngine(SimulationConfig(**sample_config_dict)).run()
        names = sorted(p.name for p in (tmp_path / "data").iterdir())
        assert names == ["xerxes_density_00001.vts", "xerxes_potential_00001.vts"]
