"""Tests for configuration validation, JSON I/O and presets."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from xerxes.config import ParallelConfig, SimulationConfig
from xerxes.presets import get_preset, get_preset_names, list_presets


class TestSimulationConfig:
    """Tests for validation of the top-level config."""

    def test_defaults(self, small_config):
        assert small_config.deposit == "bandlimited"
        assert small_config.wrap_mode == "modulo"
        assert small_config.field.order == 9
        assert small_config.solver.precision == pytest.approx(1e-6)
        assert small_config.parallel.workers == 1

    @pytest.mark.parametrize("shape", [[8, 8, 1], [0, 8, 8]])
    def test_rejects_bad_grid(self, sample_config_dict, shape):
        sample_config_dict["grid_shape"] = shape
        with pytest.raises(ValidationError, match="grid_shape"):
            SimulationConfig(**sample_config_dict)

    def test_rejects_two_dimensional_grid(self, sample_config_dict):
        sample_config_dict["grid_shape"] = [8, 8]
        with pytest.raises(ValidationError):
            SimulationConfig(**sample_config_dict)

    @pytest.mark.parametrize("key,value", [("dt", 0.0), ("dt", -1.0), ("n_steps", 0)])
    def test_rejects_non_positive(self, sample_config_dict, key, value):
        sample_config_dict[key] = value
        with pytest.raises(ValidationError):
            SimulationConfig(**sample_config_dict)

    def test_rejects_zero_particles(self, sample_config_dict):
        sample_config_dict["particles"] = {"n_particles": 0}
        with pytest.raises(ValidationError):
            SimulationConfig(**sample_config_dict)

    def test_explicit_count_must_match(self, sample_config_dict):
        sample_config_dict["particles"]["n_particles"] = 3
        with pytest.raises(ValidationError, match="explicit initializer lists 2"):
            SimulationConfig(**sample_config_dict)

    def test_explicit_position_outside_box(self, sample_config_dict):
        sample_config_dict["particles"]["explicit"][1]["position"] = [4.0, 4.0, 9.0]
        with pytest.raises(ValidationError, match="outside"):
            SimulationConfig(**sample_config_dict)

    def test_unknown_deposit(self, sample_config_dict):
        sample_config_dict["deposit"] = "tsc"
        with pytest.raises(ValidationError, match="deposit"):
            SimulationConfig(**sample_config_dict)

    def test_unknown_start_method(self):
        with pytest.raises(ValidationError):
            ParallelConfig(start_method="thread")

    def test_json_round_trip(self, small_config, tmp_path):
        path = tmp_path / "config.json"
        small_config.to_json(path)
        loaded = SimulationConfig.from_file(path)
        assert loaded == small_config


class TestPresets:
    """Tests for the named presets."""

    @pytest.mark.parametrize("name", get_preset_names())
    def test_presets_validate(self, name):
        config = SimulationConfig(**get_preset(name))
        assert config.particles.n_particles > 0

    def test_two_body_matches_scenario(self):
        config = SimulationConfig(**get_preset("two_body"))
        assert config.grid_shape == [8, 8, 8]
        assert config.dt == pytest.approx(0.1)
        assert [p.position for p in config.particles.explicit] == [[4, 4, 4], [4, 4, 5]]

    def test_get_preset_returns_copy(self):
        a = get_preset("two_body")
        a["particles"]["n_particles"] = 99
        assert get_preset("two_body")["particles"]["n_particles"] == 2

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="Unknown preset"):
            get_preset("nope")

    def test_list_presets(self):
        names = [p["name"] for p in list_presets()]
        assert names == get_preset_names()
        assert "two_body" in names
