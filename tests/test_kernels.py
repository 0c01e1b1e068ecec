"""Tests for the startup and density-rasterization kernels."""

from __future__ import annotations

import numpy as np
import pytest

from xerxes.config import ParticleConfig
from xerxes.core.domain import Domain
from xerxes.kernels import (
    bandlimited_density_kernel,
    cic_density_kernel,
    cic_shape_factor,
    explicit_initializer,
    get_density_kernel,
    lattice_initializer,
    make_initializer,
    ngp_density_kernel,
    uniform_initializer,
)
from xerxes.particles import ParticleStore
from xerxes.solver import project_density


def _single(domain, x, y, z, mass=1.0):
    return ParticleStore.from_dict({
        "x": [x], "y": [y], "z": [z], "vx": [0.0], "vy": [0.0], "vz": [0.0], "mass": [mass],
    })


# ====================================================
# Deposit kernels
# ====================================================

class TestDeposit:
    """Tests for band-limited, CIC and NGP rasterization."""

    @pytest.mark.parametrize(
        "kernel", [bandlimited_density_kernel, cic_density_kernel, ngp_density_kernel],
    )
    def test_mass_conserved(self, domain, kernel):
        """Sum of the density times node volume equals the total mass."""
        init = uniform_initializer(seed=7, mass=0.5)
        store = ParticleStore.from_dict(init(domain, 200))
        out = np.zeros(domain.shape)
        kernel(store, domain, 0, out)
        assert out.sum() * domain.node_volume == pytest.approx(100.0, rel=1e-12)

    def test_cic_on_node(self, domain):
        """A particle sitting on a node puts all its mass there."""
        xs, ys, zs = domain.node_axes()
        store = _single(domain, xs[2], ys[3], zs[5], mass=2.0)
        out = np.zeros(domain.shape)
        cic_density_kernel(store, domain, 0, out)
        assert out[2, 3, 5] == pytest.approx(2.0 / domain.node_volume)
        assert np.count_nonzero(out) == 1

    def test_cic_splits_between_nodes(self, domain):
        h = domain.spacing[0]
        xs, ys, zs = domain.node_axes()
        store = _single(domain, xs[1] + 0.25 * h, ys[0], zs[0])
        out = np.zeros(domain.shape)
        cic_density_kernel(store, domain, 0, out)
        w = 1.0 / domain.node_volume
        assert out[1, 0, 0] == pytest.approx(0.75 * w)
        assert out[2, 0, 0] == pytest.approx(0.25 * w)

    def test_cic_wraps_across_boundary(self, domain):
        """Mass beyond the last node wraps onto node 0."""
        h = domain.spacing[0]
        xs, ys, zs = domain.node_axes()
        store = _single(domain, xs[-1] + 0.5 * h, ys[0], zs[0])
        out = np.zeros(domain.shape)
        cic_density_kernel(store, domain, 0, out)
        w = 1.0 / domain.node_volume
        assert out[-1, 0, 0] == pytest.approx(0.5 * w)
        assert out[0, 0, 0] == pytest.approx(0.5 * w)

    def test_upper_bound_is_lower_bound(self, domain):
        """x = n is identified with x = 1."""
        out = np.zeros(domain.shape)
        ngp_density_kernel(_single(domain, 8.0, 1.0, 1.0), domain, 0, out)
        assert out[0, 0, 0] > 0.0

    def test_accumulates(self, domain):
        out = np.zeros(domain.shape)
        store = _single(domain, 2.0, 2.0, 2.0)
        ngp_density_kernel(store, domain, 0, out)
        ngp_density_kernel(store, domain, 1, out)
        assert out.sum() * domain.node_volume == pytest.approx(2.0)

    def test_rejects_wrong_shape(self, domain):
        with pytest.raises(ValueError, match="does not match"):
            cic_density_kernel(_single(domain, 2.0, 2.0, 2.0), domain, 0, np.zeros((4, 4, 4)))

    def test_lookup(self):
        assert get_density_kernel("cic") is cic_density_kernel
        assert get_density_kernel("bandlimited") is bandlimited_density_kernel
        with pytest.raises(ValueError, match="unknown deposit"):
            get_density_kernel("tsc")


class TestBandlimitedDeposit:
    """Tests for the band-limited cloud-in-cell profile."""

    def test_shape_factor(self):
        s = cic_shape_factor(8)
        # Nyquist mode of the even lattice is not resolved
        assert s.shape == (4,)
        assert s[0] == pytest.approx(1.0)
        assert s[2] == pytest.approx((np.sin(np.pi / 4) / (np.pi / 4)) ** 2)
        assert cic_shape_factor(7).shape == (4,)
        assert np.all(np.diff(s) < 0.0)

    def test_profile_symmetric_about_particle(self, domain, adapter):
        """The projected field of a lone particle is mirror-symmetric about it."""
        p = np.array([3.3, 4.7, 5.15])
        out = np.zeros(domain.shape)
        bandlimited_density_kernel(_single(domain, *p), domain, 0, out)
        field = project_density(adapter, out)

        for axis in range(3):
            for d in (0.2, 0.6, 1.5):
                step = np.zeros(3)
                step[axis] = d
                assert field.evaluate(p + step) == pytest.approx(
                    field.evaluate(p - step), abs=1e-10,
                )

    def test_profile_peaks_at_particle(self, domain, adapter):
        p = np.array([3.3, 4.7, 5.15])
        out = np.zeros(domain.shape)
        bandlimited_density_kernel(_single(domain, *p), domain, 0, out)
        field = project_density(adapter, out)
        peak = field.evaluate(p)
        for axis in range(3):
            step = np.zeros(3)
            step[axis] = 0.5
            assert peak > field.evaluate(p + step)

    def test_translation_moves_profile(self, domain):
        """Shifting a particle by whole nodes shifts its node values."""
        xs, ys, zs = domain.node_axes()
        a = np.zeros(domain.shape)
        b = np.zeros(domain.shape)
        bandlimited_density_kernel(_single(domain, xs[1] + 0.3, ys[2], zs[3]), domain, 0, a)
        bandlimited_density_kernel(_single(domain, xs[3] + 0.3, ys[2], zs[3]), domain, 0, b)
        np.testing.assert_allclose(np.roll(a, 2, axis=0), b, atol=1e-12)


# ====================================================
# Startup kernels
# ====================================================

class TestInitializers:
    """Tests for initial particle populations."""

    def test_uniform_inside_box(self, domain):
        data = uniform_initializer(seed=1)(domain, 500)
        pos = np.stack([data["x"], data["y"], data["z"]], axis=1)
        assert np.all(domain.contains(pos))
        np.testing.assert_array_equal(data["mass"], 1.0)

    def test_uniform_is_reproducible(self, domain):
        a = uniform_initializer(seed=5)(domain, 10)
        b = uniform_initializer(seed=5)(domain, 10)
        np.testing.assert_array_equal(a["x"], b["x"])

    def test_dispersion_has_no_net_drift(self, domain):
        data = uniform_initializer(seed=2, velocity_dispersion=0.3)(domain, 100)
        assert abs(data["vx"].sum()) < 1e-10
        assert data["vx"].std() > 0.1

    def test_lattice_fills_box(self):
        domain = Domain((16, 16, 16))
        data = lattice_initializer(mass=2.0)(domain, 64)
        assert data["x"].size == 64
        assert len(np.unique(data["x"])) == 4
        np.testing.assert_array_equal(data["vx"], 0.0)
        np.testing.assert_array_equal(data["mass"], 2.0)

    def test_explicit(self, domain, two_body_particles):
        data = explicit_initializer(two_body_particles)(domain, 2)
        np.testing.assert_array_equal(data["z"], [4.0, 5.0])

    def test_explicit_count_mismatch(self, domain, two_body_particles):
        with pytest.raises(ValueError, match="lists 2"):
            explicit_initializer(two_body_particles)(domain, 3)

    def test_explicit_outside_box(self, domain):
        with pytest.raises(ValueError, match="outside"):
            explicit_initializer([{"position": [0.5, 2.0, 2.0]}])(domain, 1)

    def test_make_from_config(self, domain):
        cfg = ParticleConfig(n_particles=8, initializer="lattice", mass=3.0)
        data = make_initializer(cfg)(domain, 8)
        np.testing.assert_array_equal(data["mass"], 3.0)
