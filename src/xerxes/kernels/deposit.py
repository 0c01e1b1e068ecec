"""Density rasterization kernels.

Particles are spread onto the ``(nx, ny, nz)`` node lattice of the domain
with periodic wrap-around. Output is mass *density* (mass per node volume),
so ``density.sum() * domain.node_volume`` equals the deposited mass.

Three assignment schemes are provided:

- ``bandlimited``: cloud-in-cell shape applied in Fourier space. Each
  particle contributes the band-limited profile centred on its own position,
  so the interpolated field of a lone particle is mirror-symmetric about it
  and exerts no force on it.
- ``cic``: cloud-in-cell: trilinear weights onto the 8 surrounding nodes.
- ``ngp``: nearest grid point: all mass onto the closest node.

Kernels accumulate into the output array; the step loop zeroes it first.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
from numba import njit

from xerxes.core.domain import Domain
from xerxes.particles.store import ParticleStore

# =====================================================================
# Numba-accelerated kernels
# =====================================================================


@njit(cache=True)
def _periodic_coordinate(x: float, lo: float, h: float, n: int) -> float:
    """Node-normalised coordinate reduced to ``[0, n)``."""
    xn = (x - lo) / h
    xn = xn - n * np.floor(xn / n)
    if xn >= n:
        xn -= n
    return xn


@njit(cache=True)
def _cic_deposit_kernel(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    mass: np.ndarray,
    lo: float,
    hx: float,
    hy: float,
    hz: float,
    density: np.ndarray,
) -> None:
    """Periodic cloud-in-cell deposition.

    Parameters
    ----------
    x, y, z : ndarray, shape (N,)
        Particle coordinates.
    mass : ndarray, shape (N,)
        Particle masses.
    lo : float
        Lower corner of the box.
    hx, hy, hz : float
        Node spacings.
    density : ndarray, shape (nx, ny, nz)
        Accumulator, updated in place.
    """
    nx, ny, nz = density.shape
    inv_vol = 1.0 / (hx * hy * hz)

    for p in range(x.shape[0]):
        xn = _periodic_coordinate(x[p], lo, hx, nx)
        yn = _periodic_coordinate(y[p], lo, hy, ny)
        zn = _periodic_coordinate(z[p], lo, hz, nz)

        ix = int(xn)
        iy = int(yn)
        iz = int(zn)

        fx = xn - ix
        fy = yn - iy
        fz = zn - iz

        jx = (ix + 1) % nx
        jy = (iy + 1) % ny
        jz = (iz + 1) % nz

        w = mass[p] * inv_vol

        density[ix, iy, iz] += w * (1.0 - fx) * (1.0 - fy) * (1.0 - fz)
        density[jx, iy, iz] += w * fx * (1.0 - fy) * (1.0 - fz)
        density[ix, jy, iz] += w * (1.0 - fx) * fy * (1.0 - fz)
        density[ix, iy, jz] += w * (1.0 - fx) * (1.0 - fy) * fz
        density[jx, jy, iz] += w * fx * fy * (1.0 - fz)
        density[jx, iy, jz] += w * fx * (1.0 - fy) * fz
        density[ix, jy, jz] += w * (1.0 - fx) * fy * fz
        density[jx, jy, jz] += w * fx * fy * fz


@njit(cache=True)
def _ngp_deposit_kernel(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    mass: np.ndarray,
    lo: float,
    hx: float,
    hy: float,
    hz: float,
    density: np.ndarray,
) -> None:
    """Periodic nearest-grid-point deposition (same parameters as CIC)."""
    nx, ny, nz = density.shape
    inv_vol = 1.0 / (hx * hy * hz)

    for p in range(x.shape[0]):
        ix = int(np.floor(_periodic_coordinate(x[p], lo, hx, nx) + 0.5)) % nx
        iy = int(np.floor(_periodic_coordinate(y[p], lo, hy, ny) + 0.5)) % ny
        iz = int(np.floor(_periodic_coordinate(z[p], lo, hz, nz) + 0.5)) % nz
        density[ix, iy, iz] += mass[p] * inv_vol


@njit(cache=True)
def _band_profile(
    xp: float, lo: float, length: float, shape_factor: np.ndarray, out: np.ndarray,
) -> None:
    """Node values of the band-limited unit profile centred at ``xp``.

    The profile is ``s_0 + 2 sum_m s_m cos(2 pi m d / length)`` over the
    modes in ``shape_factor``.
    """
    n = out.shape[0]
    h = length / n
    for i in range(n):
        d = 2.0 * np.pi * (lo + i * h - xp) / length
        v = shape_factor[0]
        for m in range(1, shape_factor.shape[0]):
            v += 2.0 * shape_factor[m] * np.cos(m * d)
        out[i] = v


@njit(cache=True)
def _bandlimited_deposit_kernel(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    mass: np.ndarray,
    lo: float,
    lx: float,
    ly: float,
    lz: float,
    sx: np.ndarray,
    sy: np.ndarray,
    sz: np.ndarray,
    density: np.ndarray,
) -> None:
    """Periodic band-limited cloud-in-cell deposition.

    Parameters
    ----------
    x, y, z : ndarray, shape (N,)
        Particle coordinates.
    mass : ndarray, shape (N,)
        Particle masses.
    lo : float
        Lower corner of the box.
    lx, ly, lz : float
        Periodic lengths.
    sx, sy, sz : ndarray, shape ((n + 1) // 2,)
        Per-axis shape factors for the resolved non-negative modes.
    density : ndarray, shape (nx, ny, nz)
        Accumulator, updated in place.
    """
    nx, ny, nz = density.shape
    inv_vol = 1.0 / (lx * ly * lz)
    fx = np.empty(nx)
    fy = np.empty(ny)
    fz = np.empty(nz)

    for p in range(x.shape[0]):
        _band_profile(x[p], lo, lx, sx, fx)
        _band_profile(y[p], lo, ly, sy, fy)
        _band_profile(z[p], lo, lz, sz, fz)
        w = mass[p] * inv_vol
        for i in range(nx):
            wx = w * fx[i]
            for j in range(ny):
                wxy = wx * fy[j]
                for k in range(nz):
                    density[i, j, k] += wxy * fz[k]


# =====================================================================
# Public API: thin wrappers around the Numba kernels
# =====================================================================

DensityKernel = Callable[[ParticleStore, Domain, int, np.ndarray], None]


def _check_output(domain: Domain, out: np.ndarray) -> None:
    if out.shape != domain.shape:
        raise ValueError(f"density array shape {out.shape} does not match grid {domain.shape}")
    if not out.flags.c_contiguous or out.dtype != np.float64:
        raise ValueError("density array must be C-contiguous float64")


def _coordinates(store: ParticleStore) -> tuple[np.ndarray, ...]:
    return tuple(
        np.ascontiguousarray(a) for a in (store.x, store.y, store.z, store.mass)
    )


def _run(kernel, store: ParticleStore, domain: Domain, out: np.ndarray) -> None:
    _check_output(domain, out)
    if store.n_particles == 0:
        return
    hx, hy, hz = (float(h) for h in domain.spacing)
    kernel(*_coordinates(store), float(domain.lo), hx, hy, hz, out)


def cic_shape_factor(n: int) -> np.ndarray:
    """Fourier transform of the cloud-in-cell shape for the resolved modes.

    Modes ``0 <= m < n / 2`` are kept; the Nyquist mode of an even lattice
    cannot represent a profile centred off the nodes and is dropped. With
    node spacing ``h = L / n`` the mode ``m`` has ``k h / 2 = pi m / n``,
    so the factor ``sinc^2(k h / 2)`` depends on ``n`` alone.
    """
    return np.sinc(np.arange((n + 1) // 2) / n) ** 2


def bandlimited_density_kernel(
    store: ParticleStore, domain: Domain, step: int, out: np.ndarray,
) -> None:
    """Accumulate band-limited cloud-in-cell mass density of all particles into ``out``."""
    _check_output(domain, out)
    if store.n_particles == 0:
        return
    lx, ly, lz = (float(length) for length in domain.lengths)
    sx, sy, sz = (cic_shape_factor(n) for n in domain.shape)
    _bandlimited_deposit_kernel(
        *_coordinates(store), float(domain.lo), lx, ly, lz, sx, sy, sz, out,
    )


def cic_density_kernel(store: ParticleStore, domain: Domain, step: int, out: np.ndarray) -> None:
    """Accumulate cloud-in-cell mass density of all particles into ``out``."""
    _run(_cic_deposit_kernel, store, domain, out)


def ngp_density_kernel(store: ParticleStore, domain: Domain, step: int, out: np.ndarray) -> None:
    """Accumulate nearest-grid-point mass density of all particles into ``out``."""
    _run(_ngp_deposit_kernel, store, domain, out)


_KERNELS: dict[str, DensityKernel] = {
    "bandlimited": bandlimited_density_kernel,
    "cic": cic_density_kernel,
    "ngp": ngp_density_kernel,
}


def get_density_kernel(name: str) -> DensityKernel:
    try:
        return _KERNELS[name]
    except KeyError:
        raise ValueError(
            f"unknown deposit scheme '{name}', expected one of {sorted(_KERNELS)}"
        ) from None
