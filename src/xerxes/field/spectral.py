"""Periodic spectral (Fourier) field representation.

Fields are stored as the 3-D discrete Fourier coefficients of their values on
a periodic node lattice, which makes them trigonometric polynomials defined
everywhere in the box. On this basis:

- point evaluation is an exact sum over the coefficients, so fields can be
  evaluated at particle positions that do not coincide with any node;
- the Poisson Green's function is diagonal (multiplication by ``4*pi/k^2``);
- differentiation is multiplication by ``i*k``;
- the integral is the zero mode times the cell volume.

Adaptive construction starts at the sampler's native resolution (or at
``order`` nodes per axis) and doubles the resolution until the relative
spectral energy above the coarser band drops below ``threshold``.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy import fft

from xerxes.constants import four_pi, pi
from xerxes.core.domain import Domain
from xerxes.errors import FieldConstructionError
from xerxes.field.adapter import Field, FieldAdapter, Sampler

logger = logging.getLogger(__name__)

# Points per chunk for off-lattice evaluation, sized against ny*nz.
_EVAL_CHUNK_ELEMENTS = 1 << 22


def _integer_wavenumbers(n: int) -> np.ndarray:
    return fft.fftfreq(n, d=1.0 / n)


def _angular_wavenumbers(n: int, length: float) -> np.ndarray:
    return 2.0 * pi * fft.fftfreq(n, d=length / n)


class SpectralField(Field):
    """Trigonometric-polynomial field on a periodic box.

    Args:
        domain: Domain the field lives on.
        coeffs: Complex array of unnormalized DFT coefficients (as returned
            by ``scipy.fft.fftn`` of the node samples).
    """

    def __init__(self, domain: Domain, coeffs: np.ndarray) -> None:
        super().__init__(domain)
        self.coeffs = np.asarray(coeffs, dtype=np.complex128)
        if self.coeffs.ndim != 3:
            raise ValueError(f"coefficients must be 3-D, got shape {self.coeffs.shape}")

    @classmethod
    def from_samples(cls, domain: Domain, values: np.ndarray) -> SpectralField:
        """Build the field interpolating ``values`` on the periodic node lattice."""
        return cls(domain, fft.fftn(np.asarray(values, dtype=np.float64)))

    @property
    def resolution(self) -> tuple[int, int, int]:
        return tuple(self.coeffs.shape)

    def samples(self) -> np.ndarray:
        """Values on the field's own node lattice."""
        return fft.ifftn(self.coeffs).real

    def integrate(self) -> float:
        return float(self.coeffs[0, 0, 0].real / self.coeffs.size) * self.domain.volume

    def shifted(self, offset: float) -> SpectralField:
        coeffs = self.coeffs.copy()
        coeffs[0, 0, 0] += offset * coeffs.size
        return SpectralField(self.domain, coeffs)

    def scaled(self, factor: float) -> SpectralField:
        return SpectralField(self.domain, self.coeffs * factor)

    def _phase_factors(self, coords: np.ndarray, axis: int) -> np.ndarray:
        n = self.coeffs.shape[axis]
        frac = (coords - self.domain.lo) / self.domain.lengths[axis]
        factors = np.exp(2j * pi * np.outer(frac, _integer_wavenumbers(n)))
        if n % 2 == 0:
            # Nyquist mode stands for +n/2 and -n/2 equally
            factors[:, n // 2] = np.cos(pi * n * frac)
        return factors

    def evaluate_many(self, points: np.ndarray) -> np.ndarray:
        pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
        if pts.shape[1] != 3:
            raise ValueError(f"points must have shape (P, 3), got {pts.shape}")

        nx, ny, nz = self.coeffs.shape
        out = np.empty(pts.shape[0], dtype=np.float64)
        chunk = max(1, _EVAL_CHUNK_ELEMENTS // (ny * nz))

        for start in range(0, pts.shape[0], chunk):
            p = pts[start:start + chunk]
            ex = self._phase_factors(p[:, 0], 0)
            ey = self._phase_factors(p[:, 1], 1)
            ez = self._phase_factors(p[:, 2], 2)
            t = np.einsum("pi,ijk->pjk", ex, self.coeffs)
            t = np.einsum("pjk,pj->pk", t, ey)
            out[start:start + chunk] = np.einsum("pk,pk->p", t, ez).real

        return out / self.coeffs.size

    def evaluate_lattice(
        self, xs: np.ndarray, ys: np.ndarray, zs: np.ndarray,
    ) -> np.ndarray:
        ex = self._phase_factors(np.asarray(xs, dtype=np.float64), 0)
        ey = self._phase_factors(np.asarray(ys, dtype=np.float64), 1)
        ez = self._phase_factors(np.asarray(zs, dtype=np.float64), 2)
        t = np.tensordot(ex, self.coeffs, axes=([1], [0]))
        t = np.tensordot(t, ey, axes=([1], [1]))
        t = np.tensordot(t, ez, axes=([1], [1]))
        return t.real / self.coeffs.size


def spectral_tail_error(fine: np.ndarray, coarse_shape: tuple[int, int, int]) -> float:
    """Relative spectral energy of ``fine`` outside the band of ``coarse_shape``.

    A wavenumber is in band when ``|k| <= n // 2`` on every axis for the
    coarse resolution ``n``. Returns 0 for an identically zero field.
    """
    in_band = np.ones(fine.shape, dtype=bool)
    for axis, (n_fine, n_coarse) in enumerate(zip(fine.shape, coarse_shape)):
        k = np.abs(_integer_wavenumbers(n_fine)) <= n_coarse // 2
        shape = [1, 1, 1]
        shape[axis] = n_fine
        in_band &= k.reshape(shape)

    power = np.abs(fine) ** 2
    total = float(power.sum())
    if total == 0.0:
        return 0.0
    return float(np.sqrt(power[~in_band].sum() / total))


class SpectralFieldAdapter(FieldAdapter):
    """Field library backed by periodic Fourier series.

    Args:
        domain: Periodic simulation box.
        order: Nodes per axis at the coarsest level for samplers that have
            no native resolution.
        threshold: Relative spectral-tail tolerance for adaptive construction.
        max_refine_level: Number of resolution doublings attempted before
            construction fails.
    """

    def __init__(
        self,
        domain: Domain,
        order: int = 9,
        threshold: float = 1e-7,
        max_refine_level: int = 4,
    ) -> None:
        super().__init__(domain)
        if order < 1:
            raise ValueError(f"order must be positive, got {order}")
        if threshold <= 0:
            raise ValueError(f"threshold must be positive, got {threshold}")
        if max_refine_level < 1:
            raise ValueError(f"max_refine_level must be >= 1, got {max_refine_level}")
        self.order = order
        self.threshold = threshold
        self.max_refine_level = max_refine_level

    def build_field(self, sampler: Sampler) -> SpectralField:
        base = sampler.resolution or (self.order,) * 3
        shape = tuple(int(n) for n in base)
        coarse = fft.fftn(sampler.sample(shape))
        error = np.inf

        for level in range(1, self.max_refine_level + 1):
            fine_shape = tuple(n * 2 for n in shape)
            fine = fft.fftn(sampler.sample(fine_shape))
            error = spectral_tail_error(fine, shape)
            logger.debug(
                "Refinement level %d: %s -> %s, tail error %.3e",
                level, shape, fine_shape, error,
            )
            if error <= self.threshold:
                return SpectralField(self.domain, coarse)
            shape, coarse = fine_shape, fine

        raise FieldConstructionError(
            f"sampler not resolved to threshold {self.threshold:.1e} after "
            f"{self.max_refine_level} refinement levels (tail error {error:.3e})",
            level=self.max_refine_level,
            error=error,
        )

    def green_kernel(
        self, shape: tuple[int, int, int], precision: float,
    ) -> np.ndarray:
        """Fourier-space Coulomb kernel ``4*pi/k^2`` regularized at length ``precision``.

        The Gaussian factor ``exp(-k^2 precision^2 / 4)`` smooths the kernel
        below the regularization length. The zero mode, where the periodic
        kernel is singular, takes the value of the Coulomb kernel truncated
        at half the shortest period, ``2*pi*R^2``.
        """
        kx, ky, kz = (
            _angular_wavenumbers(n, length)
            for n, length in zip(shape, self.domain.lengths)
        )
        k2 = kx[:, None, None] ** 2 + ky[None, :, None] ** 2 + kz[None, None, :] ** 2
        kernel = np.empty(shape, dtype=np.float64)
        nonzero = k2 > 0.0
        kernel[nonzero] = (
            four_pi / k2[nonzero] * np.exp(-0.25 * k2[nonzero] * precision**2)
        )
        cutoff = 0.5 * float(np.min(self.domain.lengths))
        kernel[0, 0, 0] = 2.0 * pi * cutoff**2
        return kernel

    def convolve(self, field: Field, precision: float, threshold: float) -> SpectralField:
        if not isinstance(field, SpectralField):
            raise TypeError(f"expected SpectralField, got {type(field).__name__}")
        if precision <= 0 or threshold <= 0:
            raise ValueError("convolution precision and threshold must be positive")

        coeffs = field.coeffs * self.green_kernel(field.resolution, precision)
        scale = float(np.max(np.abs(coeffs))) if coeffs.size else 0.0
        if scale > 0.0:
            negligible = np.abs(coeffs) < threshold * scale
            negligible[0, 0, 0] = False
            coeffs[negligible] = 0.0
        return SpectralField(self.domain, coeffs)

    def differentiate(self, field: Field, axis: int) -> SpectralField:
        if not isinstance(field, SpectralField):
            raise TypeError(f"expected SpectralField, got {type(field).__name__}")
        if axis not in (0, 1, 2):
            raise ValueError(f"axis must be 0, 1 or 2, got {axis}")

        n = field.coeffs.shape[axis]
        k = _angular_wavenumbers(n, float(self.domain.lengths[axis]))
        if n % 2 == 0:
            # Nyquist mode has no well-defined derivative for real data
            k[n // 2] = 0.0
        shape = [1, 1, 1]
        shape[axis] = n
        return SpectralField(self.domain, field.coeffs * (1j * k.reshape(shape)))
