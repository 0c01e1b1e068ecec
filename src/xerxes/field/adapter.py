"""Abstract continuous-field interface.

The step loop never touches a concrete field representation. It talks to a
:class:`FieldAdapter`, which builds fields from samplers and applies the
convolution, differentiation, evaluation and integration operators, and to
the :class:`Field` objects the adapter returns.

A *sampler* describes a function over the domain without committing to a
resolution: the adapter asks it for values on periodic lattices of whatever
resolution its refinement strategy needs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

import numpy as np

from xerxes.core.domain import Domain


class Field(ABC):
    """A scalar function over the periodic domain."""

    def __init__(self, domain: Domain) -> None:
        self.domain = domain

    @abstractmethod
    def evaluate_many(self, points: np.ndarray) -> np.ndarray:
        """Evaluate the field at an array of points.

        Args:
            points: Coordinates, shape ``(P, 3)``. Points need not lie on
                any grid; coordinates outside the box are taken periodically.

        Returns:
            Values, shape ``(P,)``.
        """

    @abstractmethod
    def integrate(self) -> float:
        """Integral of the field over one periodic cell of the domain."""

    @abstractmethod
    def shifted(self, offset: float) -> Field:
        """Return a new field equal to ``self + offset``."""

    @abstractmethod
    def scaled(self, factor: float) -> Field:
        """Return a new field equal to ``self * factor``."""

    def evaluate(self, point: np.ndarray | tuple[float, float, float]) -> float:
        return float(self.evaluate_many(np.asarray(point, dtype=np.float64).reshape(1, 3))[0])

    def evaluate_lattice(
        self, xs: np.ndarray, ys: np.ndarray, zs: np.ndarray,
    ) -> np.ndarray:
        """Evaluate on the tensor-product lattice ``xs x ys x zs``.

        Returns:
            Values with shape ``(len(xs), len(ys), len(zs))``.
        """
        X, Y, Z = np.meshgrid(xs, ys, zs, indexing="ij")
        pts = np.stack([X.ravel(), Y.ravel(), Z.ravel()], axis=1)
        return self.evaluate_many(pts).reshape(X.shape)

    def mean(self) -> float:
        return self.integrate() / self.domain.volume

    # --- scalar arithmetic ---

    def __add__(self, other: float) -> Field:
        if isinstance(other, Field):
            return NotImplemented
        return self.shifted(float(other))

    __radd__ = __add__

    def __sub__(self, other: float) -> Field:
        if isinstance(other, Field):
            return NotImplemented
        return self.shifted(-float(other))

    def __mul__(self, other: float) -> Field:
        if isinstance(other, Field):
            return NotImplemented
        return self.scaled(float(other))

    __rmul__ = __mul__

    def __neg__(self) -> Field:
        return self.scaled(-1.0)


class Sampler(ABC):
    """Source of function values on periodic lattices over a domain.

    Attributes:
        domain: Domain the sampled function lives on.
        resolution: Native lattice resolution, or ``None`` when the function
            is defined pointwise and has no preferred resolution.
    """

    resolution: tuple[int, int, int] | None = None

    def __init__(self, domain: Domain) -> None:
        self.domain = domain

    @abstractmethod
    def sample(self, shape: tuple[int, int, int]) -> np.ndarray:
        """Return values on the periodic node lattice of the given shape."""


class FunctionSampler(Sampler):
    """Sampler wrapping a vectorized pointwise function ``f(x, y, z)``."""

    def __init__(
        self,
        domain: Domain,
        func: Callable[[np.ndarray, np.ndarray, np.ndarray], np.ndarray],
    ) -> None:
        super().__init__(domain)
        self.func = func

    def sample(self, shape: tuple[int, int, int]) -> np.ndarray:
        xs, ys, zs = self.domain.node_axes(shape)
        X, Y, Z = np.meshgrid(xs, ys, zs, indexing="ij")
        values = np.asarray(self.func(X, Y, Z), dtype=np.float64)
        return np.broadcast_to(values, X.shape).copy()


class FieldAdapter(ABC):
    """Operations the particle-field loop needs from a field library."""

    def __init__(self, domain: Domain) -> None:
        self.domain = domain

    @abstractmethod
    def build_field(self, sampler: Sampler) -> Field:
        """Construct a field approximating the sampler to the configured tolerance.

        Raises:
            FieldConstructionError: if the tolerance cannot be met within the
                maximum refinement depth.
        """

    @abstractmethod
    def convolve(self, field: Field, precision: float, threshold: float) -> Field:
        """Apply the regularized periodic Poisson Green's function to ``field``."""

    @abstractmethod
    def differentiate(self, field: Field, axis: int) -> Field:
        """Return the partial derivative of ``field`` along ``axis`` (0, 1 or 2)."""

    def evaluate(self, field: Field, point: np.ndarray | tuple[float, float, float]) -> float:
        return field.evaluate(point)

    def integrate(self, field: Field) -> float:
        return field.integrate()

    def cell_volume(self) -> float:
        """Volume of the periodic simulation cell."""
        return self.domain.volume
