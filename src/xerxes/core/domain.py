"""Periodic simulation box.

The box spans ``[1, n]`` on every axis, where ``n`` is the grid extent along
that axis; the periodic length is therefore ``n - 1`` and the coordinates
``1`` and ``n`` are identified. The discretized density grid places ``n``
equally spaced nodes per axis starting at the lower corner.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Domain:
    """Periodic box described by its grid extents.

    Attributes:
        shape: Grid extents ``(nx, ny, nz)``; each must be at least 2.
        lo: Lower corner coordinate, shared by all axes.
    """

    shape: tuple[int, int, int]
    lo: float = 1.0

    def __post_init__(self) -> None:
        if len(self.shape) != 3:
            raise ValueError(f"domain shape must have 3 extents, got {self.shape}")
        if any(int(n) < 2 for n in self.shape):
            raise ValueError(f"domain extents must be >= 2, got {self.shape}")
        object.__setattr__(self, "shape", tuple(int(n) for n in self.shape))

    @classmethod
    def cubic(cls, n: int) -> Domain:
        return cls((n, n, n))

    @property
    def hi(self) -> np.ndarray:
        """Upper corner per axis (equal to the grid extent)."""
        return self.lo + self.lengths

    @property
    def lengths(self) -> np.ndarray:
        """Periodic length per axis, ``n - 1``."""
        return np.asarray(self.shape, dtype=np.float64) - 1.0

    @property
    def volume(self) -> float:
        """Volume of one periodic cell of the box."""
        return float(np.prod(self.lengths))

    @property
    def spacing(self) -> np.ndarray:
        """Node spacing of the density grid per axis."""
        return self.lengths / np.asarray(self.shape, dtype=np.float64)

    @property
    def node_volume(self) -> float:
        return float(np.prod(self.spacing))

    def node_axes(
        self, shape: tuple[int, int, int] | None = None,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return the 1-D node coordinates of a periodic lattice.

        Args:
            shape: Lattice resolution per axis (default: the domain grid).

        Returns:
            Three arrays ``lo + i * length / n`` for ``i in range(n)``.
        """
        shape = self.shape if shape is None else shape
        return tuple(
            self.lo + np.arange(n, dtype=np.float64) * (length / n)
            for n, length in zip(shape, self.lengths)
        )

    def contains(self, points: np.ndarray) -> np.ndarray:
        """Return a boolean mask of points lying inside ``[lo, hi]`` on every axis."""
        pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return np.all((pts >= self.lo) & (pts <= self.hi), axis=1)
