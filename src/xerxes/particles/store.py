"""Structure-of-arrays particle storage.

All seven per-particle arrays (``x, y, z, vx, vy, vz, mass``) are rows of a
single contiguous ``(7, N)`` float64 block. The block can live in ordinary
process memory or in a ``multiprocessing.shared_memory`` segment so that a
group of workers mutates one population in place.

Workers do not write the arrays directly; they obtain an
:class:`OwnedParticles` view for their rank, which refuses writes to indices
outside the worker's stride partition.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from xerxes.errors import PartitionViolationError
from xerxes.particles.partition import owned_indices

FIELDS = ("x", "y", "z", "vx", "vy", "vz", "mass")
_ROW = {name: i for i, name in enumerate(FIELDS)}


class ParticleStore:
    """Particle population of fixed size.

    Args:
        block: Float64 array of shape ``(7, N)`` backing all attributes.
            Mass (row 6) is exposed read-only.
    """

    def __init__(self, block: np.ndarray) -> None:
        if block.ndim != 2 or block.shape[0] != len(FIELDS):
            raise ValueError(f"particle block must have shape (7, N), got {block.shape}")
        if block.dtype != np.float64:
            raise ValueError(f"particle block must be float64, got {block.dtype}")
        self._block = block
        self._mass = block[_ROW["mass"]]
        self._mass.flags.writeable = False

    @staticmethod
    def nbytes_for(n_particles: int) -> int:
        """Bytes needed for the backing block of ``n_particles`` particles."""
        return len(FIELDS) * max(n_particles, 0) * np.dtype(np.float64).itemsize

    @classmethod
    def allocate(cls, n_particles: int, buffer: Any | None = None) -> ParticleStore:
        """Allocate a zeroed store, optionally on an existing buffer.

        Args:
            n_particles: Population size ``N >= 0``.
            buffer: Object exposing the buffer protocol (e.g.
                ``SharedMemory.buf``) of at least :meth:`nbytes_for` bytes.
        """
        if n_particles < 0:
            raise ValueError(f"n_particles must be >= 0, got {n_particles}")
        shape = (len(FIELDS), n_particles)
        if buffer is None:
            return cls(np.zeros(shape, dtype=np.float64))
        return cls(np.ndarray(shape, dtype=np.float64, buffer=buffer))

    @classmethod
    def from_arrays(
        cls,
        x: np.ndarray,
        y: np.ndarray,
        z: np.ndarray,
        vx: np.ndarray,
        vy: np.ndarray,
        vz: np.ndarray,
        mass: np.ndarray,
        buffer: Any | None = None,
    ) -> ParticleStore:
        arrays = [np.asarray(a, dtype=np.float64).ravel() for a in (x, y, z, vx, vy, vz, mass)]
        n = arrays[0].size
        if any(a.size != n for a in arrays):
            raise ValueError("particle arrays must all have the same length")
        store = cls.allocate(n, buffer=buffer)
        store._block[:] = np.stack(arrays)
        return store

    @classmethod
    def from_dict(cls, data: dict[str, np.ndarray], buffer: Any | None = None) -> ParticleStore:
        return cls.from_arrays(*(data[name] for name in FIELDS), buffer=buffer)

    # --- read access ---

    @property
    def n_particles(self) -> int:
        return int(self._block.shape[1])

    def __len__(self) -> int:
        return self.n_particles

    @property
    def x(self) -> np.ndarray:
        return self._block[0]

    @property
    def y(self) -> np.ndarray:
        return self._block[1]

    @property
    def z(self) -> np.ndarray:
        return self._block[2]

    @property
    def vx(self) -> np.ndarray:
        return self._block[3]

    @property
    def vy(self) -> np.ndarray:
        return self._block[4]

    @property
    def vz(self) -> np.ndarray:
        return self._block[5]

    @property
    def mass(self) -> np.ndarray:
        return self._mass

    def positions(self, indices: np.ndarray | None = None) -> np.ndarray:
        """Copy of particle positions, shape ``(K, 3)``."""
        rows = self._block[0:3]
        return (rows if indices is None else rows[:, indices]).T.copy()

    def velocities(self, indices: np.ndarray | None = None) -> np.ndarray:
        """Copy of particle velocities, shape ``(K, 3)``."""
        rows = self._block[3:6]
        return (rows if indices is None else rows[:, indices]).T.copy()

    def to_dict(self) -> dict[str, np.ndarray]:
        return {name: self._block[_ROW[name]].copy() for name in FIELDS}

    def copy(self) -> ParticleStore:
        return ParticleStore(self._block.copy())

    def load(self, other: ParticleStore) -> None:
        """Overwrite every attribute, mass included, with ``other``'s values."""
        if other.n_particles != self.n_particles:
            raise ValueError(
                f"cannot load {other.n_particles} particles into a store of {self.n_particles}"
            )
        self._block[:6] = other._block[:6]
        self._mass.flags.writeable = True
        try:
            self._mass[:] = other.mass
        finally:
            self._mass.flags.writeable = False

    # --- partitioned write access ---

    def owned(self, rank: int, size: int) -> OwnedParticles:
        return OwnedParticles(self, rank, size)

    def _write(self, indices: np.ndarray, positions: np.ndarray, velocities: np.ndarray) -> None:
        self._block[0:3, indices] = positions.T
        self._block[3:6, indices] = velocities.T


class OwnedParticles:
    """Partition-checked view of a store for one worker.

    Args:
        store: The shared particle population.
        rank: Worker rank.
        size: Number of workers in the group.
    """

    def __init__(self, store: ParticleStore, rank: int, size: int) -> None:
        self.store = store
        self.rank = rank
        self.size = size
        self.indices = owned_indices(store.n_particles, rank, size)

    def __len__(self) -> int:
        return int(self.indices.size)

    def positions(self) -> np.ndarray:
        return self.store.positions(self.indices)

    def velocities(self) -> np.ndarray:
        return self.store.velocities(self.indices)

    def masses(self) -> np.ndarray:
        return self.store.mass[self.indices]

    def check(self, indices: np.ndarray) -> None:
        """Raise :class:`PartitionViolationError` for the first foreign index."""
        idx = np.asarray(indices, dtype=np.int64)
        foreign = idx[(np.mod(idx, self.size) != self.rank) | (idx < 0) | (idx >= len(self.store))]
        if foreign.size:
            raise PartitionViolationError(int(foreign[0]), self.rank, self.size)

    def write(
        self,
        positions: np.ndarray,
        velocities: np.ndarray,
        indices: np.ndarray | None = None,
    ) -> None:
        """Store new positions and velocities for owned particles.

        Args:
            positions: Shape ``(K, 3)``.
            velocities: Shape ``(K, 3)``.
            indices: Target indices (default: all owned indices, in order).

        Raises:
            PartitionViolationError: if any target index is not owned.
        """
        idx = self.indices if indices is None else np.asarray(indices, dtype=np.int64)
        self.check(idx)
        pos = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        vel = np.asarray(velocities, dtype=np.float64).reshape(-1, 3)
        if pos.shape[0] != idx.size or vel.shape[0] != idx.size:
            raise ValueError(
                f"expected {idx.size} positions and velocities, "
                f"got {pos.shape[0]} and {vel.shape[0]}"
            )
        self.store._write(idx, pos, vel)

    def set_particle(self, index: int, position, velocity) -> None:
        self.write(np.reshape(position, (1, 3)), np.reshape(velocity, (1, 3)), np.array([index]))
