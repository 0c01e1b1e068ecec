"""Deterministic striped partition of particle indices across workers.

Worker ``rank`` of ``size`` owns every index ``i`` with ``i % size == rank``:
a stride loop starting at ``rank`` with step ``size``. Each index has exactly
one owner and no coordination is needed to enumerate a worker's subset.
"""

from __future__ import annotations

import numpy as np


def _check_group(rank: int, size: int) -> None:
    if size < 1:
        raise ValueError(f"group size must be >= 1, got {size}")
    if not 0 <= rank < size:
        raise ValueError(f"rank must lie in [0, {size}), got {rank}")


def owned_indices(n_particles: int, rank: int, size: int) -> np.ndarray:
    """Indices owned by ``rank`` among ``n_particles`` particles."""
    _check_group(rank, size)
    if n_particles < 0:
        raise ValueError(f"n_particles must be >= 0, got {n_particles}")
    return np.arange(rank, n_particles, size, dtype=np.int64)


def owner_of(index: int | np.ndarray, size: int) -> int | np.ndarray:
    return np.mod(index, size)


def is_owned(index: int | np.ndarray, rank: int, size: int) -> bool | np.ndarray:
    _check_group(rank, size)
    return np.mod(index, size) == rank


def partition(n_particles: int, size: int) -> list[np.ndarray]:
    """Owned index sets for every rank of a group of ``size`` workers."""
    return [owned_indices(n_particles, rank, size) for rank in range(size)]
