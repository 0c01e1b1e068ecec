"""Process groups: rank, size and collective barriers.

A :class:`ProcessGroup` is passed explicitly to every component that needs
to know its partition or must synchronise; there is no global communicator.

Every barrier is tagged with the caller's ``(step, phase)`` position. The
shared-memory group records the tags of all ranks in a ledger and checks
that they agree once everybody has arrived, so a worker that fell out of
step is detected instead of silently pairing with the wrong phase. Waits are
bounded: a timeout or a peer's abort breaks the barrier for the whole group.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import BrokenBarrierError
from typing import Any

import numpy as np

from xerxes.errors import CollectiveAbortError, CollectiveDesyncError
from xerxes.particles.partition import owned_indices
from xerxes.particles.store import OwnedParticles, ParticleStore

logger = logging.getLogger(__name__)


class ProcessGroup(ABC):
    """A fixed set of cooperating workers."""

    def __init__(self, rank: int, size: int) -> None:
        if size < 1:
            raise ValueError(f"group size must be >= 1, got {size}")
        if not 0 <= rank < size:
            raise ValueError(f"rank must lie in [0, {size}), got {rank}")
        self.rank = rank
        self.size = size

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    @abstractmethod
    def barrier(self, step: int, phase: int) -> None:
        """Block until every worker reaches the same ``(step, phase)``.

        Raises:
            CollectiveAbortError: the wait timed out or a peer aborted.
            CollectiveDesyncError: peers arrived at a different position.
        """

    def abort(self) -> None:
        """Release every peer blocked in (or arriving at) a barrier with an error."""

    def owned_indices(self, n_particles: int) -> np.ndarray:
        return owned_indices(n_particles, self.rank, self.size)

    def owned(self, store: ParticleStore) -> OwnedParticles:
        return store.owned(self.rank, self.size)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rank={self.rank}, size={self.size})"


class SerialGroup(ProcessGroup):
    """Single-worker group; barriers return immediately."""

    def __init__(self) -> None:
        super().__init__(0, 1)
        self.position: tuple[int, int] | None = None

    def barrier(self, step: int, phase: int) -> None:
        self.position = (step, phase)


class SharedMemoryGroup(ProcessGroup):
    """Group of ``multiprocessing`` workers sharing a barrier and a ledger.

    Args:
        rank: This worker's rank.
        size: Number of workers.
        barrier: ``multiprocessing`` Barrier created for ``size`` parties.
        ledger: Shared int64 buffer of length ``2 * size`` holding each
            rank's last ``(step, phase)`` tag.
        timeout: Seconds to wait at a barrier before breaking it.
    """

    def __init__(
        self,
        rank: int,
        size: int,
        barrier: Any,
        ledger: Any,
        timeout: float = 300.0,
    ) -> None:
        super().__init__(rank, size)
        self._barrier = barrier
        self._ledger = np.frombuffer(ledger, dtype=np.int64).reshape(size, 2)
        self.timeout = timeout

    def _wait(self, step: int, phase: int) -> None:
        try:
            self._barrier.wait(self.timeout)
        except BrokenBarrierError as exc:
            raise CollectiveAbortError(
                f"rank {self.rank}: barrier broken at step {step}, phase {phase} "
                f"(peer aborted or {self.timeout:.1f} s timeout)"
            ) from exc

    def barrier(self, step: int, phase: int) -> None:
        self._ledger[self.rank] = (step, phase)
        self._wait(step, phase)

        tags = self._ledger.copy()
        if np.any(tags != tags[self.rank]):
            logger.error("rank %d: barrier tags diverged: %s", self.rank, tags.tolist())
            self.abort()
            raise CollectiveDesyncError(
                f"rank {self.rank} at (step={step}, phase={phase}) met peers at "
                f"{[tuple(t) for t in tags.tolist()]}"
            )

        # Nobody may overwrite its tag before all ranks have compared
        self._wait(step, phase)

    def abort(self) -> None:
        logger.warning("rank %d: aborting process group", self.rank)
        self._barrier.abort()
