"""Exception hierarchy for the simulator.

Configuration problems are reported by pydantic validation (``ValueError``)
before the step loop starts; everything raised from inside the loop derives
from :class:`XerxesError` and is fatal for the whole process group.
"""

from __future__ import annotations


class XerxesError(RuntimeError):
    """Base class for all run-time failures of a simulation."""


class FieldConstructionError(XerxesError):
    """A sampler could not be represented within tolerance.

    Raised when adaptive refinement reaches its maximum depth while the
    estimated truncation error is still above the configured threshold.
    """

    def __init__(self, message: str, *, level: int, error: float) -> None:
        super().__init__(message)
        self.level = level
        self.error = error


class PartitionViolationError(XerxesError):
    """A worker tried to write a particle index it does not own."""

    def __init__(self, index: int, rank: int, size: int) -> None:
        super().__init__(
            f"rank {rank}/{size} attempted to write particle {index} "
            f"owned by rank {index % size}"
        )
        self.index = index
        self.rank = rank
        self.size = size


class CollectiveDesyncError(XerxesError):
    """Workers met at a barrier while at different (step, phase) positions."""


class CollectiveAbortError(XerxesError):
    """A barrier was broken: a peer aborted or the wait timed out."""


class SimulationAbortedError(XerxesError):
    """One or more workers exited with a failure."""

    def __init__(self, message: str, failed_ranks: list[int] | None = None) -> None:
        super().__init__(message)
        self.failed_ranks = failed_ranks or []
