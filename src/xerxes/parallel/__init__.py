"""Worker process groups and the multi-process launcher.

Exports all public symbols from :mod:`xerxes.parallel.group` and
:mod:`xerxes.parallel.launcher`.
"""

from xerxes.parallel.group import ProcessGroup, SerialGroup, SharedMemoryGroup
from xerxes.parallel.launcher import run_parallel

__all__ = [
    "ProcessGroup",
    "SerialGroup",
    "SharedMemoryGroup",
    "run_parallel",
]
