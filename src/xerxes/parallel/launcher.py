"""Launch a simulation across a group of worker processes.

The parent allocates the particle arrays in a ``multiprocessing`` shared
memory segment and fills them from the startup kernel (or a checkpoint).
Each worker attaches to the segment, builds a :class:`SimulationEngine`
bound to it through a :class:`SharedMemoryGroup`, and runs the step loop.
A worker that fails aborts the barrier so its peers fail fast instead of
waiting for the timeout; the parent then reports every failed rank.

Usage:
    from xerxes.parallel import run_parallel
    result = run_parallel(config)
    particles = result["particles"]
"""

from __future__ import annotations

import gc
import logging
import multiprocessing as mp
import queue as queue_mod
import time
from multiprocessing import shared_memory
from typing import Any

from xerxes.config import SimulationConfig
from xerxes.core.domain import Domain
from xerxes.diagnostics.checkpoint import load_checkpoint
from xerxes.errors import SimulationAbortedError
from xerxes.kernels.initial import make_initializer
from xerxes.parallel.group import SharedMemoryGroup
from xerxes.particles.store import ParticleStore

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _worker_main(
    rank: int,
    size: int,
    config_json: str,
    shm_name: str,
    n_particles: int,
    barrier: Any,
    ledger: Any,
    start_step: int,
    start_time: float,
    max_steps: int | None,
    log_level: int,
    results: Any,
) -> None:
    """Entry point of one worker process."""
    # Spawned children do not inherit the parent's logging configuration
    logging.basicConfig(level=log_level, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    from xerxes.engine import SimulationEngine

    config = SimulationConfig.model_validate_json(config_json)
    shm = shared_memory.SharedMemory(name=shm_name)
    store = ParticleStore.allocate(n_particles, buffer=shm.buf)
    group = SharedMemoryGroup(
        rank, size, barrier, ledger, timeout=config.parallel.barrier_timeout,
    )
    try:
        engine = SimulationEngine(config, group=group, store=store)
    except Exception:
        group.abort()
        raise
    engine.step_count = start_step
    engine.time = start_time

    summary = engine.run(max_steps=max_steps)
    if group.is_root:
        results.put(summary)

    # Views into the segment must be gone before it can be closed; on failure
    # the mapping is released when the process exits
    del engine, store, group
    gc.collect()
    shm.close()


def run_parallel(
    config: SimulationConfig,
    restart: str | None = None,
    max_steps: int | None = None,
) -> dict[str, Any]:
    """Run ``config`` on ``config.parallel.workers`` worker processes.

    Args:
        config: Validated simulation configuration.
        restart: Optional checkpoint file to resume from.
        max_steps: Stop after this many total steps (None = ``n_steps``).

    Returns:
        Dictionary with ``"summary"`` (rank 0's run summary) and
        ``"particles"`` (final particle columns).

    Raises:
        SimulationAbortedError: if any worker exits with a non-zero code.
    """
    size = config.parallel.workers
    n = config.particles.n_particles
    domain = Domain(tuple(config.grid_shape))
    ctx = mp.get_context(config.parallel.start_method)

    start_step, start_time = 0, 0.0
    if restart is not None:
        data = load_checkpoint(restart)
        initial = data["particles"]
        start_step, start_time = data["step_count"], data["time"]
        logger.info("Restarting from %s at step %d", restart, start_step)
    else:
        t0 = time.monotonic()
        initial = make_initializer(config.particles)(domain, n)
        logger.info("Initialization time: %.3f s", time.monotonic() - t0)

    shm = shared_memory.SharedMemory(create=True, size=max(ParticleStore.nbytes_for(n), 1))
    store: ParticleStore | None = None
    try:
        store = ParticleStore.from_dict(initial, buffer=shm.buf)
        barrier = ctx.Barrier(size)
        ledger = ctx.RawArray("q", 2 * size)
        results = ctx.Queue()
        log_level = logging.getLogger().getEffectiveLevel()
        config_json = config.model_dump_json()

        workers = []
        for rank in range(size):
            proc = ctx.Process(
                target=_worker_main,
                args=(
                    rank, size, config_json, shm.name, n, barrier, ledger,
                    start_step, start_time, max_steps, log_level, results,
                ),
                name=f"xerxes-worker-{rank}",
            )
            proc.start()
            workers.append(proc)
        logger.info("Started %d worker(s) (%s)", size, config.parallel.start_method)

        # Drain the queue before joining so rank 0 never blocks on a full pipe
        summary: dict[str, Any] | None = None
        while summary is None and any(p.is_alive() for p in workers):
            try:
                summary = results.get(timeout=0.5)
            except queue_mod.Empty:
                continue
        if summary is None:
            try:
                summary = results.get(timeout=0.5)
            except queue_mod.Empty:
                summary = None

        for proc in workers:
            proc.join()

        failed = [rank for rank, proc in enumerate(workers) if proc.exitcode != 0]
        if failed:
            raise SimulationAbortedError(
                f"{len(failed)} of {size} worker(s) failed: ranks {failed}",
                failed_ranks=failed,
            )
        if summary is None:
            raise SimulationAbortedError("rank 0 exited without a summary", failed_ranks=[0])

        particles = store.to_dict()
    finally:
        store = None
        gc.collect()
        shm.close()
        shm.unlink()

    return {"summary": summary, "particles": particles}
