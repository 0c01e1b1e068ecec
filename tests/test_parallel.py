"""Tests for process groups and the multi-process launcher.

Test categories:
1. Tagged barriers with in-process threads
2. Desync and timeout detection
3. run_parallel matches the serial engine
4. Worker failures surface as SimulationAbortedError
"""

from __future__ import annotations

import threading

import numpy as np
import pytest

from xerxes.config import SimulationConfig
from xerxes.engine import SimulationEngine
from xerxes.errors import CollectiveAbortError, CollectiveDesyncError, SimulationAbortedError
from xerxes.parallel import SerialGroup, SharedMemoryGroup, run_parallel
from xerxes.particles import ParticleStore


def _run_ranks(size, target):
    """Run ``target(group)`` on ``size`` threads sharing one barrier and ledger."""
    barrier = threading.Barrier(size)
    ledger = bytearray(2 * size * 8)
    outcomes = [None] * size

    def body(rank):
        group = SharedMemoryGroup(rank, size, barrier, ledger, timeout=5.0)
        try:
            target(group)
            outcomes[rank] = "ok"
        except Exception as exc:
            outcomes[rank] = exc

    threads = [threading.Thread(target=body, args=(r,)) for r in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10.0)
    return outcomes


# ====================================================
# Groups
# ====================================================

class TestSerialGroup:
    def test_single_rank(self):
        group = SerialGroup()
        assert group.rank == 0 and group.size == 1 and group.is_root
        group.barrier(3, 2)
        assert group.position == (3, 2)

    def test_owns_everything(self):
        np.testing.assert_array_equal(SerialGroup().owned_indices(4), [0, 1, 2, 3])


class TestSharedMemoryGroup:
    """Barrier semantics with threads standing in for worker processes."""

    def test_matching_tags_pass(self):
        def target(group):
            for step in range(3):
                for phase in range(6):
                    group.barrier(step, phase)

        assert _run_ranks(3, target) == ["ok", "ok", "ok"]

    def test_mismatched_tags_detected(self):
        """Workers at different phases fail instead of pairing up."""
        def target(group):
            group.barrier(0, group.rank)

        outcomes = _run_ranks(2, target)
        assert any(isinstance(o, CollectiveDesyncError) for o in outcomes)
        # A peer still draining the barrier may see the abort first
        assert all(isinstance(o, (CollectiveDesyncError, CollectiveAbortError)) for o in outcomes)

    def test_timeout_breaks_barrier(self):
        barrier = threading.Barrier(2)
        group = SharedMemoryGroup(0, 2, barrier, bytearray(32), timeout=0.2)
        with pytest.raises(CollectiveAbortError, match="timeout"):
            group.barrier(0, 0)

    def test_abort_releases_peers(self):
        def target(group):
            if group.rank == 1:
                group.abort()
                raise RuntimeError("worker failed")
            group.barrier(0, 0)

        outcomes = _run_ranks(2, target)
        assert isinstance(outcomes[0], CollectiveAbortError)
        assert isinstance(outcomes[1], RuntimeError)

    def test_owned_partition(self):
        group = SharedMemoryGroup(1, 3, threading.Barrier(3), bytearray(48))
        np.testing.assert_array_equal(group.owned_indices(7), [1, 4])

    def test_invalid_rank(self):
        with pytest.raises(ValueError):
            SharedMemoryGroup(2, 2, threading.Barrier(2), bytearray(32))


class TestThreadedEngines:
    """Engines on one shared store, one thread per rank."""

    def test_two_ranks_match_serial(self, sample_config_dict):
        sample_config_dict["n_steps"] = 2
        config = SimulationConfig(**sample_config_dict)

        serial = SimulationEngine(config)
        serial.run()

        shared = SimulationEngine(config).store.copy()

        def target(group):
            SimulationEngine(config, group=group, store=shared).run()

        assert _run_ranks(2, target) == ["ok", "ok"]
        np.testing.assert_allclose(shared.positions(), serial.store.positions(), rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(shared.velocities(), serial.store.velocities(), rtol=1e-12, atol=1e-12)


# ====================================================
# Launcher
# ====================================================

@pytest.mark.slow
class TestRunParallel:
    """End-to-end runs on real worker processes."""

    def test_matches_serial(self, sample_config_dict, tmp_path):
        sample_config_dict["n_steps"] = 2
        sample_config_dict["parallel"] = {"workers": 2, "start_method": "spawn", "barrier_timeout": 120}
        sample_config_dict["diagnostics"] = {"hdf5_filename": str(tmp_path / "diag.h5")}
        config = SimulationConfig(**sample_config_dict)

        result = run_parallel(config)

        serial_config = config.model_copy(deep=True)
        serial_config.diagnostics.hdf5_filename = None
        serial = SimulationEngine(serial_config)
        serial.run()

        assert result["summary"]["steps"] == 2
        assert result["summary"]["workers"] == 2
        final = ParticleStore.from_dict(result["particles"])
        np.testing.assert_allclose(final.positions(), serial.store.positions(), rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(final.velocities(), serial.store.velocities(), rtol=1e-12, atol=1e-12)
        assert (tmp_path / "diag.h5").exists()

    def test_worker_failure_reported(self, sample_config_dict, tmp_path):
        """A rank that fails makes the launcher raise with its rank listed."""
        sample_config_dict["parallel"] = {"workers": 2, "start_method": "spawn", "barrier_timeout": 120}
        sample_config_dict["diagnostics"] = {
            "hdf5_filename": str(tmp_path / "missing" / "diag.h5"),
        }
        config = SimulationConfig(**sample_config_dict)

        with pytest.raises(SimulationAbortedError) as excinfo:
            run_parallel(config)
        assert excinfo.value.failed_ranks == [0]
