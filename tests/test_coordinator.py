"""Tests for the work coordinator."""

import random
import threading
import time

import pytest

from dash2gps.core.coordinator import WorkCoordinator
from dash2gps.core.errors import InvalidConfiguration, ParseFailure, PipelineAborted
from dash2gps.core.models import Coordinate, SampleTimestamp, WorkUnit
from dash2gps.core.sampler import FrameSampler


def to_unit(timestamp):
    return WorkUnit(
        timestamp=timestamp,
        coordinate=Coordinate(timestamp.offset_seconds, 0.0, index=timestamp.index),
    )


def timestamps(count):
    return [SampleTimestamp(i, float(i)) for i in range(count)]


def run_collecting(coordinator, samples):
    emitted = []
    stats = coordinator.run(samples, emitted.append)
    return emitted, stats


class TestWorkCoordinator:
    """Tests for WorkCoordinator class."""

    def test_init_default_backlog(self):
        """Test the backlog defaults to twice the worker count."""
        coordinator = WorkCoordinator(to_unit, workers=3)
        assert coordinator.backlog == 6

    @pytest.mark.parametrize("workers", [0, -1])
    def test_invalid_workers(self, workers):
        """Test fewer than one worker is rejected."""
        with pytest.raises(InvalidConfiguration):
            WorkCoordinator(to_unit, workers=workers)

    def test_backlog_smaller_than_workers(self):
        """Test a backlog below the worker count is rejected."""
        with pytest.raises(InvalidConfiguration):
            WorkCoordinator(to_unit, workers=4, backlog=3)

    def test_in_order_emission(self):
        """Test units are emitted exactly once, in index order."""
        emitted, stats = run_collecting(WorkCoordinator(to_unit, workers=4), timestamps(25))

        assert [u.index for u in emitted] == list(range(25))
        assert stats.dispatched == 25
        assert stats.emitted == 25

    def test_reverse_completion(self):
        """Test later samples finishing first does not change the output."""

        def slow_early(timestamp):
            time.sleep((3 - timestamp.index % 4) * 0.02)
            return to_unit(timestamp)

        emitted, _ = run_collecting(WorkCoordinator(slow_early, workers=4), timestamps(12))
        assert [u.index for u in emitted] == list(range(12))

    def test_random_completion(self):
        """Test random completion order gives the same output as sequential."""
        rng = random.Random(3)
        delays = {i: rng.uniform(0, 0.02) for i in range(30)}

        def jitter(timestamp):
            time.sleep(delays[timestamp.index])
            return to_unit(timestamp)

        sequential, _ = run_collecting(WorkCoordinator(to_unit, workers=1), timestamps(30))
        concurrent, _ = run_collecting(WorkCoordinator(jitter, workers=6), timestamps(30))

        assert concurrent == sequential

    def test_simultaneous_completion(self):
        """Test batches that finish together are still emitted in order."""
        barrier = threading.Barrier(4, timeout=10)

        def together(timestamp):
            barrier.wait()
            return to_unit(timestamp)

        emitted, _ = run_collecting(WorkCoordinator(together, workers=4), timestamps(8))
        assert [u.index for u in emitted] == list(range(8))

    def test_single_worker(self):
        """Test W=1 processes samples one at a time, in order."""
        emitted, stats = run_collecting(WorkCoordinator(to_unit, workers=1), timestamps(5))
        assert [u.index for u in emitted] == list(range(5))
        assert stats.max_buffered <= 2

    def test_empty_input(self):
        """Test no samples means no emissions."""
        emitted, stats = run_collecting(WorkCoordinator(to_unit, workers=2), [])
        assert emitted == []
        assert stats.dispatched == 0

    def test_failures_are_emitted(self):
        """Test failed units go through emit like successful ones."""

        def every_other(timestamp):
            if timestamp.index % 2:
                return WorkUnit(timestamp=timestamp, failure=ParseFailure("no text recognized", ""))
            return to_unit(timestamp)

        emitted, _ = run_collecting(WorkCoordinator(every_other, workers=3), timestamps(6))
        assert [u.ok for u in emitted] == [True, False, True, False, True, False]

    def test_backlog_bounds_outstanding(self):
        """Test no more than backlog samples are dispatched ahead of emission."""
        emitted = []
        outstanding = []
        rng = random.Random(11)

        def lazy_timestamps():
            for index in range(40):
                outstanding.append(index - len(emitted))
                yield SampleTimestamp(index, float(index))

        def jitter(timestamp):
            time.sleep(rng.uniform(0, 0.01))
            return to_unit(timestamp)

        coordinator = WorkCoordinator(jitter, workers=3, backlog=5)
        stats = coordinator.run(lazy_timestamps(), emitted.append)

        assert [u.index for u in emitted] == list(range(40))
        assert max(outstanding) < 5
        assert stats.max_buffered <= 5

    def test_progress_callback(self):
        """Test progress is reported after every emission."""
        calls = []
        coordinator = WorkCoordinator(
            to_unit, workers=2, progress_callback=lambda done, total: calls.append((done, total))
        )
        coordinator.run(FrameSampler(40.0, 10.0), lambda unit: None)

        assert calls == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]

    def test_emit_error_stops_run(self):
        """Test an exception from emit stops emission and propagates."""
        emitted = []

        def emit(unit):
            if unit.index == 3:
                raise PipelineAborted(ParseFailure("no text recognized", "", index=3))
            emitted.append(unit.index)

        coordinator = WorkCoordinator(to_unit, workers=2)
        with pytest.raises(PipelineAborted):
            coordinator.run(timestamps(20), emit)

        assert emitted == [0, 1, 2]

    def test_process_error_propagates(self):
        """Test an exception escaping the processing chain aborts the run."""

        def broken(timestamp):
            if timestamp.index == 2:
                raise RuntimeError("worker crashed")
            return to_unit(timestamp)

        emitted = []
        with pytest.raises(RuntimeError, match="worker crashed"):
            WorkCoordinator(broken, workers=2).run(timestamps(10), emitted.append)

        assert [u.index for u in emitted] == list(range(len(emitted)))
        assert len(emitted) <= 2
