"""Bounded concurrent processing with in-order emission."""

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Set

from dash2gps.core.errors import InvalidConfiguration
from dash2gps.core.models import SampleTimestamp, WorkUnit
from dash2gps.core.reorder_buffer import ReorderBuffer
from dash2gps.utils.logging_config import get_logger


@dataclass
class CoordinatorStats:
    """Counters from one coordinator run."""

    dispatched: int = 0
    emitted: int = 0
    max_buffered: int = 0


class WorkCoordinator:
    """
    Run the per-sample chain on a fixed thread pool and emit results in order.

    Samples are submitted in index order to the executor's FIFO queue, so
    workers pick them up in index order and finish in any order. Finished
    units wait in a ReorderBuffer; after every completion the consecutive
    run starting at the emission cursor is handed to ``emit`` on the
    calling thread.

    At most ``backlog`` units are outstanding (dispatched, not yet emitted),
    which bounds both the executor queue and the ReorderBuffer.
    """

    def __init__(
        self,
        process: Callable[[SampleTimestamp], WorkUnit],
        workers: int = 4,
        backlog: Optional[int] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """
        Initialize work coordinator.

        Args:
            process: Fetch -> OCR -> parse chain for one sample
            workers: Number of worker threads (>= 1)
            backlog: Max outstanding units (default: 2 * workers, >= workers)
            progress_callback: Optional callback(completed, total)
        """
        if not isinstance(workers, int) or workers < 1:
            raise InvalidConfiguration(f"Worker count must be at least 1, got {workers!r}")

        if backlog is None:
            backlog = 2 * workers
        if backlog < workers:
            raise InvalidConfiguration(
                f"Backlog ({backlog}) must be at least the worker count ({workers})"
            )

        self.process = process
        self.workers = workers
        self.backlog = backlog
        self.progress_callback = progress_callback
        self.logger = get_logger()

    def run(
        self,
        timestamps: Iterable[SampleTimestamp],
        emit: Callable[[WorkUnit], None],
    ) -> CoordinatorStats:
        """
        Process every timestamp and emit the units in index order.

        Exceptions raised by ``emit`` or escaping ``process`` abort the run:
        queued units are cancelled, units already running finish but are
        not emitted, and the exception propagates.

        Args:
            timestamps: Samples in increasing index order, starting at 0
            emit: Receives each WorkUnit exactly once, in index order

        Returns:
            CoordinatorStats for the run
        """
        try:
            total = len(timestamps)  # type: ignore[arg-type]
        except TypeError:
            total = -1

        stats = CoordinatorStats()
        buffer = ReorderBuffer()
        pending: Set[Future] = set()
        iterator = iter(timestamps)
        exhausted = False

        self.logger.info(
            f"Processing {total if total >= 0 else 'all'} samples with {self.workers} workers"
        )

        with ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="dash2gps-worker",
        ) as executor:
            try:
                while True:
                    # Top up the queue in index order
                    while not exhausted and stats.dispatched - stats.emitted < self.backlog:
                        timestamp = next(iterator, None)
                        if timestamp is None:
                            exhausted = True
                            break
                        pending.add(executor.submit(self.process, timestamp))
                        stats.dispatched += 1

                    if not pending:
                        break

                    done, pending = wait(pending, return_when=FIRST_COMPLETED)

                    for future in done:
                        buffer.put(future.result())

                    stats.max_buffered = max(stats.max_buffered, len(buffer))

                    for unit in buffer.pop_ready():
                        emit(unit)
                        stats.emitted += 1

                        if self.progress_callback:
                            self.progress_callback(stats.emitted, total)
            except BaseException:
                for future in pending:
                    future.cancel()
                raise

        if len(buffer) or stats.emitted != stats.dispatched:
            raise RuntimeError(
                f"Samples left unemitted: dispatched={stats.dispatched}, "
                f"emitted={stats.emitted}, buffered={len(buffer)}"
            )

        self.logger.info(
            f"Processed {stats.emitted} samples (max {stats.max_buffered} waiting for reorder)"
        )

        return stats
