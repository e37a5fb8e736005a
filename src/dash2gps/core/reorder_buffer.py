"""Hold out-of-order completions until they can be emitted in index order."""

import threading
from typing import Dict, List

from dash2gps.core.models import WorkUnit


class ReorderBuffer:
    """
    Mapping from sample index to completed WorkUnit with an emission cursor.

    ``put`` stores a completed unit; ``pop_ready`` removes and returns the
    run of consecutive units starting at the cursor and advances it. The
    buffer therefore never holds more than
    ``highest completed index - next_index + 1`` entries.
    """

    def __init__(self, start_index: int = 0):
        self._pending: Dict[int, WorkUnit] = {}
        self._next_index = start_index
        self._lock = threading.Lock()
        self.high_water = 0

    @property
    def next_index(self) -> int:
        """Index of the next unit to emit."""
        return self._next_index

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def put(self, unit: WorkUnit) -> None:
        """
        Store a completed unit.

        Raises:
            ValueError: If the index was already emitted or is already buffered
        """
        index = unit.index
        with self._lock:
            if index < self._next_index:
                raise ValueError(f"Sample {index} was already emitted")
            if index in self._pending:
                raise ValueError(f"Sample {index} is already buffered")

            self._pending[index] = unit
            self.high_water = max(self.high_water, len(self._pending))

    def pop_ready(self) -> List[WorkUnit]:
        """Remove and return consecutive units from the cursor onwards."""
        ready = []
        with self._lock:
            while self._next_index in self._pending:
                ready.append(self._pending.pop(self._next_index))
                self._next_index += 1
        return ready
