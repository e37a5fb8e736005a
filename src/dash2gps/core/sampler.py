"""Sample timestamp scheduling."""

import math
from typing import Iterator

from dash2gps.core.errors import InvalidConfiguration
from dash2gps.core.models import SampleTimestamp

# Absorbs float error in duration / interval (0.3 / 0.1 == 2.9999999999999996)
_COUNT_EPSILON = 1e-9


def sample_count(duration: float, interval: float) -> int:
    """Number of samples taken from a video of ``duration`` seconds."""
    return int(math.floor(duration / interval + _COUNT_EPSILON)) + 1


class FrameSampler:
    """
    Lazy, restartable sequence of sampling instants.

    Yields ``SampleTimestamp(i, i * interval)`` for
    ``i in range(floor(duration / interval) + 1)``, so the first sample is
    always at time 0 and a video shorter than one interval still gets one
    sample.
    """

    def __init__(self, duration: float, interval: float):
        """
        Initialize sampler.

        Args:
            duration: Video duration in seconds (>= 0)
            interval: Seconds between samples (> 0)
        """
        if interval is None or not math.isfinite(interval) or interval <= 0:
            raise InvalidConfiguration(
                f"Sampling interval must be a positive number of seconds, got {interval!r}"
            )
        if duration is None or not math.isfinite(duration) or duration < 0:
            raise InvalidConfiguration(
                f"Video duration must be a non-negative number of seconds, got {duration!r}"
            )

        self.duration = float(duration)
        self.interval = float(interval)
        self._count = sample_count(self.duration, self.interval)

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[SampleTimestamp]:
        for index in range(self._count):
            yield SampleTimestamp(index=index, offset_seconds=index * self.interval)

    def __repr__(self) -> str:
        return (
            f"FrameSampler(duration={self.duration}, interval={self.interval}, "
            f"samples={self._count})"
        )
