"""Write ordered coordinates and apply the failure policy."""

from dataclasses import dataclass
from enum import Enum
from typing import TextIO, Union

from dash2gps.core.errors import FetchFailure, InvalidConfiguration, PipelineAborted
from dash2gps.core.models import Coordinate, WorkUnit
from dash2gps.utils.logging_config import get_logger


class FailureAction(str, Enum):
    """What to do with a sample that produced no coordinate."""

    SKIP = "skip"
    WARN = "warn"
    ABORT = "abort"

    @classmethod
    def parse(cls, value: Union[str, "FailureAction"]) -> "FailureAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(action.value for action in cls)
            raise InvalidConfiguration(
                f"Unknown failure action: {value!r}. Choose from: {choices}"
            ) from None


def format_coordinate(coordinate: Coordinate, precision: int = 6) -> str:
    """Format a coordinate as one `latitude,longitude` output line (no newline)."""
    return f"{coordinate.latitude:.{precision}f},{coordinate.longitude:.{precision}f}"


@dataclass
class EmitterStats:
    """Counters from one emitter."""

    emitted: int = 0
    fetch_failures: int = 0
    parse_failures: int = 0

    @property
    def failures(self) -> int:
        return self.fetch_failures + self.parse_failures


class ResultEmitter:
    """
    Stream coordinates as ``latitude,longitude`` lines.

    Units must arrive in strictly increasing index order. Failed samples
    never produce a line; they are skipped, logged, or abort the run
    depending on the action configured for their kind.
    """

    def __init__(
        self,
        sink: TextIO,
        precision: int = 6,
        on_fetch_failure: Union[str, FailureAction] = FailureAction.WARN,
        on_parse_failure: Union[str, FailureAction] = FailureAction.WARN,
    ):
        """
        Initialize result emitter.

        Args:
            sink: Text stream receiving coordinate lines
            precision: Decimal places written for each value
            on_fetch_failure: Action for decode/OCR failures
            on_parse_failure: Action for unparsable OCR text
        """
        if not isinstance(precision, int) or not 0 <= precision <= 15:
            raise InvalidConfiguration(f"Precision must be between 0 and 15, got {precision!r}")

        self.sink = sink
        self.precision = precision
        self.on_fetch_failure = FailureAction.parse(on_fetch_failure)
        self.on_parse_failure = FailureAction.parse(on_parse_failure)
        self.stats = EmitterStats()
        self.logger = get_logger()
        self._last_index = -1

    def format_coordinate(self, coordinate: Coordinate) -> str:
        """Format a coordinate as one output line (without newline)."""
        return format_coordinate(coordinate, self.precision)

    def emit(self, unit: WorkUnit) -> None:
        """
        Handle the next unit in index order.

        Raises:
            ValueError: If the unit is out of order or repeated
            PipelineAborted: If the failure policy says to abort
        """
        if unit.index <= self._last_index:
            raise ValueError(
                f"Sample {unit.index} received after sample {self._last_index}"
            )
        self._last_index = unit.index

        if unit.coordinate is not None:
            self.sink.write(self.format_coordinate(unit.coordinate) + "\n")
            self.sink.flush()
            self.stats.emitted += 1
            return

        failure = unit.failure
        if isinstance(failure, FetchFailure):
            self.stats.fetch_failures += 1
            action = self.on_fetch_failure
        else:
            self.stats.parse_failures += 1
            action = self.on_parse_failure

        message = f"Skipping sample {unit.index} at {unit.timestamp.timestamp_str}: {failure}"

        if action is FailureAction.ABORT:
            raise PipelineAborted(failure)
        if action is FailureAction.WARN:
            self.logger.warning(message)
        else:
            self.logger.debug(message)
