"""Error taxonomy for dash2gps.

Fatal errors (``InvalidConfiguration``, ``SourceUnavailable``,
``PipelineAborted``) end the run. Per-sample errors (``FetchFailure``,
``ParseFailure``) are recorded on the sample's work unit and handled by the
emitter's failure policy.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from dash2gps.core.models import SampleTimestamp


class Dash2GpsError(Exception):
    """Base exception for dash2gps errors."""

    pass


class InvalidConfiguration(Dash2GpsError):
    """Bad interval, worker count, crop region or other setting."""

    pass


class SourceUnavailable(Dash2GpsError):
    """The video cannot be opened or probed at all."""

    pass


class SampleFailure(Dash2GpsError):
    """Base for failures that only affect a single sample."""

    pass


class FetchFailure(SampleFailure):
    """A frame (or its OCR text) could not be obtained for one timestamp."""

    def __init__(
        self,
        timestamp: "SampleTimestamp",
        cause: str,
        stage: str = "decode",
    ):
        self.timestamp = timestamp
        self.cause = cause
        self.stage = stage
        super().__init__(
            f"{stage} failed at {timestamp.offset_seconds:.2f}s "
            f"(sample {timestamp.index}): {cause}"
        )


class ParseFailure(SampleFailure):
    """OCR text could not be turned into a valid coordinate."""

    def __init__(self, reason: str, raw_text: str, index: Optional[int] = None):
        self.reason = reason
        self.raw_text = raw_text
        self.index = index
        super().__init__(f"{reason}: {raw_text!r}")


class PipelineAborted(Dash2GpsError):
    """A per-sample failure was escalated to fatal by the failure policy."""

    def __init__(self, failure: SampleFailure):
        self.failure = failure
        super().__init__(f"Run aborted: {failure}")
