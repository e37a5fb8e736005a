"""Tests for result emission and failure policy."""

import io
import logging

import pytest

from dash2gps.core.emitter import FailureAction, ResultEmitter, format_coordinate
from dash2gps.core.errors import FetchFailure, InvalidConfiguration, ParseFailure, PipelineAborted
from dash2gps.core.models import Coordinate, SampleTimestamp, WorkUnit


def ok_unit(index, latitude=51.4294444, longitude=0.3236111):
    return WorkUnit(
        timestamp=SampleTimestamp(index, index * 10.0),
        coordinate=Coordinate(latitude, longitude, index=index),
    )


def parse_failure_unit(index):
    return WorkUnit(
        timestamp=SampleTimestamp(index, index * 10.0),
        failure=ParseFailure("no text recognized", "###", index=index),
    )


def fetch_failure_unit(index):
    timestamp = SampleTimestamp(index, index * 10.0)
    return WorkUnit(timestamp=timestamp, failure=FetchFailure(timestamp, "no frame at this offset"))


class TestFormatCoordinate:
    """Tests for format_coordinate function."""

    def test_default_precision(self):
        """Test six decimal places by default."""
        assert format_coordinate(Coordinate(51.4294444, 0.3236111)) == "51.429444,0.323611"

    def test_custom_precision(self):
        """Test a custom number of decimal places."""
        assert format_coordinate(Coordinate(-33.8597222, 151.2111111), 3) == "-33.860,151.211"

    def test_zero_precision(self):
        """Test whole degrees."""
        assert format_coordinate(Coordinate(51.6, -0.4), 0) == "52,-0"


class TestFailureAction:
    """Tests for FailureAction enum."""

    def test_parse(self):
        """Test parsing action names."""
        assert FailureAction.parse("skip") is FailureAction.SKIP
        assert FailureAction.parse("WARN") is FailureAction.WARN
        assert FailureAction.parse(FailureAction.ABORT) is FailureAction.ABORT

    def test_parse_unknown(self):
        """Test unknown actions are rejected."""
        with pytest.raises(InvalidConfiguration):
            FailureAction.parse("retry")


class TestResultEmitter:
    """Tests for ResultEmitter class."""

    def test_writes_lines(self):
        """Test each coordinate becomes one line."""
        sink = io.StringIO()
        emitter = ResultEmitter(sink)

        emitter.emit(ok_unit(0))
        emitter.emit(ok_unit(1, 51.5, -0.1))

        assert sink.getvalue() == "51.429444,0.323611\n51.500000,-0.100000\n"
        assert emitter.stats.emitted == 2

    def test_precision(self):
        """Test the configured precision is used."""
        sink = io.StringIO()
        ResultEmitter(sink, precision=2).emit(ok_unit(0))
        assert sink.getvalue() == "51.43,0.32\n"

    @pytest.mark.parametrize("precision", [-1, 16])
    def test_invalid_precision(self, precision):
        """Test precision outside 0..15 is rejected."""
        with pytest.raises(InvalidConfiguration):
            ResultEmitter(io.StringIO(), precision=precision)

    def test_invalid_action(self):
        """Test an unknown failure action is rejected."""
        with pytest.raises(InvalidConfiguration):
            ResultEmitter(io.StringIO(), on_parse_failure="ignore")

    def test_warn_on_failure(self, caplog):
        """Test failures are logged as warnings and produce no line."""
        sink = io.StringIO()
        emitter = ResultEmitter(sink, on_parse_failure="warn")

        with caplog.at_level(logging.WARNING, logger="dash2gps"):
            emitter.emit(ok_unit(0))
            emitter.emit(parse_failure_unit(1))
            emitter.emit(ok_unit(2))

        assert sink.getvalue().count("\n") == 2
        assert emitter.stats.parse_failures == 1
        assert any("Skipping sample 1" in r.getMessage() for r in caplog.records)

    def test_skip_on_failure(self, caplog):
        """Test skipped failures are only logged at debug level."""
        sink = io.StringIO()
        emitter = ResultEmitter(sink, on_fetch_failure="skip")

        with caplog.at_level(logging.WARNING, logger="dash2gps"):
            emitter.emit(fetch_failure_unit(0))

        assert sink.getvalue() == ""
        assert emitter.stats.fetch_failures == 1
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_abort_on_failure(self):
        """Test abort raises PipelineAborted with the failure attached."""
        emitter = ResultEmitter(io.StringIO(), on_parse_failure="abort")

        with pytest.raises(PipelineAborted) as exc_info:
            emitter.emit(parse_failure_unit(0))

        assert isinstance(exc_info.value.failure, ParseFailure)

    def test_actions_per_failure_kind(self):
        """Test fetch and parse failures use their own actions."""
        emitter = ResultEmitter(
            io.StringIO(), on_fetch_failure="skip", on_parse_failure="abort"
        )
        emitter.emit(fetch_failure_unit(0))

        with pytest.raises(PipelineAborted):
            emitter.emit(parse_failure_unit(1))

        assert emitter.stats.failures == 2

    def test_out_of_order(self):
        """Test units must arrive in strictly increasing order."""
        emitter = ResultEmitter(io.StringIO())
        emitter.emit(ok_unit(1))

        with pytest.raises(ValueError):
            emitter.emit(ok_unit(0))
        with pytest.raises(ValueError):
            emitter.emit(ok_unit(1))


class TestWorkUnit:
    """Tests for WorkUnit."""

    def test_needs_exactly_one_outcome(self):
        """Test a unit holds either a coordinate or a failure."""
        timestamp = SampleTimestamp(0, 0.0)
        with pytest.raises(ValueError):
            WorkUnit(timestamp=timestamp)
        with pytest.raises(ValueError):
            WorkUnit(
                timestamp=timestamp,
                coordinate=Coordinate(0.0, 0.0),
                failure=ParseFailure("no text recognized", ""),
            )
