"""End-to-end extraction: video in, ordered coordinate lines out."""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TextIO, Union

from dash2gps.config.schemas import Dash2GpsConfig
from dash2gps.core.coordinate_parser import CoordinateParser
from dash2gps.core.coordinator import WorkCoordinator
from dash2gps.core.emitter import ResultEmitter
from dash2gps.core.errors import FetchFailure, ParseFailure
from dash2gps.core.frame_fetcher import (
    FrameFetcher,
    FrameSource,
    OpenCVFrameSource,
    VideoInfo,
    parse_crop_region,
    probe_video,
)
from dash2gps.core.models import SampleTimestamp, WorkUnit
from dash2gps.core.ocr_worker import OcrWorker, create_engine
from dash2gps.core.sampler import FrameSampler
from dash2gps.engines.base import BaseOCREngine
from dash2gps.utils.logging_config import get_logger

SourceFactory = Callable[[VideoInfo], FrameSource]
EngineFactory = Callable[[], BaseOCREngine]


@dataclass
class ExtractionSummary:
    """Outcome of one extraction run."""

    video: VideoInfo
    samples: int
    emitted: int
    fetch_failures: int
    parse_failures: int
    max_buffered: int
    elapsed_seconds: float

    def to_dict(self) -> dict:
        return {
            "video": self.video.to_dict(),
            "samples": self.samples,
            "emitted": self.emitted,
            "fetch_failures": self.fetch_failures,
            "parse_failures": self.parse_failures,
            "max_buffered": self.max_buffered,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


class SampleProcessor:
    """The Fetch -> OCR -> Parse chain for one sample, run on worker threads."""

    def __init__(self, fetcher: FrameFetcher, ocr: OcrWorker, parser: CoordinateParser):
        self.fetcher = fetcher
        self.ocr = ocr
        self.parser = parser

    def __call__(self, timestamp: SampleTimestamp) -> WorkUnit:
        try:
            frame = self.fetcher.fetch(timestamp)
            result = self.ocr.recognize(frame)
        except FetchFailure as e:
            return WorkUnit(timestamp=timestamp, failure=e)

        try:
            coordinate = self.parser.parse(result.text, index=timestamp.index)
        except ParseFailure as e:
            return WorkUnit(timestamp=timestamp, failure=e)

        return WorkUnit(timestamp=timestamp, coordinate=coordinate)


class GpsExtractor:
    """
    Extract the GPS track burned into a dashcam video.

    The decode and OCR services can be swapped out through
    ``source_factory`` and ``engine_factory``; by default OpenCV and the
    configured OCR engine are used.
    """

    def __init__(
        self,
        config: Optional[Dash2GpsConfig] = None,
        source_factory: Optional[SourceFactory] = None,
        engine_factory: Optional[EngineFactory] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """
        Initialize extractor.

        Args:
            config: Configuration (defaults when None)
            source_factory: Opens a frame source for a probed video
            engine_factory: Creates an OCR engine instance
            progress_callback: Optional callback(completed, total)
        """
        self.config = config or Dash2GpsConfig()
        self.source_factory = source_factory or OpenCVFrameSource
        self.engine_factory = engine_factory or self._default_engine
        self.progress_callback = progress_callback
        self.logger = get_logger()

    def _default_engine(self) -> BaseOCREngine:
        ocr = self.config.ocr
        return create_engine(
            ocr.engine,
            languages=ocr.languages,
            confidence_threshold=ocr.confidence_threshold,
            charset=ocr.charset,
            page_segmentation_mode=ocr.page_segmentation_mode,
        )

    def probe(self, video_path: Union[str, Path]) -> VideoInfo:
        """Validate the video and read its properties."""
        return probe_video(video_path)

    def run(
        self,
        video_path: Union[str, Path],
        sink: TextIO,
        video_info: Optional[VideoInfo] = None,
    ) -> ExtractionSummary:
        """
        Extract coordinates from a video and write them to ``sink``.

        Args:
            video_path: Path to the dashcam video
            sink: Text stream receiving ``latitude,longitude`` lines
            video_info: Already probed properties (probed when None)

        Returns:
            ExtractionSummary for the run

        Raises:
            InvalidConfiguration: Before any frame is read
            SourceUnavailable: If the video cannot be opened
            PipelineAborted: If the failure policy aborts the run
        """
        config = self.config.validate()
        start_time = time.time()

        info = video_info or self.probe(video_path)
        sampler = FrameSampler(info.duration_seconds, config.sampling.interval)

        self.logger.info(
            f"Sampling {Path(info.path).name}: duration={info.duration_seconds:.1f}s, "
            f"interval={sampler.interval:g}s, samples={len(sampler)}"
        )

        fetcher = FrameFetcher(
            source_factory=lambda: self.source_factory(info),
            region=parse_crop_region(config.frame.crop),
            preprocess=config.frame.preprocess,
            scale=config.frame.scale,
            invert=config.frame.invert,
        )
        ocr = OcrWorker(self.engine_factory)
        parser = CoordinateParser(
            substitutions=config.parser.substitutions,
            use_default_substitutions=config.parser.use_default_substitutions,
        )
        emitter = ResultEmitter(
            sink,
            precision=config.output.precision,
            on_fetch_failure=config.output.on_fetch_failure,
            on_parse_failure=config.output.on_parse_failure,
        )
        coordinator = WorkCoordinator(
            SampleProcessor(fetcher, ocr, parser),
            workers=config.workers.threads,
            backlog=config.workers.backlog,
            progress_callback=self.progress_callback,
        )

        try:
            stats = coordinator.run(sampler, emitter.emit)
        finally:
            fetcher.close()
            ocr.cleanup()

        summary = ExtractionSummary(
            video=info,
            samples=len(sampler),
            emitted=emitter.stats.emitted,
            fetch_failures=emitter.stats.fetch_failures,
            parse_failures=emitter.stats.parse_failures,
            max_buffered=stats.max_buffered,
            elapsed_seconds=time.time() - start_time,
        )

        self.logger.info(
            f"Extracted {summary.emitted}/{summary.samples} coordinates "
            f"({summary.fetch_failures} fetch failures, {summary.parse_failures} parse failures)"
        )

        return summary
