"""Frame decoding and overlay cropping."""

import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Union

import cv2
import numpy as np

from dash2gps.core.errors import FetchFailure, InvalidConfiguration, SourceUnavailable
from dash2gps.core.models import CropRegion, RasterFrame, SampleTimestamp
from dash2gps.utils.image_utils import crop_frame, preprocess_overlay
from dash2gps.utils.logging_config import get_logger

SUPPORTED_FORMATS = {".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v", ".ts", ".mts"}

# Bottom tenth of the frame, where dashcams burn in their telemetry line
DEFAULT_CROP = CropRegion(0.0, 0.9, 1.0, 1.0)

_CROP_VALUE_RE = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)(%?)$")


@dataclass
class VideoInfo:
    """Properties of a probed video file."""

    path: str
    width: int
    height: int
    fps: float
    frame_count: int
    duration_seconds: float

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "frame_count": self.frame_count,
            "duration_seconds": self.duration_seconds,
        }


class FrameSource(ABC):
    """
    Decode service for a single video.

    ``read_frame`` returns the frame at or near ``offset_seconds`` as a BGR
    array, or ``None`` when the stream has no frame there.
    """

    @abstractmethod
    def read_frame(self, offset_seconds: float) -> Optional[np.ndarray]:
        """Decode the frame shown at ``offset_seconds``."""

    def close(self) -> None:
        """Release the decoder handle."""


def probe_video(video_path: Union[str, Path]) -> VideoInfo:
    """
    Check that a video can be processed and read its properties.

    Args:
        video_path: Path to video file

    Returns:
        VideoInfo for the file

    Raises:
        SourceUnavailable: If the file is missing, unsupported or unreadable
    """
    video_path = Path(video_path)

    if not video_path.exists():
        raise SourceUnavailable(f"Video file not found: {video_path}")

    if video_path.suffix.lower() not in SUPPORTED_FORMATS:
        raise SourceUnavailable(f"Unsupported format: {video_path.suffix}")

    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            raise SourceUnavailable(f"Could not open video: {video_path}")

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        fps = cap.get(cv2.CAP_PROP_FPS)
    finally:
        cap.release()

    if frame_count <= 0:
        raise SourceUnavailable(f"Video has no frames: {video_path}")

    if fps <= 0:
        raise SourceUnavailable(f"Could not determine video FPS: {video_path}")

    return VideoInfo(
        path=str(video_path),
        width=width,
        height=height,
        fps=fps,
        frame_count=frame_count,
        duration_seconds=frame_count / fps,
    )


class OpenCVFrameSource(FrameSource):
    """Frame source backed by ``cv2.VideoCapture``; not safe to share between threads."""

    def __init__(self, info: VideoInfo):
        self.info = info
        self._cap = cv2.VideoCapture(info.path)
        if not self._cap.isOpened():
            self._cap.release()
            raise SourceUnavailable(f"Could not open video: {info.path}")

    def _frame_index(self, offset_seconds: float) -> Optional[int]:
        frame_index = int(round(offset_seconds * self.info.fps))
        last_index = self.info.frame_count - 1
        if frame_index <= last_index:
            return frame_index
        # A sample landing exactly on the container duration maps one frame
        # past the end; use the final frame for it.
        if frame_index == last_index + 1:
            return last_index
        return None

    def read_frame(self, offset_seconds: float) -> Optional[np.ndarray]:
        frame_index = self._frame_index(offset_seconds)
        if frame_index is None:
            return None

        self._cap.set(cv2.CAP_PROP_POS_FRAMES, frame_index)
        ret, frame = self._cap.read()

        if not ret:
            return None
        return frame

    def close(self) -> None:
        self._cap.release()


def parse_crop_region(value: Union[str, Sequence[float], CropRegion, None]) -> CropRegion:
    """
    Build a CropRegion from configuration input.

    Accepts a CropRegion, a sequence of four fractions, or a string
    ``"left top right bottom"`` where each value is a fraction (``0.9``) or
    a percentage (``90%``). Pixel values are rejected so the crop stays
    resolution independent.

    Args:
        value: Crop specification (None gives the default crop)

    Returns:
        Validated CropRegion
    """
    if value is None:
        return DEFAULT_CROP

    if isinstance(value, CropRegion):
        return value

    if isinstance(value, str):
        parts = value.replace(",", " ").split()
        if len(parts) != 4:
            raise InvalidConfiguration(
                f"Crop must have four values (left top right bottom), got {value!r}"
            )
        fractions = []
        for part in parts:
            match = _CROP_VALUE_RE.match(part)
            if match is None:
                raise InvalidConfiguration(
                    f"Crop values must be fractions or percentages, got {part!r}"
                )
            number = float(match.group(1))
            fractions.append(number / 100.0 if match.group(2) else number)
        return CropRegion(*fractions)

    values = list(value)
    if len(values) != 4:
        raise InvalidConfiguration(
            f"Crop must have four values (left top right bottom), got {values!r}"
        )
    try:
        return CropRegion(*(float(v) for v in values))
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"Crop values must be numbers: {e}") from e


class FrameFetcher:
    """
    Fetch the overlay crop for a sample timestamp.

    Each worker thread gets its own frame source, since decoder handles
    keep seek state and cannot be shared.
    """

    def __init__(
        self,
        source_factory: Callable[[], FrameSource],
        region: CropRegion = DEFAULT_CROP,
        preprocess: bool = True,
        scale: float = 2.0,
        invert: bool = False,
    ):
        """
        Initialize frame fetcher.

        Args:
            source_factory: Opens a new frame source for the video
            region: Overlay crop rectangle (fractions of the frame)
            preprocess: Grayscale, upscale and binarize the crop
            scale: Upscale factor used when preprocessing
            invert: Invert the crop when preprocessing
        """
        self.source_factory = source_factory
        self.region = region
        self.preprocess = preprocess
        self.scale = scale
        self.invert = invert
        self.logger = get_logger()
        self._sources: Dict[int, FrameSource] = {}  # Thread ID -> frame source

    def _get_or_create_source(self) -> FrameSource:
        """Get or create the frame source for the current thread."""
        thread_id = threading.get_ident()

        if thread_id not in self._sources:
            self._sources[thread_id] = self.source_factory()
            self.logger.debug(f"Opened frame source for thread {thread_id}")

        return self._sources[thread_id]

    def fetch(self, timestamp: SampleTimestamp) -> RasterFrame:
        """
        Decode the frame for ``timestamp`` and crop the overlay.

        Args:
            timestamp: Sample to fetch

        Returns:
            RasterFrame holding the frame and its overlay crop

        Raises:
            FetchFailure: If the frame could not be decoded
        """
        try:
            source = self._get_or_create_source()
            frame = source.read_frame(timestamp.offset_seconds)
        except SourceUnavailable as e:
            raise FetchFailure(timestamp, str(e)) from e
        except Exception as e:
            self.logger.debug(f"Decode error on sample {timestamp.index}: {e}")
            raise FetchFailure(timestamp, f"decoder error: {e}") from e

        if frame is None or frame.size == 0:
            raise FetchFailure(timestamp, "no frame at this offset")

        try:
            cropped = crop_frame(frame, self.region)
            if cropped.size and self.preprocess:
                cropped = preprocess_overlay(cropped, scale=self.scale, invert=self.invert)
        except Exception as e:
            raise FetchFailure(timestamp, f"overlay cleanup failed: {e}") from e

        if cropped.size == 0:
            raise FetchFailure(timestamp, "crop region is empty for this frame")

        return RasterFrame(
            timestamp=timestamp,
            frame=frame,
            region=self.region,
            cropped=cropped,
        )

    def close(self) -> None:
        """Release every frame source opened so far."""
        for source in self._sources.values():
            source.close()
        self._sources.clear()
