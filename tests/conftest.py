"""Pytest configuration and fixtures."""

import tempfile
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import cv2
import numpy as np
import pytest

from dash2gps.config.schemas import Dash2GpsConfig
from dash2gps.core.frame_fetcher import FrameSource, VideoInfo
from dash2gps.core.pipeline import GpsExtractor
from dash2gps.engines.base import BaseOCREngine, TextRegion


OVERLAY_DMS = {
    0: (51, 25, 46, 0, 19, 25),
    10: (51, 25, 43, 0, 19, 35),
    20: (51, 25, 40, 0, 19, 45),
    30: (51, 25, 37, 0, 19, 55),
}


class FakeFrameSource(FrameSource):
    """Uniform frames whose pixel value is the whole-second offset."""

    def __init__(
        self,
        missing: Iterable[float] = (),
        opened: Optional[List] = None,
        broken: Iterable[float] = (),
    ):
        self.missing = {float(m) for m in missing}
        self.broken = {float(b) for b in broken}
        self.closed = False
        if opened is not None:
            opened.append(self)

    def read_frame(self, offset_seconds: float) -> Optional[np.ndarray]:
        if offset_seconds in self.broken:
            raise OSError("decoder pipe broke")
        if offset_seconds in self.missing:
            return None
        value = int(round(offset_seconds)) % 256
        return np.full((480, 640, 3), value, dtype=np.uint8)

    def close(self) -> None:
        self.closed = True


class FakeEngine(BaseOCREngine):
    """OCR engine that looks up the text for a frame's offset."""

    def __init__(
        self,
        texts: Dict[int, str],
        delays: Optional[Dict[int, float]] = None,
        errors: Iterable[int] = (),
    ):
        super().__init__(confidence_threshold=0.0)
        self.texts = texts
        self.delays = delays or {}
        self.errors = set(errors)

    def _initialize(self) -> None:
        pass

    def _process_image(self, image: np.ndarray) -> List[TextRegion]:
        offset = int(image[0, 0, 0])
        if offset in self.delays:
            time.sleep(self.delays[offset])
        if offset in self.errors:
            raise RuntimeError("engine crashed")
        text = self.texts.get(offset, "")
        if not text:
            return []
        return [TextRegion(text=text, confidence=0.9, bbox=(0, 0, 100, 20))]

    @property
    def name(self) -> str:
        return "fake"


def fake_video_info(duration: float = 30.0, fps: float = 30.0) -> VideoInfo:
    return VideoInfo(
        path="drive.mp4",
        width=640,
        height=480,
        fps=fps,
        frame_count=int(duration * fps),
        duration_seconds=duration,
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_video(temp_dir):
    """Create a 3 second, 10 fps sample video with an overlay strip."""
    video_path = temp_dir / "dashcam.mp4"

    width, height = 640, 480
    fps = 10
    total_frames = 30

    fourcc = cv2.VideoWriter_fourcc(*"mp4v")
    writer = cv2.VideoWriter(str(video_path), fourcc, fps, (width, height))

    for i in range(total_frames):
        frame = np.full((height, width, 3), 90, dtype=np.uint8)
        frame[int(height * 0.9) :, :] = 0
        cv2.putText(
            frame,
            f"N51 25 {i:02d} E0 19 20",
            (10, height - 15),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.8,
            (255, 255, 255),
            2,
        )
        writer.write(frame)

    writer.release()

    return video_path


@pytest.fixture
def overlay_texts():
    """Overlay text per whole-second offset for a 30 s drive sampled every 10 s."""
    return {
        offset: f"{lat_d}°{lat_m}'{lat_s}\"N {lon_d}°{lon_m}'{lon_s}\"E"
        for offset, (lat_d, lat_m, lat_s, lon_d, lon_m, lon_s) in OVERLAY_DMS.items()
    }


@pytest.fixture
def expected_lines():
    """The output line for each offset in overlay_texts."""
    lines = {}
    for offset, (lat_d, lat_m, lat_s, lon_d, lon_m, lon_s) in OVERLAY_DMS.items():
        lat = lat_d + lat_m / 60 + lat_s / 3600
        lon = lon_d + lon_m / 60 + lon_s / 3600
        lines[offset] = f"{lat:.6f},{lon:.6f}"
    return lines


@pytest.fixture
def make_extractor():
    """Build a GpsExtractor wired to fake decode and OCR services."""

    def _make(
        texts: Dict[int, str],
        missing: Iterable[float] = (),
        delays: Optional[Dict[int, float]] = None,
        errors: Iterable[int] = (),
        opened: Optional[List] = None,
        broken: Iterable[float] = (),
        **overrides,
    ) -> GpsExtractor:
        config = Dash2GpsConfig().merge_with(
            {
                "frame": {"preprocess": False},
                **overrides,
            }
        )
        return GpsExtractor(
            config,
            source_factory=lambda info: FakeFrameSource(missing, opened, broken),
            engine_factory=lambda: FakeEngine(texts, delays, errors),
        )

    return _make

