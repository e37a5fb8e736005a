"""Data types passed between pipeline stages."""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import numpy as np

from dash2gps.core.errors import FetchFailure, InvalidConfiguration, ParseFailure


@dataclass(frozen=True)
class SampleTimestamp:
    """One sampling instant: ordinal index plus offset into the video."""

    index: int
    offset_seconds: float

    @property
    def timestamp_str(self) -> str:
        """Get offset as HH:MM:SS format."""
        hours = int(self.offset_seconds // 3600)
        minutes = int((self.offset_seconds % 3600) // 60)
        seconds = int(self.offset_seconds % 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class CropRegion:
    """Overlay rectangle as fractions of frame width and height."""

    left: float
    top: float
    right: float
    bottom: float

    def __post_init__(self):
        if not (0.0 <= self.left < self.right <= 1.0):
            raise InvalidConfiguration(
                f"Crop left/right must satisfy 0 <= left < right <= 1, "
                f"got {self.left}, {self.right}"
            )
        if not (0.0 <= self.top < self.bottom <= 1.0):
            raise InvalidConfiguration(
                f"Crop top/bottom must satisfy 0 <= top < bottom <= 1, "
                f"got {self.top}, {self.bottom}"
            )

    def to_pixels(self, width: int, height: int) -> Tuple[int, int, int, int]:
        """Return the (x, y, width, height) box for a frame of the given size."""
        x1 = int(round(self.left * width))
        y1 = int(round(self.top * height))
        x2 = int(round(self.right * width))
        y2 = int(round(self.bottom * height))
        return x1, y1, max(1, x2 - x1), max(1, y2 - y1)

    def as_list(self) -> List[float]:
        return [self.left, self.top, self.right, self.bottom]


@dataclass
class RasterFrame:
    """A decoded frame and the overlay crop taken from it."""

    timestamp: SampleTimestamp
    frame: np.ndarray
    region: CropRegion
    cropped: np.ndarray

    @property
    def width(self) -> int:
        return self.frame.shape[1]

    @property
    def height(self) -> int:
        return self.frame.shape[0]


@dataclass(frozen=True)
class Coordinate:
    """A validated position in decimal degrees."""

    latitude: float
    longitude: float
    index: Optional[int] = None

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class WorkUnit:
    """The outcome of processing one SampleTimestamp."""

    timestamp: SampleTimestamp
    coordinate: Optional[Coordinate] = None
    failure: Optional[Union[FetchFailure, ParseFailure]] = None

    def __post_init__(self):
        if (self.coordinate is None) == (self.failure is None):
            raise ValueError("WorkUnit needs exactly one of coordinate or failure")

    @property
    def index(self) -> int:
        return self.timestamp.index

    @property
    def ok(self) -> bool:
        return self.coordinate is not None
