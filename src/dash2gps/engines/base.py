"""Common interface for the OCR engines that read the overlay strip."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

# Characters a degrees/minutes/seconds overlay can contain
OVERLAY_CHARSET = "0123456789.,°'\"NSEW"


@dataclass
class TextRegion:
    """One word (or text box) reported by an engine."""

    text: str
    confidence: float  # 0.0 - 1.0
    bbox: Tuple[int, int, int, int]  # left, top, width, height

    @property
    def x(self) -> int:
        return self.bbox[0]

    @property
    def y(self) -> int:
        return self.bbox[1]


@dataclass
class OcrResult:
    """Raw OCR output for one sample."""

    text: str = ""
    confidence: float = 0.0
    regions: List[TextRegion] = field(default_factory=list)
    index: int = 0
    processing_time_ms: float = 0.0

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())

    @classmethod
    def from_regions(
        cls,
        regions: List[TextRegion],
        index: int = 0,
        processing_time_ms: float = 0.0,
    ) -> "OcrResult":
        mean = sum(r.confidence for r in regions) / len(regions) if regions else 0.0
        return cls(
            text=join_regions(regions),
            confidence=mean,
            regions=regions,
            index=index,
            processing_time_ms=processing_time_ms,
        )


def join_regions(regions: List[TextRegion], line_tolerance: int = 20) -> str:
    """
    Rebuild overlay text from word boxes.

    Boxes whose tops are within ``line_tolerance`` pixels of the first box
    of a row belong to that row. Rows are returned top to bottom, words
    left to right.
    """
    rows: List[List[TextRegion]] = []
    for region in sorted(regions, key=lambda r: (r.y, r.x)):
        if rows and abs(region.y - rows[-1][0].y) <= line_tolerance:
            rows[-1].append(region)
        else:
            rows.append([region])

    return "\n".join(
        " ".join(r.text for r in sorted(row, key=lambda r: r.x)) for row in rows
    )


class BaseOCREngine(ABC):
    """
    An OCR backend restricted to the overlay character set.

    Engines are created per worker thread and initialized on first use, so
    constructing one is cheap and never touches the backend.
    """

    DEFAULT_LANGUAGES: List[str] = ["en"]

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        confidence_threshold: float = 0.0,
        charset: str = OVERLAY_CHARSET,
        gpu: bool = False,
    ):
        """
        Args:
            languages: Backend language codes (None for the engine default)
            confidence_threshold: Regions below this confidence are dropped
            charset: Characters the engine may emit (empty for no restriction)
            gpu: Use GPU acceleration where the backend supports it
        """
        self.languages = list(languages) if languages else list(self.DEFAULT_LANGUAGES)
        self.confidence_threshold = confidence_threshold
        self.charset = charset
        self.gpu = gpu
        self._ready = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of the engine."""

    @abstractmethod
    def _initialize(self) -> None:
        """Load the backend. Runs once, before the first image."""

    @abstractmethod
    def _process_image(self, image: np.ndarray) -> List[TextRegion]:
        """Return the text regions found in a BGR overlay image."""

    def ensure_initialized(self) -> None:
        if not self._ready:
            self._initialize()
            self._ready = True

    def process_image(self, image: np.ndarray, index: int = 0) -> OcrResult:
        """
        Read the overlay text in ``image``.

        Args:
            image: BGR overlay crop
            index: Sample index the image belongs to

        Returns:
            OcrResult with regions below the confidence threshold removed
        """
        self.ensure_initialized()

        started = time.perf_counter()
        regions = [
            r for r in self._process_image(image) if r.confidence >= self.confidence_threshold
        ]
        elapsed_ms = (time.perf_counter() - started) * 1000

        return OcrResult.from_regions(regions, index=index, processing_time_ms=elapsed_ms)
