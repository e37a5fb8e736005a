"""OCR stage: overlay crop in, raw text out."""

import importlib.util
import shutil
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from dash2gps.core.errors import FetchFailure, InvalidConfiguration
from dash2gps.core.models import RasterFrame
from dash2gps.engines.base import OVERLAY_CHARSET, BaseOCREngine, OcrResult
from dash2gps.engines.easyocr_engine import EasyOCREngine
from dash2gps.engines.tesseract_engine import TesseractEngine
from dash2gps.utils.logging_config import get_logger


@dataclass
class EngineInfo:
    """Information about an OCR engine."""

    name: str
    display_name: str
    description: str
    installed: bool = False


_ENGINES: Dict[str, Type[BaseOCREngine]] = {
    "tesseract": TesseractEngine,
    "easyocr": EasyOCREngine,
}

_ENGINE_INFO: Dict[str, EngineInfo] = {
    "tesseract": EngineInfo(
        name="tesseract",
        display_name="Tesseract",
        description="Classic OCR, CPU-only, fast on single-line overlays (default)",
    ),
    "easyocr": EngineInfo(
        name="easyocr",
        display_name="EasyOCR",
        description="Deep-learning OCR, slower, copes better with noisy footage",
    ),
}


def available_engines() -> List[str]:
    """Get list of registered engine names."""
    return list(_ENGINES.keys())


def _is_installed(name: str) -> bool:
    if name == "tesseract":
        return shutil.which("tesseract") is not None
    return importlib.util.find_spec(name) is not None


def get_engines_info() -> List[EngineInfo]:
    """Get information about every registered engine."""
    result = []
    for name, info in _ENGINE_INFO.items():
        info.installed = _is_installed(name)
        result.append(info)
    return result


def create_engine(
    name: str,
    languages: Optional[List[str]] = None,
    confidence_threshold: float = 0.0,
    charset: str = OVERLAY_CHARSET,
    page_segmentation_mode: int = 7,
) -> BaseOCREngine:
    """
    Create an OCR engine by name.

    Args:
        name: Engine name ('tesseract' or 'easyocr')
        languages: Engine language codes (None for the engine default)
        confidence_threshold: Minimum region confidence
        charset: Characters the engine may emit
        page_segmentation_mode: Tesseract --psm value

    Returns:
        Uninitialized engine instance
    """
    engine_name = name.lower()
    if engine_name not in _ENGINES:
        available = ", ".join(_ENGINES.keys())
        raise InvalidConfiguration(f"Unknown engine: {name}. Available: {available}")

    if engine_name == "tesseract":
        return TesseractEngine(
            languages=languages,
            confidence_threshold=confidence_threshold,
            charset=charset,
            page_segmentation_mode=page_segmentation_mode,
        )

    return _ENGINES[engine_name](
        languages=languages,
        confidence_threshold=confidence_threshold,
        charset=charset,
    )


class OcrWorker:
    """
    Run OCR on overlay crops.

    Each worker thread has its own engine instance; engines hold native
    handles that are not safe to share. Engine errors are reported as
    ``FetchFailure`` with ``stage="ocr"`` and never retried.
    """

    def __init__(self, engine_factory: Callable[[], BaseOCREngine]):
        """
        Initialize OCR worker.

        Args:
            engine_factory: Creates a new engine instance
        """
        self.engine_factory = engine_factory
        self.logger = get_logger()
        self._engines: Dict[int, BaseOCREngine] = {}  # Thread ID -> OCR engine

    def _get_or_create_engine(self) -> BaseOCREngine:
        """Get or create an OCR engine for the current thread."""
        thread_id = threading.get_ident()

        if thread_id not in self._engines:
            engine = self.engine_factory()
            self._engines[thread_id] = engine
            self.logger.debug(f"Created {engine.name} engine for thread {thread_id}")

        return self._engines[thread_id]

    def recognize(self, frame: RasterFrame) -> OcrResult:
        """
        Recognize the overlay text of a fetched frame.

        Args:
            frame: Fetched frame with its overlay crop

        Returns:
            OcrResult with raw text

        Raises:
            FetchFailure: If the engine fails
        """
        timestamp = frame.timestamp
        try:
            engine = self._get_or_create_engine()
            result = engine.process_image(frame.cropped, index=timestamp.index)
        except Exception as e:
            self.logger.debug(f"OCR error on sample {timestamp.index}: {e}")
            raise FetchFailure(timestamp, f"OCR engine error: {e}", stage="ocr") from e

        self.logger.debug(
            f"Sample {timestamp.index} ({timestamp.timestamp_str}): "
            f"{result.text!r} conf={result.confidence:.2f}"
        )
        return result

    def cleanup(self):
        """Clean up resources (clear engine instances)."""
        self._engines.clear()
