"""OCR engine implementations."""

from dash2gps.engines.base import (
    OVERLAY_CHARSET,
    BaseOCREngine,
    OcrResult,
    TextRegion,
    join_regions,
)
from dash2gps.engines.easyocr_engine import EasyOCREngine
from dash2gps.engines.tesseract_engine import TesseractEngine

__all__ = [
    "BaseOCREngine",
    "OVERLAY_CHARSET",
    "OcrResult",
    "TextRegion",
    "join_regions",
    "EasyOCREngine",
    "TesseractEngine",
]
