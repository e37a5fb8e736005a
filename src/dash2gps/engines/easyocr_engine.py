"""EasyOCR backend, installed with the ``easyocr`` extra."""

from typing import List, Optional

import numpy as np

from dash2gps.engines.base import OVERLAY_CHARSET, BaseOCREngine, TextRegion
from dash2gps.utils.image_utils import frame_to_rgb
from dash2gps.utils.logging_config import get_logger


class EasyOCREngine(BaseOCREngine):
    """
    Deep-learning OCR; slower than Tesseract but steadier on noisy footage.

    The ``easyocr`` package (and its torch dependency) is imported only
    when the first image is processed.
    """

    DEFAULT_LANGUAGES = ["en"]

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        confidence_threshold: float = 0.0,
        charset: str = OVERLAY_CHARSET,
        gpu: bool = False,
    ):
        super().__init__(languages, confidence_threshold, charset=charset, gpu=gpu)
        self.logger = get_logger()
        self._reader = None

    @property
    def name(self) -> str:
        return "easyocr"

    def _initialize(self) -> None:
        import easyocr

        self.logger.info(f"Loading EasyOCR models for {', '.join(self.languages)} (gpu={self.gpu})")
        self._reader = easyocr.Reader(self.languages, gpu=self.gpu, verbose=False)

    def _process_image(self, image: np.ndarray) -> List[TextRegion]:
        detections = self._reader.readtext(
            frame_to_rgb(image),
            allowlist=self.charset or None,
            paragraph=False,
        )

        regions = []
        for corners, text, confidence in detections:
            points = np.asarray(corners)
            left, top = points.min(axis=0)
            right, bottom = points.max(axis=0)
            regions.append(
                TextRegion(
                    text=text,
                    confidence=float(confidence),
                    bbox=(int(left), int(top), int(right - left), int(bottom - top)),
                )
            )
        return regions
