"""Tesseract backend (pytesseract)."""

import shlex
from typing import List, Optional

import numpy as np
import pytesseract
from PIL import Image

from dash2gps.engines.base import OVERLAY_CHARSET, BaseOCREngine, TextRegion
from dash2gps.utils.image_utils import frame_to_rgb
from dash2gps.utils.logging_config import get_logger

# image_to_data reports -1 for block/paragraph/line rows that carry no word
_NO_WORD_CONF = -1


class TesseractEngine(BaseOCREngine):
    """
    Tesseract in single-line mode with a character whitelist.

    Dashcam overlays are one line of telemetry, so ``--psm 7`` plus a
    whitelist of the overlay characters is much more reliable than letting
    Tesseract guess the page layout.
    """

    DEFAULT_LANGUAGES = ["eng"]

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        confidence_threshold: float = 0.0,
        charset: str = OVERLAY_CHARSET,
        gpu: bool = False,
        page_segmentation_mode: int = 7,
    ):
        # Tesseract is CPU only; gpu is accepted for a uniform signature
        super().__init__(languages, confidence_threshold, charset=charset, gpu=False)
        self.page_segmentation_mode = page_segmentation_mode
        self.logger = get_logger()

    @property
    def name(self) -> str:
        return "tesseract"

    @property
    def lang(self) -> str:
        return "+".join(self.languages)

    @property
    def tesseract_config(self) -> str:
        """Extra command-line arguments passed to the tesseract binary."""
        args = ["--psm", str(self.page_segmentation_mode)]
        if self.charset:
            args += ["-c", f"tessedit_char_whitelist={self.charset}"]
        # pytesseract shlex-splits this string; the whitelist holds quotes
        return " ".join(shlex.quote(arg) for arg in args)

    def _initialize(self) -> None:
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as e:
            raise RuntimeError(f"Tesseract is not installed or not in PATH: {e}") from e

        self.logger.info(
            f"Using Tesseract {version} (lang={self.lang}, psm={self.page_segmentation_mode})"
        )

    def _process_image(self, image: np.ndarray) -> List[TextRegion]:
        data = pytesseract.image_to_data(
            Image.fromarray(frame_to_rgb(image)),
            lang=self.lang,
            config=self.tesseract_config,
            output_type=pytesseract.Output.DICT,
        )

        words = zip(
            data["text"], data["conf"], data["left"], data["top"], data["width"], data["height"]
        )

        regions = []
        for text, conf, left, top, width, height in words:
            text = str(text).strip()
            conf = float(conf)
            if not text or conf == _NO_WORD_CONF:
                continue
            regions.append(
                TextRegion(text=text, confidence=conf / 100.0, bbox=(left, top, width, height))
            )
        return regions
