"""Image processing utilities for overlay OCR."""

from typing import TYPE_CHECKING

import cv2
import numpy as np

if TYPE_CHECKING:
    from dash2gps.core.models import CropRegion


def crop_frame(frame: np.ndarray, region: "CropRegion") -> np.ndarray:
    """
    Crop a fractional region from a frame.

    Args:
        frame: Input frame (H x W or H x W x C)
        region: Crop rectangle as fractions of width/height

    Returns:
        Cropped view of the frame
    """
    height, width = frame.shape[:2]
    x, y, w, h = region.to_pixels(width, height)
    return frame[y : y + h, x : x + w]


def preprocess_overlay(
    image: np.ndarray,
    scale: float = 2.0,
    invert: bool = False,
    binarize: bool = True,
) -> np.ndarray:
    """
    Clean up a telemetry overlay crop for OCR.

    Overlays are small, light text over moving footage; upscaling and
    binarizing gives OCR engines far cleaner glyphs.

    Args:
        image: Cropped overlay (BGR or grayscale)
        scale: Resize factor applied before thresholding
        invert: Invert intensities (for light text on dark background)
        binarize: Apply Otsu thresholding

    Returns:
        Preprocessed BGR image
    """
    if image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    else:
        gray = image

    if scale and scale != 1.0:
        gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)

    if invert:
        gray = cv2.bitwise_not(gray)

    if binarize:
        _, gray = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

    # Engines expect 3-channel BGR input
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


def frame_to_rgb(frame: np.ndarray) -> np.ndarray:
    """
    Convert a BGR frame to RGB.

    Args:
        frame: BGR numpy array

    Returns:
        RGB numpy array
    """
    return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
