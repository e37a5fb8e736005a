"""Utility modules for dash2gps."""

from dash2gps.utils.logging_config import setup_logging, get_logger
from dash2gps.utils.image_utils import (
    crop_frame,
    frame_to_rgb,
    preprocess_overlay,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "crop_frame",
    "frame_to_rgb",
    "preprocess_overlay",
]
