"""Core components of the sampling-and-recognition pipeline."""

from dash2gps.core.coordinate_parser import CoordinateParser, parse_coordinate
from dash2gps.core.coordinator import WorkCoordinator
from dash2gps.core.emitter import FailureAction, ResultEmitter
from dash2gps.core.frame_fetcher import FrameFetcher, OpenCVFrameSource, probe_video
from dash2gps.core.ocr_worker import OcrWorker
from dash2gps.core.reorder_buffer import ReorderBuffer
from dash2gps.core.sampler import FrameSampler

__all__ = [
    "CoordinateParser",
    "parse_coordinate",
    "WorkCoordinator",
    "FailureAction",
    "ResultEmitter",
    "FrameFetcher",
    "OpenCVFrameSource",
    "probe_video",
    "OcrWorker",
    "ReorderBuffer",
    "FrameSampler",
]
