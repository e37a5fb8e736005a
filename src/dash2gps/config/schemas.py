"""Configuration schemas and dataclasses for dash2gps."""

import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from dash2gps.core.emitter import FailureAction
from dash2gps.core.errors import InvalidConfiguration
from dash2gps.core.frame_fetcher import DEFAULT_CROP, parse_crop_region
from dash2gps.core.ocr_worker import available_engines
from dash2gps.engines.base import OVERLAY_CHARSET

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class SamplingConfig:
    """Configuration for frame sampling."""
    interval: float = 10.0


@dataclass
class FrameConfig:
    """Configuration for overlay cropping and cleanup."""
    crop: List[float] = field(default_factory=DEFAULT_CROP.as_list)
    preprocess: bool = True
    invert: bool = False
    scale: float = 2.0


@dataclass
class OCRConfig:
    """Configuration for OCR processing."""
    engine: str = "tesseract"
    languages: Optional[List[str]] = None
    confidence_threshold: float = 0.0
    charset: str = OVERLAY_CHARSET
    page_segmentation_mode: int = 7


@dataclass
class ParserConfig:
    """Configuration for coordinate parsing."""
    substitutions: Dict[str, str] = field(default_factory=dict)
    use_default_substitutions: bool = True


@dataclass
class WorkerConfig:
    """Configuration for the worker pool."""
    threads: int = 4
    backlog: Optional[int] = None


@dataclass
class OutputConfig:
    """Configuration for output generation."""
    precision: int = 6
    on_fetch_failure: str = FailureAction.WARN.value
    on_parse_failure: str = FailureAction.WARN.value


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: Optional[str] = None
    rich_formatting: bool = True


@dataclass
class Dash2GpsConfig:
    """Main configuration container for dash2gps."""
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    frame: FrameConfig = field(default_factory=FrameConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    workers: WorkerConfig = field(default_factory=WorkerConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Dash2GpsConfig":
        """Load configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"Config file must hold a mapping: {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Dash2GpsConfig":
        """Create configuration from a dictionary."""
        try:
            return cls(
                sampling=SamplingConfig(**(data.get("sampling") or {})),
                frame=FrameConfig(**(data.get("frame") or {})),
                ocr=OCRConfig(**(data.get("ocr") or {})),
                parser=ParserConfig(**(data.get("parser") or {})),
                workers=WorkerConfig(**(data.get("workers") or {})),
                output=OutputConfig(**(data.get("output") or {})),
                logging=LoggingConfig(**(data.get("logging") or {})),
            )
        except TypeError as e:
            raise InvalidConfiguration(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def merge_with(self, overrides: dict) -> "Dash2GpsConfig":
        """Create a new config with overrides applied (None values are ignored)."""
        base = self.to_dict()

        def deep_merge(base_dict: dict, override_dict: dict) -> dict:
            result = base_dict.copy()
            for key, value in override_dict.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                elif value is not None:
                    result[key] = value
            return result

        merged = deep_merge(base, overrides)
        return Dash2GpsConfig.from_dict(merged)

    def validate(self) -> "Dash2GpsConfig":
        """
        Check every setting before any work starts.

        Raises:
            InvalidConfiguration: On the first invalid setting
        """
        interval = self.sampling.interval
        if not isinstance(interval, (int, float)) or not math.isfinite(interval) or interval <= 0:
            raise InvalidConfiguration(
                f"Sampling interval must be a positive number of seconds, got {interval!r}"
            )

        threads = self.workers.threads
        if not isinstance(threads, int) or threads < 1:
            raise InvalidConfiguration(f"Thread count must be at least 1, got {threads!r}")

        backlog = self.workers.backlog
        if backlog is not None and (not isinstance(backlog, int) or backlog < threads):
            raise InvalidConfiguration(
                f"Backlog must be an integer >= threads ({threads}), got {backlog!r}"
            )

        parse_crop_region(self.frame.crop)

        if not isinstance(self.frame.scale, (int, float)) or self.frame.scale <= 0:
            raise InvalidConfiguration(f"Scale must be positive, got {self.frame.scale!r}")

        if self.ocr.engine.lower() not in available_engines():
            available = ", ".join(available_engines())
            raise InvalidConfiguration(
                f"Unknown engine: {self.ocr.engine}. Available: {available}"
            )

        precision = self.output.precision
        if not isinstance(precision, int) or not 0 <= precision <= 15:
            raise InvalidConfiguration(f"Precision must be between 0 and 15, got {precision!r}")

        FailureAction.parse(self.output.on_fetch_failure)
        FailureAction.parse(self.output.on_parse_failure)

        if str(self.logging.level).upper() not in LOG_LEVELS:
            raise InvalidConfiguration(
                f"Log level must be one of {', '.join(LOG_LEVELS)}, got {self.logging.level!r}"
            )

        return self


def get_default_config() -> Dash2GpsConfig:
    """Get the default configuration."""
    return Dash2GpsConfig()


def load_config(config_path: Optional[Path] = None) -> Dash2GpsConfig:
    """Load configuration from file or return defaults."""
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise InvalidConfiguration(f"Config file not found: {config_path}")
        return Dash2GpsConfig.from_yaml(config_path)

    # Try to load from default locations
    default_locations = [
        Path("dash2gps.yaml"),
        Path("~/.dash2gps/config.yaml").expanduser(),
    ]

    for location in default_locations:
        if location.exists():
            return Dash2GpsConfig.from_yaml(location)

    return get_default_config()
