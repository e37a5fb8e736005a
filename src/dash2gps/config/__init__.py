"""Configuration for dash2gps."""

from dash2gps.config.schemas import Dash2GpsConfig, get_default_config, load_config

__all__ = [
    "Dash2GpsConfig",
    "get_default_config",
    "load_config",
]
