"""Dashcam GPS extractor - read overlay coordinates from dashcam video."""

__version__ = "0.1.0"
