"""Utility helpers."""

from segment_filters.util.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
