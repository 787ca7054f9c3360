"""Editing sessions over filter trees."""

from segment_filters.orchestrator.editor import FilterEditor, format_filter

__all__ = ["FilterEditor", "format_filter"]
