"""Segment filter exceptions."""


class SegmentFilterError(Exception):
    """Base exception for segment filter errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConversionError(SegmentFilterError):
    """A node cannot be expressed in the requested wire format."""
