"""Logger helpers shared across the package."""

from __future__ import annotations

import logging

ROOT_LOGGER = "segment_filters"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the package root logger."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str = "WARNING") -> None:
    """Attach a stream handler to the package logger.

    Only entry points (the CLI) call this; library code leaves handler setup
    to the application.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    if not any(getattr(h, "_segment_filters", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._segment_filters = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
