"""Logging helpers for Inkwell backend routes.

Route loggers live under the ``inkwell.api`` namespace so the handlers
installed by ``inkwell.logging_config.setup_inkwell_logging`` pick them up.
"""

import logging


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a backend module."""
    if not name.startswith("inkwell"):
        name = f"inkwell.api.{name}"
    return logging.getLogger(name)
