"""Logging setup utilities for lancenter.

Configures logging for the whole application based on the logging
configuration settings.
"""

from __future__ import annotations

import logging
import sys

from lancenter.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure logging for the lancenter application.

    Sets up the ``lancenter`` logger with the specified level, format,
    and optional file handler. Calling it again replaces the handlers
    installed by the previous call, so log lines are never duplicated.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
    """
    if config is None:
        config = LoggingConfig()

    package_logger = logging.getLogger("lancenter")
    package_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    # Replace handlers from an earlier call instead of stacking them
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    package_logger.info("Logging initialized at %s level", config.level)
