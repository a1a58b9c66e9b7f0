"""
Logging setup for Retort.

Configures the root ``retort`` logger with a console handler and a rotating
file handler, driven by :mod:`retort.config` settings.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from retort.config import Settings, settings as default_settings

STANDARD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def __init__(self, context: str):
        super().__init__()
        self.context = context

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "context": self.context,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _build_formatter(config: Settings, context: str) -> logging.Formatter:
    if config.log_format == "json":
        return JsonFormatter(context)
    return logging.Formatter(STANDARD_FORMAT)


def setup_logging(context: str = "cli", config: Optional[Settings] = None) -> None:
    """
    Configure logging for a Retort entry point.

    Args:
        context: Name of the entry point, used for the log file name
        config: Settings to use (defaults to the global settings)

    Raises:
        PermissionError: If the log directory cannot be created or written
    """
    config = config or default_settings
    level = config.log_level.upper()
    logger = logging.getLogger("retort")

    # Repeated setup (tests, in-process CLI invocations) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = _build_formatter(config, context)

    if config.log_console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    if config.log_file_enabled:
        log_dir = config.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(level)

    logger.propagate = False
    logger.debug(f"Logging configured for context={context}")
