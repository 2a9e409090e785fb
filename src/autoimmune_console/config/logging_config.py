"""Logging configuration for the Autoimmune Reference Console."""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "autoimmune_console"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure the console's logger tree.

    Console output goes to stderr so tables printed by the CLI on stdout
    stay machine-readable. Calling this again replaces earlier handlers.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_file: Optional file that receives the same records.
        log_to_console: Whether to log to stderr.

    Returns:
        The root ``autoimmune_console`` logger.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    if log_to_console:
        logger.addHandler(_handler(logging.StreamHandler(sys.stderr), level))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(logging.FileHandler(log_file), level))

    # Request-level chatter only when debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Logger for a component, namespaced under ``autoimmune_console``."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
