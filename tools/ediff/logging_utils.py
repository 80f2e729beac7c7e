"""Logging helpers shared across modules."""

from __future__ import annotations

import io
import logging
import sys
import threading
from pathlib import Path

from .constants import (
    ACCEPTED_LOG_LEVELS,
    COMMAND_LOG_LIMIT,
    LOG_FORMAT,
    LOGGER_NAME,
)


logger = logging.getLogger(LOGGER_NAME)

CURRENT_LOG_PATH: Path | None = None
STDERR_HANDLER: logging.Handler | None = None
SETUP_LOCK = threading.Lock()


def resolve_log_level(level_name: str) -> int:
    name = level_name.upper()
    if name == "WARN":
        name = "WARNING"
    level_value = getattr(logging, name, None)
    if isinstance(level_value, int):
        return level_value
    valid_levels = ", ".join(ACCEPTED_LOG_LEVELS)
    raise ValueError(
        f"Invalid log level: {level_name}. Valid levels are: {valid_levels}"
    )


def setup_logging(level_name: str, log_path: Path | None = None) -> None:
    """Route the ediff logger to stderr and, optionally, to a log file.

    Stdout is never used: it belongs to the differencing program. Calling
    this again replaces the handlers installed by the previous call.
    """
    global CURRENT_LOG_PATH, STDERR_HANDLER
    numeric_level = resolve_log_level(level_name)

    with SETUP_LOCK:
        for handler in list(logger.handlers):
            base_filename = getattr(handler, "baseFilename", None)
            is_previous_file = (
                isinstance(handler, logging.FileHandler)
                and CURRENT_LOG_PATH is not None
                and base_filename == str(CURRENT_LOG_PATH)
            )
            if handler is STDERR_HANDLER or is_previous_file:
                logger.removeHandler(handler)
                handler.close()

        logger.setLevel(numeric_level)
        logger.propagate = False

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(stderr_handler)
        STDERR_HANDLER = stderr_handler
        CURRENT_LOG_PATH = None

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)
            CURRENT_LOG_PATH = log_path

    if log_path is not None:
        try:
            log_path.chmod(0o600)
        except OSError:  # pragma: no cover - permissions vary by platform
            logger.debug("Unable to enforce permissions on %s", log_path)


def flush_std_streams() -> None:
    """Flush Python-level stdio so buffered text is not lost across a fork."""
    for stream in (sys.stdout, sys.stderr):
        if stream is None:
            continue
        try:
            stream.flush()
        except (AttributeError, ValueError, io.UnsupportedOperation):
            # Closed or detached streams have nothing left to flush.
            continue


def truncate_for_log(text: str, limit: int = COMMAND_LOG_LIMIT) -> str:
    if len(text) <= limit:
        return text
    omitted = len(text) - limit
    return f"{text[:limit]}... (truncated {omitted} chars)"


def decode_output(data: bytes) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
