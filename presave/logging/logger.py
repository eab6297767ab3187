# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for presave.

Every log line is a single JSON object so training runs can be grepped and
parsed without regexes. The four mandatory fields are:

  ts     — ISO 8601 UTC timestamp
  level  — log level name
  module — logger name (usually the module path)
  msg    — the formatted message

Anything passed through `extra=` is merged into the same object. That is how
the training loop attaches iteration counts, scores and accuracies:

  {"ts": "2026-...", "level": "INFO", "module": "presave.training.listeners.core",
   "msg": "Score at iteration", "iteration": 12, "score": 0.4127}

Module loggers hang off the `presave` package logger and propagate to it.
`configure_logging` sets the level and log file there once, and every module
picks it up. `get_logger` is the only way loggers get created in this package.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Attributes every LogRecord carries. Anything else on the record came from
# the caller's `extra` dict.
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "processName",
        "process",
        "threadName",
        "thread",
        "message",
        "msecs",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


PACKAGE_LOGGER_NAME = "presave"

# The file handler installed by configure_logging, replaced on reconfigure.
_configured_file_handler: Optional[logging.FileHandler] = None


class _StdoutHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """StreamHandler bound to whatever sys.stdout is at emit time, not at creation."""

    def __init__(self) -> None:
        super().__init__(stream=sys.stdout)

    @property  # type: ignore[override]
    def stream(self):  # type: ignore[no-untyped-def]
        return sys.stdout

    @stream.setter
    def stream(self, value) -> None:  # type: ignore[no-untyped-def]
        pass


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def _file_handler(log_file: Path) -> logging.FileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(log_file), encoding="utf-8")
    handler.setFormatter(JsonFormatter())
    return handler


def _package_logger() -> logging.Logger:
    """The `presave` logger that owns stdout output for the whole package."""
    package = logging.getLogger(PACKAGE_LOGGER_NAME)
    if not package.handlers:
        stdout_handler = _StdoutHandler()
        stdout_handler.setFormatter(JsonFormatter())
        package.addHandler(stdout_handler)
        package.setLevel(logging.INFO)
        package.propagate = False
    return package


def configure_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Apply a level and an optional log file to every presave logger.

    Module loggers carry no handlers or level of their own, so whatever is
    set on the package logger here reaches all of them, including loggers
    created at import time before this runs. Calling again replaces the
    previous level and log file.

    Raises:
        ValueError: If log_level is not a known level name.
    """
    global _configured_file_handler

    level = _resolve_log_level(log_level)
    package = _package_logger()
    package.setLevel(level)

    if _configured_file_handler is not None:
        package.removeHandler(_configured_file_handler)
        _configured_file_handler.close()
        _configured_file_handler = None

    if log_file is not None:
        _configured_file_handler = _file_handler(log_file)
        package.addHandler(_configured_file_handler)

    return package


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Loggers under `presave.` propagate to the package logger, which holds
    the stdout handler and the level set by configure_logging().

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. When None
                   the logger follows the package level.
        log_file: Optional path to an extra log file for this logger only.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    package = _package_logger()
    logger = logging.getLogger(name)
    if log_level is not None:
        logger.setLevel(_resolve_log_level(log_level))

    if logger is not package and not name.startswith(PACKAGE_LOGGER_NAME + "."):
        # Outside the package tree: nothing to propagate to.
        if not logger.handlers:
            stdout_handler = _StdoutHandler()
            stdout_handler.setFormatter(JsonFormatter())
            logger.addHandler(stdout_handler)
        logger.propagate = False

    # get_logger runs once per module import and again per CLI command;
    # don't stack file handlers on repeat calls.
    if log_file is not None:
        target = os.path.abspath(str(log_file))
        if not any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in logger.handlers
        ):
            logger.addHandler(_file_handler(log_file))

    return logger
