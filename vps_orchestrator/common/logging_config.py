# -*- coding: utf-8 -*-
"""
Centralized logging configuration for the orchestrator.

Console output is human readable with coloured level tags, matching what an
operator watching an interactive install expects. An optional file handler
writes JSON-structured records for later inspection.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import click

ROOT_LOGGER_NAME = "vps_orchestrator"

_LEVEL_STYLES = {
    "DEBUG": {"fg": "cyan"},
    "INFO": {"fg": "green"},
    "WARNING": {"fg": "yellow", "bold": True},
    "ERROR": {"fg": "red"},
    "CRITICAL": {"fg": "red", "bold": True},
}

_RESERVED_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "message",
    ]
)


class JSONFormatter(logging.Formatter):
    """
    Formats log records as one JSON object per line.

    Fields: timestamp (ISO, UTC), level, logger, message, module, function,
    line, plus any ``extra`` fields passed by the caller.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """
    ``[LEVEL] message`` console formatter, coloured when writing to a TTY.
    """

    def __init__(self, use_color: bool = True):
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        tag = f"[{record.levelname}]"
        if self.use_color:
            tag = click.style(tag, **_LEVEL_STYLES.get(record.levelname, {}))
        return f"{tag} {message}"


def setup_logging(
    log_level: Optional[str] = None,
    log_file_path: Optional[Union[str, Path]] = None,
    enable_console: bool = True,
) -> logging.Logger:
    """
    Set up logging for the orchestrator.

    Args:
        log_level: Logging level name. Falls back to ``VPS_LOG_LEVEL`` and
            then INFO. Invalid names also fall back to INFO.
        log_file_path: Optional path for a JSON-structured log file. It
            receives DEBUG records whatever the console level.
        enable_console: Whether to log to the console.

    Returns:
        The package root logger.
    """
    if log_level is None:
        log_level = os.environ.get("VPS_LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, str(log_level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    # The file handler records everything; the console filters on its own level.
    logger.setLevel(logging.DEBUG if log_file_path else numeric_level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(
            ColorFormatter(use_color=sys.stderr.isatty())
        )
        logger.addHandler(console_handler)

    if log_file_path:
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    logger.debug(
        "Logging initialized",
        extra={"log_level": logging.getLevelName(numeric_level)},
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger below the package root logger.

    Args:
        name: Logger name (typically ``__name__``).
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
