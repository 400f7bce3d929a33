# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for Waypoint.

Engine modules log through ``logging.getLogger(__name__)`` and attach
workflow context (workflow_id, resume_token, server, ...) via ``extra``.
Both formatters render that context: JSON as top-level keys, text as a
trailing ``key=value`` list.

Handlers write to stderr. stdout belongs to the stdio protocol when the
engine is itself hosted as a tool server.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from pathlib import Path

ROOT_LOGGER = "waypoint"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName", "asctime"
])


def context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record through ``extra``"""
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, context fields at top level"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(context_fields(record))
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local runs"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = context_fields(record)
        if not fields:
            return line

        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{rendered}]{sep}{tail}"


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Get configured logger instance.

    Args:
        name: Logger name
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type (json or text)
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Replace handlers so reconfiguring does not duplicate output
    logger.handlers = []

    formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def configure_logging(config, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the package root logger from a Config"""
    return get_logger(
        ROOT_LOGGER,
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=log_file
    )


def log_event(
    logger: Union[logging.Logger, logging.LoggerAdapter],
    event: str,
    level: str = "INFO",
    **fields: Any
) -> None:
    """
    Log an engine event with structured context.

    Usage:
        log_event(logger, "Workflow paused", workflow_id=wf.id, resume_token=token)
    """
    getattr(logger, level.lower())(event, extra=fields)
