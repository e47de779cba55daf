"""
Centralized logging configuration for the DQA checker.

JSON output is meant for scheduled/CLI runs whose logs are shipped
elsewhere; the plain formatter is for interactive use.
"""
from __future__ import annotations

import logging
import sys
from typing import TextIO

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "dqa-checker"


class ServiceJsonFormatter(JsonFormatter):
    """JSON formatter that stamps every record with the standard fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["name"] = record.name
        log_record["service"] = SERVICE_NAME
        if "message" not in log_record:
            log_record["message"] = record.getMessage()


def setup_logging(
    level: int = logging.INFO,
    format_as_json: bool = True,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure the root logger with a single stream handler.

    Args:
        level: Logging level (default: INFO)
        format_as_json: If True, use JSON formatting; otherwise a plain formatter
        stream: Target stream (default: stdout)

    Returns:
        The configured root logger.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)

    if format_as_json:
        formatter = ServiceJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    return root_logger
