"""
Logging Configuration
Custom JSON Logger implementation for structured stdout logging.

Provides:
- CustomJsonFormatter: one JSON object per record, enriched from the request context
- setup_logging: YAML dictConfig loader with environment substitution
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone
from typing import Optional

import yaml

from .request_context import get_execution_id, get_trace_id

_STANDARD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class CustomJsonFormatter(logging.Formatter):
    """
    JSON Formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name (e.g. uvicorn.error, gateway.main)
      - message: Log message
      - trace_id: Trace ID of the request being served, if any
      - execution_id: Execution ID of the request being served, if any
    """

    def format(self, record: logging.LogRecord) -> str:
        trace_id = getattr(record, "trace_id", None) or get_trace_id()
        execution_id = getattr(record, "execution_id", None) or get_execution_id()

        log_data = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if trace_id:
            log_data["trace_id"] = trace_id
        if execution_id:
            log_data["execution_id"] = execution_id

        # Include extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_") and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config_path: str = "logging.yml", level: Optional[str] = None):
    """
    Load the YAML config, substitute environment variables, and initialize logging.
    """
    if not os.path.exists(config_path):
        logging.basicConfig(level=level or os.environ.get("LOG_LEVEL", "INFO"))
        return

    with open(config_path, "r", encoding="utf-8") as f:
        # Substitute environment variables using string.Template.
        # Supports ${LOG_LEVEL} format.
        template = string.Template(f.read())

        mapping = os.environ.copy()
        if level:
            mapping["LOG_LEVEL"] = level
        elif "LOG_LEVEL" not in mapping:
            mapping["LOG_LEVEL"] = "INFO"

        content = template.safe_substitute(mapping)
        config = yaml.safe_load(content)
        logging.config.dictConfig(config)
