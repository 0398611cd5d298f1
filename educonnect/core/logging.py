"""Structured logging configuration.

JSON-formatted logs for production (one object per line, ready for a log
aggregator) and a readable line format for local development. Request and
user context passed through ``extra`` is copied into the JSON payload.
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import traceback

# Attributes copied from ``extra`` into JSON output
CONTEXT_FIELDS = (
    "request_id", "user_id", "owner_id", "user_type", "email", "method", "path",
    "status_code", "duration_ms", "operation", "error_type", "model",
)

NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3", "google.auth", "httpx")


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        for attr in CONTEXT_FIELDS:
            if hasattr(record, attr):
                log_obj[attr] = getattr(record, attr)

        return json.dumps(log_obj, default=str)


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that adds a fixed context to every message.

    Example:
        >>> logger = ContextLogger(base_logger, {"request_id": "abc123"})
        >>> logger.info("Processing request")
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to use JSON formatter (True for production)

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = JSONFormatter()
    else:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        formatter = logging.Formatter(fmt)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # SQL echo and SDK transport chatter only at DEBUG
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
        )

    return root_logger


def get_logger(name: str, context: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """Get a logger, wrapped in a ContextLogger when context is given.

    Example:
        >>> logger = get_logger(__name__, {"service": "chat"})
        >>> logger.info("Reply stored", extra={"owner_id": "abc"})
    """
    logger = logging.getLogger(name)

    if context:
        return ContextLogger(logger, context)

    return logger


class LogTimer:
    """Context manager for timing operations and logging duration.

    Example:
        >>> with LogTimer(logger, "completion_call"):
        ...     reply = await client.complete(...)
        # Logs: "completion_call completed in 812.4ms"
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time: Optional[datetime] = None

    def __enter__(self):
        self.start_time = datetime.now(timezone.utc)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            duration = (datetime.now(timezone.utc) - self.start_time).total_seconds() * 1000

            if exc_type:
                self.logger.warning(
                    f"{self.operation} failed after {duration:.1f}ms: {exc_type.__name__}",
                    extra={"operation": self.operation, "duration_ms": duration},
                )
            else:
                self.logger.info(
                    f"{self.operation} completed in {duration:.1f}ms",
                    extra={"operation": self.operation, "duration_ms": duration}
                )
        return False


# Initialize logging on module import (reconfigured by main.py)
setup_logging(
    level="INFO",
    json_format=False
)
