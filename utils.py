"""Utility functions for the reseller ledger."""
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict
from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOGGER_NAME = "reseller_ledger"


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter for Cloud Logging compatibility."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON for Cloud Logging."""
        log_entry: Dict[str, Any] = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry)


def is_cloud_environment() -> bool:
    """Check if running in a cloud environment (Cloud Run, GKE, etc.)."""
    # Cloud Run sets K_SERVICE, GKE sets KUBERNETES_SERVICE_HOST
    return bool(
        os.getenv("K_SERVICE")
        or os.getenv("KUBERNETES_SERVICE_HOST")
        or os.getenv("CLOUD_RUN_JOB")
    )


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Set up logging with environment-appropriate handler.

    In cloud environments (Cloud Run, GKE), uses JSON structured logging.
    In local environments, uses Rich console logging.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    logger.handlers.clear()

    if is_cloud_environment():
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler = RichHandler(console=console)
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra_fields: Any,
) -> None:
    """Log a message with additional structured context fields.

    Args:
        logger: The logger to use
        level: Log level (e.g., logging.INFO)
        message: The log message
        **extra_fields: Additional fields to include in structured logs
    """
    record = logger.makeRecord(
        logger.name,
        level,
        "(unknown)",
        0,
        message,
        (),
        None,
    )
    record.extra_fields = extra_fields
    logger.handle(record)

def format_currency(value: float) -> str:
    if value < 0:
        return f"-${abs(value):,.2f}"
    return f"${value:,.2f}"

def format_percentage(value: float) -> str:
    return f"{value * 100:.2f}%"

def format_days(days: int) -> str:
    return "1 day" if days == 1 else f"{days} days"
