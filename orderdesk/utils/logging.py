"""
Structured logging for the ordering desk.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional
from orderdesk.config import get_config


config = get_config()


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra"):
            log_obj.update(record.extra)

        return json.dumps(log_obj, default=str)


def setup_logging(name: str = __name__) -> logging.Logger:
    """Setup and return a configured logger."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.LOG_LEVEL))

    # Modules call this at import time; only attach handlers once
    if logger.handlers:
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, config.LOG_LEVEL))
    console_handler.setFormatter(logging.Formatter(config.LOG_FORMAT))
    logger.addHandler(console_handler)

    # File handler with structured JSON
    if config.LOG_FILE:
        file_handler = logging.FileHandler(config.LOG_FILE)
        file_handler.setLevel(getattr(logging, config.LOG_LEVEL))
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


def log_sync_event(
    logger: logging.Logger,
    category: str,
    status: str,
    rows_written: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log the outcome of a background sync with context."""
    extra = {
        "type": "sync",
        "category": category,
        "status": status,
        "rows_written": rows_written,
    }
    if error:
        extra["error"] = error

    if status == "failed":
        logger.error(
            f"Sync of {category} failed after {rows_written} rows: {error}",
            extra={"extra": extra}
        )
    elif status == "ok":
        logger.info(
            f"Synced {category} ({rows_written} rows)",
            extra={"extra": extra}
        )
    else:
        logger.debug(
            f"Sync of {category} {status}",
            extra={"extra": extra}
        )


def log_data_warning(
    logger: logging.Logger,
    hazard: str,
    explanation: str,
) -> None:
    """Log a data-quality hazard that is accepted rather than rejected."""
    extra = {
        "type": "data_warning",
        "hazard": hazard,
        "explanation": explanation,
    }
    logger.warning(
        f"Data warning: {hazard} ({explanation})",
        extra={"extra": extra}
    )
