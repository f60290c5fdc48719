"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from lending_core.config import settings

QUIET_LOGGERS = ("httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """
    Configure structured JSON logging on the root logger.

    Per-request lines from httpx are limited to warnings.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_wizard_event(user_id: str, loan_type: str, event: str, step: int, **details: Any) -> None:
    """Log a wizard transition with the step it left from"""
    logging.info(
        "Wizard event handled",
        extra={
            "user_id": user_id,
            "loan_type": loan_type,
            "event": event,
            "step": step,
            **details,
        },
    )


def log_submission(
    user_id: str,
    loan_type: str,
    succeeded: bool,
    duration_ms: float,
    application_id: str | None = None,
    error_category: str | None = None,
) -> None:
    """Log structured submission outcome for analysis"""
    logging.info(
        "Application submission completed",
        extra={
            "user_id": user_id,
            "loan_type": loan_type,
            "outcome": "submitted" if succeeded else "failed",
            "application_id": application_id,
            "error_category": error_category,
            "duration_ms": duration_ms,
        },
    )
