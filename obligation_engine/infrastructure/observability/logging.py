"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from obligation_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str | None = None) -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level or settings.log_level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_phase(
    phase: str,
    succeeded: bool,
    records: int,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log structured outcome of one scheduled pipeline phase"""
    logging.getLogger("obligation_engine.scheduler").log(
        logging.INFO if succeeded else logging.ERROR,
        "Phase completed" if succeeded else "Phase failed",
        extra={
            "step": phase,
            "outcome": "succeeded" if succeeded else "failed",
            "records": records,
            "duration_ms": duration_ms,
            "error": error,
        },
    )
