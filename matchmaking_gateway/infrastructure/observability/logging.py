"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "matchmaking-gateway", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "matchmaking-gateway") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_call_event(
    request_id: str,
    step: str,
    session_id: Optional[int] = None,
    provider_call_id: Optional[str] = None,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log a call lifecycle step (initiation, webhook, billing) with its identifiers"""
    logging.log(
        level,
        f"Call {step}",
        extra={
            "request_id": request_id,
            "step": step,
            "session_id": session_id,
            "provider_call_id": provider_call_id,
            **fields,
        },
    )


def log_search(request_id: str, user_id: int, kind: str, result_count: int, duration_ms: float) -> None:
    """Log structured search/match outcome for analysis"""
    logging.info(
        "Ranking completed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": f"{kind}_complete",
            "result_count": result_count,
            "duration_ms": duration_ms,
        },
    )
