"""
Structured logging configuration using structlog.

All logs are output as JSON with consistent context fields.
"""
import structlog
import logging
import sys

from webhook_dlq.config import settings


def add_service(logger, method_name, event_dict):
    """Stamp every event with the emitting service."""
    event_dict.setdefault("service", "webhook-dlq")
    return event_dict


def configure_logging(level: str | None = None):
    """Configure structlog for JSON output with context."""
    level_no = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    
    # Standard library loggers (sqlalchemy, arq) share stdout
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level_no,
    )
    # httpx logs every outbound POST; delivery outcomes are logged by the DLQ
    logging.getLogger("httpx").setLevel(logging.WARNING)
    
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    
    return structlog.get_logger()


logger = configure_logging()


def get_logger(**context):
    """
    Get a logger with additional context bound.
    
    Usage:
        log = get_logger(webhook_id=entry.id, event_type=entry.webhook_type)
        log.info("webhook_delivered", attempt=3)
    """
    return logger.bind(**context)
