"""
Sentry configuration for error tracking.

Captures unhandled API exceptions and failed scheduler batches.
"""
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from webhook_dlq.config import settings
from webhook_dlq.logging_config import get_logger


log = get_logger(component="sentry")


def configure_sentry() -> bool:
    """
    Initialize Sentry with FastAPI and SQLAlchemy integrations.
    
    Returns False (and leaves Sentry disabled) when SENTRY_DSN is unset.
    """
    dsn = settings.SENTRY_DSN
    
    if not dsn:
        log.warning("sentry_disabled", reason="SENTRY_DSN not set")
        return False
    
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
        before_send=add_context,
        traces_sample_rate=0.1,
        environment=settings.ENVIRONMENT,
        release=settings.APP_VERSION,
    )
    
    log.info("sentry_initialized", environment=settings.ENVIRONMENT)
    return True


def add_context(event, hint):
    """Tag every event with the service name so DLQ errors are easy to filter."""
    event.setdefault("tags", {})["service"] = "webhook-dlq"
    return event


def capture_exception(exc_info=None):
    """
    Capture an exception to Sentry.
    
    Usage:
        try:
            await service.process_due_retries()
        except Exception:
            capture_exception()
            raise
    """
    if sentry_sdk.get_client().is_active():
        sentry_sdk.capture_exception(exc_info)
