"""
Response shapes of the dead letter queue.

Field names are snake_case in Python and serialize as camelCase, which is
the shape the admin monitoring dashboard consumes.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from webhook_dlq.models.webhook import WebhookEventType, WebhookQueueEntry, WebhookStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FailedWebhook(CamelModel):
    """Operator view of a queue entry."""
    id: str
    event_id: str
    type: WebhookEventType
    payload: str
    webhook_url: str
    attempt: int
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None
    next_retry_at: Optional[datetime] = None
    status: WebhookStatus
    created_at: datetime


class DLQStats(CamelModel):
    """Aggregate queue counts; oldest_pending is the oldest pending created_at."""
    pending_retry: int = 0
    dead_letter: int = 0
    successful_retries: int = 0
    oldest_pending: Optional[datetime] = None


class ProcessingReport(CamelModel):
    """Outcome counts of one process_due_retries call."""
    processed: int = 0
    delivered: int = 0
    retrying: int = 0
    dead_lettered: int = 0
    skipped: int = 0


class CleanupReport(CamelModel):
    abandoned: int = 0
    delivered: int = 0


def entry_to_failed_webhook(entry: WebhookQueueEntry) -> FailedWebhook:
    """Convert a WebhookQueueEntry row to FailedWebhook."""
    return FailedWebhook(
        id=entry.id,
        event_id=entry.event_id,
        type=entry.webhook_type,
        payload=entry.payload,
        webhook_url=entry.webhook_url,
        attempt=entry.attempt,
        last_error=entry.last_error,
        last_attempt_at=entry.last_attempt_at,
        next_retry_at=entry.next_retry_at,
        status=entry.status,
        created_at=entry.created_at,
    )
