"""
DLQ service dependency for FastAPI routes.
"""
from webhook_dlq.database import AsyncSessionLocal
from webhook_dlq.services.dlq_service import DeadLetterQueueService
from webhook_dlq.services.queue_store import WebhookQueueStore


def get_dlq_service() -> DeadLetterQueueService:
    """Build a DLQ service over the application database."""
    return DeadLetterQueueService(WebhookQueueStore(AsyncSessionLocal))
