"""
Webhook DLQ admin routes.

Provides operator endpoints for inspecting, replaying and pruning queued
webhook deliveries.
"""
from fastapi import APIRouter, Depends, Query, status

from webhook_dlq.dependencies.auth import require_admin
from webhook_dlq.dependencies.dlq import get_dlq_service
from webhook_dlq.models.webhook import WebhookEventType, WebhookStatus
from webhook_dlq.schemas.dlq import CleanupReport, DLQStats, FailedWebhook, ProcessingReport
from webhook_dlq.services.dlq_service import MAX_LIST_LIMIT, DeadLetterQueueService


router = APIRouter(
    prefix="/api/admin/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(require_admin)],
)


@router.get("/stats", response_model=DLQStats)
async def get_stats(service: DeadLetterQueueService = Depends(get_dlq_service)):
    """Queue counts for the monitoring dashboard."""
    return await service.get_stats()


@router.get("", response_model=list[FailedWebhook])
async def list_webhooks(
    status_filter: WebhookStatus | None = Query(WebhookStatus.DEAD_LETTER, alias="status"),
    event_type: WebhookEventType | None = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=MAX_LIST_LIMIT),
    service: DeadLetterQueueService = Depends(get_dlq_service)
):
    """
    List queued webhooks, newest first.
    
    Defaults to dead-lettered entries.
    """
    return await service.list_failed_webhooks(status=status_filter, event_type=event_type, limit=limit)


@router.post("/process", response_model=ProcessingReport)
async def process_due(
    limit: int | None = Query(None, ge=1, le=MAX_LIST_LIMIT),
    service: DeadLetterQueueService = Depends(get_dlq_service)
):
    """Run one retry batch now instead of waiting for the scheduler."""
    return await service.process_due_retries(limit)


@router.post("/cleanup", response_model=CleanupReport)
async def cleanup(service: DeadLetterQueueService = Depends(get_dlq_service)):
    """Delete abandoned entries and old delivered entries."""
    abandoned = await service.cleanup_abandoned()
    delivered = await service.cleanup_delivered()
    return CleanupReport(abandoned=abandoned, delivered=delivered)


@router.get("/{entry_id}", response_model=FailedWebhook)
async def get_webhook(entry_id: str, service: DeadLetterQueueService = Depends(get_dlq_service)):
    """Get one queued webhook."""
    return await service.get_webhook(entry_id)


@router.post("/{entry_id}/replay", response_model=FailedWebhook)
async def replay_webhook(entry_id: str, service: DeadLetterQueueService = Depends(get_dlq_service)):
    """Move a dead-lettered webhook back to pending_retry with a fresh attempt count."""
    return await service.replay(entry_id)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_webhook(entry_id: str, service: DeadLetterQueueService = Depends(get_dlq_service)):
    """Remove a webhook from the queue."""
    await service.delete_webhook(entry_id)
