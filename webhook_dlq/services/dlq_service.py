"""
Webhook Dead Letter Queue (DLQ)

Orchestrates queued webhook deliveries:
1. Enqueues webhooks produced by domain events
2. Retries due entries with exponential backoff
3. Moves permanently failing entries to dead letter storage
4. Lets operators inspect, replay and delete entries
5. Prunes abandoned and old delivered entries

The service holds no state between calls; everything lives in the store.
"""
import json
import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from webhook_dlq.config import settings
from webhook_dlq.constants import ABANDONED_THRESHOLD_MS
from webhook_dlq.exceptions import InvalidStateError, NotFoundError, WebhookValidationError
from webhook_dlq.logging_config import get_logger
from webhook_dlq.models.base import utcnow
from webhook_dlq.models.webhook import WebhookEventType, WebhookQueueEntry, WebhookStatus
from webhook_dlq.routes.metrics import (
    track_cleanup,
    track_delivery_attempt,
    track_webhook_enqueued,
    track_webhook_replayed,
    update_queue_depth,
)
from webhook_dlq.schemas.dlq import DLQStats, FailedWebhook, ProcessingReport, entry_to_failed_webhook
from webhook_dlq.services.delivery import WebhookDeliveryEngine, compute_transition
from webhook_dlq.services.queue_store import WebhookQueueStore, claimable


MAX_LIST_LIMIT = 500

# Minimum slack between the attempt deadline and the claim lease
LEASE_MARGIN_SECONDS = 5

_url_adapter = TypeAdapter(AnyHttpUrl)

# Outcome label per resulting status
_OUTCOMES = {
    WebhookStatus.SUCCESS: "delivered",
    WebhookStatus.PENDING_RETRY: "retrying",
    WebhookStatus.DEAD_LETTER: "dead_lettered",
}


def _serialize_payload(payload: Any) -> str:
    """Return the payload as a JSON string, rejecting anything that is not JSON."""
    if isinstance(payload, str):
        try:
            json.loads(payload)
        except ValueError as e:
            raise WebhookValidationError(f"Payload is not valid JSON: {e}") from e
        return payload
    
    try:
        return json.dumps(payload)
    except (TypeError, ValueError) as e:
        raise WebhookValidationError(f"Payload is not JSON serializable: {e}") from e


class DeadLetterQueueService:
    """Service for managing the webhook retry queue and its dead letters."""
    
    def __init__(
        self,
        store: WebhookQueueStore,
        engine: WebhookDeliveryEngine | None = None,
        concurrency: int | None = None,
        lease_seconds: int | None = None,
        jitter: bool | None = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.engine = engine or WebhookDeliveryEngine()
        self.concurrency = max(1, concurrency or settings.DLQ_CONCURRENCY)
        self.lease = timedelta(seconds=lease_seconds or settings.DLQ_CLAIM_LEASE_SECONDS)
        self.jitter = settings.DLQ_RETRY_JITTER if jitter is None else jitter
        self.clock = clock
        
        if self.lease.total_seconds() < self.engine.timeout + LEASE_MARGIN_SECONDS:
            raise ValueError(
                f"Claim lease ({self.lease.total_seconds()}s) must exceed the delivery timeout "
                f"({self.engine.timeout}s) by at least {LEASE_MARGIN_SECONDS}s"
            )
    
    # =========================================================================
    # Producer side
    # =========================================================================
    
    async def enqueue(
        self,
        event_id: str,
        event_type: WebhookEventType | str,
        payload: Any,
        webhook_url: str
    ) -> WebhookQueueEntry:
        """
        Queue a webhook for immediate delivery.
        
        Args:
            event_id: ID of the originating domain event
            event_type: One of WebhookEventType (or its string value)
            payload: JSON string, or a JSON-serializable object
            webhook_url: Absolute http(s) destination URL
            
        Returns:
            The new pending_retry entry, due now
            
        Raises:
            WebhookValidationError: on unknown type, bad URL or non-JSON payload
        """
        try:
            event_type = WebhookEventType(event_type)
        except ValueError as e:
            raise WebhookValidationError(f"Unknown webhook type: {event_type}") from e
        
        try:
            _url_adapter.validate_python(webhook_url)
        except ValidationError as e:
            raise WebhookValidationError(f"Invalid webhook URL: {webhook_url}") from e
        
        if not event_id:
            raise WebhookValidationError("event_id is required")
        
        now = self.clock()
        entry = WebhookQueueEntry(
            event_id=event_id,
            webhook_type=event_type,
            payload=_serialize_payload(payload),
            webhook_url=webhook_url,
            attempt=0,
            status=WebhookStatus.PENDING_RETRY,
            next_retry_at=now,
            created_at=now,
        )
        entry = await self.store.create(entry)
        
        track_webhook_enqueued(event_type.value)
        get_logger(webhook_id=entry.id, event_id=event_id, event_type=event_type.value).info(
            "webhook_enqueued"
        )
        return entry
    
    # =========================================================================
    # Retry processing
    # =========================================================================
    
    async def get_due_webhooks(self, limit: int | None = None) -> list[WebhookQueueEntry]:
        """Pending, unleased entries whose next_retry_at has passed, oldest-due first."""
        return await self.store.find_many(
            *claimable(self.clock()),
            order_by=[WebhookQueueEntry.next_retry_at.asc()],
            take=limit or settings.DLQ_BATCH_SIZE,
        )
    
    async def process_due_retries(self, limit: int | None = None) -> ProcessingReport:
        """
        Attempt every due entry once, up to `limit` entries.
        
        Entries run concurrently (bounded by `concurrency`) and independently.
        Delivery failures are recorded on the entries; store failures
        propagate and fail the whole call.
        """
        due = await self.get_due_webhooks(limit)
        report = ProcessingReport()
        if not due:
            return report
        
        semaphore = asyncio.Semaphore(self.concurrency)
        
        async def run(entry_id: str) -> WebhookStatus | None:
            async with semaphore:
                return await self._process_entry(entry_id)
        
        # Let every entry settle before surfacing a store failure
        results = await asyncio.gather(*(run(entry.id) for entry in due), return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            raise errors[0]
        
        for result in results:
            if result is None:
                report.skipped += 1
                continue
            report.processed += 1
            if result == WebhookStatus.SUCCESS:
                report.delivered += 1
            elif result == WebhookStatus.DEAD_LETTER:
                report.dead_lettered += 1
            else:
                report.retrying += 1
        
        get_logger().info("webhook_batch_processed", **report.model_dump())
        return report
    
    async def _process_entry(self, entry_id: str) -> WebhookStatus | None:
        """
        Claim, attempt and record one entry.
        
        Returns:
            Resulting status, or None if another worker holds the entry
        """
        now = self.clock()
        lease_until = now + self.lease
        claimed = await self.store.claim(entry_id, now, lease_until)
        if not claimed:
            get_logger(webhook_id=entry_id).info("webhook_claim_skipped")
            return None
        
        # Re-read under the claim so the attempt counter is current
        entry = await self.store.find_unique(entry_id)
        if entry is None:
            return None
        
        outcome = await self.engine.attempt_delivery(entry)
        patch = compute_transition(entry.attempt, outcome, self.clock(), jitter=self.jitter)
        recorded = await self.store.update(
            entry.id, WebhookQueueEntry.claimed_until == lease_until, **patch
        )
        if not recorded:
            # Lease expired and another worker took over; its attempt is the one recorded
            get_logger(webhook_id=entry.id).warning("webhook_claim_lost", attempt=patch["attempt"])
            return None
        
        status = patch["status"]
        event_type = entry.webhook_type.value
        track_delivery_attempt(event_type, _OUTCOMES[status])
        
        log = get_logger(webhook_id=entry.id, event_id=entry.event_id, event_type=event_type)
        if status == WebhookStatus.SUCCESS:
            log.info("webhook_delivered", attempt=patch["attempt"], status_code=outcome.status_code)
        elif status == WebhookStatus.DEAD_LETTER:
            log.warning("webhook_dead_lettered", attempt=patch["attempt"], error=patch["last_error"])
        else:
            log.info(
                "webhook_retry_scheduled",
                attempt=patch["attempt"],
                next_retry_at=patch["next_retry_at"].isoformat(),
                error=patch["last_error"],
            )
        return status
    
    # =========================================================================
    # Operator queries and actions
    # =========================================================================
    
    async def get_stats(self) -> DLQStats:
        """Counts per status and the creation time of the oldest pending entry."""
        pending_retry = await self.store.count(WebhookQueueEntry.status == WebhookStatus.PENDING_RETRY)
        dead_letter = await self.store.count(WebhookQueueEntry.status == WebhookStatus.DEAD_LETTER)
        successful = await self.store.count(WebhookQueueEntry.status == WebhookStatus.SUCCESS)
        oldest = await self.store.find_first(
            WebhookQueueEntry.status == WebhookStatus.PENDING_RETRY,
            order_by=[WebhookQueueEntry.created_at.asc()],
        )
        
        update_queue_depth(pending_retry, dead_letter, successful)
        return DLQStats(
            pending_retry=pending_retry,
            dead_letter=dead_letter,
            successful_retries=successful,
            oldest_pending=oldest.created_at if oldest else None,
        )
    
    async def list_failed_webhooks(
        self,
        status: WebhookStatus | None = WebhookStatus.DEAD_LETTER,
        event_type: WebhookEventType | None = None,
        limit: int = 50
    ) -> list[FailedWebhook]:
        """
        List entries for operator inspection, newest first.
        
        Args:
            status: Status filter (None for every status)
            event_type: Optional type filter
            limit: Maximum entries, capped at MAX_LIST_LIMIT
        """
        if limit < 1:
            raise WebhookValidationError(f"limit must be >= 1, got {limit}")
        
        criteria = []
        if status is not None:
            criteria.append(WebhookQueueEntry.status == WebhookStatus(status))
        if event_type is not None:
            criteria.append(WebhookQueueEntry.webhook_type == WebhookEventType(event_type))
        
        entries = await self.store.find_many(
            *criteria,
            order_by=[WebhookQueueEntry.created_at.desc()],
            take=min(limit, MAX_LIST_LIMIT),
        )
        return [entry_to_failed_webhook(entry) for entry in entries]
    
    async def get_webhook(self, entry_id: str) -> FailedWebhook:
        """Get one entry. Raises NotFoundError if absent."""
        entry = await self.store.find_unique(entry_id)
        if entry is None:
            raise NotFoundError(f"Webhook {entry_id} not found")
        return entry_to_failed_webhook(entry)
    
    async def replay(self, entry_id: str) -> FailedWebhook:
        """
        Re-queue a dead-lettered entry for a fresh cycle of attempts.
        
        Raises:
            NotFoundError: entry does not exist
            InvalidStateError: entry is not dead_letter
        """
        entry = await self.store.find_unique(entry_id)
        self._check_replayable(entry_id, entry)
        
        now = self.clock()
        patch = {
            "status": WebhookStatus.PENDING_RETRY,
            "attempt": 0,
            "next_retry_at": now,
            "claimed_until": None,
        }
        replayed = await self.store.update(
            entry_id, WebhookQueueEntry.status == WebhookStatus.DEAD_LETTER, **patch
        )
        if not replayed:
            # Deleted or replayed by someone else since the read
            self._check_replayable(entry_id, await self.store.find_unique(entry_id))
            raise InvalidStateError(f"Webhook {entry_id} changed while being replayed")
        
        for key, value in patch.items():
            setattr(entry, key, value)
        
        track_webhook_replayed()
        get_logger(webhook_id=entry_id, event_id=entry.event_id).info("webhook_replayed")
        return entry_to_failed_webhook(entry)
    
    @staticmethod
    def _check_replayable(entry_id: str, entry: WebhookQueueEntry | None):
        if entry is None:
            raise NotFoundError(f"Webhook {entry_id} not found")
        if entry.status != WebhookStatus.DEAD_LETTER:
            raise InvalidStateError(
                f"Webhook {entry_id} is {entry.status.value}; only dead_letter entries can be replayed"
            )
    
    async def delete_webhook(self, entry_id: str) -> None:
        """Delete one entry. Raises NotFoundError if absent."""
        if not await self.store.delete(entry_id):
            raise NotFoundError(f"Webhook {entry_id} not found")
        get_logger(webhook_id=entry_id).info("webhook_deleted")
    
    # =========================================================================
    # Cleanup
    # =========================================================================
    
    async def cleanup_abandoned(self) -> int:
        """Hard-delete every entry created more than ABANDONED_THRESHOLD_MS ago."""
        cutoff = self.clock() - timedelta(milliseconds=ABANDONED_THRESHOLD_MS)
        deleted = await self.store.delete_many(WebhookQueueEntry.created_at < cutoff)
        
        track_cleanup("abandoned", deleted)
        if deleted:
            get_logger().info("webhooks_cleaned_up", reason="abandoned", count=deleted)
        return deleted
    
    async def cleanup_delivered(self, retention_hours: int | None = None) -> int:
        """Delete success entries whose last attempt is older than the retention window."""
        hours = settings.DLQ_SUCCESS_RETENTION_HOURS if retention_hours is None else retention_hours
        cutoff = self.clock() - timedelta(hours=hours)
        deleted = await self.store.delete_many(
            WebhookQueueEntry.status == WebhookStatus.SUCCESS,
            WebhookQueueEntry.last_attempt_at < cutoff,
        )
        
        track_cleanup("delivered", deleted)
        if deleted:
            get_logger().info("webhooks_cleaned_up", reason="delivered", count=deleted)
        return deleted
