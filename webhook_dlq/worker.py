"""
ARQ scheduler for the webhook DLQ.

Runs retry batches and queue cleanup on cron schedules:

    arq webhook_dlq.worker.WorkerSettings
"""
from arq import cron
from arq.connections import RedisSettings

from webhook_dlq.config import settings
from webhook_dlq.database import AsyncSessionLocal, engine
from webhook_dlq.logging_config import configure_logging, get_logger
from webhook_dlq.sentry_config import capture_exception, configure_sentry
from webhook_dlq.services.dlq_service import DeadLetterQueueService
from webhook_dlq.services.queue_store import WebhookQueueStore


log = get_logger(component="worker")


def retry_seconds(interval: int) -> set[int]:
    """Seconds of the minute on which the retry cron fires."""
    interval = min(max(interval, 1), 60)
    return set(range(0, 60, interval))


async def startup(ctx: dict):
    """Create the shared DLQ service for this worker process."""
    configure_logging()
    configure_sentry()
    ctx["dlq_service"] = DeadLetterQueueService(WebhookQueueStore(AsyncSessionLocal))
    log.info("worker_started", batch_size=settings.DLQ_BATCH_SIZE)


async def shutdown(ctx: dict):
    """Release database connections."""
    await engine.dispose()
    log.info("worker_stopped")


async def process_webhook_retries(ctx: dict) -> dict:
    """Deliver one batch of due webhooks."""
    service: DeadLetterQueueService = ctx["dlq_service"]
    try:
        report = await service.process_due_retries(settings.DLQ_BATCH_SIZE)
    except Exception:
        # Store outage: fail this run, the next cron tick tries again
        log.error("webhook_batch_failed", exc_info=True)
        capture_exception()
        raise
    return report.model_dump()


async def cleanup_webhook_queue(ctx: dict) -> dict:
    """Prune abandoned entries and old delivered entries."""
    service: DeadLetterQueueService = ctx["dlq_service"]
    try:
        abandoned = await service.cleanup_abandoned()
        delivered = await service.cleanup_delivered()
    except Exception:
        log.error("webhook_cleanup_failed", exc_info=True)
        capture_exception()
        raise
    return {"abandoned": abandoned, "delivered": delivered}


class WorkerSettings:
    """Settings for ARQ worker - use with 'arq webhook_dlq.worker.WorkerSettings'"""
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    on_startup = startup
    on_shutdown = shutdown
    functions = [process_webhook_retries, cleanup_webhook_queue]
    cron_jobs = [
        cron(
            process_webhook_retries,
            second=retry_seconds(settings.DLQ_RETRY_INTERVAL_SECONDS),
            unique=True,
        ),
        cron(cleanup_webhook_queue, hour={3}, minute={0}, second={0}, unique=True),
    ]
    job_timeout = 300
    max_tries = 1
