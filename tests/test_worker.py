"""
Scheduler job tests.
"""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from webhook_dlq import worker
from webhook_dlq.models.webhook import WebhookStatus


def test_retry_seconds():
    assert worker.retry_seconds(30) == {0, 30}
    assert worker.retry_seconds(15) == {0, 15, 30, 45}
    assert worker.retry_seconds(0) == set(range(60))
    assert worker.retry_seconds(600) == {0}


def test_worker_settings_schedule_both_jobs():
    scheduled = {job.coroutine for job in worker.WorkerSettings.cron_jobs}
    assert scheduled == {worker.process_webhook_retries, worker.cleanup_webhook_queue}


@pytest.mark.asyncio
async def test_process_job_returns_report(service, make_entry, target):
    await make_entry()
    
    result = await worker.process_webhook_retries({"dlq_service": service})
    
    assert result["processed"] == 1
    assert result["delivered"] == 1


@pytest.mark.asyncio
async def test_process_job_reports_and_reraises_store_failure(service, store, monkeypatch):
    store.find_many = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
    captured = []
    monkeypatch.setattr(worker, "capture_exception", lambda: captured.append(True))
    
    with pytest.raises(OperationalError):
        await worker.process_webhook_retries({"dlq_service": service})
    assert captured == [True]


@pytest.mark.asyncio
async def test_cleanup_job(service, make_entry, clock):
    await make_entry(created_at=clock() - timedelta(days=10))
    await make_entry(
        status=WebhookStatus.SUCCESS, next_retry_at=None, last_attempt_at=clock() - timedelta(days=2)
    )
    await make_entry()
    
    result = await worker.cleanup_webhook_queue({"dlq_service": service})
    
    assert result == {"abandoned": 1, "delivered": 1}
