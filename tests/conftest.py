"""
Shared fixtures: a temp-file SQLite queue, a controllable clock and
mock delivery targets.
"""
from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from create_tables import create_all_tables
from webhook_dlq.models.webhook import WebhookEventType, WebhookQueueEntry, WebhookStatus
from webhook_dlq.services.delivery import WebhookDeliveryEngine
from webhook_dlq.services.dlq_service import DeadLetterQueueService
from webhook_dlq.services.queue_store import WebhookQueueStore


class FakeClock:
    """Clock the tests move by hand."""
    
    def __init__(self, now: datetime):
        self.now = now
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingTarget:
    """Mock webhook endpoint answering with a scripted list of status codes."""
    
    def __init__(self, *statuses: int):
        self.statuses = list(statuses) or [200]
        self.requests: list[httpx.Request] = []
    
    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.statuses) - 1)
        return httpx.Response(self.statuses[index], text="upstream says no" if self.statuses[index] >= 300 else "")


def delivery_engine(handler) -> WebhookDeliveryEngine:
    return WebhookDeliveryEngine(
        timeout=5.0,
        signing_secret="test-secret",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 20, 12, 0, 0))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions get their own connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
    await create_all_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return WebhookQueueStore(session_factory)


@pytest.fixture
def target():
    return RecordingTarget(200)


@pytest.fixture
def service(store, target, clock):
    return DeadLetterQueueService(
        store,
        engine=delivery_engine(target),
        concurrency=4,
        lease_seconds=60,
        jitter=False,
        clock=clock,
    )


@pytest.fixture
def make_entry(store, clock):
    """Insert an entry directly, bypassing enqueue validation."""
    
    async def _make(**overrides) -> WebhookQueueEntry:
        values = {
            "event_id": "evt-1",
            "webhook_type": WebhookEventType.SUBMISSION_CREATED,
            "payload": '{"submissionId": "sub-1"}',
            "webhook_url": "https://cfp.directory/api/federation/webhooks",
            "attempt": 0,
            "status": WebhookStatus.PENDING_RETRY,
            "next_retry_at": clock(),
            "created_at": clock(),
        }
        values.update(overrides)
        return await store.create(WebhookQueueEntry(**values))
    
    return _make


@pytest.fixture
def make_target():
    """Factory for scripted mock endpoints."""
    return RecordingTarget


@pytest.fixture
def engine_for():
    """Factory wrapping a mock handler in a delivery engine."""
    return delivery_engine
