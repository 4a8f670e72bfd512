"""
Admin API tests over an in-process ASGI transport.
"""
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from webhook_dlq.config import settings
from webhook_dlq.database import get_db
from webhook_dlq.dependencies.dlq import get_dlq_service
from webhook_dlq.main import app
from webhook_dlq.models.webhook import WebhookStatus


ADMIN_KEY = "admin-test-key"
AUTH = {"Authorization": f"Bearer {ADMIN_KEY}"}


@pytest_asyncio.fixture
async def client(service, session_factory, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", ADMIN_KEY)
    
    async def override_db():
        async with session_factory() as session:
            yield session
    
    app.dependency_overrides[get_dlq_service] = lambda: service
    app.dependency_overrides[get_db] = override_db
    
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    
    app.dependency_overrides.clear()


# =============================================================================
# Auth
# =============================================================================

@pytest.mark.asyncio
async def test_admin_routes_require_credentials(client):
    response = await client.get("/api/admin/webhooks/stats")
    
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "http_error"


@pytest.mark.asyncio
async def test_admin_routes_reject_wrong_key(client):
    response = await client.get("/api/admin/webhooks/stats", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_routes_closed_without_configured_key(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", None)
    
    response = await client.get("/api/admin/monitoring", headers=AUTH)
    assert response.status_code == 403


# =============================================================================
# Webhook routes
# =============================================================================

@pytest.mark.asyncio
async def test_stats_shape(client, make_entry):
    await make_entry()
    await make_entry(status=WebhookStatus.DEAD_LETTER, next_retry_at=None)
    
    response = await client.get("/api/admin/webhooks/stats", headers=AUTH)
    
    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"pendingRetry", "deadLetter", "successfulRetries", "oldestPending"}
    assert body["pendingRetry"] == 1
    assert body["deadLetter"] == 1
    assert body["oldestPending"].startswith("2026-01-20T12:00:00")


@pytest.mark.asyncio
async def test_list_defaults_to_dead_letter(client, make_entry):
    dead = await make_entry(status=WebhookStatus.DEAD_LETTER, next_retry_at=None, last_error="HTTP 410")
    await make_entry()
    
    response = await client.get("/api/admin/webhooks", headers=AUTH)
    
    assert response.status_code == 200
    body = response.json()
    assert [w["id"] for w in body] == [dead.id]
    assert body[0]["lastError"] == "HTTP 410"
    assert body[0]["type"] == "submission.created"
    assert body[0]["webhookUrl"] == "https://cfp.directory/api/federation/webhooks"
    
    pending = await client.get("/api/admin/webhooks", params={"status": "pending_retry"}, headers=AUTH)
    assert len(pending.json()) == 1


@pytest.mark.asyncio
async def test_list_rejects_unknown_filter(client):
    response = await client.get("/api/admin/webhooks", params={"type": "user.deleted"}, headers=AUTH)
    
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_get_webhook(client, make_entry):
    entry = await make_entry()
    
    response = await client.get(f"/api/admin/webhooks/{entry.id}", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["eventId"] == "evt-1"
    
    missing = await client.get("/api/admin/webhooks/does-not-exist", headers=AUTH)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_replay(client, store, make_entry):
    dead = await make_entry(status=WebhookStatus.DEAD_LETTER, attempt=5, next_retry_at=None)
    pending = await make_entry()
    
    response = await client.post(f"/api/admin/webhooks/{dead.id}/replay", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["status"] == "pending_retry"
    assert response.json()["attempt"] == 0
    assert (await store.find_unique(dead.id)).status == WebhookStatus.PENDING_RETRY
    
    conflict = await client.post(f"/api/admin/webhooks/{pending.id}/replay", headers=AUTH)
    assert conflict.status_code == 409
    assert conflict.json()["error"]["code"] == "invalid_state"
    
    missing = await client.post("/api/admin/webhooks/does-not-exist/replay", headers=AUTH)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete(client, store, make_entry):
    entry = await make_entry()
    
    response = await client.delete(f"/api/admin/webhooks/{entry.id}", headers=AUTH)
    assert response.status_code == 204
    assert await store.find_unique(entry.id) is None
    
    again = await client.delete(f"/api/admin/webhooks/{entry.id}", headers=AUTH)
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_process_runs_a_batch(client, make_entry, target):
    await make_entry()
    await make_entry()
    
    response = await client.post("/api/admin/webhooks/process", headers=AUTH)
    
    assert response.status_code == 200
    assert response.json() == {
        "processed": 2,
        "delivered": 2,
        "retrying": 0,
        "deadLettered": 0,
        "skipped": 0,
    }
    assert len(target.requests) == 2


@pytest.mark.asyncio
async def test_cleanup(client, make_entry, clock):
    await make_entry(created_at=clock() - timedelta(days=8))
    await make_entry(
        status=WebhookStatus.SUCCESS, next_retry_at=None, last_attempt_at=clock() - timedelta(hours=30)
    )
    
    response = await client.post("/api/admin/webhooks/cleanup", headers=AUTH)
    
    assert response.status_code == 200
    assert response.json() == {"abandoned": 1, "delivered": 1}


# =============================================================================
# Monitoring, health and metrics
# =============================================================================

@pytest.mark.asyncio
async def test_monitoring_healthy(client, make_entry):
    await make_entry()
    
    response = await client.get("/api/admin/monitoring", headers=AUTH)
    
    assert response.status_code == 200
    body = response.json()
    assert body["system"]["status"] == "healthy"
    assert body["system"]["version"] == settings.APP_VERSION
    assert body["database"]["connected"] is True
    assert body["webhooks"]["pendingRetry"] == 1


@pytest.mark.asyncio
async def test_monitoring_degraded_with_dead_letters(client, make_entry):
    await make_entry(status=WebhookStatus.DEAD_LETTER, next_retry_at=None)
    
    body = (await client.get("/api/admin/monitoring", headers=AUTH)).json()
    
    assert body["system"]["status"] == "degraded"
    assert body["webhooks"]["deadLetter"] == 1


@pytest.mark.asyncio
async def test_monitoring_survives_stats_outage(client, service, monkeypatch):
    async def broken_stats():
        raise OperationalError("SELECT", {}, Exception("connection reset"))
    
    monkeypatch.setattr(service, "get_stats", broken_stats)
    
    response = await client.get("/api/admin/monitoring", headers=AUTH)
    
    assert response.status_code == 200
    assert response.json()["webhooks"]["deadLetter"] == 0


@pytest.mark.asyncio
async def test_health_and_root(client):
    assert (await client.get("/")).json()["status"] == "running"
    assert (await client.get("/health")).json() == {"status": "healthy", "database": "connected"}


@pytest.mark.asyncio
async def test_metrics_endpoint(client, make_entry):
    await make_entry()
    await client.post("/api/admin/webhooks/process", headers=AUTH)
    
    response = await client.get("/metrics")
    
    assert response.status_code == 200
    assert "webhook_delivery_attempts_total" in response.text
    assert "http_requests_total" in response.text


@pytest.mark.asyncio
async def test_request_id_is_echoed_in_errors(client):
    response = await client.get(
        "/api/admin/webhooks/does-not-exist",
        headers={**AUTH, "X-Request-ID": "req-123"},
    )
    
    assert response.status_code == 404
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["request_id"] == "req-123"
