"""
Webhook Delivery

Performs a single outbound delivery attempt and computes the state
transition that attempt implies. Scheduling lives in the DLQ service.
"""
import hmac
import time
import asyncio
import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from webhook_dlq.config import settings
from webhook_dlq.constants import MAX_ERROR_LENGTH, MAX_RETRY_ATTEMPTS
from webhook_dlq.models.webhook import WebhookQueueEntry, WebhookStatus
from webhook_dlq.services.backoff import calculate_next_retry_time

# Upper bound from the delivery contract
MAX_TIMEOUT_SECONDS = 30.0

# How much of a failed response body is kept in the error message
ERROR_BODY_PREVIEW = 500


@dataclass
class AttemptOutcome:
    """Result of one delivery attempt: success or retryable failure."""
    success: bool
    status_code: int | None = None
    error: str | None = None


def sign_payload(payload: str, secret: str) -> str:
    """Generate HMAC-SHA256 signature for webhook payload."""
    return hmac.new(
        secret.encode(),
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


def truncate_error(message: str) -> str:
    """Cut an error message to MAX_ERROR_LENGTH characters."""
    return message[:MAX_ERROR_LENGTH]


def should_dead_letter(attempt: int, success: bool) -> bool:
    """Dead-letter predicate, evaluated after the attempt counter is incremented."""
    return not success and attempt >= MAX_RETRY_ATTEMPTS


def compute_transition(
    previous_attempt: int,
    outcome: AttemptOutcome,
    now: datetime,
    jitter: bool = False
) -> dict[str, Any]:
    """
    Column patch that records an attempt on an entry.
    
    Args:
        previous_attempt: Entry's attempt count before this attempt
        outcome: Result of the attempt
        now: When the attempt finished
        jitter: Forwarded to the backoff calculator
        
    Returns:
        Values for WebhookQueueStore.update (always releases the claim)
    """
    attempt = previous_attempt + 1
    patch: dict[str, Any] = {
        "attempt": attempt,
        "last_attempt_at": now,
        "claimed_until": None,
    }
    
    if outcome.success:
        patch.update(status=WebhookStatus.SUCCESS, next_retry_at=None, last_error=None)
        return patch
    
    patch["last_error"] = truncate_error(outcome.error or "Unknown error")
    if should_dead_letter(attempt, outcome.success):
        patch.update(status=WebhookStatus.DEAD_LETTER, next_retry_at=None)
    else:
        patch.update(
            status=WebhookStatus.PENDING_RETRY,
            next_retry_at=calculate_next_retry_time(attempt, now, jitter=jitter),
        )
    return patch


class WebhookDeliveryEngine:
    """Sends one queued webhook to its target URL."""
    
    def __init__(
        self,
        timeout: float | None = None,
        signing_secret: str | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        timeout = settings.WEBHOOK_TIMEOUT_SECONDS if timeout is None else timeout
        self.timeout = min(timeout, MAX_TIMEOUT_SECONDS)
        self.signing_secret = signing_secret if signing_secret is not None else settings.WEBHOOK_SIGNING_SECRET
        self.user_agent = user_agent or settings.WEBHOOK_USER_AGENT
        self.transport = transport
    
    def build_headers(self, entry: WebhookQueueEntry) -> dict[str, str]:
        """Delivery headers; signed over "<timestamp>.<payload>" when a secret is set."""
        timestamp = str(int(time.time() * 1000))
        event_type = getattr(entry.webhook_type, "value", entry.webhook_type)
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Id": entry.id,
            "X-Webhook-Event": event_type,
            "X-Webhook-Timestamp": timestamp,
            "User-Agent": self.user_agent,
        }
        if self.signing_secret:
            signature = sign_payload(f"{timestamp}.{entry.payload}", self.signing_secret)
            headers["X-Webhook-Signature"] = f"sha256={signature}"
        return headers
    
    async def attempt_delivery(self, entry: WebhookQueueEntry) -> AttemptOutcome:
        """
        POST the entry's payload to its webhook URL once.
        
        2xx is success. Any other status, a timeout or a transport error is
        a retryable failure; no distinction is made between 4xx and 5xx.
        """
        headers = self.build_headers(entry)
        
        try:
            # httpx timeouts apply per read; this bounds the whole attempt
            response = await asyncio.wait_for(self._post(entry, headers), timeout=self.timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            return AttemptOutcome(
                success=False,
                error=f"Timeout after {self.timeout}s: {e.__class__.__name__}"
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return AttemptOutcome(success=False, error=str(e) or e.__class__.__name__)
        
        if 200 <= response.status_code < 300:
            return AttemptOutcome(success=True, status_code=response.status_code)
        
        body = response.text[:ERROR_BODY_PREVIEW]
        error = f"HTTP {response.status_code}: {body}" if body else f"HTTP {response.status_code}"
        return AttemptOutcome(success=False, status_code=response.status_code, error=error)
    
    async def _post(self, entry: WebhookQueueEntry, headers: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.post(
                entry.webhook_url,
                content=entry.payload,
                headers=headers
            )
