"""
Exponential backoff for webhook retries.

delay(n) = min(BASE_RETRY_DELAY_MS * 2^(n-1), MAX_RETRY_DELAY_MS)
"""
import random
from datetime import datetime, timedelta

from webhook_dlq.constants import BASE_RETRY_DELAY_MS, MAX_RETRY_DELAY_MS

# 2^22 seconds is far past the ceiling; larger exponents add nothing
_MAX_EXPONENT = 22


def calculate_retry_delay(attempt: int, jitter: bool = False) -> int:
    """
    Delay in milliseconds before the next retry after `attempt` attempts.
    
    Args:
        attempt: Number of attempts made so far (>= 1)
        jitter: Add up to 10% random delay, still capped at the ceiling
        
    Returns:
        Delay in milliseconds, never above MAX_RETRY_DELAY_MS
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    
    exponent = min(attempt - 1, _MAX_EXPONENT)
    delay = min(BASE_RETRY_DELAY_MS * (2 ** exponent), MAX_RETRY_DELAY_MS)
    
    if jitter:
        delay = min(delay + int(delay * 0.1 * random.random()), MAX_RETRY_DELAY_MS)
    
    return delay


def calculate_next_retry_time(attempt: int, now: datetime, jitter: bool = False) -> datetime:
    """Timestamp before which the entry must not be retried again."""
    return now + timedelta(milliseconds=calculate_retry_delay(attempt, jitter=jitter))
