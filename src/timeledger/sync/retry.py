"""Exponential backoff with jitter for remote sync requests."""

import random
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

# Statuses worth retrying; everything else is final on first answer
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def compute_backoff(attempt: int, base: float, max_delay: float, jitter_ratio: float) -> float:
    """
    Compute exponential backoff delay with jitter.

    Args:
        attempt: Attempt number (0-based)
        base: Base delay in seconds
        max_delay: Maximum delay in seconds
        jitter_ratio: Jitter ratio (0.0 to 1.0)

    Returns:
        Delay in seconds (minimum 0.1s)
    """
    delay = min(max_delay, base * (2 ** attempt))
    jitter = random.uniform(-jitter_ratio, jitter_ratio) * delay
    return max(0.1, delay + jitter)


def parse_retry_after(value: Optional[str], now: datetime) -> Optional[datetime]:
    """
    Parse an HTTP ``Retry-After`` header (delta seconds or HTTP-date).

    Returns:
        When the retry may be attempted, or None if the value is unusable
    """
    if not value:
        return None

    value = value.strip()

    try:
        seconds = int(value)
        if seconds >= 0:
            return now + timedelta(seconds=seconds)
        return None
    except ValueError:
        pass

    try:
        retry_time = parsedate_to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None

    if retry_time.tzinfo is None:
        retry_time = retry_time.replace(tzinfo=timezone.utc)
    retry_time = retry_time.astimezone(timezone.utc)

    # Past dates and anything beyond a day are ignored
    if now <= retry_time <= now + timedelta(hours=24):
        return retry_time
    return None


def retry_delay(
    attempt: int,
    retry_after: Optional[str],
    now: datetime,
    base: float,
    max_delay: float,
    jitter_ratio: float,
) -> float:
    """Seconds to wait before ``attempt + 1``; ``Retry-After`` wins when valid."""
    retry_at = parse_retry_after(retry_after, now)
    if retry_at is not None:
        return min(max_delay, max(0.0, (retry_at - now).total_seconds()))
    return compute_backoff(attempt, base, max_delay, jitter_ratio)
