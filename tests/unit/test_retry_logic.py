"""Tests for retry logic and exponential backoff."""

from datetime import datetime, timedelta, timezone

import pytest

from timeledger.sync.retry import compute_backoff, parse_retry_after, retry_delay

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestComputeBackoff:
    """Test exponential backoff computation."""

    def test_exponential_growth(self):
        delays = [compute_backoff(attempt, base=2.0, max_delay=100.0, jitter_ratio=0.0) for attempt in range(5)]
        assert delays == [2.0, 4.0, 8.0, 16.0, 32.0]

    def test_max_delay_cap(self):
        assert compute_backoff(attempt=10, base=1.0, max_delay=5.0, jitter_ratio=0.0) == 5.0

    def test_minimum_delay(self):
        """Even with full negative jitter the delay is at least 0.1s."""
        assert compute_backoff(attempt=0, base=0.05, max_delay=60.0, jitter_ratio=1.0) >= 0.1

    def test_jitter_stays_within_bounds(self):
        for _ in range(20):
            delay = compute_backoff(attempt=2, base=1.0, max_delay=60.0, jitter_ratio=0.5)
            assert 2.0 <= delay <= 6.0


@pytest.mark.unit
class TestParseRetryAfter:
    """Test Retry-After header parsing."""

    def test_delta_seconds(self):
        assert parse_retry_after("30", NOW) == NOW + timedelta(seconds=30)

    def test_zero_seconds(self):
        assert parse_retry_after("0", NOW) == NOW

    @pytest.mark.parametrize("value", [None, "", "-5", "soon", "Mon, 99 Foo 2026"])
    def test_unusable_values(self, value):
        assert parse_retry_after(value, NOW) is None

    def test_http_date(self):
        assert parse_retry_after("Mon, 02 Mar 2026 12:01:00 GMT", NOW) == NOW + timedelta(minutes=1)

    def test_http_date_in_past_ignored(self):
        assert parse_retry_after("Mon, 02 Mar 2026 11:00:00 GMT", NOW) is None

    def test_http_date_beyond_a_day_ignored(self):
        assert parse_retry_after("Thu, 05 Mar 2026 12:00:00 GMT", NOW) is None


@pytest.mark.unit
class TestRetryDelay:
    """Test the combined delay policy."""

    def test_retry_after_wins(self):
        assert retry_delay(0, "3", NOW, base=0.5, max_delay=10.0, jitter_ratio=0.0) == 3.0

    def test_retry_after_capped(self):
        assert retry_delay(0, "120", NOW, base=0.5, max_delay=10.0, jitter_ratio=0.0) == 10.0

    def test_falls_back_to_backoff(self):
        assert retry_delay(2, None, NOW, base=0.5, max_delay=10.0, jitter_ratio=0.0) == 2.0
