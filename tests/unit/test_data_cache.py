"""Tests for the TTL cache with prefix invalidation."""

import pytest

from timeledger.cache.data_cache import DEFAULT_TTL_SECONDS, DataCache


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def data_cache(ticker):
    return DataCache(clock=ticker)


@pytest.mark.unit
class TestGetSet:
    """Test basic reads and writes."""

    def test_default_ttl_is_five_seconds(self):
        assert DEFAULT_TTL_SECONDS == 5.0
        assert DataCache().default_ttl == 5.0

    def test_set_then_get_returns_value(self, data_cache):
        """A value is readable immediately after it is set."""
        data_cache.set("domains:all:active", [1, 2, 3])
        assert data_cache.get("domains:all:active") == [1, 2, 3]

    def test_absent_key_is_miss(self, data_cache):
        assert data_cache.get("nope") is None
        assert data_cache.misses == 1

    def test_set_overwrites_and_renews_expiry(self, data_cache, ticker):
        data_cache.set("k", "old")
        ticker.now = 4.0
        data_cache.set("k", "new")
        ticker.now = 8.0
        assert data_cache.get("k") == "new"

    def test_none_value_reads_as_miss(self, data_cache):
        """Storing None is indistinguishable from not storing anything."""
        data_cache.set("k", None)
        assert data_cache.get("k") is None
        assert "k" not in data_cache

    def test_hit_and_miss_counters(self, data_cache):
        data_cache.set("k", 1)
        data_cache.get("k")
        data_cache.get("k")
        data_cache.get("other")
        stats = data_cache.get_stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["size"] == 1


@pytest.mark.unit
class TestExpiry:
    """Test time-boxed validity."""

    def test_visible_until_ttl_elapses(self, data_cache, ticker):
        data_cache.set("k", "v")
        ticker.now = 4.999
        assert data_cache.get("k") == "v"

    def test_expired_exactly_at_ttl(self, data_cache, ticker):
        """An entry is visible only while now < expires_at."""
        data_cache.set("k", "v")
        ticker.now = 5.0
        assert data_cache.get("k") is None

    def test_expired_entry_is_evicted_on_get(self, data_cache, ticker):
        data_cache.set("k", "v")
        ticker.now = 10.0
        data_cache.get("k")
        ticker.now = 0.0
        assert data_cache.get("k") is None

    def test_custom_ttl(self, data_cache, ticker):
        data_cache.set("short", "v", ttl=1.0)
        data_cache.set("long", "v", ttl=60.0)
        ticker.now = 30.0
        assert data_cache.get("short") is None
        assert data_cache.get("long") == "v"

    def test_snapshots_never_reveal_expired_entries(self, data_cache, ticker):
        data_cache.set("a", 1, ttl=1.0)
        data_cache.set("b", 2, ttl=10.0)
        ticker.now = 2.0

        assert data_cache.keys() == ["b"]
        assert data_cache.snapshot() == {"b": 2}
        assert len(data_cache) == 1

    def test_purge_expired_returns_count(self, data_cache, ticker):
        data_cache.set("a", 1, ttl=1.0)
        data_cache.set("b", 2, ttl=1.0)
        data_cache.set("c", 3, ttl=10.0)
        ticker.now = 5.0
        assert data_cache.purge_expired() == 2


@pytest.mark.unit
class TestInvalidation:
    """Test key, prefix and full invalidation."""

    def test_invalidate_removes_exactly_one_key(self, data_cache):
        data_cache.set("domains:all:active", 1)
        data_cache.set("domains:all:archived", 2)
        data_cache.invalidate("domains:all:active")
        assert data_cache.get("domains:all:active") is None
        assert data_cache.get("domains:all:archived") == 2

    def test_invalidate_missing_key_is_noop(self, data_cache):
        data_cache.invalidate("missing")

    def test_invalidate_pattern_removes_prefixed_keys_only(self, data_cache):
        data_cache.set("tags:all:active", 1)
        data_cache.set("tags:by-domain:abc", 2)
        data_cache.set("domains:all:active", 3)
        data_cache.set("timeslots:range:a:b", 4)

        data_cache.invalidate_pattern("tags:")

        assert data_cache.get("tags:all:active") is None
        assert data_cache.get("tags:by-domain:abc") is None
        assert data_cache.get("domains:all:active") == 3
        assert data_cache.get("timeslots:range:a:b") == 4

    def test_pattern_is_a_literal_prefix(self, data_cache):
        """Neither substrings nor regex metacharacters match."""
        data_cache.set("xdomains:all", 1)
        data_cache.set("archive:domains:all", 2)
        data_cache.set("axb", 3)

        data_cache.invalidate_pattern("domains:")
        data_cache.invalidate_pattern("a.b")

        assert data_cache.get("xdomains:all") == 1
        assert data_cache.get("archive:domains:all") == 2
        assert data_cache.get("axb") == 3

    def test_invalidate_all_clears_everything(self, data_cache):
        data_cache.set("domains:all:active", 1, ttl=1000)
        data_cache.set("tags:all:active", 2)
        data_cache.set("misc", 3, ttl=0.5)

        data_cache.invalidate_all()

        assert len(data_cache) == 0
        for key in ("domains:all:active", "tags:all:active", "misc"):
            assert data_cache.get(key) is None
