"""Unit tests for funding-rate / open-interest trend memory."""

import pytest

from confluence_engine.cache.trend_store import (
    InMemoryTrendStore,
    RedisTrendStore,
    classify_trend,
    get_trend_store,
    update_trend,
)


class FakeRedis:
    """Minimal stand-in for the redis client used by RedisTrendStore."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self.values[key] = value
        self.ttls[key] = ttl


class TestClassifyTrend:
    """Trend labelling rules."""

    def test_no_previous_is_stable(self) -> None:
        assert classify_trend(None, 0.001) == "stable"

    def test_large_increase(self) -> None:
        assert classify_trend(100.0, 110.0, positive_only=True) == "increasing"

    def test_moderate_decrease(self) -> None:
        assert classify_trend(100.0, 97.0, positive_only=True) == "decreasing"

    def test_small_change_is_stable(self) -> None:
        assert classify_trend(100.0, 101.0, positive_only=True) == "stable"

    def test_negative_funding_moving_more_negative(self) -> None:
        # -0.001 to -0.002 is below previous * 1.05, previous being negative
        assert classify_trend(-0.001, -0.002) == "decreasing"

    def test_negligible_previous_funding(self) -> None:
        assert classify_trend(0.0, 0.0005) == "increasing"
        assert classify_trend(0.0, -0.0005) == "decreasing"
        assert classify_trend(0.0, 0.00001) == "stable"

    def test_zero_previous_open_interest(self) -> None:
        assert classify_trend(0.0, 5.0, positive_only=True) == "increasing"


class TestUpdateTrend:
    """Freshness window handling."""

    def test_first_reading_is_stable(self, trend_store: InMemoryTrendStore) -> None:
        assert update_trend(trend_store, "oi", "BTC", 1000.0, now=0.0) == "stable"
        assert trend_store.get("oi", "BTC") == (1000.0, 0.0)

    def test_fresh_previous_is_compared(self, trend_store: InMemoryTrendStore) -> None:
        update_trend(trend_store, "oi", "BTC", 1000.0, now=0.0)
        assert update_trend(trend_store, "oi", "BTC", 1100.0, now=300.0) == "increasing"

    def test_stale_previous_is_ignored(self, trend_store: InMemoryTrendStore) -> None:
        update_trend(trend_store, "oi", "BTC", 1000.0, now=0.0)
        assert update_trend(trend_store, "oi", "BTC", 1100.0, now=601.0) == "stable"

    def test_keys_are_per_symbol_and_metric(self, trend_store: InMemoryTrendStore) -> None:
        update_trend(trend_store, "oi", "BTC", 1000.0, now=0.0)
        assert update_trend(trend_store, "oi", "ETH", 2000.0, now=1.0) == "stable"
        assert update_trend(trend_store, "funding", "BTC", 0.0001, now=1.0) == "stable"


class TestRedisTrendStore:
    """Redis-backed store round trip."""

    @pytest.fixture
    def fake_redis(self, monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
        import redis

        client = FakeRedis()
        monkeypatch.setattr(redis.Redis, "from_url", classmethod(lambda cls, url, **kwargs: client))
        return client

    def test_put_and_get(self, fake_redis: FakeRedis) -> None:
        store = RedisTrendStore("redis://localhost:6379/0", ttl_seconds=600)
        store.put("funding", "BTC", 0.0003, 123.0)
        assert store.get("funding", "BTC") == (0.0003, 123.0)
        assert fake_redis.ttls["trend:funding:BTC"] == 1200

    def test_missing_key(self, fake_redis: FakeRedis) -> None:
        store = RedisTrendStore("redis://localhost:6379/0")
        assert store.get("oi", "ETH") is None

    def test_factory_selects_redis_when_configured(
        self, fake_redis: FakeRedis, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
        assert isinstance(get_trend_store(), RedisTrendStore)


def test_factory_defaults_to_memory() -> None:
    """Test the in-memory store is used without REDIS_URL."""
    store = get_trend_store(120.0)
    assert isinstance(store, InMemoryTrendStore)
    assert store.ttl_seconds == 120.0
    assert get_trend_store(120.0) is store
