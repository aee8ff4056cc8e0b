"""Funding-rate / open-interest trend memory.

Remembers the previous reading per (metric, symbol) with a freshness window
and labels the change as increasing, decreasing or stable. Keys are
independent per asset and written at most once per asset per cycle.
"""

from __future__ import annotations

import json
import os
import time
from functools import lru_cache
from typing import Literal, Protocol

TrendLabel = Literal["increasing", "decreasing", "stable"]
Metric = Literal["funding", "oi"]

DEFAULT_TTL_SECONDS = 600.0
NEGLIGIBLE = 0.0001


class TrendStore(Protocol):
    """Protocol for trend memory implementations."""

    ttl_seconds: float

    def get(self, metric: Metric, symbol: str) -> tuple[float, float] | None:
        """Return (value, timestamp) of the previous reading, if any."""
        ...

    def put(self, metric: Metric, symbol: str, value: float, timestamp: float) -> None:
        """Store the latest reading."""
        ...


class InMemoryTrendStore:
    """Process-local trend memory."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._values: dict[tuple[str, str], tuple[float, float]] = {}

    def get(self, metric: Metric, symbol: str) -> tuple[float, float] | None:
        return self._values.get((metric, symbol))

    def put(self, metric: Metric, symbol: str, value: float, timestamp: float) -> None:
        self._values[(metric, symbol)] = (value, timestamp)


class RedisTrendStore:
    """Redis-backed trend memory shared across engine processes."""

    def __init__(self, redis_url: str, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        """Create a Redis-backed trend store."""
        import redis

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(metric: str, symbol: str) -> str:
        return f"trend:{metric}:{symbol}"

    def get(self, metric: Metric, symbol: str) -> tuple[float, float] | None:
        raw = self._client.get(self._key(metric, symbol))
        if not raw:
            return None
        data = json.loads(raw)
        return float(data["value"]), float(data["ts"])

    def put(self, metric: Metric, symbol: str, value: float, timestamp: float) -> None:
        payload = json.dumps({"value": value, "ts": timestamp})
        # Expire a little after the freshness window
        self._client.setex(self._key(metric, symbol), int(self.ttl_seconds * 2), payload)


def classify_trend(previous: float | None, current: float, positive_only: bool = False) -> TrendLabel:
    """
    Label the move from ``previous`` to ``current``.

    A change above 5% (else above 2%) of the previous magnitude decides the
    label. With a negligible previous value, a non-negligible current value is
    increasing when positive and decreasing otherwise.

    Args:
        previous: Previous fresh reading, or None
        current: Current reading
        positive_only: Treat the metric as strictly positive (open interest)

    Returns:
        "increasing", "decreasing" or "stable"
    """
    if previous is None:
        return "stable"

    previous_usable = previous > 0 if positive_only else abs(previous) > NEGLIGIBLE
    if previous_usable:
        change = abs((current - previous) / abs(previous))
        if change > 0.05:
            threshold = 0.05
        elif change > 0.02:
            threshold = 0.02
        else:
            return "stable"
        if current > previous * (1 + threshold):
            return "increasing"
        if current < previous * (1 - threshold):
            return "decreasing"
        return "stable"

    if positive_only:
        return "increasing" if current > 0 else "stable"
    if abs(current) > NEGLIGIBLE:
        return "increasing" if current > 0 else "decreasing"
    return "stable"


def update_trend(
    store: TrendStore,
    metric: Metric,
    symbol: str,
    value: float,
    now: float | None = None,
) -> TrendLabel:
    """Read the previous fresh value, store the new one and return the trend."""
    now = time.time() if now is None else now
    previous_entry = store.get(metric, symbol)
    previous = None
    if previous_entry is not None:
        prev_value, prev_ts = previous_entry
        if now - prev_ts <= store.ttl_seconds:
            previous = prev_value
    store.put(metric, symbol, value, now)
    return classify_trend(previous, value, positive_only=(metric == "oi"))


@lru_cache(maxsize=1)
def get_trend_store(ttl_seconds: float = DEFAULT_TTL_SECONDS) -> TrendStore:
    """Return the configured trend store implementation.

    Args:
        ttl_seconds: Freshness window, from ``PipelineConfig.trend_store``
    """
    redis_url = os.environ.get("REDIS_URL")
    if redis_url:
        return RedisTrendStore(redis_url, ttl_seconds=ttl_seconds)
    return InMemoryTrendStore(ttl_seconds=ttl_seconds)


def reset_trend_store() -> None:
    """Clear the cached trend store (used in tests)."""
    get_trend_store.cache_clear()
