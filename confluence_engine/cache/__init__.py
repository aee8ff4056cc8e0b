"""Shared caches used by the signal pipeline."""

from .trend_store import (
    InMemoryTrendStore,
    RedisTrendStore,
    TrendStore,
    classify_trend,
    get_trend_store,
    reset_trend_store,
    update_trend,
)

__all__ = [
    "InMemoryTrendStore",
    "RedisTrendStore",
    "TrendStore",
    "classify_trend",
    "get_trend_store",
    "reset_trend_store",
    "update_trend",
]
