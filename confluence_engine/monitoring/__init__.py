"""Monitoring services for the signal pipeline.

Provides observability capabilities:
- SentryService: Error tracking
- MetricsService: Prometheus metrics for signal cycles
"""

from confluence_engine.monitoring.metrics import (
    MetricsService,
    get_metrics,
    init_metrics,
    rejection_category,
)
from confluence_engine.monitoring.sentry_service import (
    SentryConfig,
    SentryLevel,
    SentryService,
    get_sentry,
    init_sentry,
)

__all__ = [
    # Metrics
    "MetricsService",
    "get_metrics",
    "init_metrics",
    "rejection_category",
    # Sentry
    "SentryConfig",
    "SentryLevel",
    "SentryService",
    "get_sentry",
    "init_sentry",
]
