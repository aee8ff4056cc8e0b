"""Prometheus metrics for the signal pipeline.

Example:
    >>> from confluence_engine.monitoring.metrics import init_metrics
    >>>
    >>> metrics = init_metrics(MetricsSettings(enabled=True, port=9090))
    >>> metrics.start_server()
    >>> metrics.record_signal("BTC", "ENTER_LONG")
    >>> metrics.observe_confidence(0.72)
"""

import logging
import threading
from typing import TYPE_CHECKING

from confluence_engine.config.models import MetricsSettings

if TYPE_CHECKING:
    from prometheus_client import CollectorRegistry, Counter, Histogram

logger = logging.getLogger(__name__)

# Module-level singleton
_metrics: "MetricsService | None" = None


def rejection_category(reason: str) -> str:
    """Collapse a human-readable rejection reason into a low-cardinality label."""
    lowered = reason.lower()
    if "invalid" in lowered:
        return "invalid_confidence"
    if "trend alignment" in lowered:
        return "gatekeeper"
    if "confidence too low" in lowered or "quality insufficient" in lowered:
        return "low_confidence"
    if "ev too low" in lowered:
        return "low_ev"
    if "correlation" in lowered:
        return "correlation"
    if "risk limit" in lowered:
        return "risk_limit"
    return "other"


class MetricsService:
    """Prometheus metrics service for signal-cycle monitoring.

    Exposes:
    - Signals generated by symbol/kind
    - Rejections by reason category
    - Gatekeeper vetoes by symbol
    - Per-asset failures by failure type
    - Confidence and cycle-duration histograms
    """

    def __init__(
        self,
        config: MetricsSettings | None = None,
        registry: "CollectorRegistry | None" = None,
    ) -> None:
        """Initialize metrics service.

        Args:
            config: Metrics settings (uses defaults if not provided)
            registry: Prometheus registry (the global default when None)
        """
        self.config = config or MetricsSettings()
        self._registry = registry
        self._server_started = False
        self._lock = threading.Lock()

        self._signals_generated: "Counter | None" = None
        self._rejections: "Counter | None" = None
        self._gatekeeper_vetoes: "Counter | None" = None
        self._asset_failures: "Counter | None" = None
        self._confidence: "Histogram | None" = None
        self._cycle_duration: "Histogram | None" = None

        if self.config.enabled:
            self._initialize_metrics()

    def _initialize_metrics(self) -> None:
        """Initialize Prometheus metrics objects."""
        from prometheus_client import REGISTRY, Counter, Histogram

        registry = self._registry or REGISTRY
        prefix = self.config.prefix

        self._signals_generated = Counter(
            f"{prefix}_signals_generated_total",
            "Number of signals surviving the filter",
            ["symbol", "kind"],
            registry=registry,
        )
        self._rejections = Counter(
            f"{prefix}_signal_rejections_total",
            "Number of rejected or downgraded signals",
            ["reason"],
            registry=registry,
        )
        self._gatekeeper_vetoes = Counter(
            f"{prefix}_gatekeeper_vetoes_total",
            "Number of trend-alignment auto-rejects",
            ["symbol"],
            registry=registry,
        )
        self._asset_failures = Counter(
            f"{prefix}_asset_failures_total",
            "Number of per-asset pipeline failures",
            ["failure_type"],
            registry=registry,
        )
        self._confidence = Histogram(
            f"{prefix}_signal_confidence",
            "Final confidence distribution",
            buckets=[0.1, 0.2, 0.3, 0.35, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
            registry=registry,
        )
        self._cycle_duration = Histogram(
            f"{prefix}_cycle_duration_seconds",
            "Signal cycle wall-clock duration",
            buckets=[0.5, 1, 2, 5, 10, 20, 30, 60, 120],
            registry=registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self) -> bool:
        """Start the Prometheus HTTP server.

        Returns:
            True if server started successfully, False otherwise
        """
        if not self.config.enabled:
            logger.info("Metrics disabled, server not started")
            return False

        with self._lock:
            if self._server_started:
                logger.warning("Metrics server already started")
                return True

            try:
                from prometheus_client import start_http_server

                start_http_server(self.config.port)
                self._server_started = True
                logger.info(f"Prometheus metrics server started on port {self.config.port}")
                return True
            except Exception as e:
                logger.error(f"Failed to start metrics server: {e}")
                return False

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    def record_signal(self, symbol: str, kind: str) -> None:
        """Record a signal surviving the filter."""
        if not self.config.enabled or self._signals_generated is None:
            return
        self._signals_generated.labels(symbol=symbol, kind=kind).inc()

    def record_rejection(self, reason: str) -> None:
        """Record a rejection or downgrade.

        Args:
            reason: Human-readable reason; mapped to a category label
        """
        if not self.config.enabled or self._rejections is None:
            return
        self._rejections.labels(reason=rejection_category(reason)).inc()

    def record_gatekeeper_veto(self, symbol: str) -> None:
        if not self.config.enabled or self._gatekeeper_vetoes is None:
            return
        self._gatekeeper_vetoes.labels(symbol=symbol).inc()

    def record_asset_failure(self, failure_type: str) -> None:
        """Record a per-asset failure.

        Args:
            failure_type: "evidence_missing", "proposal_malformed", "timeout" or "error"
        """
        if not self.config.enabled or self._asset_failures is None:
            return
        self._asset_failures.labels(failure_type=failure_type).inc()

    def observe_confidence(self, confidence: float) -> None:
        if not self.config.enabled or self._confidence is None:
            return
        self._confidence.observe(confidence)

    def observe_cycle_duration(self, seconds: float) -> None:
        if not self.config.enabled or self._cycle_duration is None:
            return
        self._cycle_duration.observe(seconds)


def init_metrics(
    config: MetricsSettings | None = None,
    registry: "CollectorRegistry | None" = None,
) -> MetricsService:
    """Initialize the global metrics service.

    Args:
        config: Metrics settings
        registry: Optional Prometheus registry

    Returns:
        Initialized MetricsService
    """
    global _metrics
    _metrics = MetricsService(config, registry)
    return _metrics


def get_metrics() -> MetricsService | None:
    """Get the global metrics service instance, or None if not initialized."""
    return _metrics
