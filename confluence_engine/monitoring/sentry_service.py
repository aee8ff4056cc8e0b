"""Sentry integration for error tracking.

Provides:
- Error capture with cycle/asset context
- Breadcrumbs for the per-asset state machine
- A performance transaction around each signal cycle
- Secret scrubbing before events leave the process
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generator

import sentry_sdk
from sentry_sdk import capture_exception, capture_message, set_context, set_tag
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from confluence_engine import __version__


class SentryLevel(Enum):
    """Sentry message levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


@dataclass
class SentryConfig:
    """Sentry configuration."""

    dsn: str
    environment: str = "development"
    release: str = ""
    traces_sample_rate: float = 0.1
    enabled: bool = True
    debug: bool = False
    ignore_errors: list[str] = field(
        default_factory=lambda: [
            "ConnectionResetError",
            "CancelledError",
        ]
    )


SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "api-key",
        "secret",
        "password",
        "token",
        "authorization",
        "auth",
        "private_key",
        "privatekey",
    }
)


def scrub_sensitive_data(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively redact values whose key looks like a credential."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if any(s in key.lower() for s in SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = scrub_sensitive_data(value)
        elif isinstance(value, list):
            result[key] = [scrub_sensitive_data(v) if isinstance(v, dict) else v for v in value]
        else:
            result[key] = value
    return result


class SentryService:
    """Sentry integration service for error tracking.

    Example:
        >>> sentry = SentryService(SentryConfig(dsn="https://xxx@sentry.io/123"))
        >>> sentry.initialize()
        >>> sentry.add_breadcrumb("asset", "BTC moved to SCORE")
    """

    def __init__(self, config: SentryConfig):
        self.config = config
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> bool:
        """Initialize Sentry SDK.

        Returns:
            True if initialization successful
        """
        if not self.config.enabled or not self.config.dsn:
            return False

        try:
            sentry_sdk.init(
                dsn=self.config.dsn,
                environment=self.config.environment,
                release=self.config.release or self._get_release(),
                traces_sample_rate=self.config.traces_sample_rate,
                debug=self.config.debug,
                integrations=[
                    AsyncioIntegration(),
                    HttpxIntegration(),
                    LoggingIntegration(level=None, event_level=None),
                ],
                before_send=self._before_send,
            )
            self._initialized = True
            return True
        except Exception:
            return False

    def _get_release(self) -> str:
        return os.environ.get("SENTRY_RELEASE") or f"confluence-engine@{__version__}"

    def _before_send(self, event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
        """Drop ignored errors and scrub credentials.

        Returns:
            Event to send, or None to drop
        """
        if "exc_info" in hint:
            exc_type, _, _ = hint["exc_info"]
            if exc_type.__name__ in self.config.ignore_errors:
                return None
        return scrub_sensitive_data(event)

    def capture_error(
        self,
        error: Exception,
        context: dict[str, Any] | None = None,
        tags: dict[str, str] | None = None,
    ) -> str | None:
        """Capture an exception.

        Args:
            error: Exception to capture
            context: Additional context data
            tags: Tags for filtering

        Returns:
            Event ID if captured, None otherwise
        """
        if not self._initialized:
            return None
        if context:
            set_context("signal_context", context)
        for key, value in (tags or {}).items():
            set_tag(key, value)
        return capture_exception(error)

    def capture_warning(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        level: SentryLevel = SentryLevel.WARNING,
    ) -> str | None:
        """Capture a message (e.g. a cycle-level failure summary)."""
        if not self._initialized:
            return None
        if context:
            set_context("signal_context", context)
        return capture_message(message, level=level.value)

    def add_breadcrumb(
        self,
        category: str,
        message: str,
        data: dict[str, Any] | None = None,
        level: str = "info",
    ) -> None:
        """Add a breadcrumb.

        Args:
            category: Category (e.g., "asset", "filter", "cycle")
            message: Description of what happened
            data: Additional data
            level: Severity (debug/info/warning/error)
        """
        if not self._initialized:
            return
        sentry_sdk.add_breadcrumb(category=category, message=message, data=data or {}, level=level)

    def set_cycle_context(self, assets: list[str], mode: str) -> None:
        """Attach the current cycle's asset list and mode to subsequent events."""
        if not self._initialized:
            return
        set_tag("trading_mode", mode)
        set_context("cycle", {"assets": assets, "asset_count": len(assets), "mode": mode})

    @contextmanager
    def transaction(self, op: str, name: str) -> Generator[Any, None, None]:
        """Create a performance transaction (no-op when not initialized)."""
        if not self._initialized:
            yield None
            return
        with sentry_sdk.start_transaction(op=op, name=name) as transaction:
            yield transaction

    def flush(self, timeout: float = 2.0) -> None:
        if self._initialized:
            sentry_sdk.flush(timeout=timeout)


_service: SentryService | None = None


def init_sentry(config: SentryConfig) -> SentryService:
    """Initialize the global Sentry service.

    Args:
        config: Sentry configuration

    Returns:
        Initialized service
    """
    global _service
    _service = SentryService(config)
    _service.initialize()
    return _service


def get_sentry() -> SentryService | None:
    """Get the global Sentry service, or None if not initialized."""
    return _service
