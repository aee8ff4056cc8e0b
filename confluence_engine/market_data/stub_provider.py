"""Stub evidence provider serving pre-loaded bundles."""

from confluence_engine.models.evidence import EvidenceBundle

from .provider import EvidenceProvider


class StubEvidenceProvider(EvidenceProvider):
    """In-memory provider for tests and snapshot replays."""

    def __init__(self, bundles: dict[str, EvidenceBundle] | None = None) -> None:
        self._bundles: dict[str, EvidenceBundle] = dict(bundles or {})

    def set_evidence(self, bundle: EvidenceBundle) -> None:
        """Register or replace the bundle for ``bundle.symbol``."""
        self._bundles[bundle.symbol] = bundle

    async def get_evidence(self, symbol: str) -> EvidenceBundle | None:
        """Return the stored bundle, or None."""
        return self._bundles.get(symbol)
