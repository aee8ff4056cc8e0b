"""Abstract evidence provider interface."""

from abc import ABC, abstractmethod

from confluence_engine.models.evidence import EvidenceBundle


class EvidenceProvider(ABC):
    """Abstract interface for market-data collaborators."""

    @abstractmethod
    async def get_evidence(self, symbol: str) -> EvidenceBundle | None:
        """
        Fetch the evidence bundle for an asset.

        Args:
            symbol: Asset symbol (e.g., "BTC")

        Returns:
            Evidence bundle, or None when the asset has no data
        """
        ...
