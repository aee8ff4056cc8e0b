"""Abstract directional-opinion provider interface."""

from abc import ABC, abstractmethod

from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.proposal import Proposal
from confluence_engine.models.results import IndicatorTally


class OpinionProvider(ABC):
    """Abstract interface for the external directional-opinion collaborator."""

    @abstractmethod
    async def fetch_proposal(
        self,
        evidence: EvidenceBundle,
        tally: IndicatorTally,
        has_position: bool,
    ) -> Proposal:
        """
        Obtain a structured proposal for one asset.

        Args:
            evidence: Evidence bundle for the asset
            tally: Evidence reducer output, shared with the validator
            has_position: Whether a position is already open for the asset

        Returns:
            Parsed proposal

        Raises:
            ProposalParseError: If the response cannot be parsed
        """
        ...
