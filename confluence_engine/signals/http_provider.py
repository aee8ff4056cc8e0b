"""HTTP opinion provider.

Posts an evidence summary to a directional-opinion service and parses the
reply. The summary embeds the evidence reducer's tally so the service sees
the same indicator counts the validator enforces.
"""

import logging
from typing import Any

import httpx

from confluence_engine.errors import ProposalParseError
from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.proposal import Proposal
from confluence_engine.models.results import IndicatorTally

from .parsing import parse_proposal
from .provider import OpinionProvider

logger = logging.getLogger(__name__)


def build_request_payload(
    evidence: EvidenceBundle,
    tally: IndicatorTally,
    has_position: bool,
) -> dict[str, Any]:
    """Serialize the evidence summary sent to the opinion service."""
    return {
        "symbol": evidence.symbol,
        "price": evidence.price,
        "has_position": has_position,
        "indicator_tally": {
            "bullish": tally.bullish,
            "bearish": tally.bearish,
            "majority": tally.majority.value,
            "readings": [
                {
                    "name": r.name,
                    "vote": r.vote.value if r.vote else None,
                    "detail": r.detail,
                }
                for r in tally.readings
            ],
        },
        "indicators": evidence.indicators.model_dump(exclude_none=True) if evidence.indicators else None,
        "trend_alignment": (
            evidence.trend_alignment.model_dump(exclude_none=True) if evidence.trend_alignment else None
        ),
        "external": evidence.external.model_dump(exclude_none=True) if evidence.external else None,
    }


class HttpOpinionProvider(OpinionProvider):
    """Opinion provider backed by an HTTP endpoint.

    Example:
        >>> async with HttpOpinionProvider("http://localhost:8080/opinion") as provider:
        ...     proposal = await provider.fetch_proposal(evidence, tally, has_position=False)
    """

    def __init__(self, url: str, api_key: str | None = None, timeout: float = 30.0) -> None:
        """Initialize provider.

        Args:
            url: Opinion endpoint URL
            api_key: Optional bearer token
            timeout: Request timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpOpinionProvider":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(timeout=self.timeout, headers=self._headers)
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_proposal(
        self,
        evidence: EvidenceBundle,
        tally: IndicatorTally,
        has_position: bool,
    ) -> Proposal:
        """Post the evidence summary and parse the reply."""
        payload = build_request_payload(evidence, tally, has_position)
        if not self._client:
            async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers) as client:
                body = await self._post(client, payload, evidence.symbol)
        else:
            body = await self._post(self._client, payload, evidence.symbol)
        return parse_proposal(body, evidence.symbol)

    async def _post(
        self,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
        symbol: str,
    ) -> str | dict[str, Any]:
        response = await client.post(self.url, json=payload)
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError as e:
                raise ProposalParseError(f"Failed to parse JSON response for {symbol}") from e
            # Chat-style services wrap the text reply
            if isinstance(data, dict) and isinstance(data.get("content"), str):
                return data["content"]
            return data
        logger.debug(f"Opinion reply for {symbol} is text ({len(response.text)} chars)")
        return response.text
