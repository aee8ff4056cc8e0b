"""Tests for the HTTP opinion provider."""

import json
from collections.abc import Callable

import httpx
import pytest

from confluence_engine.errors import ProposalParseError
from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.results import IndicatorTally
from confluence_engine.models.signal import SignalKind
from confluence_engine.scoring.evidence_reducer import reduce_evidence
from confluence_engine.signals.http_provider import HttpOpinionProvider, build_request_payload

URL = "http://opinion.test/v1/opinion"


@pytest.fixture
def evidence(make_evidence: Callable[..., EvidenceBundle]) -> EvidenceBundle:
    return make_evidence()


@pytest.fixture
def tally(evidence: EvidenceBundle) -> IndicatorTally:
    return reduce_evidence(evidence.indicators, evidence.price)


def provider_with(handler: Callable[[httpx.Request], httpx.Response]) -> HttpOpinionProvider:
    provider = HttpOpinionProvider(URL, api_key="secret")
    provider._client = httpx.AsyncClient(transport=httpx.MockTransport(handler), headers=provider._headers)
    return provider


class TestBuildRequestPayload:
    def test_payload_embeds_tally(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        payload = build_request_payload(evidence, tally, has_position=True)

        assert payload["symbol"] == "BTC"
        assert payload["has_position"] is True
        assert payload["indicator_tally"]["bullish"] == 8
        assert payload["indicator_tally"]["bearish"] == 2
        assert payload["indicator_tally"]["majority"] == "BUY"
        assert len(payload["indicator_tally"]["readings"]) == len(tally.readings)
        assert payload["indicators"]["rsi14"] == 45.0
        assert payload["external"] is None

    def test_payload_is_json_serializable(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        json.dumps(build_request_payload(evidence, tally, has_position=False))


class TestFetchProposal:
    async def test_json_reply(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"signal": "buy_to_enter", "leverage": 5, "target": 110})

        proposal = await provider_with(handler).fetch_proposal(evidence, tally, has_position=False)

        assert proposal.kind == SignalKind.ENTER_LONG
        assert proposal.leverage == 5
        assert proposal.take_profit == 110
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(seen[0].content)["symbol"] == "BTC"

    async def test_chat_style_content(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"content": '{"action": "sell", "rationale": "Breakdown"}'})

        proposal = await provider_with(handler).fetch_proposal(evidence, tally, has_position=False)

        assert proposal.kind == SignalKind.ENTER_SHORT
        assert proposal.rationale == "Breakdown"

    async def test_fenced_text_reply(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        text = 'Analysis follows.\n```json\n{"signals": [{"coin": "ETH", "signal": "hold"}, {"coin": "BTC", "signal": "close"}]}\n```'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=text)

        proposal = await provider_with(handler).fetch_proposal(evidence, tally, has_position=True)

        assert proposal.kind == SignalKind.CLOSE
        assert proposal.symbol == "BTC"

    async def test_text_without_json_raises(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="I would wait for confirmation.")

        with pytest.raises(ProposalParseError, match="No valid JSON found"):
            await provider_with(handler).fetch_proposal(evidence, tally, has_position=False)

    async def test_http_error_propagates(self, evidence: EvidenceBundle, tally: IndicatorTally) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        with pytest.raises(httpx.HTTPStatusError):
            await provider_with(handler).fetch_proposal(evidence, tally, has_position=False)

    async def test_context_manager_closes_client(self) -> None:
        async with HttpOpinionProvider(URL) as provider:
            assert provider._client is not None
        assert provider._client is None
