"""Unit tests for opinion response parsing."""

import pytest

from confluence_engine.errors import ProposalParseError
from confluence_engine.models.signal import SignalKind
from confluence_engine.signals.parsing import extract_json, normalize_kind, parse_proposal


class TestNormalizeKind:
    """Tests for kind aliases."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("buy_to_enter", SignalKind.ENTER_LONG),
            ("Sell-To-Enter", SignalKind.ENTER_SHORT),
            ("LONG", SignalKind.ENTER_LONG),
            ("close all", SignalKind.CLOSE_ALL),
            ("HOLD", SignalKind.HOLD),
            ("reduce", SignalKind.REDUCE),
        ],
    )
    def test_aliases(self, raw: str, expected: SignalKind) -> None:
        assert normalize_kind(raw) == expected

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(ProposalParseError, match="Unknown signal kind"):
            normalize_kind("moon")


class TestExtractJson:
    """Tests for JSON extraction from free text."""

    def test_fenced_block(self) -> None:
        text = 'Here is my call:\n```json\n{"signal": "buy", "price": 101.5}\n```\nGood luck.'
        assert extract_json(text, "BTC") == {"signal": "buy", "price": 101.5}

    def test_embedded_object_with_trailing_comma(self) -> None:
        text = 'Analysis done. {"signal": "sell", "stop_loss": 105,} end'
        assert extract_json(text, "ETH") == {"signal": "sell", "stop_loss": 105}

    def test_no_json_raises(self) -> None:
        with pytest.raises(ProposalParseError, match="No valid JSON found"):
            extract_json("I think the market is going up.", "BTC")

    def test_broken_json_raises(self) -> None:
        with pytest.raises(ProposalParseError, match="Failed to parse JSON"):
            extract_json('{"signal": "buy", "price": }', "BTC")


class TestParseProposal:
    """Tests for full proposal parsing."""

    def test_mapping_with_field_aliases(self) -> None:
        proposal = parse_proposal(
            {
                "coin": "BTC",
                "signal": "buy_to_enter",
                "price": 100.0,
                "profit_target": 104.0,
                "stop": 97.0,
                "justification": "Breakout above range",
                "contrarian_play": False,
            },
            "BTC",
        )
        assert proposal.kind == SignalKind.ENTER_LONG
        assert proposal.entry_price == 100.0
        assert proposal.take_profit == 104.0
        assert proposal.stop_loss == 97.0
        assert proposal.rationale == "Breakout above range"

    def test_signals_list_selects_matching_symbol(self) -> None:
        raw = '{"signals": [{"coin": "ETH", "signal": "sell"}, {"coin": "SOL", "signal": "hold"}]}'
        proposal = parse_proposal(raw, "SOL")
        assert proposal.kind == SignalKind.HOLD
        assert proposal.symbol == "SOL"

    def test_signals_list_without_match_uses_first(self) -> None:
        proposal = parse_proposal([{"coin": "ETH", "signal": "sell"}], "BTC")
        assert proposal.kind == SignalKind.ENTER_SHORT

    def test_symbol_defaults_to_requested(self) -> None:
        proposal = parse_proposal({"action": "close"}, "DOGE")
        assert proposal.symbol == "DOGE"
        assert proposal.kind == SignalKind.CLOSE

    def test_missing_kind_raises(self) -> None:
        with pytest.raises(ProposalParseError, match="no signal kind"):
            parse_proposal({"price": 100.0}, "BTC")

    def test_invalid_field_raises(self) -> None:
        with pytest.raises(ProposalParseError, match="Invalid proposal"):
            parse_proposal({"signal": "buy", "price": -5}, "BTC")

    def test_empty_list_raises(self) -> None:
        with pytest.raises(ProposalParseError):
            parse_proposal("[]", "BTC")
