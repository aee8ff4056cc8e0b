"""Parsing of external opinion responses into proposals."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from confluence_engine.errors import ProposalParseError
from confluence_engine.models.proposal import Proposal
from confluence_engine.models.signal import SignalKind

logger = logging.getLogger(__name__)

KIND_ALIASES: dict[str, SignalKind] = {
    "buy_to_enter": SignalKind.ENTER_LONG,
    "enter_long": SignalKind.ENTER_LONG,
    "buy": SignalKind.ENTER_LONG,
    "long": SignalKind.ENTER_LONG,
    "sell_to_enter": SignalKind.ENTER_SHORT,
    "enter_short": SignalKind.ENTER_SHORT,
    "sell": SignalKind.ENTER_SHORT,
    "short": SignalKind.ENTER_SHORT,
    "add": SignalKind.ADD,
    "reduce": SignalKind.REDUCE,
    "close": SignalKind.CLOSE,
    "close_all": SignalKind.CLOSE_ALL,
    "hold": SignalKind.HOLD,
}

# Response keys accepted for each proposal field, first match wins
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol", "coin", "asset"),
    "kind": ("kind", "signal", "action"),
    "entry_price": ("entry_price", "price"),
    "quantity": ("quantity", "size"),
    "leverage": ("leverage",),
    "take_profit": ("take_profit", "profit_target", "target"),
    "stop_loss": ("stop_loss", "stop"),
    "invalidation_condition": ("invalidation_condition", "invalidation"),
    "rationale": ("rationale", "justification", "reasoning"),
    "contrarian": ("contrarian", "contrarian_play"),
}

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def normalize_kind(value: Any) -> SignalKind:
    """Map a kind string or alias to a SignalKind."""
    if isinstance(value, SignalKind):
        return value
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    if key in KIND_ALIASES:
        return KIND_ALIASES[key]
    try:
        return SignalKind(key.upper())
    except ValueError:
        raise ProposalParseError(f"Unknown signal kind: {value!r}") from None


def extract_json(text: str, symbol: str) -> Any:
    """
    Extract the first JSON value from free text or a fenced code block.

    Raises:
        ProposalParseError: If no parseable JSON is found
    """
    candidates: list[str] = [m.strip() for m in _FENCE_RE.findall(text)]
    stripped = text.strip()
    candidates.append(stripped)
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = stripped.find(opener), stripped.rfind(closer)
        if start != -1 and end > start:
            candidates.append(stripped[start : end + 1])

    found_json_like = False
    for candidate in candidates:
        if not candidate or candidate[0] not in "{[":
            continue
        found_json_like = True
        for attempt in (candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)):
            try:
                return json.loads(attempt)
            except json.JSONDecodeError:
                continue

    if found_json_like:
        raise ProposalParseError(f"Failed to parse JSON response for {symbol}")
    raise ProposalParseError(f"No valid JSON found in AI response for {symbol}")


def _select_entry(payload: Any, symbol: str) -> dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("signals"), list):
        payload = payload["signals"]
    if isinstance(payload, list):
        entries = [p for p in payload if isinstance(p, dict)]
        if not entries:
            raise ProposalParseError(f"No valid JSON found in AI response for {symbol}")
        for entry in entries:
            if any(entry.get(k) == symbol for k in FIELD_KEYS["symbol"]):
                return entry
        return entries[0]
    if isinstance(payload, dict):
        return payload
    raise ProposalParseError(f"No valid JSON found in AI response for {symbol}")


def parse_proposal(raw: str | dict[str, Any] | list[Any], symbol: str) -> Proposal:
    """
    Parse an opinion response into a validated Proposal.

    Accepts a mapping, a list, or text carrying JSON (optionally fenced). A
    ``signals`` list is searched for the entry matching ``symbol``.

    Args:
        raw: Response body
        symbol: Asset the proposal is for

    Returns:
        Proposal

    Raises:
        ProposalParseError: If the response cannot be parsed or validated
    """
    payload = extract_json(raw, symbol) if isinstance(raw, str) else raw
    entry = _select_entry(payload, symbol)

    data: dict[str, Any] = {}
    for field_name, keys in FIELD_KEYS.items():
        for key in keys:
            if entry.get(key) not in (None, ""):
                data[field_name] = entry[key]
                break

    if "kind" not in data:
        raise ProposalParseError(f"Proposal for {symbol} has no signal kind")
    data["kind"] = normalize_kind(data["kind"])
    data.setdefault("symbol", symbol)

    try:
        return Proposal(**data)
    except ValidationError as e:
        raise ProposalParseError(f"Invalid proposal for {symbol}: {e.error_count()} field error(s)") from e
