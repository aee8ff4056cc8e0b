"""Unit tests for correlated contradictory signal suppression."""

from collections.abc import Callable

from confluence_engine.gates.correlation_filter import (
    CORRELATION_REJECT_REASON,
    filter_correlated,
    majority_direction,
)
from confluence_engine.models.signal import Direction, Signal, SignalKind


def test_majority_direction(make_signal: Callable[..., Signal]) -> None:
    """Test the majority is None on a tie."""
    longs = [make_signal("A"), make_signal("B")]
    short = make_signal("C", kind=SignalKind.ENTER_SHORT)
    assert majority_direction(longs + [short]) == Direction.BUY
    assert majority_direction([longs[0], short]) is None


def test_contradictory_pair_keeps_exactly_one(make_signal: Callable[..., Signal]) -> None:
    """Two assets correlated at 0.9 with opposite entries: one survives."""
    long_signal = make_signal("BTC")
    short_signal = make_signal("ETH", kind=SignalKind.ENTER_SHORT)

    kept, rejected = filter_correlated([long_signal, short_signal], {"BTC-ETH": 0.9})

    assert kept == [long_signal]
    assert len(rejected) == 1
    assert rejected[0].signal.symbol == "ETH"
    assert rejected[0].reason == CORRELATION_REJECT_REASON


def test_majority_direction_wins_over_order(make_signal: Callable[..., Signal]) -> None:
    """Test the signal agreeing with the batch majority is kept even when listed later."""
    signals = [
        make_signal("BTC", kind=SignalKind.ENTER_SHORT),
        make_signal("ETH"),
        make_signal("SOL"),
    ]
    kept, rejected = filter_correlated(signals, {"BTC-ETH": 0.95, "BTC-SOL": 0.1, "ETH-SOL": 0.2})
    assert [s.symbol for s in kept] == ["ETH", "SOL"]
    assert [r.signal.symbol for r in rejected] == ["BTC"]


def test_first_seen_wins_without_majority_preference(make_signal: Callable[..., Signal]) -> None:
    """Test input order decides when the majority preference is off."""
    signals = [
        make_signal("BTC", kind=SignalKind.ENTER_SHORT),
        make_signal("ETH"),
        make_signal("SOL"),
    ]
    kept, _ = filter_correlated(
        signals, {"BTC-ETH": 0.95, "BTC-SOL": 0.1, "ETH-SOL": 0.2}, prefer_majority=False
    )
    assert [s.symbol for s in kept] == ["BTC", "SOL"]


def test_same_direction_is_never_suppressed(make_signal: Callable[..., Signal]) -> None:
    """Test highly correlated agreeing signals both survive."""
    signals = [make_signal("BTC"), make_signal("ETH")]
    kept, rejected = filter_correlated(signals, {"BTC-ETH": 0.99})
    assert len(kept) == 2
    assert rejected == []


def test_threshold_is_exclusive(make_signal: Callable[..., Signal]) -> None:
    """Test a correlation equal to the threshold does not conflict."""
    signals = [make_signal("BTC"), make_signal("ETH", kind=SignalKind.ENTER_SHORT)]
    kept, _ = filter_correlated(signals, {"BTC-ETH": 0.8}, threshold=0.8)
    assert len(kept) == 2


def test_management_kinds_pass(make_signal: Callable[..., Signal]) -> None:
    """Test holds are never suppressed."""
    signals = [make_signal("BTC"), make_signal("ETH", kind=SignalKind.HOLD)]
    kept, rejected = filter_correlated(signals, {"BTC-ETH": 0.99})
    assert len(kept) == 2
    assert rejected == []


def test_unknown_pair_does_not_conflict(make_signal: Callable[..., Signal]) -> None:
    """Test pairs missing from the matrix are treated as uncorrelated."""
    signals = [make_signal("BTC"), make_signal("ETH", kind=SignalKind.ENTER_SHORT)]
    kept, _ = filter_correlated(signals, {})
    assert len(kept) == 2
