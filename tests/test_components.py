"""Unit tests for individual confidence sub-scores."""

from confluence_engine.models.evidence import (
    IndicatorSet,
    MultiTimeframeIndicators,
    TimeframeIndicators,
    TrendAlignment,
)
from confluence_engine.models.signal import Direction
from confluence_engine.scoring import components
from confluence_engine.scoring.trend import derive_trend_alignment


class TestTrendAlignmentScore:
    """Gatekeeper sub-score."""

    def test_full_alignment_scores_max(self, uptrend: TrendAlignment) -> None:
        assert components.trend_alignment_score(Direction.BUY, uptrend, None, 100.0) == 25

    def test_contradicting_daily_trend_gets_partial_credit(self) -> None:
        alignment = TrendAlignment(trend="downtrend", daily_trend="downtrend", alignment_score=70.0)
        assert components.trend_alignment_score(Direction.BUY, alignment, None, 100.0) == 7

    def test_neutral_daily_with_score_is_zero(self) -> None:
        alignment = TrendAlignment(trend="neutral", daily_trend="neutral", alignment_score=60.0)
        assert components.trend_alignment_score(Direction.SELL, alignment, None, 100.0) == 0

    def test_flags_used_without_alignment_score(self) -> None:
        alignment = TrendAlignment(trend="uptrend", h4_aligned=True, h1_aligned=False)
        assert components.trend_alignment_score(Direction.BUY, alignment, None, 100.0) == 18

    def test_ema_fallback_without_alignment(self, bullish_indicators: IndicatorSet) -> None:
        assert components.trend_alignment_score(Direction.BUY, None, bullish_indicators, 100.0) == 25
        assert components.trend_alignment_score(Direction.SELL, None, bullish_indicators, 100.0) == 0

    def test_management_kind_scores_zero(self, uptrend: TrendAlignment) -> None:
        assert components.trend_alignment_score(None, uptrend, None, 100.0) == 0


class TestRiskRewardScore:
    """Risk/Reward quality ladder."""

    def test_high_ratio_and_tight_stop(self) -> None:
        assert components.risk_reward_score(3.2, 100.0, 98.6) == 20

    def test_wide_stop_gets_no_tightness_points(self) -> None:
        assert components.risk_reward_score(2.5, 100.0, 96.7) == 12

    def test_missing_inputs(self) -> None:
        assert components.risk_reward_score(None, None, None) == 0


def test_derive_trend_alignment_uptrend() -> None:
    """Test a daily uptrend with supportive lower timeframes scores 100."""
    timeframes = MultiTimeframeIndicators(
        daily=TimeframeIndicators(price=100.0, ema20=95.0, ema50=90.0),
        h4=TimeframeIndicators(price=100.0, ema20=99.0),
        h1=TimeframeIndicators(price=100.0, ema20=99.5),
    )
    alignment = derive_trend_alignment(timeframes)
    assert alignment.trend == "uptrend"
    assert alignment.h4_aligned and alignment.h1_aligned
    assert alignment.alignment_score == 100.0


def test_derive_trend_alignment_lower_timeframe_disagrees() -> None:
    """Test a 1h close below EMA20 breaks alignment in a daily uptrend."""
    timeframes = MultiTimeframeIndicators(
        daily=TimeframeIndicators(price=100.0, ema20=95.0, ema50=90.0),
        h1=TimeframeIndicators(price=100.0, ema20=101.0),
    )
    alignment = derive_trend_alignment(timeframes)
    assert alignment.h4_aligned is True
    assert alignment.h1_aligned is False
    assert alignment.alignment_score == 70.0


def test_derive_trend_alignment_missing_daily() -> None:
    """Test missing daily data yields a neutral zero-score record."""
    alignment = derive_trend_alignment(None)
    assert alignment.trend == "neutral"
    assert alignment.alignment_score == 0.0
