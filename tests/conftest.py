import os
from collections.abc import Callable
from typing import Any, Generator

import pytest

from confluence_engine.cache.trend_store import InMemoryTrendStore, reset_trend_store
from confluence_engine.config.models import PipelineConfig
from confluence_engine.models.evidence import (
    AroonReading,
    BollingerBands,
    EvidenceBundle,
    IndicatorSet,
    MacdReading,
    MarketRegime,
    StochasticReading,
    SupportResistance,
    TrendAlignment,
)
from confluence_engine.models.signal import Signal, SignalKind


@pytest.fixture(autouse=True)
def clean_config_env() -> Generator[None, None, None]:
    """Ensure CONFLUENCE_* and threshold env vars do not interfere with tests unless explicitly set."""
    original_env = {}
    keys_to_clear = [key for key in os.environ if key.startswith("CONFLUENCE_")] + [
        "MIN_CONFIDENCE_THRESHOLD",
        "MIN_EV_THRESHOLD",
        "REDIS_URL",
        "SENTRY_DSN",
    ]

    for key in keys_to_clear:
        if key in os.environ:
            original_env[key] = os.environ[key]
            os.environ.pop(key, None)

    reset_trend_store()
    yield
    reset_trend_store()

    for key, value in original_env.items():
        os.environ[key] = value


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def trend_store() -> InMemoryTrendStore:
    return InMemoryTrendStore(ttl_seconds=600)


@pytest.fixture
def bullish_indicators() -> IndicatorSet:
    """Price 100 in a clean uptrend: 8 bullish readings, 2 bearish (Bollinger, CCI)."""
    return IndicatorSet(
        rsi14=45.0,
        macd=MacdReading(macd=1.0, signal=0.5, histogram=0.5),
        ema20=98.0,
        ema50=95.0,
        ema200=90.0,
        bollinger=BollingerBands(upper=105.0, middle=101.0, lower=97.0),
        parabolic_sar=96.0,
        aroon=AroonReading(up=80.0, down=20.0),
        cci=-150.0,
        vwap=97.0,
        obv=1_500_000.0,
        stochastic=StochasticReading(k=25.0, d=30.0),
        atr=2.0,
        volume_change=15.0,
        price_change_24h=2.5,
        support_resistance=SupportResistance(support=97.0, resistance=110.0),
        market_regime=MarketRegime(regime="trending", volatility="normal"),
    )


@pytest.fixture
def bearish_indicators() -> IndicatorSet:
    """Price 100 in a clean downtrend."""
    return IndicatorSet(
        rsi14=55.0,
        macd=MacdReading(macd=-1.0, signal=-0.5, histogram=-0.5),
        ema20=102.0,
        ema50=105.0,
        ema200=110.0,
        bollinger=BollingerBands(upper=103.0, middle=99.0, lower=95.0),
        parabolic_sar=104.0,
        aroon=AroonReading(up=10.0, down=90.0),
        vwap=103.0,
        obv=-2_000_000.0,
        stochastic=StochasticReading(k=75.0, d=70.0),
        atr=2.0,
        volume_change=-20.0,
        price_change_24h=-3.0,
        support_resistance=SupportResistance(support=90.0, resistance=103.0),
        market_regime=MarketRegime(regime="trending", volatility="normal"),
    )


@pytest.fixture
def uptrend() -> TrendAlignment:
    return TrendAlignment(
        trend="uptrend",
        daily_trend="uptrend",
        h4_aligned=True,
        h1_aligned=True,
        alignment_score=100.0,
    )


@pytest.fixture
def make_evidence(
    bullish_indicators: IndicatorSet,
    uptrend: TrendAlignment,
) -> Callable[..., EvidenceBundle]:
    """Factory for evidence bundles; defaults to the bullish uptrend bundle at price 100."""

    def _make(symbol: str = "BTC", **overrides: Any) -> EvidenceBundle:
        fields: dict[str, Any] = {
            "symbol": symbol,
            "price": 100.0,
            "price_string": "100.00",
            "indicators": bullish_indicators,
            "trend_alignment": uptrend,
        }
        fields.update(overrides)
        return EvidenceBundle(**fields)

    return _make


@pytest.fixture
def make_signal() -> Callable[..., Signal]:
    """Factory for scored, sized signals."""

    def _make(symbol: str = "BTC", kind: SignalKind = SignalKind.ENTER_LONG, **overrides: Any) -> Signal:
        fields: dict[str, Any] = {
            "symbol": symbol,
            "kind": kind,
            "entry_price": 100.0,
            "quantity": 0.5,
            "stop_loss": 97.0 if kind != SignalKind.ENTER_SHORT else 103.0,
            "take_profit": 109.0 if kind != SignalKind.ENTER_SHORT else 91.0,
            "confidence": 0.7,
            "expected_value": 1.0,
            "risk_usd": 1.0,
            "risk_reward": 3.0,
        }
        fields.update(overrides)
        return Signal(**fields)

    return _make
