"""Unit tests for ATR-based stops and targets."""

import pytest

from confluence_engine.config.models import StopsConfig
from confluence_engine.models.signal import Direction
from confluence_engine.risk.stops import plan_exits, stop_loss_pct


@pytest.fixture
def stops() -> StopsConfig:
    return StopsConfig()


class TestStopLossPct:
    """Volatility-scaled stop distance."""

    def test_low_volatility(self, stops: StopsConfig) -> None:
        assert stop_loss_pct(2.0, 100.0, stops) == pytest.approx(0.033)

    def test_low_volatility_floor(self, stops: StopsConfig) -> None:
        assert stop_loss_pct(0.5, 100.0, stops) == pytest.approx(0.018)

    def test_medium_volatility(self, stops: StopsConfig) -> None:
        assert stop_loss_pct(3.0, 100.0, stops) == pytest.approx(0.0555)

    def test_high_volatility(self, stops: StopsConfig) -> None:
        assert stop_loss_pct(5.0, 100.0, stops) == pytest.approx(0.103)

    def test_missing_atr_uses_fallback(self, stops: StopsConfig) -> None:
        assert stop_loss_pct(None, 100.0, stops) == stops.fallback_stop_pct


class TestPlanExits:
    """Stop/target planning."""

    def test_long_uses_minimum_reward_risk(self, stops: StopsConfig) -> None:
        plan = plan_exits(Direction.BUY, 100.0, 2.0, None, cautious=False, config=stops)
        assert plan.stop_loss == pytest.approx(96.7)
        assert plan.take_profit == pytest.approx(108.25)
        assert plan.risk_reward == pytest.approx(2.5)

    def test_short_mirrors_long(self, stops: StopsConfig) -> None:
        plan = plan_exits(Direction.SELL, 100.0, 2.0, None, cautious=False, config=stops)
        assert plan.stop_loss == pytest.approx(103.3)
        assert plan.take_profit == pytest.approx(91.75)

    def test_cautious_signal_needs_wider_target(self, stops: StopsConfig) -> None:
        plan = plan_exits(Direction.BUY, 100.0, 2.0, None, cautious=True, config=stops)
        assert plan.risk_reward == pytest.approx(3.0)
        assert plan.take_profit == pytest.approx(109.9)

    def test_close_proposed_target_is_widened(self, stops: StopsConfig) -> None:
        plan = plan_exits(Direction.BUY, 100.0, 0.5, 104.0, cautious=False, config=stops)
        # 1.8% stop, 4% target gives R:R 2.22 which is under the minimum
        assert plan.take_profit == pytest.approx(104.5)

    def test_acceptable_proposed_target_is_kept(self, stops: StopsConfig) -> None:
        plan = plan_exits(Direction.BUY, 100.0, None, 105.0, cautious=False, config=stops)
        assert plan.take_profit == pytest.approx(105.0)
        assert plan.risk_reward == pytest.approx(2.5)

    def test_wrong_side_target_is_ignored(self, stops: StopsConfig) -> None:
        plan = plan_exits(Direction.SELL, 100.0, None, 104.0, cautious=False, config=stops)
        assert plan.take_profit == pytest.approx(95.0)

    def test_non_positive_entry(self, stops: StopsConfig) -> None:
        assert plan_exits(Direction.BUY, 0.0, 2.0, None, cautious=False, config=stops) is None
