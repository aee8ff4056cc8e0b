"""Cross-asset filter: quality, correlation, execution tier and risk limits."""

import dataclasses
import logging
from collections.abc import Mapping, Sequence

from confluence_engine.config.models import PipelineConfig
from confluence_engine.models.proposal import AccountSnapshot
from confluence_engine.models.results import ExecutionDecision, RejectedSignal
from confluence_engine.models.signal import ExecutionLevel, Signal

from .correlation_filter import filter_correlated
from .execution_tier import should_auto_execute
from .quality_filter import QualityFilter, resolve_reject_thresholds
from .risk_gate import RiskLimitGate

logger = logging.getLogger(__name__)


def _scaled(value: float | None, multiplier: float) -> float | None:
    return value * multiplier if value is not None else None


class SignalFilter:
    """Runs the filter passes over one cycle's candidate signals."""

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config
        self.risk_gate = RiskLimitGate(config.safety)

    def apply(
        self,
        signals: Sequence[Signal],
        correlation_matrix: Mapping[str, float],
        account: AccountSnapshot | None,
        asset_count: int,
    ) -> tuple[list[Signal], list[RejectedSignal]]:
        """
        Filter a cycle's signals.

        Passes, in order:
        1. Quality filter on directional signals (confidence and EV floors).
        2. Correlation filter, only with more than one asset and at least
           ``correlation.min_signals`` survivors.
        3. Execution tier per directional signal; tier-rejected signals stay
           in the output as non-executable.
        4. Risk-limit gate in AUTONOMOUS mode for auto-tradeable signals;
           violations are downgraded, never removed.

        Management kinds (hold, close, reduce, close-all) skip the quality
        and correlation passes.

        Args:
            signals: Finalised per-asset signals
            correlation_matrix: Pair key to coefficient
            account: Account snapshot for the position cap
            asset_count: Number of assets requested this cycle

        Returns:
            Tuple of (final signals, rejected signals)
        """
        quality = QualityFilter(resolve_reject_thresholds(self.config, asset_count))
        rejected: list[RejectedSignal] = []

        survivors: list[Signal] = []
        for signal in signals:
            if not signal.is_directional:
                survivors.append(signal)
                continue
            passed, reason = quality.evaluate(signal)
            if passed:
                survivors.append(signal)
            else:
                rejected.append(
                    RejectedSignal(signal=dataclasses.replace(signal, rejection_reason=reason), reason=reason)
                )
        after_quality = len(survivors)

        corr_cfg = self.config.correlation
        if asset_count > 1 and correlation_matrix and len(survivors) >= corr_cfg.min_signals:
            survivors, correlated = filter_correlated(
                survivors,
                correlation_matrix,
                threshold=corr_cfg.threshold,
                prefer_majority=corr_cfg.prefer_majority,
            )
            rejected.extend(correlated)
        after_correlation = len(survivors)

        final = [self._gate(self._classify(signal), account) for signal in survivors]

        self._log_summary(len(signals), after_quality, after_correlation, rejected)
        return final, rejected

    def _classify(self, signal: Signal) -> Signal:
        """Attach the execution tier and apply its size multiplier."""
        if not signal.is_directional:
            return dataclasses.replace(signal, auto_tradeable=self.config.is_autonomous)

        decision: ExecutionDecision = should_auto_execute(signal.confidence, signal.expected_value, self.config)
        if not decision.auto_tradeable or decision.size_multiplier is None:
            logger.info(f"⚠️ {signal.symbol}: {decision.reason}")
            return dataclasses.replace(
                signal,
                execution_level=decision.level,
                auto_tradeable=False,
                rejection_reason=signal.rejection_reason or decision.reason,
            )

        multiplier = decision.size_multiplier
        for warning in decision.warnings:
            logger.debug(f"{signal.symbol}: {warning}")
        return dataclasses.replace(
            signal,
            execution_level=decision.level,
            auto_tradeable=self.config.is_autonomous,
            size_multiplier=multiplier,
            quantity=_scaled(signal.quantity, multiplier),
            risk_usd=_scaled(signal.risk_usd, multiplier),
            expected_value=_scaled(signal.expected_value, multiplier),
            warnings=signal.warnings + decision.warnings,
        )

    def _gate(self, signal: Signal, account: AccountSnapshot | None) -> Signal:
        """Downgrade auto-tradeable signals that break a safety limit."""
        if not self.config.is_autonomous or not signal.auto_tradeable:
            return signal
        allowed, reason = self.risk_gate.evaluate(signal, account)
        if allowed:
            return signal
        logger.warning(f"⚠️ {signal.symbol}: Risk limit violations for {signal.kind.value} signal: {reason}")
        return dataclasses.replace(
            signal,
            auto_tradeable=False,
            execution_level=ExecutionLevel.RISK_LIMIT_VIOLATION,
            rejection_reason=f"Risk limit violations: {reason}",
        )

    @staticmethod
    def _log_summary(
        generated: int,
        after_quality: int,
        after_correlation: int,
        rejected: list[RejectedSignal],
    ) -> None:
        if not rejected:
            return
        logger.info("📊 Signal Filtering Summary:")
        logger.info(f"   Generated: {generated} signals")
        logger.info(f"   After Quality Filter: {after_quality} signals ({generated - after_quality} rejected)")
        logger.info(
            f"   After Correlation Filter: {after_correlation} signals "
            f"({after_quality - after_correlation} rejected)"
        )
        logger.info(f"   Total Rejected: {len(rejected)} signals")
        for item in rejected[:5]:
            signal = item.signal
            conf = f"{signal.confidence * 100:.1f}%" if signal.confidence is not None else "N/A"
            ev = f"{signal.expected_value:.2f}" if signal.expected_value is not None else "N/A"
            logger.info(f"   ❌ {signal.symbol}: {signal.kind.value} | Conf: {conf} | EV: ${ev} | {item.reason}")
        if len(rejected) > 5:
            logger.info(f"   ... and {len(rejected) - 5} more rejected signals")
