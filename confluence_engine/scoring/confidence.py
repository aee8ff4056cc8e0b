"""Multi-factor confidence scorer.

Assembles a bounded confidence from weighted sub-scores:

- Trend Alignment (25): gatekeeper; a score of 0 auto-rejects at 0.1
- Risk/Reward Quality (20)
- Technical Consensus (30)
- Market Context (10)
- External Confirmation (30 base, plus up to 50 from futures analysis)
- Support/Resistance (5, or 10 for top-ranked assets)
- Divergence & Momentum (15)

then applies capped additive penalties and a rank/quality multiplier. The
scorer is pure: identical inputs give identical results and it never raises.
"""

import logging
import math

from confluence_engine.config.models import ScoringConfig
from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.results import ConfidenceResult, FuturesScores
from confluence_engine.models.signal import Signal
from confluence_engine.scoring import components
from confluence_engine.scoring.futures_confidence import calculate_futures_confidence
from confluence_engine.scoring.penalties import compose_penalties

logger = logging.getLogger(__name__)


def rank_lookup(table: dict[int, float], rank: int | None, default: float) -> float:
    """Return the value of the first bracket whose upper rank bound covers ``rank``."""
    if rank is None:
        return default
    for upper in sorted(table):
        if rank <= upper:
            return table[upper]
    return default


def _fmt(value: float) -> str:
    return f"{value:g}"


class ConfidenceScorer:
    """Scores a directional signal against its evidence bundle."""

    def __init__(self, config: ScoringConfig | None = None) -> None:
        """
        Initialize scorer.

        Args:
            config: Tunable scoring constants (defaults when None)
        """
        self.config = config or ScoringConfig()

    def score(
        self,
        signal: Signal,
        evidence: EvidenceBundle,
        risk_reward: float | None,
        asset_rank: int | None = None,
        quality_score: float | None = None,
    ) -> ConfidenceResult:
        """
        Score a signal. Never raises; unexpected errors yield an auto-reject.

        Args:
            signal: Validated signal (kind, entry, stop)
            evidence: Evidence bundle for the asset
            risk_reward: Reward:risk ratio of the signal's target and stop
            asset_rank: Rank within the current ranking batch (1 = best)
            quality_score: Upstream quality score (0-100), used without a rank

        Returns:
            ConfidenceResult
        """
        try:
            return self._score(signal, evidence, risk_reward, asset_rank, quality_score)
        except Exception as e:
            logger.error(f"❌ Confidence scoring failed for {signal.symbol}: {e}", exc_info=True)
            return ConfidenceResult(
                confidence=self.config.min_confidence,
                total_score=0.0,
                max_score=0.0,
                breakdown=(f"Scoring error: {e}",),
                auto_rejected=True,
                rejection_reason=f"Confidence scoring failed: {e}",
            )

    def _score(
        self,
        signal: Signal,
        evidence: EvidenceBundle,
        risk_reward: float | None,
        asset_rank: int | None,
        quality_score: float | None,
    ) -> ConfidenceResult:
        cfg = self.config
        side = signal.direction
        price = evidence.price
        indicators = evidence.indicators
        external = evidence.external
        top_ranked = asset_rank is not None and asset_rank <= 5
        breakdown: list[str] = []
        max_score = 0.0
        score = 0.0

        # 1. Trend Alignment (gatekeeper)
        max_score += components.TREND_MAX
        trend = components.trend_alignment_score(side, evidence.trend_alignment, indicators, price)
        if trend <= 0:
            logger.info(f"🚫 {signal.symbol}: trend alignment contradicts {signal.kind.value}, auto-rejecting")
            return ConfidenceResult(
                confidence=cfg.min_confidence,
                total_score=trend,
                max_score=max_score,
                breakdown=(f"Trend Alignment: {_fmt(trend)}/25 (COMPLETELY CONTRADICTORY - 0 points)",),
                auto_rejected=True,
                rejection_reason=f"Trend alignment score {_fmt(trend)}/25 is completely contradictory (0 points)",
            )

        trend_bonus = rank_lookup(cfg.trend_rank_bonus, asset_rank, 0) if top_ranked else 0
        if trend_bonus:
            breakdown.append(f"Trend Alignment Bonus (Rank #{asset_rank}): +{_fmt(trend_bonus)} points")
        trend = min(trend + trend_bonus, components.TREND_MAX)
        score += trend
        suffix = f" (+{_fmt(trend_bonus)} bonus for top rank)" if trend_bonus else ""
        breakdown.append(f"Trend Alignment: {_fmt(trend)}/25{suffix}")

        # 2. Risk/Reward
        max_score += components.RISK_REWARD_MAX
        rr_score = components.risk_reward_score(risk_reward, signal.entry_price, signal.stop_loss)
        score += rr_score
        breakdown.append(f"Risk/Reward: {_fmt(rr_score)}/20")

        # 3. Technical Consensus
        max_score += components.TECHNICAL_MAX
        tech = components.technical_score(side, indicators, price)
        score += tech
        breakdown.append(f"Technical Consensus: {_fmt(tech)}/30")

        # 4. Market Context
        max_score += components.CONTEXT_MAX
        regime = indicators.market_regime if indicators else None
        context = components.market_context_score(regime, indicators.atr if indicators else None, price)
        score += context
        breakdown.append(f"Market Context: {_fmt(context)}/10")

        # 5. External Confirmation
        max_score += components.EXTERNAL_MAX
        external_score = 0.0
        futures_scores: FuturesScores | None = None
        if external is not None and indicators is not None:
            external_score += components.external_base_score(side, external, price or 0.0)
            if external.futures is not None and price and side is not None:
                futures_scores = calculate_futures_confidence(
                    external.futures,
                    side,
                    price,
                    indicators.price_change_24h or 0.0,
                )
                futures_bonus = round(futures_scores.total / 2)
                external_score += futures_bonus
                breakdown.append(
                    f"Futures Analysis: {futures_bonus}/50 "
                    f"(Funding: {_fmt(futures_scores.funding_rate)}/20, "
                    f"OI: {_fmt(futures_scores.open_interest)}/20, "
                    f"Liquidation: {_fmt(futures_scores.liquidation)}/15, "
                    f"L/S Ratio: {_fmt(futures_scores.long_short_ratio)}/15, "
                    f"BTC: {_fmt(futures_scores.btc_correlation)}/15, "
                    f"Whale: {_fmt(futures_scores.whale_activity)}/15)"
                )

        external_missing = external is None or external.is_empty()
        effective_external_max = components.EXTERNAL_MAX
        external_adjustment = 0
        if external_score <= 2 and external_missing and top_ranked:
            # Top-ranked assets forfeit only half of the external block
            effective_external_max = components.EXTERNAL_MAX_SOFTENED
            external_adjustment = components.EXTERNAL_MAX_SOFTENED
            breakdown.append(
                f"External Data Bonus (Rank #{asset_rank}): +{external_adjustment} points (50% penalty reduction)"
            )
            max_score = max_score - components.EXTERNAL_MAX + effective_external_max

        adjusted_external = external_score + external_adjustment
        score += adjusted_external
        suffix = f" (+{external_adjustment} bonus for top rank)" if external_adjustment else ""
        breakdown.append(f"External Confirmation: {_fmt(adjusted_external)}/{effective_external_max}{suffix}")

        # 6. Support/Resistance
        sr_max = components.SR_MAX_TOP_RANKED if top_ranked else components.SR_MAX
        max_score += sr_max
        sr = components.support_resistance_score(
            side,
            indicators.support_resistance if indicators else None,
            price,
            top_ranked,
        )
        score += sr
        suffix = " (increased for top rank)" if top_ranked else ""
        breakdown.append(f"Support/Resistance: {_fmt(sr)}/{sr_max}{suffix}")

        # 7. Divergence & Momentum
        max_score += components.DIVERGENCE_MAX
        divergence = components.divergence_score(side, indicators, price)
        score += divergence
        breakdown.append(f"Divergence & Momentum: {divergence:.1f}/15")

        effective_max = max_score
        if not top_ranked and adjusted_external == 0 and external_missing:
            effective_max = max_score - components.EXTERNAL_MAX

        confidence = score / effective_max if effective_max > 0 else cfg.min_confidence
        confidence = max(confidence, cfg.min_confidence)

        outcome = compose_penalties(
            confidence,
            side,
            indicators,
            external,
            price,
            max_total=cfg.max_total_penalty,
            max_volume=cfg.max_volume_penalty,
            min_confidence=cfg.min_confidence,
        )
        if outcome.rejected:
            breakdown.extend(outcome.details)
            return ConfidenceResult(
                confidence=cfg.min_confidence,
                total_score=score,
                max_score=effective_max,
                breakdown=tuple(breakdown),
                auto_rejected=True,
                rejection_reason=outcome.rejection_reason,
                futures_scores=futures_scores,
            )
        breakdown.extend(outcome.details)
        confidence = outcome.confidence

        multiplier = 1.0
        if asset_rank is not None:
            multiplier = rank_lookup(cfg.quality_rank_multiplier, asset_rank, 1.0)
            if multiplier > 1.0:
                breakdown.append(f"Quality Boost (Rank #{asset_rank}): +{multiplier - 1:.0%} confidence multiplier")
        elif quality_score is not None and quality_score >= cfg.quality_score_floor:
            multiplier = cfg.quality_score_multiplier
            breakdown.append(f"Quality Boost (Score {quality_score:.1f}): +{multiplier - 1:.0%} confidence multiplier")

        boosted = min(confidence * multiplier, 1.0)
        if multiplier > 1.0:
            breakdown.append(f"Quality Multiplier Applied: {confidence:.1%} → {boosted:.1%}")
        confidence = boosted

        if effective_max < max_score:
            breakdown.append(
                f"Note: External data missing, adjusted maxScore from {_fmt(max_score)} to {_fmt(effective_max)}"
            )

        if math.isnan(confidence):
            # Surfaced to the filter as an invalid confidence
            logger.error(f"❌ {signal.symbol}: scorer produced NaN confidence")

        return ConfidenceResult(
            confidence=confidence,
            total_score=score,
            max_score=effective_max,
            breakdown=tuple(breakdown),
            auto_rejected=False,
            futures_scores=futures_scores,
        )
