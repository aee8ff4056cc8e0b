"""Rationale text built from the evidence reducer's readings."""

from confluence_engine.models.results import IndicatorTally
from confluence_engine.models.signal import Direction


def build_rationale(direction: Direction | None, tally: IndicatorTally, opinion_text: str = "") -> str:
    """
    Describe the supporting and contradicting evidence for a trade side.

    Counts come straight from the tally, so the text always agrees with the
    direction the validator enforced.

    Args:
        direction: Trade side of the signal (None for management kinds)
        tally: Evidence reducer output
        opinion_text: Free-text rationale from the opinion service

    Returns:
        Rationale text
    """
    if direction is None or direction == Direction.MIXED:
        return opinion_text

    opposite = Direction.SELL if direction == Direction.BUY else Direction.BUY
    supporting = [r for r in tally.readings if r.vote == direction]
    contradicting = [r for r in tally.readings if r.vote == opposite]
    side = "Bullish" if direction == Direction.BUY else "Bearish"
    other = "Bearish" if direction == Direction.BUY else "Bullish"

    if len(supporting) > len(contradicting):
        verdict = f"✅ {side} evidence outweighs {other.lower()} ({len(supporting)} vs {len(contradicting)})"
    elif len(supporting) == len(contradicting):
        verdict = f"⚠️ MIXED SIGNALS: {side} {len(supporting)} vs {other} {len(contradicting)}"
    else:
        verdict = (
            f"🚨 CONTRADICTION: {direction.value} signal but {other.lower()} evidence "
            f"({len(contradicting)}) outweighs {side.lower()} ({len(supporting)})"
        )

    lines = [verdict]
    if supporting:
        lines.append(f"  Supporting ({side} - {len(supporting)}): " + ", ".join(f"{r.name} {r.detail}" for r in supporting))
    if contradicting:
        lines.append(
            f"  Contradicting ({other} - {len(contradicting)}): "
            + ", ".join(f"{r.name} {r.detail}" for r in contradicting)
        )
    if opinion_text:
        lines.append(opinion_text)
    return "\n".join(lines)
