"""Expected value estimate for a sized signal."""


def calculate_expected_value(
    confidence: float | None,
    risk_usd: float | None,
    risk_reward: float | None,
) -> float:
    """
    Probability-weighted profit/loss in quote currency.

    EV = confidence * risk * R:R - (1 - confidence) * risk

    Args:
        confidence: Win probability estimate (0-1)
        risk_usd: Amount lost if the stop is hit
        risk_reward: Reward:risk ratio

    Returns:
        Expected value, or 0.0 when any input is missing or risk is not positive
    """
    if not confidence or not risk_usd or not risk_reward or risk_usd <= 0:
        return 0.0
    win = confidence * risk_usd * risk_reward
    loss = (1 - confidence) * risk_usd
    return win - loss
