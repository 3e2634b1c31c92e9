"""Keyword risk score for dispute descriptions."""

LOW_RISK_WORDS = ("delivery", "refund")
HIGH_RISK_WORDS = ("fraud", "scam")


def calculate_risk(description: str) -> int:
    """Return a 0-100 risk score; higher means a harder case to argue."""
    text = (description or "").lower()
    score = 10
    for word in HIGH_RISK_WORDS:
        if word in text:
            score += 30
    for word in LOW_RISK_WORDS:
        if word in text:
            score -= 5
    return max(0, min(score, 100))
