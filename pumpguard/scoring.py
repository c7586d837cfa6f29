"""
SCORING
=======
Signals -> bounded 0-100 score, risk level, UI verdict and confidence.

Each category's weights are summed and clamped to the category cap, the
clamped subtotals are summed and clamped to [0, 100]. CONTEXT has cap 0 and
never moves the score.
"""

from collections import defaultdict
from typing import Optional

from .signals import CATEGORY_CAPS, RiskCategory

# Score -> level
LEVEL_HIGH = 70
LEVEL_MEDIUM = 35

# Score -> UI verdict (own bands, not the level ones)
VERDICT_HIGH = 67
VERDICT_MEDIUM = 34

AGE_FOR_HIGH_CONFIDENCE = 24 * 3600

VERDICT_COPY = {
    "LOW": {
        "headline": "Low risk signals detected",
        "bullets": [
            "No critical red flags detected in current on-chain signals.",
            "Always manage position size and exit plan.",
        ],
        "action": "Good for quick pre-entry checks. Still not risk-free.",
    },
    "MEDIUM": {
        "headline": "Moderate risk signals detected",
        "bullets": [
            "Some on-chain risk signals are present.",
            "Potential concerns require manual review.",
        ],
        "action": "Consider smaller size and faster invalidation.",
    },
    "HIGH": {
        "headline": "High risk signals detected",
        "bullets": [
            "Multiple red flags detected in on-chain behavior.",
            "Patterns resemble common rug scenarios.",
        ],
        "action": "Avoid or treat as extremely high risk.",
    },
}


def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def category_subtotals(signals) -> dict:
    """Clamped contribution of every category (all categories present)."""
    raw = defaultdict(float)
    for s in signals:
        raw[s.category] += s.weight
    return {cat: clamp(raw.get(cat, 0.0), 0, cap) for cat, cap in CATEGORY_CAPS.items()}


def score_signals(signals) -> int:
    total = sum(category_subtotals(signals).values())
    return int(round(clamp(total, 0, 100)))


def level_from_score(score: float) -> str:
    if score >= LEVEL_HIGH:
        return "HIGH"
    if score >= LEVEL_MEDIUM:
        return "MEDIUM"
    return "LOW"


def verdict_from_score(score: float) -> str:
    if score >= VERDICT_HIGH:
        return "HIGH"
    if score >= VERDICT_MEDIUM:
        return "MEDIUM"
    return "LOW"


def estimate_confidence(live: bool, age_seconds: Optional[int], top10_percent: Optional[float],
                        dev_candidate: Optional[str], premium_key: bool) -> str:
    if not live:
        return "LOW"
    if (age_seconds is not None and age_seconds >= AGE_FOR_HIGH_CONFIDENCE
            and top10_percent is not None and dev_candidate and premium_key):
        return "HIGH"
    return "MED"


def merge_signals(base, deep) -> list:
    """
    Deep signals replace base signals with the same id.

    Base order is kept; ids only in `deep` are appended in deep order.
    """
    deep_by_id = {}
    for s in deep:
        deep_by_id[s.id] = s
    merged = {}
    for s in base:
        merged[s.id] = deep_by_id.get(s.id, s)
    for sid, s in deep_by_id.items():
        if sid not in merged:
            merged[sid] = s
    return list(merged.values())


def scored_categories(subtotals: dict) -> dict:
    """Subtotals keyed by category name, CONTEXT left out."""
    return {cat.value: round(v, 2) for cat, v in subtotals.items()
            if cat != RiskCategory.CONTEXT}
