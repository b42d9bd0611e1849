"""
Decision learning - confidence from historical user decisions.

No ML: a blend of a fixed per-type prior and the observed acceptance rate,
which behaves sensibly with very little data.
"""

from typing import Dict, Optional

from obligation_engine.domain.models import DecisionCounts

BASE_CONFIDENCE: Dict[str, float] = {
    "payment": 0.70,
    "negotiate": 0.50,
    "defer": 0.60,
    "dispute": 0.55,
    "legal": 0.80,
    "warning": 0.65,
    "strategy": 0.55,
}
DEFAULT_BASE_CONFIDENCE = 0.50

MIN_TYPE_DECISIONS = 5
MIN_PAYEE_DECISIONS = 3
CONFIDENCE_FLOOR = 0.10
CONFIDENCE_CEILING = 0.99


def base_confidence(rec_type: str) -> float:
    return BASE_CONFIDENCE.get(rec_type, DEFAULT_BASE_CONFIDENCE)


def clamp_confidence(value: float) -> float:
    """Never fully certain, never fully dismissed"""
    return min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, value))


def blend_confidence(
    rec_type: str,
    type_counts: DecisionCounts,
    payee_counts: Optional[DecisionCounts] = None,
) -> float:
    """
    Blend prior and history.

    - Fewer than 5 approved+rejected decisions: base confidence, unmodified
    - Otherwise 50% base + 50% acceptance rate
    - Payee with 3+ decisions: 70% of that + 30% payee acceptance rate
    """
    base = base_confidence(rec_type)

    decided = type_counts.approved + type_counts.rejected
    if decided < MIN_TYPE_DECISIONS:
        return base

    acceptance_rate = type_counts.approved / decided
    blended = 0.5 * base + 0.5 * acceptance_rate

    if payee_counts is not None and payee_counts.total >= MIN_PAYEE_DECISIONS:
        payee_rate = payee_counts.approved / payee_counts.total
        blended = 0.7 * blended + 0.3 * payee_rate

    return clamp_confidence(blended)
