"""Revenue discovery - recurring income patterns mined from inflow history"""

from collections import defaultdict
from datetime import date
from fnmatch import fnmatchcase
from typing import Dict, Iterable, List, Optional, Tuple

from obligation_engine.domain.models import InflowPattern, RevenueAssessment, Transaction
from obligation_engine.utils.date_utils import add_months, month_start

TRANSFER_KINDS = ("internalTransfer", "externalTransfer")
MIN_MONTHS = 2


def platform_confidence(counterparty: str, platforms: Dict[str, float]) -> Optional[float]:
    """Case-insensitive substring match against known revenue platforms"""
    upper = counterparty.upper()
    for platform, confidence in platforms.items():
        if platform.upper() in upper:
            return confidence
    return None


def is_excluded_inflow(
    tx: Transaction,
    exclusion_patterns: Iterable[str],
    own_account_names: Iterable[str],
) -> bool:
    """Internal transfers, cashback and moves between the user's own accounts are not revenue"""
    if not tx.counterparty or not tx.counterparty.strip():
        return True
    if tx.kind in TRANSFER_KINDS:
        return True

    description = (tx.description or "").lower()
    if any(fnmatchcase(description, pattern.lower()) for pattern in exclusion_patterns):
        return True

    counterparty = tx.counterparty.strip().lower()
    return any(counterparty == name.strip().lower() for name in own_account_names if name)


def build_inflow_patterns(
    transactions: Iterable[Transaction],
    account_sources: Dict[str, str],
    exclusion_patterns: Iterable[str],
    own_account_names: Iterable[str],
) -> List[InflowPattern]:
    """
    Group inflows by (counterparty, account, source) and calendar month.

    Only patterns active in at least two distinct months are returned,
    largest average first.
    """
    patterns = list(exclusion_patterns)
    names = list(own_account_names)
    grouped: Dict[Tuple[str, Optional[str], str], Dict[date, int]] = defaultdict(lambda: defaultdict(int))

    for tx in transactions:
        if tx.direction != "inflow" or is_excluded_inflow(tx, patterns, names):
            continue
        source = account_sources.get(tx.account_id or "", "")
        key = (tx.counterparty, tx.account_id, source)
        grouped[key][month_start(tx.tx_date)] += tx.amount_cents

    result = [
        InflowPattern(counterparty=cp, account_id=account_id, source=source, monthly_totals=dict(months))
        for (cp, account_id, source), months in grouped.items()
        if len(months) >= MIN_MONTHS
    ]
    return sorted(result, key=lambda p: p.avg_amount_cents, reverse=True)


def amount_variance(pattern: InflowPattern) -> float:
    """(max - min) / max of the monthly totals"""
    high = pattern.max_amount_cents
    if high <= 0:
        return 0.0
    return (high - pattern.min_amount_cents) / high


def assess_confidence(pattern: InflowPattern, platforms: Dict[str, float]) -> Tuple[float, str]:
    """
    Confidence that an inflow pattern will recur, and how it was verified.

    Known platforms use their table value as a floor, lifted to 0.95 by a
    long consistent history. Unknown counterparties:
    - 0.90: 5+ months, amounts within 10%
    - 0.80: 3+ months, amounts within 25%
    - 0.65: 3+ months, varying amounts
    - 0.45: only 2 months
    """
    occurrences = pattern.occurrence_count
    variance = amount_variance(pattern)

    known = platform_confidence(pattern.counterparty, platforms)
    if known is not None:
        confidence = known
        if occurrences >= 5 and variance < 0.1 and confidence < 0.95:
            confidence = 0.95
        return confidence, "validated_match"

    if occurrences >= 5 and variance < 0.1:
        return 0.90, "transaction_history"
    elif occurrences >= 3 and variance < 0.25:
        return 0.80, "transaction_history"
    elif occurrences >= 3:
        return 0.65, "transaction_history"
    return 0.45, "transaction_history"


def assess_pattern(pattern: InflowPattern, platforms: Dict[str, float]) -> RevenueAssessment:
    confidence, verified_by = assess_confidence(pattern, platforms)
    return RevenueAssessment(
        counterparty=pattern.counterparty,
        account_id=pattern.account_id,
        source=pattern.source,
        amount_cents=pattern.avg_amount_cents,
        confidence=confidence,
        verified_by=verified_by,
        recurrence="monthly" if pattern.occurrence_count >= 3 else "irregular",
        next_expected_date=add_months(pattern.last_month, 1),
    )
