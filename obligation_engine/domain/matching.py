"""Transaction-to-obligation matching - fuzzy reconciliation scoring"""

import re
from datetime import date
from typing import List, Optional, Set

from obligation_engine.domain.models import MatchRecord, Obligation, Transaction
from obligation_engine.utils.date_utils import parse_date

NAME_WEIGHT = 0.5
AMOUNT_WEIGHT = 0.35
DATE_WEIGHT = 0.15

MIN_NAME_SCORE = 0.3
MIN_CONFIDENCE = 0.6

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Lowercase, strip non-alphanumerics and collapse whitespace"""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub("", text.lower())).strip()


def _token_overlap(payee_tokens: List[str], other_tokens: List[str]) -> float:
    hits = sum(
        1 for pt in payee_tokens
        if any(ot in pt or pt in ot for ot in other_tokens)
    )
    return hits / len(payee_tokens)


def compute_name_score(description: str, counterparty: str, payee: str) -> float:
    """
    Similarity between a transaction's text and an obligation payee.

    Payee tokens shorter than 3 characters are ignored
    ("Mr. Cooper - 541 W Addison" -> ["cooper", "541", "addison"]).
    The counterparty is checked first since it is the cleaner field.
    """
    payee_tokens = [t for t in payee.split() if len(t) > 2]
    if not payee_tokens:
        return 0.0

    if counterparty:
        counter_match = _token_overlap(payee_tokens, counterparty.split())
        if counter_match > 0.4:
            return min(1.0, counter_match + 0.2)

    if not description:
        return 0.0
    return _token_overlap(payee_tokens, description.split())


def compute_amount_score(tx_amount_cents: int, obligation_amount_cents: int) -> float:
    """Amount proximity: 1.0 exact, banded by min/max ratio, 0.5 when unset"""
    if obligation_amount_cents <= 0:
        return 0.5
    if tx_amount_cents == obligation_amount_cents:
        return 1.0
    if tx_amount_cents <= 0:
        return 0.1

    ratio = min(tx_amount_cents, obligation_amount_cents) / max(tx_amount_cents, obligation_amount_cents)
    if ratio >= 0.95:
        return 0.95
    elif ratio >= 0.80:
        return 0.7
    elif ratio >= 0.50:
        return 0.3
    return 0.1


def compute_date_score(tx_date: date, due_date: date | None) -> float:
    """Date proximity of the payment to the due date"""
    if due_date is None:
        return 0.1
    days_diff = abs((tx_date - due_date).days)
    if days_diff <= 3:
        return 1.0
    elif days_diff <= 7:
        return 0.8
    elif days_diff <= 14:
        return 0.5
    elif days_diff <= 30:
        return 0.3
    return 0.1


def match_confidence(tx: Transaction, obligation: Obligation) -> Optional[float]:
    """Weighted confidence for a pair, or None when the names don't match at all"""
    name_score = compute_name_score(
        normalize(tx.description),
        normalize(tx.counterparty),
        normalize(obligation.payee),
    )
    if name_score < MIN_NAME_SCORE:
        return None

    amount_score = compute_amount_score(tx.amount_cents, obligation.amount_cents)
    date_score = compute_date_score(tx.tx_date, parse_date(obligation.due_date))

    return (name_score * NAME_WEIGHT) + (amount_score * AMOUNT_WEIGHT) + (date_score * DATE_WEIGHT)


def select_matches(transactions: List[Transaction], obligations: List[Obligation]) -> List[MatchRecord]:
    """
    Pick at most one obligation per transaction.

    Transactions are processed in the order given (most recent first); an
    obligation claimed by an earlier transaction is off the table for the
    rest of the run.
    """
    matches: List[MatchRecord] = []
    claimed: Set[str] = set()

    for tx in transactions:
        best: Optional[Obligation] = None
        best_confidence = 0.0

        for ob in obligations:
            if ob.id in claimed:
                continue
            confidence = match_confidence(tx, ob)
            if confidence is None:
                continue
            if confidence > MIN_CONFIDENCE and (best is None or confidence > best_confidence):
                best = ob
                best_confidence = confidence

        if best is not None:
            claimed.add(best.id)
            matches.append(
                MatchRecord(
                    transaction_id=tx.id,
                    obligation_id=best.id,
                    payee=best.payee,
                    amount_cents=tx.amount_cents,
                    confidence=round(best_confidence, 4),
                )
            )

    return matches
