"""Unit tests for transaction-to-obligation matching"""

import pytest
from datetime import date, timedelta
from obligation_engine.domain.models import Obligation, Transaction
from obligation_engine.domain.matching import (
    compute_amount_score,
    compute_date_score,
    compute_name_score,
    match_confidence,
    normalize,
    select_matches,
)

TODAY = date(2026, 3, 15)


def _tx(tx_id: str, amount_cents: int = 15_000, description: str = "", counterparty: str | None = None,
        tx_date: date = TODAY) -> Transaction:
    return Transaction(
        id=tx_id,
        account_id="acct-1",
        amount_cents=amount_cents,
        direction="outflow",
        tx_date=tx_date,
        description=description,
        counterparty=counterparty,
    )


def _ob(ob_id: str, payee: str, amount_due_cents: int | None = 15_000, due_date: date = TODAY) -> Obligation:
    return Obligation(id=ob_id, payee=payee, category="utility", amount_due_cents=amount_due_cents, due_date=due_date)


def test_normalize_strips_punctuation_and_whitespace():
    assert normalize("  Mr. Cooper -  541 W Addison ") == "mr cooper 541 w addison"
    assert normalize(None) == ""


def test_name_score_prefers_counterparty():
    """One of two payee tokens matches the counterparty: 0.5 + 0.2"""
    assert compute_name_score("", "comed", "comed electric") == pytest.approx(0.7)


def test_name_score_falls_back_to_description():
    assert compute_name_score("comed electric payment", "", "comed electric") == 1.0


def test_name_score_ignores_short_payee_tokens():
    assert compute_name_score("at t", "", "at t") == 0.0


@pytest.mark.parametrize(
    "tx_amount,ob_amount,expected",
    [
        (15_000, 0, 0.5),
        (10_000, 10_000, 1.0),
        (9_600, 10_000, 0.95),
        (8_500, 10_000, 0.7),
        (6_000, 10_000, 0.3),
        (1_000, 10_000, 0.1),
    ],
)
def test_amount_score_bands(tx_amount, ob_amount, expected):
    assert compute_amount_score(tx_amount, ob_amount) == expected


@pytest.mark.parametrize(
    "offset,expected",
    [(0, 1.0), (-3, 1.0), (5, 0.8), (10, 0.5), (-20, 0.3), (40, 0.1)],
)
def test_date_score_bands(offset, expected):
    assert compute_date_score(TODAY + timedelta(days=offset), TODAY) == expected


def test_date_score_without_due_date():
    assert compute_date_score(TODAY, None) == 0.1


def test_exact_match_has_full_confidence():
    tx = _tx("t1", description="COMED ELECTRIC PAYMENT")
    assert match_confidence(tx, _ob("o1", "ComEd Electric")) == pytest.approx(1.0)


def test_name_mismatch_disqualifies_pair():
    tx = _tx("t1", description="AMAZON MARKETPLACE")
    assert match_confidence(tx, _ob("o1", "Peoples Gas")) is None


def test_weak_match_below_threshold_is_not_selected():
    """name 0.7, amount unset 0.5, date 40 days off 0.1 -> 0.54"""
    tx = _tx("t1", counterparty="ComEd", tx_date=TODAY - timedelta(days=40))
    ob = _ob("o1", "ComEd Electric", amount_due_cents=None)
    assert match_confidence(tx, ob) == pytest.approx(0.54)
    assert select_matches([tx], [ob]) == []


def test_obligation_claimed_by_first_transaction_only():
    ob = _ob("o1", "ComEd Electric")
    first = _tx("t1", description="COMED ELECTRIC")
    second = _tx("t2", description="COMED ELECTRIC AUTOPAY")

    matches = select_matches([first, second], [ob])

    assert len(matches) == 1
    assert matches[0].transaction_id == "t1"
    assert matches[0].obligation_id == "o1"
    assert matches[0].confidence == 1.0


def test_each_transaction_picks_its_best_obligation():
    gas = _ob("gas", "Peoples Gas", amount_due_cents=8_000)
    electric = _ob("electric", "ComEd Electric", amount_due_cents=15_000)
    txs = [
        _tx("t-electric", amount_cents=15_000, description="COMED ELECTRIC"),
        _tx("t-gas", amount_cents=8_000, description="PEOPLES GAS BILL"),
    ]

    matches = {m.transaction_id: m.obligation_id for m in select_matches(txs, [gas, electric])}

    assert matches == {"t-electric": "electric", "t-gas": "gas"}
