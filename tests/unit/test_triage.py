"""Unit tests for the triage rule ladder"""

from datetime import date, datetime, timedelta, timezone
from obligation_engine.domain.models import Dispute, LegalDeadline, Obligation, RecommendationDraft
from obligation_engine.domain.triage import (
    cash_shortfall_warning,
    compute_cash_position,
    dedup_key,
    dispute_recommendation,
    legal_recommendation,
    obligation_recommendations,
)

TODAY = date(2026, 3, 15)
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def _ob(**kwargs) -> Obligation:
    return Obligation(
        id=kwargs.pop("id", "ob-1"),
        payee=kwargs.pop("payee", "ComEd Electric"),
        category=kwargs.pop("category", "utility"),
        amount_due_cents=kwargs.pop("amount_due_cents", 8_000),
        due_date=kwargs.pop("due_date", TODAY + timedelta(days=5)),
        **kwargs,
    )


def test_critical_overdue_obligation_gets_pay_now():
    ob = _ob(due_date=date(2026, 3, 5), late_fee_cents=2_500)

    recs = obligation_recommendations(ob, score=75, surplus_cents=100_000, today=TODAY)

    assert len(recs) == 1
    rec = recs[0]
    assert (rec.rec_type, rec.priority, rec.action_type) == ("payment", 1, "pay_now")
    assert rec.title == "Pay ComEd Electric immediately"
    assert rec.reasoning == "ComEd Electric is 10 days overdue. Late fee: $25.00. Pay now to avoid further penalties."
    assert rec.estimated_savings_cents == 2_500
    assert rec.obligation_id == "ob-1"


def test_critical_mortgage_due_today_mentions_credit():
    ob = _ob(payee="Mr. Cooper", category="mortgage", due_date=TODAY, action_type="charge")

    rec = obligation_recommendations(ob, score=80, surplus_cents=0, today=TODAY)[0]

    assert rec.reasoning == "Mr. Cooper is due today. Missing mortgage payments damages credit score."
    assert rec.action_type == "charge"
    assert rec.estimated_savings_cents is None


def test_auto_pay_obligation_gets_no_pay_now():
    assert obligation_recommendations(_ob(auto_pay=True), score=90, surplus_cents=0, today=TODAY) == []


def test_high_negotiable_obligation_gets_negotiate():
    rec = obligation_recommendations(_ob(negotiable=True, amount_due_cents=20_000), 55, 0, TODAY)[0]

    assert rec.rec_type == "negotiate"
    assert rec.priority == 3
    assert rec.title == "Negotiate ComEd Electric - potential savings"
    assert rec.estimated_savings_cents == 3_000


def test_negotiate_requires_more_than_one_hundred_dollars():
    assert obligation_recommendations(_ob(negotiable=True, amount_due_cents=10_000), 55, 0, TODAY) == []


def test_defer_when_cash_is_negative():
    rec = obligation_recommendations(_ob(), score=35, surplus_cents=-12_345, today=TODAY)[0]

    assert rec.rec_type == "defer"
    assert rec.priority == 5
    assert rec.title == "Defer ComEd Electric - cash is tight"
    assert rec.reasoning.startswith("Cash surplus is -$123. ComEd Electric ($80.00) due in 5 days")


def test_never_defer_mortgage_or_legal():
    for category in ("mortgage", "legal"):
        assert obligation_recommendations(_ob(category=category), 35, -1, TODAY) == []


def test_credit_card_minimum_when_surplus_is_thin():
    card = _ob(payee="Chase", category="credit_card", amount_due_cents=50_000, amount_minimum_cents=2_500)

    recs = obligation_recommendations(card, score=20, surplus_cents=10_000, today=TODAY)

    assert [r.rec_type for r in recs] == ["strategy"]
    assert recs[0].title == "Pay minimum on Chase ($25.00)"
    assert recs[0].action_type == "pay_minimum"
    assert recs[0].estimated_savings_cents == 47_500
    assert obligation_recommendations(card, score=20, surplus_cents=50_000, today=TODAY) == []


def test_one_obligation_can_yield_several_recommendations():
    card = _ob(payee="Chase", category="credit_card", amount_due_cents=50_000, amount_minimum_cents=2_500,
               due_date=date(2026, 3, 1))
    recs = obligation_recommendations(card, score=70, surplus_cents=-5_000, today=TODAY)
    assert [r.rec_type for r in recs] == ["payment", "strategy"]


def test_dispute_recommendation():
    dispute = Dispute(id="d-1", title="Deposit", counterparty="Landlord", priority=1,
                      amount_at_stake_cents=250_000, next_action="Send demand letter",
                      next_action_date=date(2026, 4, 1))

    rec = dispute_recommendation(dispute, TODAY)

    assert rec.title == "Landlord: Send demand letter"
    assert rec.priority == 2
    assert rec.action_type == "execute_action"
    assert "($2,500.00 at stake)" in rec.reasoning
    assert rec.estimated_savings_cents == 250_000


def test_dispute_without_near_action_is_planned():
    dispute = Dispute(id="d-2", title="Billing", counterparty="Comcast", priority=3,
                      next_action="Escalate", next_action_date=date(2026, 5, 1))
    rec = dispute_recommendation(dispute, TODAY)
    assert (rec.priority, rec.action_type) == (4, "plan_action")
    assert dispute_recommendation(Dispute(id="d-3", title="x", counterparty="y"), TODAY) is None


def test_legal_deadline_priority_by_distance():
    soon = LegalDeadline(id="l-1", title="Court hearing", case_ref="2026-CV-1",
                         deadline_date=datetime(2026, 3, 17, 12, 0))
    later = LegalDeadline(id="l-2", title="Filing", case_ref="2026-CV-1",
                          deadline_date=NOW + timedelta(days=10))

    rec = legal_recommendation(soon, NOW)
    assert rec.priority == 1
    assert rec.title == "Prepare for: Court hearing"
    assert "in 2 days (2026-03-17)" in rec.reasoning
    assert legal_recommendation(later, NOW).priority == 2


def test_legal_deadline_outside_window_is_ignored():
    far = LegalDeadline(id="l", title="t", case_ref="c", deadline_date=NOW + timedelta(days=20))
    past = LegalDeadline(id="l", title="t", case_ref="c", deadline_date=NOW - timedelta(days=1))
    assert legal_recommendation(far, NOW) is None
    assert legal_recommendation(past, NOW) is None


def test_cash_shortfall_warning():
    position = compute_cash_position(100_000, 125_000)
    assert position.surplus_cents == -25_000

    rec = cash_shortfall_warning(position)
    assert rec.title == "Cash shortfall: -$250 in 30 days"
    assert rec.priority == 1
    assert cash_shortfall_warning(compute_cash_position(100_000, 100_000)) is None


def test_dedup_key_modes():
    rec = RecommendationDraft(rec_type="payment", priority=1, title="Pay X immediately", reasoning="",
                              action_type="pay_now", obligation_id="ob-1")
    warning = RecommendationDraft(rec_type="warning", priority=1, title="Cash shortfall", reasoning="",
                                  action_type="review_cashflow")

    assert dedup_key(rec) == "Pay X immediately"
    assert dedup_key(rec, "content") == "payment:ob-1:pay_now"
    assert dedup_key(warning, "content") == "warning:-:review_cashflow"
