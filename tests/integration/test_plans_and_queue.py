"""Integration tests for payment plans, the decision queue, learning and manual payment"""

import asyncio
import uuid
import pytest
from datetime import date, timedelta
from unittest.mock import AsyncMock, patch
from sqlalchemy.orm import Session
from obligation_engine.domain.exceptions import ChargeAPIError, InvalidPlanOptionsError
from obligation_engine.domain.models import PlanOptions
from obligation_engine.infrastructure.clients.charge import ChargeClient
from obligation_engine.infrastructure.database import models as orm
from obligation_engine.services.learning import compute_confidence, get_decision_stats, record_outcome
from obligation_engine.services.payments import pay_obligation
from obligation_engine.services.planner import (
    activate_payment_plan,
    generate_payment_plan,
    get_current_plan,
    get_plan,
    save_payment_plan,
    simulate_scenario,
)
from obligation_engine.services.queue import decide, decision_history, list_queue

TODAY = date(2026, 3, 15)


# Payment plans


def test_generate_plan_over_stored_data(db: Session, clock, make_account, make_obligation):
    account = make_account(100_000)
    make_obligation(amount_due_cents=30_000, due_date=TODAY + timedelta(days=5))
    make_obligation(payee="Paid Already", status="paid")

    result = generate_payment_plan(db, PlanOptions(horizon_days=30), clock)

    assert result.plan_type == "optimal"
    assert [(e.payee, e.action, e.amount_cents) for e in result.schedule] == [("ComEd Electric", "pay_full", 30_000)]
    assert result.schedule[0].account_id == str(account.id)
    assert result.ending_balance_cents == 70_000


def test_credit_accounts_do_not_count_as_cash(db: Session, clock, make_account):
    make_account(100_000)
    make_account(-50_000, account_type="credit_card", name="Visa")

    result = generate_payment_plan(db, PlanOptions(horizon_days=10), clock)

    assert result.starting_balance_cents == 100_000


def test_saved_plan_is_draft_with_iso_dates(db: Session, clock, make_account, make_obligation):
    make_account(100_000)
    make_obligation(amount_due_cents=30_000, due_date=TODAY + timedelta(days=5))

    plan_id = save_payment_plan(db, generate_payment_plan(db, PlanOptions(horizon_days=30), clock), clock)

    plan = get_plan(db, plan_id)
    assert plan.status == "draft"
    assert plan.schedule[0]["date"] == "2026-03-20"
    assert plan.lowest_balance_date == TODAY + timedelta(days=5)
    assert get_current_plan(db).id == plan.id


def test_activation_abandons_previous_active_plan(db: Session, clock, make_account):
    make_account(100_000)
    first = save_payment_plan(db, generate_payment_plan(db, PlanOptions(horizon_days=10), clock), clock)
    second = save_payment_plan(db, generate_payment_plan(db, PlanOptions(horizon_days=20), clock), clock)

    assert activate_payment_plan(db, first).status == "active"
    assert activate_payment_plan(db, second).status == "active"

    assert get_plan(db, first).status == "abandoned"
    assert db.query(orm.PaymentPlan).filter(orm.PaymentPlan.status == "active").count() == 1
    assert str(get_current_plan(db).id) == second


def test_activating_unknown_plan_changes_nothing(db: Session, clock, make_account):
    make_account(100_000)
    plan_id = save_payment_plan(db, generate_payment_plan(db, PlanOptions(horizon_days=10), clock), clock)
    activate_payment_plan(db, plan_id)

    assert activate_payment_plan(db, str(uuid.uuid4())) is None
    assert activate_payment_plan(db, "not-a-uuid") is None
    assert get_plan(db, plan_id).status == "active"


def test_simulation_rejects_bad_options(db: Session, clock):
    with pytest.raises(InvalidPlanOptionsError):
        simulate_scenario(db, PlanOptions(strategy="yolo"), clock)


def test_simulation_is_not_persisted(db: Session, clock, make_account):
    make_account(100_000)
    simulate_scenario(db, PlanOptions(strategy="aggressive", horizon_days=30), clock)
    assert db.query(orm.PaymentPlan).count() == 0


# Decision queue


def test_queue_orders_by_priority_then_age(db: Session, clock, make_recommendation):
    later = make_recommendation("Low priority", priority=4)
    urgent = make_recommendation("Urgent", priority=1)

    items = list_queue(db, 10, clock)

    assert [i.recommendation.id for i in items] == [urgent.id, later.id]
    assert items[0].obligation is None
    assert items[0].confidence == pytest.approx(0.70)


def test_approve_pay_action_marks_obligation_paid(db: Session, clock, make_obligation, make_recommendation):
    ob = make_obligation()
    rec = make_recommendation(obligation_id=ob.id, estimated_savings_cents=2_500, confidence=0.8)

    outcome = decide(db, rec.id, "approved", session_id="s1", clock=clock)

    assert outcome.decision == "approved"
    assert outcome.next_item is None
    assert rec.status == "completed"
    assert rec.acted_on_at is not None
    assert ob.status == "paid"

    feedback = db.query(orm.DecisionFeedback).one()
    assert feedback.outcome_status == "pending"
    assert feedback.confidence_at_decision == pytest.approx(0.8)
    assert feedback.obligation_id == ob.id

    log = db.query(orm.ActionLog).one()
    assert log.action_type == "pay_now"
    assert log.description == f"Approved via action queue: {rec.title}"

    stats = get_decision_stats(db, "s1", clock)
    assert (stats.approved, stats.total, stats.savings_cents) == (1, 1, 2_500)


def test_modified_defer_marks_obligation_deferred(db: Session, clock, make_obligation, make_recommendation):
    ob = make_obligation()
    rec = make_recommendation(obligation_id=ob.id)

    decide(db, rec.id, "modified", modified_action="defer", clock=clock)

    assert rec.status == "completed"
    assert ob.status == "deferred"
    assert db.query(orm.DecisionFeedback).one().modified_action == "defer"


def test_approved_defer_leaves_paid_obligation_paid(db: Session, clock, make_obligation, make_recommendation):
    ob = make_obligation(status="paid")
    rec = make_recommendation(
        "Defer ComEd Electric - cash is tight", rec_type="defer", obligation_id=ob.id, action_type="defer"
    )

    decide(db, rec.id, "approved", clock=clock)

    db.expire_all()
    assert rec.status == "completed"
    assert ob.status == "paid"


def test_reject_dismisses_and_returns_next_item(db: Session, clock, make_recommendation):
    first = make_recommendation("First", priority=1)
    second = make_recommendation("Second", priority=2)

    outcome = decide(db, first.id, "rejected", clock=clock)

    assert first.status == "dismissed"
    assert outcome.next_item.id == second.id
    assert db.query(orm.DecisionFeedback).one().outcome_status is None


def test_defer_lowers_priority_and_caps_at_ten(db: Session, clock, make_recommendation):
    rec = make_recommendation(priority=3)
    capped = make_recommendation("Capped", priority=10)

    decide(db, rec.id, "deferred", clock=clock)
    decide(db, capped.id, "deferred", clock=clock)

    assert (rec.status, rec.priority) == ("active", 4)
    assert capped.priority == 10


def test_decide_unknown_or_finished_recommendation(db: Session, clock, make_recommendation):
    done = make_recommendation(status="completed")

    assert decide(db, done.id, "approved", clock=clock) is None
    assert decide(db, uuid.uuid4(), "approved", clock=clock) is None
    with pytest.raises(ValueError):
        decide(db, done.id, "maybe", clock=clock)


def test_decision_history_newest_first(db: Session, clock, make_recommendation):
    rec = make_recommendation()
    decide(db, rec.id, "deferred", clock=clock)

    history = decision_history(db)

    assert len(history) == 1
    feedback, recommendation = history[0]
    assert feedback.decision == "deferred"
    assert recommendation.id == rec.id


# Learning


def test_confidence_learns_from_decisions(db: Session, clock, make_recommendation):
    for i in range(10):
        rec = make_recommendation(f"Pay bill {i}")
        decide(db, rec.id, "approved" if i < 8 else "rejected", clock=clock)

    assert compute_confidence(db, "payment", clock=clock) == pytest.approx(0.75)
    assert compute_confidence(db, "negotiate", clock=clock) == pytest.approx(0.50)


def test_record_outcome(db: Session, clock, make_recommendation):
    rec = make_recommendation()
    outcome = decide(db, rec.id, "approved", clock=clock)

    assert record_outcome(db, outcome.feedback_id, "succeeded", clock) is True
    feedback = db.query(orm.DecisionFeedback).one()
    assert feedback.outcome_status == "succeeded"
    assert feedback.outcome_recorded_at is not None

    assert record_outcome(db, str(uuid.uuid4()), "failed", clock) is False
    with pytest.raises(ValueError):
        record_outcome(db, outcome.feedback_id, "unknown", clock)


# Manual payment


def test_manual_payment_without_charge_service(db: Session, clock, make_obligation):
    ob = make_obligation(status="deferred", action_type="charge")

    obligation, charge_id = asyncio.run(pay_obligation(db, ob.id, ChargeClient(base_url=""), clock))

    assert charge_id is None
    assert obligation.status == "paid"
    assert obligation.urgency_score == 0
    assert db.query(orm.ActionLog).one().description == "Paid ComEd Electric (manual)"


def test_payment_unknown_obligation(db: Session, clock):
    assert asyncio.run(pay_obligation(db, uuid.uuid4(), None, clock)) is None


@patch.object(ChargeClient, "capture_hold", new_callable=AsyncMock)
@patch.object(ChargeClient, "create_hold", new_callable=AsyncMock)
def test_charge_obligation_through_charge_service(
    mock_create: AsyncMock, mock_capture: AsyncMock, db: Session, clock, make_obligation
):
    mock_create.return_value = {"id": "hold_123"}
    mock_capture.return_value = {"id": "hold_123", "status": "captured"}
    ob = make_obligation(action_type="charge")

    obligation, charge_id = asyncio.run(pay_obligation(db, ob.id, ChargeClient(base_url="http://charge.test"), clock))

    assert charge_id == "hold_123"
    assert obligation.status == "paid"
    assert mock_create.call_args.kwargs["amount_cents"] == 15_000
    mock_capture.assert_awaited_once_with("hold_123")
    log = db.query(orm.ActionLog).one()
    assert log.description == "Paid ComEd Electric via charge service"
    assert log.payload == {"charge_id": "hold_123"}


@patch.object(ChargeClient, "create_hold", new_callable=AsyncMock)
def test_charge_failure_leaves_obligation_open(mock_create: AsyncMock, db: Session, clock, make_obligation):
    mock_create.side_effect = ChargeAPIError("Charge API error on /api/holds: 503")
    ob = make_obligation(action_type="charge")

    with pytest.raises(ChargeAPIError):
        asyncio.run(pay_obligation(db, ob.id, ChargeClient(base_url="http://charge.test"), clock))

    db.rollback()
    assert ob.status == "pending"
    assert db.query(orm.ActionLog).count() == 0


@patch.object(ChargeClient, "release_hold", new_callable=AsyncMock)
@patch.object(ChargeClient, "capture_hold", new_callable=AsyncMock)
@patch.object(ChargeClient, "create_hold", new_callable=AsyncMock)
def test_failed_capture_releases_hold(
    mock_create: AsyncMock, mock_capture: AsyncMock, mock_release: AsyncMock, db: Session, clock, make_obligation
):
    mock_create.return_value = {"id": "hold_1"}
    mock_capture.side_effect = ChargeAPIError("Charge API error on /api/holds/hold_1/capture: 503")
    ob = make_obligation(action_type="charge")

    with pytest.raises(ChargeAPIError):
        asyncio.run(pay_obligation(db, ob.id, ChargeClient(base_url="http://charge.test"), clock))

    mock_release.assert_awaited_once_with("hold_1")
    db.rollback()
    assert ob.status == "pending"
    assert db.query(orm.ActionLog).count() == 0
