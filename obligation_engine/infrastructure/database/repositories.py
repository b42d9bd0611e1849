"""Data access layer for obligation engine entities"""

import uuid
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple
from sqlalchemy import case, delete, exists, false, func, or_, update
from sqlalchemy.orm import Session, aliased
from obligation_engine.infrastructure.database import models as orm
from obligation_engine.domain import models as domain
from obligation_engine.domain.models import (
    CashflowProjectionRow,
    DecisionCounts,
    PaymentPlanResult,
    RecommendationDraft,
)

OPEN_STATUSES = ("pending", "overdue")
CASH_ACCOUNT_TYPES = ("checking", "savings")


def as_uuid(value) -> Optional[uuid.UUID]:
    """Coerce str/UUID ids; None and malformed ids become None"""
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _str_id(value) -> Optional[str]:
    return str(value) if value is not None else None


def _to_account(row: orm.Account) -> domain.Account:
    return domain.Account(
        id=str(row.id),
        account_type=row.account_type,
        current_balance_cents=row.current_balance_cents or 0,
        account_name=row.account_name,
        source=row.source,
    )


def _to_obligation(row: orm.Obligation) -> domain.Obligation:
    return domain.Obligation(
        id=str(row.id),
        payee=row.payee,
        category=row.category,
        amount_due_cents=row.amount_due_cents,
        amount_minimum_cents=row.amount_minimum_cents,
        due_date=row.due_date,
        recurrence=row.recurrence,
        recurrence_day=row.recurrence_day,
        status=row.status,
        auto_pay=bool(row.auto_pay),
        negotiable=bool(row.negotiable),
        late_fee_cents=row.late_fee_cents,
        grace_period_days=row.grace_period_days,
        urgency_score=row.urgency_score,
        action_type=row.action_type,
        escalation_type=row.escalation_type,
        credit_impact_score=row.credit_impact_score,
        preferred_account_id=_str_id(row.preferred_account_id),
    )


def _to_transaction(row: orm.Transaction) -> domain.Transaction:
    return domain.Transaction(
        id=str(row.id),
        account_id=_str_id(row.account_id),
        amount_cents=abs(row.amount_cents or 0),
        direction=row.direction,
        tx_date=row.tx_date,
        description=row.description or "",
        counterparty=row.counterparty,
        obligation_id=_str_id(row.obligation_id),
        kind=(row.extra or {}).get("kind"),
    )


def _to_revenue_source(row: orm.RevenueSource) -> domain.RevenueSource:
    return domain.RevenueSource(
        id=str(row.id),
        description=row.description,
        amount_cents=row.amount_cents,
        confidence=row.confidence,
        recurrence=row.recurrence,
        recurrence_day=row.recurrence_day,
        next_expected_date=row.next_expected_date,
        source=row.source,
        account_id=_str_id(row.account_id),
    )


class AccountRepository:
    """Read-only view of balance-bearing accounts"""

    def __init__(self, db: Session):
        self.db = db

    def list_cash_accounts(self) -> List[domain.Account]:
        """Checking and savings accounts, largest balance first"""
        rows = (
            self.db.query(orm.Account)
            .filter(orm.Account.account_type.in_(CASH_ACCOUNT_TYPES))
            .order_by(orm.Account.current_balance_cents.desc())
            .all()
        )
        return [_to_account(r) for r in rows]

    def total_cash_cents(self) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(orm.Account.current_balance_cents), 0))
            .filter(orm.Account.account_type.in_(CASH_ACCOUNT_TYPES))
            .scalar()
        )
        return int(total or 0)

    def account_sources(self) -> Dict[str, str]:
        return {str(row.id): row.source for row in self.db.query(orm.Account.id, orm.Account.source).all()}

    def account_names(self) -> List[str]:
        return [row.account_name for row in self.db.query(orm.Account.account_name).all() if row.account_name]


class ObligationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, obligation_id) -> Optional[orm.Obligation]:
        key = as_uuid(obligation_id)
        if key is None:
            return None
        return self.db.get(orm.Obligation, key)

    def list_open(self) -> List[domain.Obligation]:
        """Pending and overdue obligations ordered by due date"""
        rows = (
            self.db.query(orm.Obligation)
            .filter(orm.Obligation.status.in_(OPEN_STATUSES))
            .order_by(orm.Obligation.due_date.asc(), orm.Obligation.created_at.asc())
            .all()
        )
        return [_to_obligation(r) for r in rows]

    def apply_scores(self, updates: List[Tuple[str, int, str]], now: datetime) -> None:
        """Write (id, urgency_score, status) triples as one batched UPDATE"""
        if not updates:
            return
        self.db.execute(
            update(orm.Obligation),
            [
                {"id": as_uuid(ob_id), "urgency_score": score, "status": status, "updated_at": now}
                for ob_id, score, status in updates
            ],
        )

    def total_due_through(self, end: date) -> int:
        """Σ amount_due (else minimum) of open obligations due on or before end, overdue included"""
        amount = func.coalesce(orm.Obligation.amount_due_cents, orm.Obligation.amount_minimum_cents, 0)
        total = (
            self.db.query(func.coalesce(func.sum(amount), 0))
            .filter(
                orm.Obligation.status.in_(OPEN_STATUSES),
                orm.Obligation.due_date <= end,
            )
            .scalar()
        )
        return int(total or 0)

    def mark_paid(self, obligation_id, now: datetime, only_open: bool = True) -> bool:
        """Set paid with urgency 0; with only_open the row must still be pending/overdue"""
        stmt = (
            update(orm.Obligation)
            .where(orm.Obligation.id == as_uuid(obligation_id))
            .values(status="paid", urgency_score=0, updated_at=now)
        )
        if only_open:
            stmt = stmt.where(orm.Obligation.status.in_(OPEN_STATUSES))
        return self.db.execute(stmt).rowcount > 0

    def mark_deferred(self, obligation_id, now: datetime) -> bool:
        """Defer a still pending/overdue obligation; paid or disputed rows are left alone"""
        result = self.db.execute(
            update(orm.Obligation)
            .where(
                orm.Obligation.id == as_uuid(obligation_id),
                orm.Obligation.status.in_(OPEN_STATUSES),
            )
            .values(status="deferred", updated_at=now)
        )
        return result.rowcount > 0


class TransactionRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_unmatched_outflows(self, since: date, limit: int = 200) -> List[domain.Transaction]:
        rows = (
            self.db.query(orm.Transaction)
            .filter(
                orm.Transaction.direction == "outflow",
                orm.Transaction.obligation_id.is_(None),
                orm.Transaction.tx_date >= since,
            )
            .order_by(orm.Transaction.tx_date.desc(), orm.Transaction.created_at.desc())
            .limit(limit)
            .all()
        )
        return [_to_transaction(r) for r in rows]

    def list_inflows_since(self, since: date) -> List[domain.Transaction]:
        rows = (
            self.db.query(orm.Transaction)
            .filter(orm.Transaction.direction == "inflow", orm.Transaction.tx_date >= since)
            .order_by(orm.Transaction.tx_date.asc())
            .all()
        )
        return [_to_transaction(r) for r in rows]

    def link_obligation(self, transaction_id, obligation_id) -> bool:
        """Link only while the transaction is still unlinked"""
        result = self.db.execute(
            update(orm.Transaction)
            .where(
                orm.Transaction.id == as_uuid(transaction_id),
                orm.Transaction.obligation_id.is_(None),
            )
            .values(obligation_id=as_uuid(obligation_id))
        )
        return result.rowcount > 0


class RevenueSourceRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> List[domain.RevenueSource]:
        rows = (
            self.db.query(orm.RevenueSource)
            .filter(orm.RevenueSource.status == "active")
            .order_by(orm.RevenueSource.amount_cents.desc())
            .all()
        )
        return [_to_revenue_source(r) for r in rows]

    def list_all(self) -> List[orm.RevenueSource]:
        return (
            self.db.query(orm.RevenueSource)
            .order_by(orm.RevenueSource.status.asc(), orm.RevenueSource.amount_cents.desc())
            .all()
        )

    def upsert(self, assessment: domain.RevenueAssessment, now: datetime) -> bool:
        """Insert or refresh by (source, description, account); True when newly created"""
        account_id = as_uuid(assessment.account_id)
        existing = (
            self.db.query(orm.RevenueSource)
            .filter(
                orm.RevenueSource.source == assessment.source,
                orm.RevenueSource.description == assessment.counterparty,
                orm.RevenueSource.account_id.is_(None)
                if account_id is None
                else orm.RevenueSource.account_id == account_id,
            )
            .first()
        )
        if existing is not None:
            existing.amount_cents = assessment.amount_cents
            existing.confidence = assessment.confidence
            existing.verified_by = assessment.verified_by
            existing.recurrence = assessment.recurrence
            existing.next_expected_date = assessment.next_expected_date
            existing.updated_at = now
            return False

        self.db.add(
            orm.RevenueSource(
                source=assessment.source,
                description=assessment.counterparty,
                amount_cents=assessment.amount_cents,
                recurrence=assessment.recurrence,
                next_expected_date=assessment.next_expected_date,
                confidence=assessment.confidence,
                verified_by=assessment.verified_by,
                account_id=account_id,
                status="active",
                created_at=now,
            )
        )
        return True


class DisputeRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_open_with_action(self) -> List[domain.Dispute]:
        rows = (
            self.db.query(orm.Dispute)
            .filter(orm.Dispute.status == "open", orm.Dispute.next_action.isnot(None))
            .order_by(orm.Dispute.priority.asc())
            .all()
        )
        return [
            domain.Dispute(
                id=str(r.id),
                title=r.title,
                counterparty=r.counterparty,
                priority=r.priority,
                amount_at_stake_cents=r.amount_at_stake_cents,
                next_action=r.next_action,
                next_action_date=r.next_action_date,
            )
            for r in rows
        ]


class LegalDeadlineRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_upcoming(self, now: datetime) -> List[domain.LegalDeadline]:
        rows = (
            self.db.query(orm.LegalDeadline)
            .filter(orm.LegalDeadline.status == "upcoming", orm.LegalDeadline.deadline_date > now)
            .order_by(orm.LegalDeadline.deadline_date.asc())
            .all()
        )
        return [
            domain.LegalDeadline(id=str(r.id), title=r.title, case_ref=r.case_ref, deadline_date=r.deadline_date)
            for r in rows
        ]


class RecommendationRepository:
    def __init__(self, db: Session):
        self.db = db

    def expire_older_than(self, cutoff: datetime) -> int:
        result = self.db.execute(
            update(orm.Recommendation)
            .where(orm.Recommendation.status == "active", orm.Recommendation.created_at < cutoff)
            .values(status="expired")
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def active_dedup_keys(self) -> Set[str]:
        rows = self.db.query(orm.Recommendation.dedup_key).filter(orm.Recommendation.status == "active").all()
        return {row.dedup_key for row in rows}

    def create(
        self,
        draft: RecommendationDraft,
        dedup_key: str,
        confidence: float,
        model_version: str,
        now: datetime,
    ) -> orm.Recommendation:
        rec = orm.Recommendation(
            obligation_id=as_uuid(draft.obligation_id),
            dispute_id=as_uuid(draft.dispute_id),
            legal_deadline_id=as_uuid(draft.legal_deadline_id),
            rec_type=draft.rec_type,
            priority=draft.priority,
            title=draft.title,
            reasoning=draft.reasoning,
            action_type=draft.action_type,
            estimated_savings_cents=draft.estimated_savings_cents,
            confidence=confidence,
            dedup_key=dedup_key,
            status="active",
            model_version=model_version,
            created_at=now,
        )
        self.db.add(rec)
        self.db.flush()
        return rec

    def get_active(self, rec_id) -> Optional[orm.Recommendation]:
        key = as_uuid(rec_id)
        if key is None:
            return None
        return (
            self.db.query(orm.Recommendation)
            .filter(orm.Recommendation.id == key, orm.Recommendation.status == "active")
            .first()
        )

    def list_active_queue(self, limit: int = 50) -> List[Tuple[orm.Recommendation, Optional[orm.Obligation]]]:
        """Active recommendations with their obligation, highest priority then oldest first"""
        return (
            self.db.query(orm.Recommendation, orm.Obligation)
            .outerjoin(orm.Obligation, orm.Recommendation.obligation_id == orm.Obligation.id)
            .filter(orm.Recommendation.status == "active")
            .order_by(orm.Recommendation.priority.asc(), orm.Recommendation.created_at.asc())
            .limit(limit)
            .all()
        )

    def count_active(self) -> int:
        return self.db.query(func.count(orm.Recommendation.id)).filter(orm.Recommendation.status == "active").scalar()


class DecisionFeedbackRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        rec: orm.Recommendation,
        decision: str,
        confidence: Optional[float],
        session_id: Optional[str],
        modified_action: Optional[str],
        now: datetime,
    ) -> orm.DecisionFeedback:
        feedback = orm.DecisionFeedback(
            recommendation_id=rec.id,
            obligation_id=rec.obligation_id,
            decision=decision,
            original_action=rec.action_type,
            modified_action=modified_action,
            confidence_at_decision=confidence,
            session_id=session_id,
            outcome_status="pending" if decision == "approved" else None,
            created_at=now,
        )
        self.db.add(feedback)
        self.db.flush()
        return feedback

    @staticmethod
    def _counts(rows: Iterable) -> DecisionCounts:
        counts = DecisionCounts()
        for decision, cnt in rows:
            if decision in ("approved", "rejected", "deferred", "modified"):
                setattr(counts, decision, getattr(counts, decision) + int(cnt))
        return counts

    def counts_for_type(self, rec_type: str, since: datetime) -> DecisionCounts:
        rows = (
            self.db.query(orm.DecisionFeedback.decision, func.count(orm.DecisionFeedback.id))
            .join(orm.Recommendation, orm.DecisionFeedback.recommendation_id == orm.Recommendation.id)
            .filter(orm.Recommendation.rec_type == rec_type, orm.DecisionFeedback.created_at > since)
            .group_by(orm.DecisionFeedback.decision)
            .all()
        )
        return self._counts(rows)

    def counts_for_payee(self, payee: str, since: datetime) -> DecisionCounts:
        rows = (
            self.db.query(orm.DecisionFeedback.decision, func.count(orm.DecisionFeedback.id))
            .join(orm.Recommendation, orm.DecisionFeedback.recommendation_id == orm.Recommendation.id)
            .join(orm.Obligation, orm.Recommendation.obligation_id == orm.Obligation.id)
            .filter(orm.Obligation.payee == payee, orm.DecisionFeedback.created_at > since)
            .group_by(orm.DecisionFeedback.decision)
            .all()
        )
        return self._counts(rows)

    def stats(self, session_id: Optional[str], since: datetime) -> Tuple[DecisionCounts, int]:
        """Decision counts plus approved savings, for one session or since a cutoff"""
        window = (
            orm.DecisionFeedback.session_id == session_id
            if session_id
            else orm.DecisionFeedback.created_at > since
        )
        rows = (
            self.db.query(orm.DecisionFeedback.decision, func.count(orm.DecisionFeedback.id))
            .filter(window)
            .group_by(orm.DecisionFeedback.decision)
            .all()
        )
        savings = (
            self.db.query(func.coalesce(func.sum(orm.Recommendation.estimated_savings_cents), 0))
            .select_from(orm.DecisionFeedback)
            .join(orm.Recommendation, orm.DecisionFeedback.recommendation_id == orm.Recommendation.id)
            .filter(window, orm.DecisionFeedback.decision == "approved")
            .scalar()
        )
        return self._counts(rows), int(savings or 0)

    def record_outcome(self, feedback_id, status: str, now: datetime) -> bool:
        key = as_uuid(feedback_id)
        if key is None:
            return False
        result = self.db.execute(
            update(orm.DecisionFeedback)
            .where(orm.DecisionFeedback.id == key)
            .values(outcome_status=status, outcome_recorded_at=now)
        )
        return result.rowcount > 0

    def history(self, limit: int = 50) -> List[Tuple[orm.DecisionFeedback, orm.Recommendation]]:
        return (
            self.db.query(orm.DecisionFeedback, orm.Recommendation)
            .join(orm.Recommendation, orm.DecisionFeedback.recommendation_id == orm.Recommendation.id)
            .order_by(orm.DecisionFeedback.created_at.desc())
            .limit(limit)
            .all()
        )


class PaymentPlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        result: PaymentPlanResult,
        schedule: list,
        warnings: list,
        revenue_summary: list,
        now: datetime,
    ) -> orm.PaymentPlan:
        """Persist as draft; JSON payloads are pre-serialized by the caller"""
        plan = orm.PaymentPlan(
            plan_type=result.plan_type,
            horizon_days=result.horizon_days,
            starting_balance_cents=result.starting_balance_cents,
            ending_balance_cents=result.ending_balance_cents,
            lowest_balance_cents=result.lowest_balance_cents,
            lowest_balance_date=result.lowest_balance_date,
            total_inflows_cents=result.total_inflows_cents,
            total_outflows_cents=result.total_outflows_cents,
            total_late_fees_avoided_cents=result.total_late_fees_avoided_cents,
            total_late_fees_risked_cents=result.total_late_fees_risked_cents,
            schedule=schedule,
            warnings=warnings,
            revenue_summary=revenue_summary,
            status="draft",
            created_at=now,
        )
        self.db.add(plan)
        self.db.flush()
        return plan

    def get(self, plan_id) -> Optional[orm.PaymentPlan]:
        key = as_uuid(plan_id)
        if key is None:
            return None
        return self.db.get(orm.PaymentPlan, key)

    def get_current(self) -> Optional[orm.PaymentPlan]:
        """The active plan, else the newest draft"""
        active = self.db.query(orm.PaymentPlan).filter(orm.PaymentPlan.status == "active").first()
        if active is not None:
            return active
        return (
            self.db.query(orm.PaymentPlan)
            .filter(orm.PaymentPlan.status == "draft")
            .order_by(orm.PaymentPlan.created_at.desc())
            .first()
        )

    def activate(self, plan_id) -> bool:
        """
        Compare-and-swap activation in a single statement.

        The target becomes active and any other active plan is abandoned.
        Nothing changes when the target does not exist.
        """
        key = as_uuid(plan_id)
        if key is None:
            return False

        target = aliased(orm.PaymentPlan)
        result = self.db.execute(
            update(orm.PaymentPlan)
            .where(
                or_(orm.PaymentPlan.id == key, orm.PaymentPlan.status == "active"),
                exists().where(target.id == key),
            )
            .values(status=case((orm.PaymentPlan.id == key, "active"), else_="abandoned"))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class ProjectionRepository:
    def __init__(self, db: Session):
        self.db = db

    def replace(self, rows: List[CashflowProjectionRow], generated_at: datetime, stale_before: datetime) -> int:
        """Drop stale rows and rows for the dates being rewritten, then insert"""
        dates = [row.projection_date for row in rows]
        self.db.execute(
            delete(orm.CashflowProjection)
            .where(
                or_(
                    orm.CashflowProjection.generated_at < stale_before,
                    orm.CashflowProjection.projection_date.in_(dates) if dates else false(),
                )
            )
            .execution_options(synchronize_session=False)
        )
        for row in rows:
            self.db.add(
                orm.CashflowProjection(
                    projection_date=row.projection_date,
                    projected_inflow_cents=row.inflow_cents,
                    projected_outflow_cents=row.outflow_cents,
                    projected_balance_cents=row.balance_cents,
                    obligations=row.obligations,
                    confidence=row.confidence,
                    generated_at=generated_at,
                )
            )
        return len(rows)

    def list_from(self, start: date, end: Optional[date] = None) -> List[orm.CashflowProjection]:
        query = self.db.query(orm.CashflowProjection).filter(orm.CashflowProjection.projection_date >= start)
        if end is not None:
            query = query.filter(orm.CashflowProjection.projection_date <= end)
        return query.order_by(orm.CashflowProjection.projection_date.asc()).all()


class ActionLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        action_type: str,
        target_type: str,
        target_id,
        description: str,
        now: datetime,
        status: str = "completed",
        payload: Optional[dict] = None,
    ) -> None:
        self.db.add(
            orm.ActionLog(
                action_type=action_type,
                target_type=target_type,
                target_id=as_uuid(target_id),
                description=description,
                status=status,
                payload=payload,
                executed_at=now,
            )
        )


class SyncLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def start(self, source: str, sync_type: str, now: datetime) -> orm.SyncLog:
        log = orm.SyncLog(source=source, sync_type=sync_type, status="started", started_at=now)
        self.db.add(log)
        self.db.flush()
        return log

    def finish(self, log_id, status: str, records: int, now: datetime, error: Optional[str] = None) -> None:
        self.db.execute(
            update(orm.SyncLog)
            .where(orm.SyncLog.id == log_id)
            .values(status=status, records_synced=records, error_message=error, completed_at=now)
        )
