"""SQLAlchemy ORM models for the obligation engine"""

import uuid
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class Account(Base):
    """Balance-bearing account, maintained by sync collaborators"""

    __tablename__ = "account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    source = Column(Text, nullable=False, default="manual")
    account_name = Column(Text, nullable=False)
    account_type = Column(Text, nullable=False, index=True)  # checking | savings | credit_card | mortgage | loan
    institution = Column(Text, nullable=True)
    current_balance_cents = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Obligation(Base):
    """Recurring or one-time payment duty"""

    __tablename__ = "obligation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=True)
    category = Column(Text, nullable=False)
    payee = Column(Text, nullable=False)
    amount_due_cents = Column(BigInteger, nullable=True)
    amount_minimum_cents = Column(BigInteger, nullable=True)
    due_date = Column(Date, nullable=False, index=True)
    recurrence = Column(Text, nullable=True)  # monthly | quarterly | annual
    recurrence_day = Column(Integer, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    auto_pay = Column(Boolean, nullable=False, default=False)
    negotiable = Column(Boolean, nullable=False, default=False)
    late_fee_cents = Column(BigInteger, nullable=True)
    grace_period_days = Column(Integer, nullable=False, default=0)
    urgency_score = Column(Integer, nullable=True)
    action_type = Column(Text, nullable=True)
    escalation_type = Column(Text, nullable=True)  # collections | service_shutoff | legal
    credit_impact_score = Column(Integer, nullable=True)
    preferred_account_id = Column(Uuid, ForeignKey("account.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Transaction(Base):
    """Observed money movement; amount is always a positive magnitude"""

    __tablename__ = "bank_transaction"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=True, index=True)
    source = Column(Text, nullable=False, default="manual")
    amount_cents = Column(BigInteger, nullable=False)
    direction = Column(Text, nullable=False)  # inflow | outflow
    description = Column(Text, nullable=False, default="")
    category = Column(Text, nullable=True)
    counterparty = Column(Text, nullable=True)
    tx_date = Column(Date, nullable=False, index=True)
    obligation_id = Column(Uuid, ForeignKey("obligation.id"), nullable=True, index=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RevenueSource(Base):
    """Discovered or declared recurring inflow"""

    __tablename__ = "revenue_source"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    source = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    recurrence = Column(Text, nullable=True)
    recurrence_day = Column(Integer, nullable=True)
    next_expected_date = Column(Date, nullable=True)
    confidence = Column(Float, nullable=False, default=0.5)
    verified_by = Column(Text, nullable=True)  # manual | transaction_history | validated_match
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=True)
    status = Column(Text, nullable=False, default="active", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Dispute(Base):
    __tablename__ = "dispute"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    counterparty = Column(Text, nullable=False)
    dispute_type = Column(Text, nullable=False, default="billing")
    amount_at_stake_cents = Column(BigInteger, nullable=True)
    status = Column(Text, nullable=False, default="open")
    priority = Column(Integer, nullable=False, default=5)
    next_action = Column(Text, nullable=True)
    next_action_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LegalDeadline(Base):
    __tablename__ = "legal_deadline"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_ref = Column(Text, nullable=False)
    deadline_type = Column(Text, nullable=False, default="filing")
    title = Column(Text, nullable=False)
    deadline_date = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(Text, nullable=False, default="upcoming")  # upcoming | completed | missed
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Recommendation(Base):
    """Actionable suggestion emitted by triage"""

    __tablename__ = "recommendation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    obligation_id = Column(Uuid, ForeignKey("obligation.id"), nullable=True)
    dispute_id = Column(Uuid, ForeignKey("dispute.id"), nullable=True)
    legal_deadline_id = Column(Uuid, ForeignKey("legal_deadline.id"), nullable=True)
    rec_type = Column(Text, nullable=False, index=True)
    priority = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    reasoning = Column(Text, nullable=False)
    action_type = Column(Text, nullable=True)
    estimated_savings_cents = Column(BigInteger, nullable=True)
    confidence = Column(Float, nullable=True)
    dedup_key = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="active", index=True)  # active | completed | dismissed | expired
    model_version = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    acted_on_at = Column(DateTime(timezone=True), nullable=True)


class DecisionFeedback(Base):
    """One user decision on a recommendation; append-only apart from the outcome"""

    __tablename__ = "decision_feedback"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recommendation_id = Column(Uuid, ForeignKey("recommendation.id"), nullable=False, index=True)
    obligation_id = Column(Uuid, ForeignKey("obligation.id"), nullable=True, index=True)
    decision = Column(Text, nullable=False)  # approved | rejected | deferred | modified
    original_action = Column(Text, nullable=True)
    modified_action = Column(Text, nullable=True)
    confidence_at_decision = Column(Float, nullable=True)
    session_id = Column(Text, nullable=True)
    outcome_status = Column(Text, nullable=True)  # pending | succeeded | failed | partial
    outcome_recorded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)


class PaymentPlan(Base):
    """Persisted simulation run; at most one is active"""

    __tablename__ = "payment_plan"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plan_type = Column(Text, nullable=False)
    horizon_days = Column(Integer, nullable=False, default=90)
    starting_balance_cents = Column(BigInteger, nullable=False)
    ending_balance_cents = Column(BigInteger, nullable=False)
    lowest_balance_cents = Column(BigInteger, nullable=False)
    lowest_balance_date = Column(Date, nullable=True)
    total_inflows_cents = Column(BigInteger, nullable=False, default=0)
    total_outflows_cents = Column(BigInteger, nullable=False, default=0)
    total_late_fees_avoided_cents = Column(BigInteger, nullable=False, default=0)
    total_late_fees_risked_cents = Column(BigInteger, nullable=False, default=0)
    schedule = Column(JSON, nullable=False)
    warnings = Column(JSON, nullable=False)
    revenue_summary = Column(JSON, nullable=True)
    status = Column(Text, nullable=False, default="draft", index=True)  # draft | active | abandoned
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CashflowProjection(Base):
    __tablename__ = "cashflow_projection"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    projection_date = Column(Date, nullable=False, index=True)
    projected_inflow_cents = Column(BigInteger, nullable=False, default=0)
    projected_outflow_cents = Column(BigInteger, nullable=False, default=0)
    projected_balance_cents = Column(BigInteger, nullable=False, default=0)
    obligations = Column(JSON, nullable=True)
    confidence = Column(Float, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ActionLog(Base):
    """Audit trail of automatic and user-driven actions"""

    __tablename__ = "action_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    action_type = Column(Text, nullable=False)
    target_type = Column(Text, nullable=False)
    target_id = Column(Uuid, nullable=True)
    description = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SyncLog(Base):
    """Run log of the scheduled pipeline"""

    __tablename__ = "sync_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    source = Column(Text, nullable=False)
    sync_type = Column(Text, nullable=False)
    status = Column(Text, nullable=False)  # started | completed | error
    records_synced = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
