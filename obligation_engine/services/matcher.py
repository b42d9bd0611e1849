"""Reconcile recent outflow transactions against open obligations"""

import logging
from datetime import timedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from obligation_engine.domain.matching import select_matches
from obligation_engine.domain.models import MatchResult
from obligation_engine.domain.money import format_dollars
from obligation_engine.infrastructure.database.repositories import (
    ActionLogRepository,
    ObligationRepository,
    TransactionRepository,
)
from obligation_engine.infrastructure.observability.metrics import auto_match_counter
from obligation_engine.utils.date_utils import Clock, system_clock, utc_today

LOOKBACK_DAYS = 30
MAX_CANDIDATES = 200

logger = logging.getLogger(__name__)


def match_transactions(db: Session, clock: Clock = system_clock) -> MatchResult:
    """
    Link unmatched outflows from the last 30 days to pending/overdue obligations.

    Each match is applied and committed on its own. A failing match is rolled
    back and skipped; the rest of the run continues. Re-running is a no-op for
    anything already linked.
    """
    now = clock()
    today = utc_today(clock)

    tx_repo = TransactionRepository(db)
    ob_repo = ObligationRepository(db)
    log_repo = ActionLogRepository(db)

    transactions = tx_repo.list_unmatched_outflows(today - timedelta(days=LOOKBACK_DAYS), MAX_CANDIDATES)
    obligations = ob_repo.list_open()
    matches = select_matches(transactions, obligations)

    applied = []
    marked_paid = 0
    for match in matches:
        try:
            if not tx_repo.link_obligation(match.transaction_id, match.obligation_id):
                db.rollback()
                continue
            paid = ob_repo.mark_paid(match.obligation_id, now)
            pct = round(match.confidence * 100)
            log_repo.add(
                action_type="auto_match",
                target_type="obligation",
                target_id=match.obligation_id,
                description=(
                    f"Auto-matched payment to {match.payee} "
                    f"({format_dollars(match.amount_cents)}, {pct}% confidence)"
                ),
                now=now,
                payload={"transaction_id": match.transaction_id, "confidence": match.confidence},
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Failed to apply match: {e}",
                extra={"transaction_id": match.transaction_id, "obligation_id": match.obligation_id},
            )
            continue

        applied.append(match)
        auto_match_counter.inc()
        if paid:
            marked_paid += 1

    logger.info(
        "Transaction matching completed",
        extra={
            "step": "match_transactions",
            "transactions_scanned": len(transactions),
            "matches_found": len(applied),
            "obligations_marked_paid": marked_paid,
        },
    )
    return MatchResult(
        transactions_scanned=len(transactions),
        matches_found=len(applied),
        obligations_marked_paid=marked_paid,
        matches=applied,
    )
