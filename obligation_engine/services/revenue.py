"""Mine inflow history for recurring revenue and upsert revenue sources"""

import logging
from sqlalchemy.orm import Session

from obligation_engine.config import settings
from obligation_engine.domain.models import RevenueDiscoveryResult
from obligation_engine.domain.revenue import assess_pattern, build_inflow_patterns
from obligation_engine.infrastructure.database.repositories import (
    AccountRepository,
    RevenueSourceRepository,
    TransactionRepository,
)
from obligation_engine.utils.date_utils import Clock, add_months, system_clock, utc_today

HISTORY_MONTHS = 6

logger = logging.getLogger(__name__)


def discover_revenue_sources(db: Session, clock: Clock = system_clock) -> RevenueDiscoveryResult:
    """
    Discover recurring revenue from the last six months of inflows.

    Transfers, cashback and moves between the user's own accounts are
    excluded. Sources are upserted by (source, counterparty, account).
    """
    now = clock()
    today = utc_today(clock)

    accounts = AccountRepository(db)
    inflows = TransactionRepository(db).list_inflows_since(add_months(today, -HISTORY_MONTHS))
    patterns = build_inflow_patterns(
        inflows,
        account_sources=accounts.account_sources(),
        exclusion_patterns=settings.revenue_exclusion_patterns,
        own_account_names=accounts.account_names(),
    )

    repo = RevenueSourceRepository(db)
    discovered = 0
    updated = 0
    total_monthly = 0
    for pattern in patterns:
        assessment = assess_pattern(pattern, settings.known_revenue_platforms)
        if repo.upsert(assessment, now):
            discovered += 1
        else:
            updated += 1
        total_monthly += assessment.amount_cents

    db.commit()

    logger.info(
        "Revenue discovery completed",
        extra={
            "step": "discover_revenue_sources",
            "sources_discovered": discovered,
            "sources_updated": updated,
            "total_monthly_expected_cents": total_monthly,
        },
    )
    return RevenueDiscoveryResult(
        sources_discovered=discovered,
        sources_updated=updated,
        total_monthly_expected_cents=total_monthly,
    )
