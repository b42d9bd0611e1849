"""Manual payment of an obligation, optionally executed through the charge service"""

import logging
from typing import Optional, Tuple
from sqlalchemy.orm import Session

from obligation_engine.domain.exceptions import ChargeAPIError
from obligation_engine.infrastructure.clients.charge import ChargeClient
from obligation_engine.infrastructure.database.models import Obligation
from obligation_engine.infrastructure.database.repositories import ActionLogRepository, ObligationRepository
from obligation_engine.utils.date_utils import Clock, system_clock

logger = logging.getLogger(__name__)


async def pay_obligation(
    db: Session,
    obligation_id,
    charge_client: Optional[ChargeClient] = None,
    clock: Clock = system_clock,
) -> Optional[Tuple[Obligation, Optional[str]]]:
    """
    Mark an obligation paid, returning it with the charge id if one was made.

    Obligations with action_type "charge" and an amount due are executed as
    a hold that is captured immediately, when a charge service is configured.
    Returns None when the obligation does not exist.

    Raises:
        ChargeAPIError: the charge service failed; nothing is marked paid and
            a hold that could not be captured is released
    """
    repo = ObligationRepository(db)
    obligation = repo.get(obligation_id)
    if obligation is None:
        return None

    charge_id = None
    if (
        charge_client is not None
        and charge_client.configured
        and obligation.action_type == "charge"
        and obligation.amount_due_cents
    ):
        hold = await charge_client.create_hold(
            amount_cents=obligation.amount_due_cents,
            description=f"Payment: {obligation.payee}",
            metadata={"obligation_id": str(obligation.id), "payee": obligation.payee},
        )
        charge_id = hold.get("id")
        if charge_id:
            try:
                await charge_client.capture_hold(charge_id)
            except ChargeAPIError:
                logger.error(
                    "Capture failed, releasing hold",
                    extra={"obligation_id": str(obligation.id), "charge_id": charge_id},
                )
                await charge_client.release_hold(charge_id)
                raise

    now = clock()
    repo.mark_paid(obligation.id, now, only_open=False)
    ActionLogRepository(db).add(
        action_type="mark_paid",
        target_type="obligation",
        target_id=obligation.id,
        description=f"Paid {obligation.payee}" + (" via charge service" if charge_id else " (manual)"),
        now=now,
        payload={"charge_id": charge_id} if charge_id else {},
    )
    db.commit()
    db.refresh(obligation)

    logger.info(
        "Obligation paid",
        extra={"obligation_id": str(obligation.id), "charge_id": charge_id},
    )
    return obligation, charge_id
