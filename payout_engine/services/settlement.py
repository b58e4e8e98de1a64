"""Settlement scheduler: release held earnings once the hold period ends."""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.earnings import (
    EventEarnings,
    SETTLEMENT_LOCKED,
    SETTLEMENT_PENDING,
    SETTLEMENT_READY,
)

logger = logging.getLogger(__name__)


async def _mark_ready(db: AsyncSession, earnings_id: str, from_status: str, now: datetime) -> bool:
    """Flip one row to ready if it is still in ``from_status`` and due."""
    result = await db.execute(
        update(EventEarnings)
        .where(
            EventEarnings.id == earnings_id,
            EventEarnings.settlement_status == from_status,
            EventEarnings.settlement_ready_date <= now,
        )
        .values(settlement_status=SETTLEMENT_READY, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_batch(
    db: AsyncSession,
    candidates: List[Tuple[str, str, Optional[datetime]]],
    from_status: str,
    now: datetime,
) -> Dict[str, int]:
    """Each row commits on its own so one failure never blocks the rest."""
    updated = 0
    failed = 0
    for earnings_id, event_id, ready_date in candidates:
        # Re-validate before writing
        if ready_date is None or ready_date > now:
            continue
        try:
            if await _mark_ready(db, earnings_id, from_status, now):
                updated += 1
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            failed += 1
            logger.error(f"Failed to release earnings for event {event_id}: {e}")
    return {"updated": updated, "failed": failed}


async def update_settlement_statuses(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, object]:
    """
    Move due earnings to ``ready``.

    Two scans: pending earnings past their ready date, and locked earnings
    that still hold an unwithdrawn balance past their ready date. Rows that
    fail are logged and skipped; the rest of the batch is committed.
    Re-running with nothing newly due is a no-op.
    """
    now = now or datetime.utcnow()

    pending_result = await db.execute(
        select(EventEarnings.id, EventEarnings.event_id, EventEarnings.settlement_ready_date).where(
            EventEarnings.settlement_status == SETTLEMENT_PENDING,
            EventEarnings.settlement_ready_date <= now,
        )
    )
    pending = [tuple(row) for row in pending_result.all()]

    locked_result = await db.execute(
        select(EventEarnings.id, EventEarnings.event_id, EventEarnings.settlement_ready_date).where(
            EventEarnings.settlement_status == SETTLEMENT_LOCKED,
            EventEarnings.net_amount - EventEarnings.withdrawn_amount > 0,
            EventEarnings.settlement_ready_date <= now,
        )
    )
    locked = [tuple(row) for row in locked_result.all()]

    pending_summary = await _release_batch(db, pending, SETTLEMENT_PENDING, now)
    locked_summary = await _release_batch(db, locked, SETTLEMENT_LOCKED, now)

    summary = {
        "pendingUpdated": pending_summary["updated"],
        "lockedUnlocked": locked_summary["updated"],
        "failed": pending_summary["failed"] + locked_summary["failed"],
        "total": pending_summary["updated"] + locked_summary["updated"],
        "timestamp": now.isoformat(),
    }
    logger.info(
        f"Settlement update: {summary['pendingUpdated']} pending -> ready, "
        f"{summary['lockedUnlocked']} locked -> ready, {summary['failed']} failed"
    )
    return summary
