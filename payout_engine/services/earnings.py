"""Event earnings ledger: sales, refunds, reservations and debits."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.errors import NotFoundError, PayoutValidationError
from payout_engine.models.earnings import (
    EventEarnings,
    SETTLEMENT_LOCKED,
    SETTLEMENT_PENDING,
    SETTLEMENT_READY,
)
from payout_engine.models.event import Event
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.services.amounts import calculate_net
from payout_engine.services.balance import get_spendable_amount
from payout_engine.services.platform_config import load_platform_config
from payout_engine.services.transactions import run_in_transaction

logger = logging.getLogger(__name__)


def settlement_ready_date_for(event: Event, hold_days: int) -> datetime:
    return event.ends_at + timedelta(days=hold_days)


async def get_event_earnings(db: AsyncSession, event_id: str, for_update: bool = False) -> Optional[EventEarnings]:
    query = select(EventEarnings).where(EventEarnings.event_id == event_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _get_or_create(db: AsyncSession, event: Event, config: PlatformPayoutConfig) -> EventEarnings:
    earnings = await get_event_earnings(db, event.id, for_update=True)
    if earnings is None:
        earnings = EventEarnings(
            event_id=event.id,
            organizer_id=event.organizer_id,
            currency=event.currency,
            settlement_status=SETTLEMENT_PENDING,
            settlement_ready_date=settlement_ready_date_for(event, config.settlement_hold_days),
            gross_amount=0,
            platform_fee=0,
            net_amount=0,
            withdrawn_amount=0,
            tickets_sold=0,
        )
        db.add(earnings)
        await db.flush()
        logger.info(f"Created earnings for event {event.id}, ready on {earnings.settlement_ready_date.isoformat()}")
    return earnings


async def record_ticket_sale(db: AsyncSession, event_id: str, amount: int, quantity: int = 1) -> EventEarnings:
    """Add a confirmed sale of ``amount`` minor units to the event's earnings."""
    if amount < 0 or quantity < 1:
        raise PayoutValidationError("amount must be non-negative and quantity at least 1")

    async def _record() -> EventEarnings:
        event = await db.get(Event, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        config = await load_platform_config(db)
        earnings = await _get_or_create(db, event, config)

        net = calculate_net(amount)
        earnings.gross_amount += amount
        earnings.net_amount += net
        earnings.platform_fee += amount - net
        earnings.tickets_sold += quantity
        earnings.last_sale_at = datetime.utcnow()
        await db.flush()
        return earnings

    earnings = await run_in_transaction(db, _record)
    logger.info(f"Recorded sale of {amount} for event {event_id} (net total {earnings.net_amount})")
    return earnings


async def refund_ticket_sale(db: AsyncSession, event_id: str, amount: int, quantity: int = 1) -> EventEarnings:
    """Reverse a sale. Net never drops below what has already been withdrawn."""
    if amount < 0 or quantity < 1:
        raise PayoutValidationError("amount must be non-negative and quantity at least 1")

    async def _refund() -> EventEarnings:
        earnings = await get_event_earnings(db, event_id, for_update=True)
        if earnings is None:
            raise NotFoundError(f"No earnings found for event {event_id}")

        net = calculate_net(amount)
        new_net = max(earnings.withdrawn_amount, earnings.net_amount - net)
        if new_net != earnings.net_amount - net:
            logger.warning(
                f"Refund on event {event_id} exceeds unwithdrawn earnings; net clamped at {new_net}"
            )
        earnings.gross_amount = max(0, earnings.gross_amount - amount)
        earnings.platform_fee = max(0, earnings.platform_fee - (amount - net))
        earnings.net_amount = new_net
        earnings.tickets_sold = max(0, earnings.tickets_sold - quantity)
        if earnings.settlement_status == SETTLEMENT_READY and earnings.available_to_withdraw == 0:
            earnings.settlement_status = SETTLEMENT_LOCKED
        await db.flush()

        spendable = await get_spendable_amount(db, earnings.organizer_id)
        if spendable < 0:
            logger.warning(
                f"Refund on event {event_id} leaves in-flight payouts of {earnings.organizer_id} "
                f"uncovered by {-spendable}"
            )
        return earnings

    earnings = await run_in_transaction(db, _refund)
    logger.info(f"Refunded {amount} on event {event_id}")
    return earnings


async def reserve_earnings(db: AsyncSession, event_id: str, amount: int) -> bool:
    """
    Atomically move ``amount`` from available to withdrawn.

    Only succeeds while the earnings are ready and cover the amount. Locks
    the earnings once nothing is left. Must run inside a transaction.
    """
    result = await db.execute(
        update(EventEarnings)
        .where(
            EventEarnings.event_id == event_id,
            EventEarnings.settlement_status == SETTLEMENT_READY,
            EventEarnings.net_amount - EventEarnings.withdrawn_amount >= amount,
        )
        .values(
            withdrawn_amount=EventEarnings.withdrawn_amount + amount,
            settlement_status=case(
                (EventEarnings.net_amount - EventEarnings.withdrawn_amount - amount <= 0, SETTLEMENT_LOCKED),
                else_=SETTLEMENT_READY,
            ),
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_earnings(db: AsyncSession, event_id: str, amount: int) -> bool:
    """
    Return a reserved ``amount`` to available and mark the earnings ready.

    ``withdrawn_amount`` is clamped at zero. Must run inside a transaction.
    """
    result = await db.execute(
        update(EventEarnings)
        .where(EventEarnings.event_id == event_id)
        .values(
            withdrawn_amount=case(
                (EventEarnings.withdrawn_amount - amount > 0, EventEarnings.withdrawn_amount - amount),
                else_=0,
            ),
            settlement_status=SETTLEMENT_READY,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.error(f"Could not release {amount} on event {event_id}: earnings not found")
        return False
    return True


async def debit_organizer_earnings(db: AsyncSession, organizer_id: str, amount: int) -> int:
    """
    Consume ``amount`` from the organizer's ready earnings, oldest first.

    Used when a payout request is paid. Returns the amount that could not be
    covered (0 when fully debited). Must run inside a transaction.
    """
    result = await db.execute(
        select(EventEarnings)
        .where(
            EventEarnings.organizer_id == organizer_id,
            EventEarnings.settlement_status == SETTLEMENT_READY,
        )
        .order_by(EventEarnings.settlement_ready_date.asc())
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    remaining = amount
    for earnings in result.scalars().all():
        if remaining <= 0:
            break
        take = min(remaining, max(0, earnings.available_to_withdraw))
        if take <= 0:
            continue
        if await reserve_earnings(db, earnings.event_id, take):
            remaining -= take

    if remaining > 0:
        logger.warning(f"Payout debit for organizer {organizer_id} short by {remaining}")
    return remaining


async def get_earnings_summary(db: AsyncSession, organizer_id: str) -> Dict[str, Any]:
    """Totals across all of the organizer's events, split by currency."""
    result = await db.execute(
        select(EventEarnings, Event.title)
        .join(Event, Event.id == EventEarnings.event_id)
        .where(EventEarnings.organizer_id == organizer_id)
        .order_by(EventEarnings.settlement_ready_date.desc())
    )
    rows = result.all()

    totals = {"gross": 0, "net": 0, "withdrawn": 0, "available": 0, "platform_fees": 0}
    by_currency: Dict[str, Dict[str, int]] = {}
    events = []
    for earnings, title in rows:
        available = max(0, earnings.available_to_withdraw) if earnings.settlement_status == SETTLEMENT_READY else 0
        totals["gross"] += earnings.gross_amount
        totals["net"] += earnings.net_amount
        totals["withdrawn"] += earnings.withdrawn_amount
        totals["available"] += available
        totals["platform_fees"] += earnings.platform_fee

        bucket = by_currency.setdefault(earnings.currency, {"net": 0, "withdrawn": 0, "available": 0})
        bucket["net"] += earnings.net_amount
        bucket["withdrawn"] += earnings.withdrawn_amount
        bucket["available"] += available

        events.append({
            "event_id": earnings.event_id,
            "title": title,
            "currency": earnings.currency,
            "gross_amount": earnings.gross_amount,
            "net_amount": earnings.net_amount,
            "withdrawn_amount": earnings.withdrawn_amount,
            "available_to_withdraw": available,
            "settlement_status": earnings.settlement_status,
            "settlement_ready_date": earnings.settlement_ready_date,
            "tickets_sold": earnings.tickets_sold,
        })

    return {
        "organizer_id": organizer_id,
        "total_gross": totals["gross"],
        "total_net": totals["net"],
        "total_withdrawn": totals["withdrawn"],
        "total_available": totals["available"],
        "total_platform_fees": totals["platform_fees"],
        "by_currency": by_currency,
        "events": events,
    }
