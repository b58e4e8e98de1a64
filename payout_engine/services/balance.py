"""Balance calculator: withdrawable funds and the tickets backing them."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import settings
from payout_engine.models.earnings import EventEarnings, SETTLEMENT_READY
from payout_engine.models.event import Event, Ticket
from payout_engine.models.payout_request import PayoutRequest, IN_FLIGHT_PAYOUT_STATUSES, PAYOUT_CANCELLED
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.services.amounts import calculate_net

# Ticket statuses that represent confirmed revenue
CONFIRMED_TICKET_STATUSES = ("valid", "checked_in")


async def get_reserved_amount(db: AsyncSession, organizer_id: str) -> int:
    """Sum of payout requests still holding a reservation."""
    result = await db.execute(
        select(func.coalesce(func.sum(PayoutRequest.amount), 0)).where(
            PayoutRequest.organizer_id == organizer_id,
            PayoutRequest.status.in_(IN_FLIGHT_PAYOUT_STATUSES),
        )
    )
    return int(result.scalar_one())


async def lock_organizer_earnings(db: AsyncSession, organizer_id: str) -> List[EventEarnings]:
    """Lock and return every earnings row of the organizer. Must run inside a transaction."""
    result = await db.execute(
        select(EventEarnings)
        .where(EventEarnings.organizer_id == organizer_id)
        .order_by(EventEarnings.event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_spendable_amount(db: AsyncSession, organizer_id: str) -> int:
    """
    Ready funds not yet held by an in-flight payout request.

    Payout requests reserve at organizer level and withdrawals on a single
    event; a withdrawal may only take what this leaves. Locks the
    organizer's earnings rows for the rest of the transaction. Negative
    when refunds have cut into a reservation.
    """
    rows = await lock_organizer_earnings(db, organizer_id)
    ready_total = sum(
        max(0, earnings.available_to_withdraw)
        for earnings in rows
        if earnings.settlement_status == SETTLEMENT_READY
    )
    return ready_total - await get_reserved_amount(db, organizer_id)


async def get_organizer_balance(
    db: AsyncSession,
    organizer_id: str,
    config: PlatformPayoutConfig,
) -> Dict[str, Any]:
    """
    Withdrawable balance across all of the organizer's events.

    ``available`` is the unwithdrawn net of ready earnings minus what
    in-flight payout requests have already reserved. Pure read.
    """
    result = await db.execute(
        select(EventEarnings).where(EventEarnings.organizer_id == organizer_id)
    )
    earnings_rows = result.scalars().all()

    ready_total = 0
    pending_total = 0
    total_earnings = 0
    next_payout_date: Optional[datetime] = None
    for earnings in earnings_rows:
        remaining = max(0, earnings.available_to_withdraw)
        total_earnings += earnings.net_amount
        if earnings.settlement_status == SETTLEMENT_READY:
            ready_total += remaining
        elif remaining > 0:
            pending_total += remaining
            if next_payout_date is None or earnings.settlement_ready_date < next_payout_date:
                next_payout_date = earnings.settlement_ready_date

    reserved = await get_reserved_amount(db, organizer_id)
    available = max(0, ready_total - reserved)

    if earnings_rows:
        currency = earnings_rows[0].currency
    else:
        event_currency = await db.execute(
            select(Event.currency).where(Event.organizer_id == organizer_id).limit(1)
        )
        currency = event_currency.scalar_one_or_none() or settings.PAYOUT_CURRENCY

    return {
        "available": available,
        "pending": pending_total,
        "reserved": reserved,
        "total_earnings": total_earnings,
        "currency": currency,
        "next_payout_date": next_payout_date,
        "minimum_payout_amount": config.minimum_payout_amount,
        "can_request_payout": available >= config.minimum_payout_amount,
    }


async def get_claimed_ticket_ids(db: AsyncSession, organizer_id: str) -> Set[str]:
    """Ticket ids already covered by a payout request that was not cancelled."""
    result = await db.execute(
        select(PayoutRequest.ticket_ids).where(
            PayoutRequest.organizer_id == organizer_id,
            PayoutRequest.status != PAYOUT_CANCELLED,
        )
    )
    claimed: Set[str] = set()
    for ticket_ids in result.scalars().all():
        claimed.update(ticket_ids or [])
    return claimed


async def get_available_tickets_for_payout(db: AsyncSession, organizer_id: str) -> Dict[str, Any]:
    """
    Confirmed tickets of settled events not yet covered by any payout.

    Returns the tickets, their total net amount and the purchase period
    they span.
    """
    claimed = await get_claimed_ticket_ids(db, organizer_id)

    result = await db.execute(
        select(Ticket)
        .join(Event, Event.id == Ticket.event_id)
        .join(EventEarnings, EventEarnings.event_id == Ticket.event_id)
        .where(
            Event.organizer_id == organizer_id,
            Ticket.status.in_(CONFIRMED_TICKET_STATUSES),
            EventEarnings.settlement_status == SETTLEMENT_READY,
        )
        .order_by(Ticket.purchased_at.asc())
    )
    tickets = [ticket for ticket in result.scalars().all() if ticket.id not in claimed]

    if not tickets:
        return {"tickets": [], "total_amount": 0, "period_start": None, "period_end": None}

    return {
        "tickets": tickets,
        "total_amount": sum(calculate_net(ticket.price_paid) for ticket in tickets),
        "period_start": tickets[0].purchased_at,
        "period_end": tickets[-1].purchased_at,
    }
