"""Tests for the event earnings ledger and balance calculator."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from payout_engine.errors import NotFoundError
from payout_engine.models.earnings import EventEarnings, SETTLEMENT_LOCKED, SETTLEMENT_PENDING, SETTLEMENT_READY
from payout_engine.models.payout_request import PayoutRequest
from payout_engine.services.balance import get_available_tickets_for_payout, get_organizer_balance
from payout_engine.services.earnings import (
    debit_organizer_earnings,
    get_earnings_summary,
    record_ticket_sale,
    refund_ticket_sale,
    release_earnings,
    reserve_earnings,
)
from payout_engine.services.platform_config import load_platform_config


@pytest.mark.asyncio
async def test_record_sale_creates_pending_earnings(test_db, make_event, platform_config):
    event = await make_event(ended_days_ago=-2)

    earnings = await record_ticket_sale(test_db, event.id, 10000)

    assert earnings.gross_amount == 10000
    assert earnings.net_amount == 9000
    assert earnings.platform_fee == 1000
    assert earnings.tickets_sold == 1
    assert earnings.settlement_status == SETTLEMENT_PENDING
    assert earnings.settlement_ready_date == event.end_datetime + timedelta(days=7)


@pytest.mark.asyncio
async def test_record_sale_accumulates(test_db, make_event):
    event = await make_event()

    await record_ticket_sale(test_db, event.id, 10000)
    earnings = await record_ticket_sale(test_db, event.id, 5000, quantity=2)

    assert earnings.gross_amount == 15000
    assert earnings.net_amount == 13500
    assert earnings.tickets_sold == 3


@pytest.mark.asyncio
async def test_record_sale_unknown_event(test_db):
    with pytest.raises(NotFoundError):
        await record_ticket_sale(test_db, "missing-event", 1000)


@pytest.mark.asyncio
async def test_refund_never_drops_net_below_withdrawn(test_db, make_event, make_earnings):
    event = await make_event()
    earnings = await make_earnings(event, net=9000, withdrawn=9000, status=SETTLEMENT_LOCKED)

    await refund_ticket_sale(test_db, event.id, 10000)
    await test_db.refresh(earnings)

    assert earnings.net_amount == 9000
    assert earnings.withdrawn_amount == 9000


@pytest.mark.asyncio
async def test_refund_of_everything_locks_ready_earnings(test_db, make_event, make_earnings):
    event = await make_event()
    earnings = await make_earnings(event, net=9000)

    await refund_ticket_sale(test_db, event.id, 10000)
    await test_db.refresh(earnings)

    assert earnings.net_amount == 0
    assert earnings.settlement_status == SETTLEMENT_LOCKED


@pytest.mark.asyncio
async def test_reserve_partial_then_remaining(test_db, make_event, make_earnings):
    event = await make_event()
    earnings = await make_earnings(event, net=10000)

    assert await reserve_earnings(test_db, event.id, 4000) is True
    await test_db.commit()
    await test_db.refresh(earnings)
    assert earnings.withdrawn_amount == 4000
    assert earnings.settlement_status == SETTLEMENT_READY

    assert await reserve_earnings(test_db, event.id, 6000) is True
    await test_db.commit()
    await test_db.refresh(earnings)
    assert earnings.withdrawn_amount == 10000
    assert earnings.settlement_status == SETTLEMENT_LOCKED


@pytest.mark.asyncio
async def test_reserve_refuses_more_than_available(test_db, make_event, make_earnings):
    event = await make_event()
    earnings = await make_earnings(event, net=10000, withdrawn=8000)

    assert await reserve_earnings(test_db, event.id, 3000) is False
    await test_db.commit()
    await test_db.refresh(earnings)
    assert earnings.withdrawn_amount == 8000


@pytest.mark.asyncio
async def test_reserve_refuses_pending_earnings(test_db, make_event, make_earnings):
    event = await make_event(ended_days_ago=1)
    await make_earnings(event, net=10000, status=SETTLEMENT_PENDING)

    assert await reserve_earnings(test_db, event.id, 1000) is False


@pytest.mark.asyncio
async def test_release_clamps_at_zero_and_marks_ready(test_db, make_event, make_earnings):
    event = await make_event()
    earnings = await make_earnings(event, net=10000, withdrawn=4000, status=SETTLEMENT_LOCKED)

    assert await release_earnings(test_db, event.id, 5000) is True
    await test_db.commit()
    await test_db.refresh(earnings)

    assert earnings.withdrawn_amount == 0
    assert earnings.settlement_status == SETTLEMENT_READY


@pytest.mark.asyncio
async def test_release_unknown_event(test_db):
    assert await release_earnings(test_db, "missing-event", 100) is False


@pytest.mark.asyncio
async def test_debit_consumes_oldest_ready_earnings_first(test_db, make_event, make_earnings, organizer):
    older = await make_event(ended_days_ago=20, title="Older")
    newer = await make_event(ended_days_ago=10, title="Newer")
    await make_earnings(older, net=3000)
    await make_earnings(newer, net=5000)

    shortfall = await debit_organizer_earnings(test_db, organizer.id, 6000)
    await test_db.commit()

    assert shortfall == 0
    rows = {
        e.event_id: e
        for e in (await test_db.execute(
            select(EventEarnings).execution_options(populate_existing=True)
        )).scalars().all()
    }
    assert rows[older.id].withdrawn_amount == 3000
    assert rows[older.id].settlement_status == SETTLEMENT_LOCKED
    assert rows[newer.id].withdrawn_amount == 3000
    assert rows[newer.id].settlement_status == SETTLEMENT_READY


@pytest.mark.asyncio
async def test_debit_reports_shortfall(test_db, make_event, make_earnings, organizer):
    event = await make_event()
    await make_earnings(event, net=3000)

    assert await debit_organizer_earnings(test_db, organizer.id, 5000) == 2000


@pytest.mark.asyncio
async def test_earnings_summary(test_db, make_event, make_earnings, organizer):
    ready_event = await make_event(title="Ready")
    pending_event = await make_event(ended_days_ago=1, title="Pending")
    await make_earnings(ready_event, net=10000, withdrawn=2500)
    await make_earnings(pending_event, net=4000, status=SETTLEMENT_PENDING)

    summary = await get_earnings_summary(test_db, organizer.id)

    assert summary["total_net"] == 14000
    assert summary["total_withdrawn"] == 2500
    assert summary["total_available"] == 7500
    assert summary["by_currency"]["HTG"]["available"] == 7500
    assert {e["title"] for e in summary["events"]} == {"Ready", "Pending"}


@pytest.mark.asyncio
async def test_balance_subtracts_in_flight_payouts(test_db, make_event, make_earnings, organizer, platform_config):
    ready_event = await make_event()
    pending_event = await make_event(ended_days_ago=1)
    await make_earnings(ready_event, net=10000)
    pending = await make_earnings(pending_event, net=7000, status=SETTLEMENT_PENDING)
    test_db.add(PayoutRequest(organizer_id=organizer.id, amount=3000, status="pending", ticket_ids=[]))
    await test_db.commit()

    balance = await get_organizer_balance(test_db, organizer.id, platform_config)

    assert balance["available"] == 7000
    assert balance["pending"] == 7000
    assert balance["reserved"] == 3000
    assert balance["total_earnings"] == 17000
    assert balance["currency"] == "HTG"
    assert balance["next_payout_date"] == pending.settlement_ready_date
    assert balance["can_request_payout"] is True


@pytest.mark.asyncio
async def test_balance_ignores_finished_payouts(test_db, make_event, make_earnings, organizer):
    event = await make_event()
    await make_earnings(event, net=10000)
    test_db.add(PayoutRequest(organizer_id=organizer.id, amount=3000, status="cancelled", ticket_ids=[]))
    await test_db.commit()

    config = await load_platform_config(test_db)
    balance = await get_organizer_balance(test_db, organizer.id, config)

    assert balance["available"] == 10000
    assert balance["reserved"] == 0


@pytest.mark.asyncio
async def test_balance_for_new_organizer(test_db, organizer, platform_config):
    balance = await get_organizer_balance(test_db, organizer.id, platform_config)

    assert balance["available"] == 0
    assert balance["currency"] == "HTG"
    assert balance["can_request_payout"] is False


@pytest.mark.asyncio
async def test_available_tickets_skip_claimed_and_cancelled(test_db, make_event, make_earnings, make_ticket, organizer):
    event = await make_event()
    await make_earnings(event, net=18000)
    claimed = await make_ticket(event, 10000)
    free = await make_ticket(event, 10000)
    await make_ticket(event, 10000, status="cancelled")
    test_db.add(PayoutRequest(
        organizer_id=organizer.id, amount=9000, status="completed", ticket_ids=[claimed.id],
        completed_at=datetime.utcnow(),
    ))
    await test_db.commit()

    result = await get_available_tickets_for_payout(test_db, organizer.id)

    assert [t.id for t in result["tickets"]] == [free.id]
    assert result["total_amount"] == 9000
    assert result["period_start"] == free.purchased_at
