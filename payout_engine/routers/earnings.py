"""Organizer balance, earnings and payout quote router."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import get_current_principal
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.schemas.auth import Principal
from payout_engine.schemas.balance import BalanceResponse, EarningsSummaryResponse, PayoutQuoteResponse
from payout_engine.services.balance import get_organizer_balance
from payout_engine.services.earnings import get_earnings_summary
from payout_engine.services.platform_config import get_platform_payout_config
from payout_engine.services.quotes import get_payout_quote

router = APIRouter()


@router.get("/api/organizer/balance", response_model=BalanceResponse)
async def get_balance(
    organizer: Principal = Depends(get_current_principal),
    config: PlatformPayoutConfig = Depends(get_platform_payout_config),
    db: AsyncSession = Depends(get_db)
):
    """Withdrawable balance for the authenticated organizer (minor units)."""
    return await get_organizer_balance(db, organizer.id, config)


@router.get("/api/organizer/earnings", response_model=EarningsSummaryResponse)
async def get_earnings(
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Earnings totals and per-event breakdown."""
    return await get_earnings_summary(db, organizer.id)


@router.get("/api/organizer/events/{event_id}/payout-quote", response_model=PayoutQuoteResponse)
async def get_event_payout_quote(
    event_id: str,
    organizer: Principal = Depends(get_current_principal),
    config: PlatformPayoutConfig = Depends(get_platform_payout_config),
    db: AsyncSession = Depends(get_db)
):
    """
    Quote what a withdrawal from this event would pay out.

    Shows the instant MonCash fee when prefunding is offered to the
    organizer. Advisory only: nothing is reserved.
    """
    return await get_payout_quote(db, event_id, organizer.id, config)
