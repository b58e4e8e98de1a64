"""Organizer withdrawal router."""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import get_current_principal
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.rate_limit import limiter
from payout_engine.schemas.auth import Principal
from payout_engine.schemas.withdrawals import (
    WithdrawalCreate,
    WithdrawalCreateResponse,
    WithdrawalListResponse,
    WithdrawalResponse,
)
from payout_engine.services.platform_config import get_platform_payout_config
from payout_engine.services.withdrawals import create_withdrawal, list_withdrawals

router = APIRouter()


@router.post("/api/organizer/withdrawals", response_model=WithdrawalCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def request_withdrawal(
    request: Request,
    payload: WithdrawalCreate,
    organizer: Principal = Depends(get_current_principal),
    config: PlatformPayoutConfig = Depends(get_platform_payout_config),
    db: AsyncSession = Depends(get_db)
):
    """
    Withdraw from one event's ready earnings.

    MonCash withdrawals are sent instantly when prefunding is offered to the
    organizer; otherwise the request waits for admin processing.
    """
    result = await create_withdrawal(
        db,
        organizer,
        event_id=payload.event_id,
        amount=payload.amount,
        method=payload.method,
        config=config,
        moncash_number=payload.moncash_number,
        destination_id=payload.destination_id,
    )
    return WithdrawalCreateResponse(
        instant=result["instant"],
        fee_cents=result["fee_cents"],
        payout_amount_cents=result["payout_amount_cents"],
        withdrawal=WithdrawalResponse.model_validate(result["withdrawal"]),
    )


@router.get("/api/organizer/withdrawals", response_model=WithdrawalListResponse)
async def get_my_withdrawals(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Withdrawal history for the authenticated organizer."""
    withdrawals = await list_withdrawals(db, organizer_id=organizer.id, status=status_filter, limit=limit)
    items = [WithdrawalResponse.model_validate(w) for w in withdrawals]
    return WithdrawalListResponse(items=items, total=len(items))
