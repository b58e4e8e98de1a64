"""Organizer payout request router."""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import get_current_principal
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.schemas.auth import Principal
from payout_engine.schemas.payouts import PayoutListResponse, PayoutResponse
from payout_engine.services.payouts import list_payouts, request_payout
from payout_engine.services.platform_config import get_platform_payout_config

router = APIRouter()


@router.get("/api/organizer/payouts", response_model=PayoutListResponse)
async def get_my_payouts(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Payout history for the authenticated organizer, newest first."""
    payouts = await list_payouts(db, organizer_id=organizer.id, status=status_filter, limit=limit)
    items = [PayoutResponse.from_payout(p) for p in payouts]
    return PayoutListResponse(items=items, total=len(items))


@router.post("/api/organizer/payouts", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_payout_request(
    organizer: Principal = Depends(get_current_principal),
    config: PlatformPayoutConfig = Depends(get_platform_payout_config),
    db: AsyncSession = Depends(get_db)
):
    """
    Request a payout of the full available balance.

    - 400 PayoutInProgress when a request is already pending, processing or approved
    - 400 AccountNotActive until payout setup and verification are complete
    - 400 InsufficientBalance below the platform minimum
    """
    payout = await request_payout(db, organizer.id, config)
    return PayoutResponse.from_payout(payout)
