"""Cron endpoints for external schedulers."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import cron_secret_required
from payout_engine.schemas.platform import SettlementUpdateResponse
from payout_engine.services.settlement import update_settlement_statuses

router = APIRouter()


@router.api_route(
    "/api/cron/update-settlement-status",
    methods=["GET", "POST"],
    response_model=SettlementUpdateResponse,
    dependencies=[Depends(cron_secret_required)],
)
async def update_settlement_status(db: AsyncSession = Depends(get_db)):
    """Release earnings whose hold has elapsed. Requires ``Bearer <CRON_SECRET>``."""
    summary = await update_settlement_statuses(db)
    return SettlementUpdateResponse(**summary)
