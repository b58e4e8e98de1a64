"""Admin endpoints for payout operations, verification review and settings."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import admin_required
from payout_engine.schemas.auth import Principal
from payout_engine.schemas.destinations import DecryptedBankDestinationResponse, PayoutProfileResponse
from payout_engine.schemas.payouts import (
    PayoutActionResponse,
    PayoutDeclineRequest,
    PayoutListResponse,
    PayoutMarkPaidRequest,
    PayoutResponse,
)
from payout_engine.schemas.platform import PlatformPayoutSettingsResponse, PlatformPayoutSettingsUpdate
from payout_engine.schemas.verification import (
    InstantMonCashUpdate,
    PayoutHoldUpdate,
    VerificationQueueItem,
    VerificationQueueResponse,
    VerificationResponse,
    VerificationReview,
)
from payout_engine.schemas.withdrawals import (
    WithdrawalActionResponse,
    WithdrawalListResponse,
    WithdrawalResponse,
    WithdrawalUpdate,
)
from payout_engine.services.destinations import get_decrypted_bank_destination
from payout_engine.services.payouts import approve_payout, decline_payout, list_payouts, mark_payout_paid
from payout_engine.services.platform_config import load_platform_config, update_platform_config
from payout_engine.services.verification import (
    list_verifications,
    review_verification,
    set_instant_moncash_allowed,
    set_payout_hold,
)
from payout_engine.services.withdrawals import list_withdrawals, update_withdrawal

router = APIRouter()


# ============================================================================
# PAYOUT REQUEST ENDPOINTS
# ============================================================================

@router.get("/payouts", response_model=PayoutListResponse)
async def list_all_payouts(
    organizer_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    payouts = await list_payouts(db, organizer_id=organizer_id, status=status_filter, limit=limit)
    items = [PayoutResponse.from_payout(p) for p in payouts]
    return PayoutListResponse(items=items, total=len(items))


@router.post("/payouts/{organizer_id}/{payout_id}/approve", response_model=PayoutActionResponse)
async def approve_payout_request(
    organizer_id: str,
    payout_id: str,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Approve a pending payout. Repeating the call is idempotent."""
    payout, idempotent = await approve_payout(db, admin, organizer_id, payout_id)
    return PayoutActionResponse(idempotent=idempotent, payout=PayoutResponse.from_payout(payout))


@router.post("/payouts/{organizer_id}/{payout_id}/decline", response_model=PayoutActionResponse)
async def decline_payout_request(
    organizer_id: str,
    payout_id: str,
    payload: PayoutDeclineRequest,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Decline a pending payout with a reason.

    Declining an already cancelled payout returns ``idempotent: true``.
    Approved or completed payouts return 409.
    """
    payout, idempotent = await decline_payout(db, admin, organizer_id, payout_id, payload.reason)
    return PayoutActionResponse(idempotent=idempotent, payout=PayoutResponse.from_payout(payout))


@router.post("/payouts/{organizer_id}/{payout_id}/mark-paid", response_model=PayoutActionResponse)
async def mark_payout_request_paid(
    organizer_id: str,
    payout_id: str,
    payload: PayoutMarkPaidRequest,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Record the external transfer reference and complete the payout."""
    payout = await mark_payout_paid(db, admin, organizer_id, payout_id, payload.payment_reference_id)
    return PayoutActionResponse(payout=PayoutResponse.from_payout(payout))


# ============================================================================
# WITHDRAWAL ENDPOINTS
# ============================================================================

@router.get("/withdrawals", response_model=WithdrawalListResponse)
async def list_all_withdrawals(
    organizer_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    withdrawals = await list_withdrawals(db, organizer_id=organizer_id, status=status_filter, limit=limit)
    items = [WithdrawalResponse.model_validate(w) for w in withdrawals]
    return WithdrawalListResponse(items=items, total=len(items))


@router.post("/withdrawals/{withdrawal_id}", response_model=WithdrawalActionResponse)
async def process_withdrawal(
    withdrawal_id: str,
    payload: WithdrawalUpdate,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Apply approve, reject, complete or fail to a withdrawal.

    Reject and fail return the reserved amount to the event's earnings.
    """
    result = await update_withdrawal(db, admin, withdrawal_id, payload.action, payload.note)
    return WithdrawalActionResponse(
        idempotent=result["idempotent"],
        withdrawal=WithdrawalResponse.model_validate(result["withdrawal"]),
    )


# ============================================================================
# VERIFICATION AND ORGANIZER ENDPOINTS
# ============================================================================

@router.get("/verifications", response_model=VerificationQueueResponse)
async def get_verification_queue(
    status_filter: Optional[str] = Query("pending", alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    items = await list_verifications(db, status=status_filter or None, limit=limit)
    return VerificationQueueResponse(
        items=[VerificationQueueItem(**item) for item in items],
        total=len(items),
    )


@router.post("/verifications/{organizer_id}/{doc_key}/review", response_model=VerificationResponse)
async def review_verification_document(
    organizer_id: str,
    doc_key: str,
    payload: VerificationReview,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    doc = await review_verification(db, admin, organizer_id, doc_key, payload.decision, payload.reason)
    return VerificationResponse.model_validate(doc)


@router.post("/organizers/{organizer_id}/hold", response_model=PayoutProfileResponse)
async def update_payout_hold(
    organizer_id: str,
    payload: PayoutHoldUpdate,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Place or lift a manual payout hold."""
    profile = await set_payout_hold(db, admin, organizer_id, payload.on_hold, payload.reason)
    return PayoutProfileResponse.model_validate(profile)


@router.post("/organizers/{organizer_id}/instant-moncash", response_model=PayoutProfileResponse)
async def update_instant_moncash(
    organizer_id: str,
    payload: InstantMonCashUpdate,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Allow or deny instant MonCash payouts for one organizer."""
    profile = await set_instant_moncash_allowed(db, admin, organizer_id, payload.allowed)
    return PayoutProfileResponse.model_validate(profile)


@router.get("/destinations/{organizer_id}/{destination_id}", response_model=DecryptedBankDestinationResponse)
async def get_bank_destination_details(
    organizer_id: str,
    destination_id: str,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Full bank details for review or manual payout execution."""
    return await get_decrypted_bank_destination(db, organizer_id, destination_id)


# ============================================================================
# PLATFORM SETTINGS ENDPOINTS
# ============================================================================

@router.get("/settings/payouts", response_model=PlatformPayoutSettingsResponse)
async def get_payout_settings(
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    config = await load_platform_config(db)
    return PlatformPayoutSettingsResponse.model_validate(config)


@router.put("/settings/payouts", response_model=PlatformPayoutSettingsResponse)
async def update_payout_settings(
    payload: PlatformPayoutSettingsUpdate,
    admin: Principal = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    config = await update_platform_config(
        db,
        admin,
        settlement_hold_days=payload.settlement_hold_days,
        minimum_payout_amount=payload.minimum_payout_amount,
        prefunding_enabled=payload.prefunding_enabled,
    )
    return PlatformPayoutSettingsResponse.model_validate(config)
