"""Organizer verification and payout status router."""
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import get_current_principal
from payout_engine.models.verification import VerificationDocument, VERIFICATION_BANK
from payout_engine.schemas.auth import Principal
from payout_engine.schemas.verification import (
    BankVerificationSubmit,
    PayoutStatusResponse,
    VerificationResponse,
    VerificationSubmit,
)
from payout_engine.services.payout_profiles import get_payout_profile
from payout_engine.services.verification import derive_payout_status, submit_verification

router = APIRouter()


@router.post("/api/organizer/verifications", response_model=VerificationResponse, status_code=status.HTTP_201_CREATED)
async def submit_verification_document(
    payload: VerificationSubmit,
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Submit identity, phone or bank evidence for review."""
    doc = await submit_verification(
        db, organizer, payload.type, payload.evidence, destination_id=payload.destination_id
    )
    return VerificationResponse.model_validate(doc)


@router.post("/api/organizer/verifications/bank", response_model=VerificationResponse, status_code=status.HTTP_201_CREATED)
async def submit_bank_verification(
    payload: BankVerificationSubmit,
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Submit proof of ownership for one bank destination."""
    doc = await submit_verification(
        db, organizer, VERIFICATION_BANK, payload.evidence, destination_id=payload.destination_id
    )
    return VerificationResponse.model_validate(doc)


@router.get("/api/organizer/payout-status", response_model=PayoutStatusResponse)
async def get_payout_status(
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Current payout eligibility, derived from setup and verification records."""
    payout_status = await derive_payout_status(db, organizer.id)
    profile = await get_payout_profile(db, organizer.id)
    result = await db.execute(
        select(VerificationDocument)
        .where(VerificationDocument.organizer_id == organizer.id)
        .order_by(VerificationDocument.submitted_at.desc())
    )
    documents = [VerificationResponse.model_validate(doc) for doc in result.scalars().all()]
    return PayoutStatusResponse(
        organizer_id=organizer.id,
        status=payout_status,
        method=profile.method if profile else None,
        on_hold=profile.on_hold if profile else False,
        hold_reason=profile.hold_reason if profile else None,
        documents=documents,
    )
