"""Organizer payout method and bank destination router."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.database import get_db
from payout_engine.auth.dependencies import get_current_principal
from payout_engine.schemas.auth import Principal
from payout_engine.schemas.destinations import (
    BankDestinationListResponse,
    BankDestinationResponse,
    BankDetails,
    PayoutMethodUpdate,
    PayoutProfileResponse,
)
from payout_engine.services.destinations import (
    add_secondary_bank_destination,
    configure_payout_method,
    list_bank_destinations,
)
from payout_engine.services.verification import is_bank_destination_verified

router = APIRouter()


@router.put("/api/organizer/payout-method", response_model=PayoutProfileResponse)
async def update_payout_method(
    payload: PayoutMethodUpdate,
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """
    Choose bank transfer or mobile money and store the destination.

    Account and phone numbers are sealed at rest; only the last 4 digits
    are returned. Changing the account resets its verification.
    """
    profile = await configure_payout_method(
        db,
        organizer.id,
        method=payload.method,
        bank_details=payload.bank_details.model_dump() if payload.bank_details else None,
        mobile_money=payload.mobile_money.model_dump() if payload.mobile_money else None,
        legal_name=payload.legal_name,
    )
    return PayoutProfileResponse.model_validate(profile)


@router.get("/api/organizer/payout-destinations/bank", response_model=BankDestinationListResponse)
async def get_bank_destinations(
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Masked bank destinations, primary first."""
    destinations = await list_bank_destinations(db, organizer.id)
    items = []
    for destination in destinations:
        item = BankDestinationResponse.model_validate(destination)
        item.verified = await is_bank_destination_verified(db, organizer.id, destination.id)
        items.append(item)
    return BankDestinationListResponse(items=items)


@router.post(
    "/api/organizer/payout-destinations/bank",
    response_model=BankDestinationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_bank_destination(
    payload: BankDetails,
    organizer: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Add a secondary bank account. The holder must match the organizer's legal name."""
    destination = await add_secondary_bank_destination(db, organizer.id, payload.model_dump())
    return BankDestinationResponse.model_validate(destination)
