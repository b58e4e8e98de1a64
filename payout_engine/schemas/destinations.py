"""Pydantic schemas for payout destinations and payout method setup."""
from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field


class BankDetails(BaseModel):
    """Bank account details as entered by the organizer."""
    bank_name: str = Field(..., min_length=1, max_length=255)
    account_name: str = Field(..., min_length=1, max_length=255)
    account_number: str = Field(..., min_length=4, max_length=64)
    account_holder: Optional[str] = Field(None, max_length=255)
    routing_number: Optional[str] = Field(None, max_length=64)
    swift_code: Optional[str] = Field(None, max_length=32)
    iban: Optional[str] = Field(None, max_length=64)


class MobileMoneyDetails(BaseModel):
    """Mobile money wallet details."""
    phone_number: str = Field(..., min_length=8, max_length=32)
    provider: str = Field("moncash", max_length=40)
    account_name: Optional[str] = Field(None, max_length=255)


class PayoutMethodUpdate(BaseModel):
    """Schema for choosing the payout method."""
    method: Literal["bank_transfer", "mobile_money"]
    legal_name: Optional[str] = Field(None, max_length=255)
    bank_details: Optional[BankDetails] = None
    mobile_money: Optional[MobileMoneyDetails] = None


class BankDestinationResponse(BaseModel):
    """Masked bank destination. Never includes the sealed account details."""
    id: str
    bank_name: str
    account_name: str
    account_number_last4: str
    is_primary: bool
    verified: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class BankDestinationListResponse(BaseModel):
    items: List[BankDestinationResponse]


class DecryptedBankDestinationResponse(BaseModel):
    """Full bank details, admin only."""
    id: str
    organizer_id: str
    bank_name: str
    is_primary: bool
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    account_holder: Optional[str] = None
    routing_number: Optional[str] = None
    swift_code: Optional[str] = None
    iban: Optional[str] = None


class PayoutProfileResponse(BaseModel):
    """Organizer payout setup, masked."""
    organizer_id: str
    method: Optional[str] = None
    status: str
    legal_name: Optional[str] = None
    mobile_provider: Optional[str] = None
    phone_last4: Optional[str] = None
    on_hold: bool = False
    hold_reason: Optional[str] = None
    allow_instant_moncash: bool = False
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
