"""Pydantic schemas for withdrawal endpoints."""
from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field


class WithdrawalCreate(BaseModel):
    """Schema for requesting a withdrawal from one event."""
    event_id: str
    amount: int = Field(..., gt=0, description="Amount in minor units (cents)")
    method: Literal["moncash", "bank"]
    moncash_number: Optional[str] = Field(None, max_length=32)
    destination_id: Optional[str] = Field(None, max_length=64)


class WithdrawalUpdate(BaseModel):
    """Schema for an admin action on a withdrawal."""
    action: Literal["approve", "reject", "complete", "fail"]
    note: Optional[str] = Field(None, max_length=1000)


class WithdrawalResponse(BaseModel):
    """Schema for a withdrawal. MonCash numbers are reduced to the last 4 digits."""
    id: str
    organizer_id: str
    event_id: str
    amount: float
    amount_unit: Optional[str] = None
    currency: str
    method: str
    status: str
    destination_id: Optional[str] = None
    account_last4: Optional[str] = None
    fee_cents: int = 0
    payout_amount_cents: Optional[int] = None
    prefunding_used: bool = False
    prefunding_fee_percent: Optional[float] = None
    moncash_transaction_id: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WithdrawalCreateResponse(BaseModel):
    """Result of a withdrawal request."""
    success: bool = True
    instant: bool
    fee_cents: int
    payout_amount_cents: int
    withdrawal: WithdrawalResponse


class WithdrawalActionResponse(BaseModel):
    """Result of an admin withdrawal action."""
    success: bool = True
    idempotent: bool = False
    withdrawal: WithdrawalResponse


class WithdrawalListResponse(BaseModel):
    items: List[WithdrawalResponse]
    total: int
