"""Pydantic schemas for payout request endpoints."""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class PayoutResponse(BaseModel):
    """Schema for a payout request."""
    id: str
    organizer_id: str
    amount: int
    currency: str
    status: str
    method: Optional[str] = None
    destination_id: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    ticket_count: int = 0
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    declined_by: Optional[str] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    payment_reference_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_payout(cls, payout) -> "PayoutResponse":
        response = cls.model_validate(payout)
        response.ticket_count = len(payout.ticket_ids or [])
        return response


class PayoutListResponse(BaseModel):
    """Schema for payout history."""
    items: List[PayoutResponse]
    total: int


class PayoutActionResponse(BaseModel):
    """Result of an admin action on a payout."""
    success: bool = True
    idempotent: bool = False
    payout: PayoutResponse


class PayoutDeclineRequest(BaseModel):
    """Schema for declining a payout."""
    reason: str = Field(..., min_length=1, max_length=1000)


class PayoutMarkPaidRequest(BaseModel):
    """Schema for recording proof of transfer."""
    payment_reference_id: str = Field(..., min_length=1, max_length=255)
