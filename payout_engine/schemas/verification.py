"""Pydantic schemas for verification endpoints."""
from typing import Any, Dict, Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field


class VerificationSubmit(BaseModel):
    """Evidence submitted by an organizer. Evidence holds document references, not files."""
    type: Literal["identity", "bank", "phone"]
    evidence: Dict[str, Any] = Field(..., description="Document URLs or references")
    destination_id: Optional[str] = Field(None, max_length=64)


class BankVerificationSubmit(BaseModel):
    """Proof for one bank destination; defaults to the primary account."""
    destination_id: str = Field("bank_primary", max_length=64)
    evidence: Dict[str, Any]


class VerificationReview(BaseModel):
    decision: Literal["approve", "reject"]
    reason: Optional[str] = Field(None, max_length=1000)


class VerificationResponse(BaseModel):
    organizer_id: str
    doc_key: str
    type: str
    status: str
    destination_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class VerificationQueueItem(BaseModel):
    """Admin review queue entry with masked destination metadata."""
    organizer_id: str
    doc_key: str
    type: str
    status: str
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    destination: Optional[Dict[str, Any]] = None


class VerificationQueueResponse(BaseModel):
    items: List[VerificationQueueItem]
    total: int


class PayoutStatusResponse(BaseModel):
    """Derived payout eligibility plus the documents behind it."""
    organizer_id: str
    status: str
    method: Optional[str] = None
    on_hold: bool = False
    hold_reason: Optional[str] = None
    documents: List[VerificationResponse] = Field(default_factory=list)


class PayoutHoldUpdate(BaseModel):
    on_hold: bool
    reason: Optional[str] = Field(None, max_length=1000)


class InstantMonCashUpdate(BaseModel):
    allowed: bool
