"""Pydantic schemas for platform payout settings."""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class PlatformPayoutSettingsResponse(BaseModel):
    settlement_hold_days: int
    minimum_payout_amount: int
    prefunding_enabled: bool
    prefunding_available: bool
    prefunding_balance: Optional[int] = None
    prefunding_last_checked_at: Optional[datetime] = None
    prefunding_last_error: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PlatformPayoutSettingsUpdate(BaseModel):
    settlement_hold_days: Optional[int] = Field(None, ge=0, le=365)
    minimum_payout_amount: Optional[int] = Field(None, ge=0, description="Minor units")
    prefunding_enabled: Optional[bool] = None


class SettlementUpdateResponse(BaseModel):
    """Summary of one settlement run."""
    success: bool = True
    pendingUpdated: int
    lockedUnlocked: int
    failed: int
    total: int
    timestamp: str
