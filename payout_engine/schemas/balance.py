"""Schemas for balance, earnings and quote endpoints."""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    """Withdrawable balance across all of an organizer's events (minor units)."""

    available: int
    pending: int
    reserved: int
    total_earnings: int
    currency: str
    next_payout_date: Optional[datetime] = None
    minimum_payout_amount: int
    can_request_payout: bool


class EventEarningsItem(BaseModel):
    """Per-event earnings line."""

    event_id: str
    title: str
    currency: str
    gross_amount: int
    net_amount: int
    withdrawn_amount: int
    available_to_withdraw: int
    settlement_status: str
    settlement_ready_date: datetime
    tickets_sold: int


class EarningsSummaryResponse(BaseModel):
    """Earnings totals split by currency and by event."""

    organizer_id: str
    total_gross: int
    total_net: int
    total_withdrawn: int
    total_available: int
    total_platform_fees: int
    by_currency: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    events: List[EventEarningsItem]


class PayoutQuoteResponse(BaseModel):
    """Advisory instant payout quote for one event. Nothing is reserved."""

    event_id: str
    amount_cents: int
    currency: str
    settlement_status: Optional[str] = None
    instant_available: bool
    prefunding_fee_percent: float
    fee_cents: int
    payout_amount_cents: int
    payout_currency: str
    payout_amount_in_payout_currency: Optional[int] = None
    usd_to_htg_rate: Optional[float] = None
