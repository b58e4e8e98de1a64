"""Per-organizer payout configuration and cached eligibility."""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.database import Base

PAYOUT_METHOD_BANK = "bank_transfer"
PAYOUT_METHOD_MOBILE_MONEY = "mobile_money"
PAYOUT_METHODS = (PAYOUT_METHOD_BANK, PAYOUT_METHOD_MOBILE_MONEY)

STATUS_NOT_SETUP = "not_setup"
STATUS_PENDING_VERIFICATION = "pending_verification"
STATUS_ACTIVE = "active"
STATUS_ON_HOLD = "on_hold"


class PayoutProfile(Base):
    __tablename__ = "payout_profiles"

    organizer_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=STATUS_NOT_SETUP)
    legal_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Mobile money: provider and last4 in clear, full number sealed
    mobile_provider: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    phone_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    sealed_mobile_money: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    on_hold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hold_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    allow_instant_moncash: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<PayoutProfile(organizer_id={self.organizer_id}, method={self.method}, status={self.status})>"
