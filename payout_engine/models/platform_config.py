"""Platform-wide payout configuration (single row)."""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.database import Base

PLATFORM_CONFIG_ID = "payouts"


class PlatformPayoutConfig(Base):
    __tablename__ = "platform_payout_config"

    id: Mapped[str] = mapped_column(String(20), primary_key=True, default=PLATFORM_CONFIG_ID)
    settlement_hold_days: Mapped[int] = mapped_column(Integer, nullable=False)
    minimum_payout_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    prefunding_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prefunding_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prefunding_balance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    prefunding_last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    prefunding_last_error: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PlatformPayoutConfig(hold_days={self.settlement_hold_days}, "
            f"prefunding_enabled={self.prefunding_enabled}, prefunding_available={self.prefunding_available})>"
        )
