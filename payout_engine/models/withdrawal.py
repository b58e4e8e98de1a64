"""Per-event withdrawal requests (MonCash and bank transfers)."""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, Boolean, Float, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.database import Base

WITHDRAWAL_PENDING = "pending"
WITHDRAWAL_PROCESSING = "processing"
WITHDRAWAL_COMPLETED = "completed"
WITHDRAWAL_FAILED = "failed"

METHOD_MONCASH = "moncash"
METHOD_BANK = "bank"

UNIT_MINOR = "minor"
UNIT_MAJOR = "major"


class WithdrawalRequest(Base):
    """Reserves part of one event's earnings until an admin resolves it.

    ``amount_unit`` tags how ``amount`` was stored. Rows written by this
    service are always ``minor``; NULL marks imported legacy rows.
    """
    __tablename__ = "withdrawal_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    organizer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    amount_unit: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, default=UNIT_MINOR)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HTG")
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=WITHDRAWAL_PENDING)

    moncash_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    destination_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    account_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)

    fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payout_amount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    prefunding_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prefunding_fee_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    reserved_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reserved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reservation_released_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    moncash_transaction_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_withdrawal_requests_organizer_id", "organizer_id"),
        Index("idx_withdrawal_requests_event_id", "event_id"),
        Index("idx_withdrawal_requests_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<WithdrawalRequest(id={self.id}, event_id={self.event_id}, status={self.status}, amount={self.amount})>"
