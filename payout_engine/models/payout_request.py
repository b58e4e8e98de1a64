"""Organizer payout requests."""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, Index, JSON, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.database import Base

PAYOUT_PENDING = "pending"
PAYOUT_PROCESSING = "processing"
PAYOUT_APPROVED = "approved"
PAYOUT_COMPLETED = "completed"
PAYOUT_CANCELLED = "cancelled"

# Statuses that hold a reservation against the organizer's balance
IN_FLIGHT_PAYOUT_STATUSES = (PAYOUT_PENDING, PAYOUT_PROCESSING, PAYOUT_APPROVED)
TERMINAL_PAYOUT_STATUSES = (PAYOUT_COMPLETED, PAYOUT_CANCELLED)

_IN_FLIGHT_WHERE = text("status IN ('pending', 'processing', 'approved')")


class PayoutRequest(Base):
    """A request to pay out the organizer's settled balance.

    ``ticket_ids`` snapshots the tickets whose revenue the request covers so a
    later request cannot select them again.
    """
    __tablename__ = "payout_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    organizer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HTG")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PAYOUT_PENDING)
    method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    destination_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    ticket_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    period_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    period_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    declined_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    declined_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    decline_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    payment_reference_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_payout_requests_organizer_status", "organizer_id", "status"),
        # At most one in-flight request per organizer
        Index(
            "uq_payout_requests_organizer_in_flight",
            "organizer_id",
            unique=True,
            sqlite_where=_IN_FLIGHT_WHERE,
            postgresql_where=_IN_FLIGHT_WHERE,
        ),
    )

    def __repr__(self) -> str:
        return f"<PayoutRequest(id={self.id}, organizer_id={self.organizer_id}, status={self.status}, amount={self.amount})>"
