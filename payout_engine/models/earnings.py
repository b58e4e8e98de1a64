"""Per-event earnings ledger."""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.database import Base

SETTLEMENT_LOCKED = "locked"
SETTLEMENT_PENDING = "pending"
SETTLEMENT_READY = "ready"


class EventEarnings(Base):
    """Revenue accumulated by one event, net of the platform fee.

    All amounts stored in minor units. ``withdrawn_amount`` never exceeds
    ``net_amount``; what remains is only withdrawable once
    ``settlement_status`` is ``ready``.
    """
    __tablename__ = "event_earnings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), nullable=False, unique=True)
    organizer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    gross_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    withdrawn_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HTG")
    settlement_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SETTLEMENT_PENDING)
    settlement_ready_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_sale_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    event = relationship("Event")

    __table_args__ = (
        CheckConstraint("withdrawn_amount >= 0", name="ck_event_earnings_withdrawn_non_negative"),
        CheckConstraint("withdrawn_amount <= net_amount", name="ck_event_earnings_withdrawn_le_net"),
        Index("idx_event_earnings_organizer_id", "organizer_id"),
        Index("idx_event_earnings_settlement", "settlement_status", "settlement_ready_date"),
    )

    @hybrid_property
    def available_to_withdraw(self) -> int:
        return self.net_amount - self.withdrawn_amount

    def __repr__(self) -> str:
        return (
            f"<EventEarnings(event_id={self.event_id}, net={self.net_amount}, "
            f"withdrawn={self.withdrawn_amount}, status={self.settlement_status})>"
        )
