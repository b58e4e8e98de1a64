"""Event and ticket records owned by the ticketing service.

The payout engine only reads these tables.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.database import Base


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    organizer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HTG")
    country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    start_datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_datetime: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    tickets = relationship("Ticket", back_populates="event")

    __table_args__ = (
        Index("idx_events_organizer_id", "organizer_id"),
    )

    @property
    def ends_at(self) -> datetime:
        return self.end_datetime or self.start_datetime

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, organizer_id={self.organizer_id})>"


class Ticket(Base):
    """A purchased ticket. ``price_paid`` is in minor units."""
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), nullable=False)
    attendee_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    price_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # valid | checked_in | cancelled | refunded
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="valid")
    purchased_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    event = relationship("Event", back_populates="tickets")

    __table_args__ = (
        Index("idx_tickets_event_id_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, event_id={self.event_id}, status={self.status})>"
