"""Organizer payout destinations with sealed account details."""
from datetime import datetime

from sqlalchemy import String, DateTime, Boolean, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.database import Base

PRIMARY_BANK_DESTINATION_ID = "bank_primary"


class PayoutDestination(Base):
    """A bank account an organizer can be paid to.

    Only display metadata is stored in clear. Account number, routing
    details and holder name live in ``sealed_payload``.
    """
    __tablename__ = "payout_destinations"

    organizer_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="bank")
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number_last4: Mapped[str] = mapped_column(String(4), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sealed_payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_payout_destinations_organizer_primary", "organizer_id", "is_primary"),
    )

    def __repr__(self) -> str:
        return f"<PayoutDestination(organizer_id={self.organizer_id}, id={self.id}, last4={self.account_number_last4})>"
