"""Verification evidence submitted by organizers."""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.database import Base

VERIFICATION_IDENTITY = "identity"
VERIFICATION_BANK = "bank"
VERIFICATION_PHONE = "phone"
VERIFICATION_TYPES = (VERIFICATION_IDENTITY, VERIFICATION_BANK, VERIFICATION_PHONE)

VERIFICATION_PENDING = "pending"
VERIFICATION_VERIFIED = "verified"
VERIFICATION_REJECTED = "rejected"

# Older records used approved/failed
VERIFIED_STATUSES = ("verified", "approved")
REJECTED_STATUSES = ("rejected", "failed")


def bank_doc_key(destination_id: str) -> str:
    return f"bank_{destination_id}"


class VerificationDocument(Base):
    """Latest verification record per organizer and ``doc_key``.

    ``doc_key`` is the verification type, or ``bank_<destination id>`` for
    per-destination bank proofs. A bare ``bank`` key is the legacy proof for
    the primary destination.
    """
    __tablename__ = "verification_documents"

    organizer_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    doc_key: Mapped[str] = mapped_column(String(80), primary_key=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    destination_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=VERIFICATION_PENDING)
    evidence: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_verification_documents_status", "status"),
    )

    @property
    def is_verified(self) -> bool:
        return self.status in VERIFIED_STATUSES

    def __repr__(self) -> str:
        return f"<VerificationDocument(organizer_id={self.organizer_id}, doc_key={self.doc_key}, status={self.status})>"
