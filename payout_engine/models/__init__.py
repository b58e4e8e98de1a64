"""Database models for the payout engine."""
from payout_engine.models.event import Event, Ticket
from payout_engine.models.earnings import EventEarnings
from payout_engine.models.payout_request import PayoutRequest
from payout_engine.models.withdrawal import WithdrawalRequest
from payout_engine.models.destination import PayoutDestination
from payout_engine.models.verification import VerificationDocument
from payout_engine.models.payout_profile import PayoutProfile
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.models.audit_log import AdminAuditLog

__all__ = [
    "Event",
    "Ticket",
    "EventEarnings",
    "PayoutRequest",
    "WithdrawalRequest",
    "PayoutDestination",
    "VerificationDocument",
    "PayoutProfile",
    "PlatformPayoutConfig",
    "AdminAuditLog",
]
