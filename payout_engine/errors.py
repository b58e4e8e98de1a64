"""Domain errors raised by payout services.

Every error is an ``HTTPException`` so routers can let them propagate and
FastAPI renders them as ``{"detail": {"error": ..., "message": ...}}``.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class PayoutError(HTTPException):
    """Base class for payout engine errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "PayoutError"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        detail = {"error": self.code, "message": message}
        detail.update({k: v for k, v in extra.items() if v is not None})
        super().__init__(status_code=self.status_code, detail=detail)


class PayoutValidationError(PayoutError):
    """Missing or malformed input, rejected before any store access."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationError"


class InsufficientBalanceError(PayoutError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "InsufficientBalance"


class PayoutInProgressError(PayoutError):
    """The organizer already has a payout request in flight."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "PayoutInProgress"

    def __init__(self, message: str, existing_payout_id: Optional[str] = None):
        self.existing_payout_id = existing_payout_id
        super().__init__(message, existing_payout_id=existing_payout_id)


class AccountNotActiveError(PayoutError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "AccountNotActive"

    def __init__(self, message: str, payout_status: Optional[str] = None):
        self.payout_status = payout_status
        super().__init__(message, payout_status=payout_status)


class ForbiddenError(PayoutError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "Forbidden"


class NotFoundError(PayoutError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"


class ConflictError(PayoutError):
    """A state-transition precondition failed. Carries the actual status."""

    status_code = status.HTTP_409_CONFLICT
    code = "Conflict"

    def __init__(self, message: str, current_status: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message, current_status=current_status)


class AlreadyPaidError(ConflictError):
    code = "AlreadyPaid"


class InvalidTransitionError(ConflictError):
    code = "InvalidTransition"


class ExternalDependencyError(PayoutError):
    """An external API (exchange rate, MonCash) failed or timed out."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "ExternalDependency"


class RetryableStoreError(PayoutError):
    """Store contention persisted after the bounded number of retries."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "RetryableStoreError"


class WithdrawalTransitionError(ConflictError):
    """Withdrawal actions report invalid transitions as 400."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "InvalidTransition"
