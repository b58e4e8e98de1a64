"""Payout request pipeline: create, approve, decline and mark paid.

Every state change runs inside ``run_in_transaction``. The row is read with
a lock, the precondition is checked, and the write is a compare-and-set
``UPDATE ... WHERE status IN (...)``. A caller that loses a race re-reads the
row and reports the idempotent or conflict result for the state it now sees.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.errors import (
    AccountNotActiveError,
    AlreadyPaidError,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    PayoutInProgressError,
    PayoutValidationError,
)
from payout_engine.models.destination import PRIMARY_BANK_DESTINATION_ID
from payout_engine.models.payout_profile import PAYOUT_METHOD_BANK, STATUS_ACTIVE
from payout_engine.models.payout_request import (
    PayoutRequest,
    IN_FLIGHT_PAYOUT_STATUSES,
    PAYOUT_APPROVED,
    PAYOUT_CANCELLED,
    PAYOUT_COMPLETED,
    PAYOUT_PENDING,
)
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.schemas.auth import Principal
from payout_engine.services.amounts import format_minor
from payout_engine.services.audit import record_admin_action
from payout_engine.services.balance import (
    get_available_tickets_for_payout,
    get_organizer_balance,
    lock_organizer_earnings,
)
from payout_engine.services.earnings import debit_organizer_earnings
from payout_engine.services.payout_profiles import get_payout_profile
from payout_engine.services.transactions import run_in_transaction
from payout_engine.services.verification import derive_payout_status

logger = logging.getLogger(__name__)

# Business days an approved payout usually takes to reach the organizer
PAYOUT_PROCESSING_DAYS = 3

MARK_PAID_FROM = (PAYOUT_PENDING, PAYOUT_APPROVED)


async def _get_payout(db: AsyncSession, organizer_id: str, payout_id: str, lock: bool = True) -> PayoutRequest:
    query = (
        select(PayoutRequest)
        .where(PayoutRequest.id == payout_id, PayoutRequest.organizer_id == organizer_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update()
    payout = (await db.execute(query)).scalar_one_or_none()
    if payout is None:
        raise NotFoundError(f"Payout {payout_id} not found")
    return payout


async def _compare_and_set(db: AsyncSession, payout_id: str, expected: Iterable[str], **values) -> bool:
    values.setdefault("updated_at", datetime.utcnow())
    result = await db.execute(
        update(PayoutRequest)
        .where(PayoutRequest.id == payout_id, PayoutRequest.status.in_(tuple(expected)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def get_in_flight_payout(db: AsyncSession, organizer_id: str) -> Optional[PayoutRequest]:
    result = await db.execute(
        select(PayoutRequest)
        .where(
            PayoutRequest.organizer_id == organizer_id,
            PayoutRequest.status.in_(IN_FLIGHT_PAYOUT_STATUSES),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def request_payout(db: AsyncSession, organizer_id: str, config: PlatformPayoutConfig) -> PayoutRequest:
    """
    Create a pending payout for the organizer's full available balance.

    Fails with PayoutInProgress when a request is already in flight,
    AccountNotActive when payouts are not enabled for the organizer, and
    InsufficientBalance below the platform minimum. The partial unique
    index on in-flight requests backs the first check under concurrency.
    """
    async def _create() -> PayoutRequest:
        existing = await get_in_flight_payout(db, organizer_id)
        if existing is not None:
            raise PayoutInProgressError(
                f"A payout request is already in progress ({existing.id})",
                existing_payout_id=existing.id,
            )

        await lock_organizer_earnings(db, organizer_id)

        payout_status = await derive_payout_status(db, organizer_id)
        if payout_status != STATUS_ACTIVE:
            raise AccountNotActiveError(
                "Payouts are not enabled for this account. Complete payout setup and verification first.",
                payout_status=payout_status,
            )

        balance = await get_organizer_balance(db, organizer_id, config)
        if balance["available"] < config.minimum_payout_amount:
            raise InsufficientBalanceError(
                f"Minimum payout amount is {format_minor(config.minimum_payout_amount, balance['currency'])}. "
                f"Available: {format_minor(balance['available'], balance['currency'])}",
                available=balance["available"],
                minimum=config.minimum_payout_amount,
            )

        tickets = await get_available_tickets_for_payout(db, organizer_id)
        profile = await get_payout_profile(db, organizer_id)
        now = datetime.utcnow()
        payout = PayoutRequest(
            organizer_id=organizer_id,
            amount=balance["available"],
            currency=balance["currency"],
            status=PAYOUT_PENDING,
            method=profile.method,
            destination_id=PRIMARY_BANK_DESTINATION_ID if profile.method == PAYOUT_METHOD_BANK else None,
            scheduled_date=now + timedelta(days=PAYOUT_PROCESSING_DAYS),
            ticket_ids=[ticket.id for ticket in tickets["tickets"]],
            period_start=tickets["period_start"],
            period_end=tickets["period_end"],
        )
        db.add(payout)
        try:
            await db.flush()
        except IntegrityError as e:
            raise PayoutInProgressError("A payout request is already in progress") from e
        return payout

    payout = await run_in_transaction(db, _create)
    logger.info(f"Payout {payout.id} requested by {organizer_id} for {payout.amount} {payout.currency}")
    return payout


async def approve_payout(db: AsyncSession, admin: Principal, organizer_id: str, payout_id: str) -> Tuple[PayoutRequest, bool]:
    """pending → approved. Approving an approved payout is idempotent."""
    async def _approve() -> Tuple[PayoutRequest, bool]:
        while True:
            payout = await _get_payout(db, organizer_id, payout_id)
            if payout.status == PAYOUT_APPROVED:
                return payout, True
            if payout.status != PAYOUT_PENDING:
                raise ConflictError(f"Cannot approve - payout is {payout.status}", current_status=payout.status)

            now = datetime.utcnow()
            if await _compare_and_set(
                db, payout_id, (PAYOUT_PENDING,),
                status=PAYOUT_APPROVED, approved_by=admin.id, approved_at=now,
            ):
                await record_admin_action(db, admin, "payout.approve", "payout", payout_id, {"organizer_id": organizer_id})
                return await _get_payout(db, organizer_id, payout_id, lock=False), False

    payout, idempotent = await run_in_transaction(db, _approve)
    if not idempotent:
        logger.info(f"Payout {payout_id} approved by {admin.id}")
    return payout, idempotent


async def decline_payout(
    db: AsyncSession,
    admin: Principal,
    organizer_id: str,
    payout_id: str,
    reason: str,
) -> Tuple[PayoutRequest, bool]:
    """
    pending → cancelled, recording who declined it and why.

    Declining a cancelled payout returns ``idempotent=True`` without writing.
    Any other status is a Conflict naming that status.
    """
    reason = (reason or "").strip()
    if not reason:
        raise PayoutValidationError("A decline reason is required")

    async def _decline() -> Tuple[PayoutRequest, bool]:
        while True:
            payout = await _get_payout(db, organizer_id, payout_id)
            if payout.status == PAYOUT_CANCELLED:
                return payout, True
            if payout.status != PAYOUT_PENDING:
                raise ConflictError(f"Cannot decline - payout is {payout.status}", current_status=payout.status)

            if await _compare_and_set(
                db, payout_id, (PAYOUT_PENDING,),
                status=PAYOUT_CANCELLED,
                declined_by=admin.id,
                declined_at=datetime.utcnow(),
                decline_reason=reason,
            ):
                await record_admin_action(
                    db, admin, "payout.decline", "payout", payout_id,
                    {"organizer_id": organizer_id, "reason": reason, "amount": payout.amount},
                )
                return await _get_payout(db, organizer_id, payout_id, lock=False), False

    payout, idempotent = await run_in_transaction(db, _decline)
    if idempotent:
        logger.info(f"Decline of payout {payout_id} repeated, already cancelled")
    else:
        logger.info(f"Payout {payout_id} declined by {admin.id}: {reason}")
    return payout, idempotent


async def mark_payout_paid(
    db: AsyncSession,
    admin: Principal,
    organizer_id: str,
    payout_id: str,
    payment_reference_id: str,
) -> PayoutRequest:
    """
    Complete a payout with external proof of transfer.

    Completed payouts raise AlreadyPaid and keep their original reference;
    any other status raises InvalidTransition. The paid amount is debited
    from the organizer's ready earnings in the same transaction, and the
    call fails with InsufficientBalance when they no longer cover it.
    """
    payment_reference_id = (payment_reference_id or "").strip()
    if not payment_reference_id:
        raise PayoutValidationError("payment_reference_id is required")

    async def _mark_paid() -> PayoutRequest:
        while True:
            payout = await _get_payout(db, organizer_id, payout_id)
            if payout.status == PAYOUT_COMPLETED:
                raise AlreadyPaidError(
                    f"Payout {payout_id} is already paid (reference {payout.payment_reference_id})",
                    current_status=payout.status,
                )
            if payout.status not in MARK_PAID_FROM:
                raise InvalidTransitionError(
                    f"Cannot mark paid - payout is {payout.status}", current_status=payout.status
                )

            now = datetime.utcnow()
            if await _compare_and_set(
                db, payout_id, MARK_PAID_FROM,
                status=PAYOUT_COMPLETED,
                completed_at=now,
                completed_by=admin.id,
                payment_reference_id=payment_reference_id,
            ):
                shortfall = await debit_organizer_earnings(db, organizer_id, payout.amount)
                if shortfall:
                    raise InsufficientBalanceError(
                        f"Ready earnings cover only {format_minor(payout.amount - shortfall, payout.currency)} "
                        f"of payout {payout_id}",
                        available=payout.amount - shortfall,
                    )
                await record_admin_action(
                    db, admin, "payout.mark_paid", "payout", payout_id,
                    {
                        "organizer_id": organizer_id,
                        "amount": payout.amount,
                        "payment_reference_id": payment_reference_id,
                    },
                )
                return await _get_payout(db, organizer_id, payout_id, lock=False)

    payout = await run_in_transaction(db, _mark_paid)
    logger.info(f"Payout {payout_id} marked paid by {admin.id} (ref {payment_reference_id})")
    return payout


async def list_payouts(
    db: AsyncSession,
    organizer_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
) -> List[PayoutRequest]:
    """Payout history, newest first."""
    query = select(PayoutRequest).order_by(PayoutRequest.created_at.desc()).limit(limit)
    if organizer_id:
        query = query.where(PayoutRequest.organizer_id == organizer_id)
    if status:
        query = query.where(PayoutRequest.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())
