"""Withdrawal ledger: per-event withdrawals with reservation and refund."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import settings
from payout_engine.errors import (
    AccountNotActiveError,
    ExternalDependencyError,
    ForbiddenError,
    InsufficientBalanceError,
    NotFoundError,
    PayoutValidationError,
    WithdrawalTransitionError,
)
from payout_engine.models.destination import PayoutDestination, PRIMARY_BANK_DESTINATION_ID
from payout_engine.models.earnings import SETTLEMENT_READY
from payout_engine.models.event import Event
from payout_engine.models.payout_profile import PAYOUT_METHOD_MOBILE_MONEY, STATUS_ACTIVE
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.models.withdrawal import (
    WithdrawalRequest,
    METHOD_BANK,
    METHOD_MONCASH,
    UNIT_MINOR,
    WITHDRAWAL_COMPLETED,
    WITHDRAWAL_FAILED,
    WITHDRAWAL_PENDING,
    WITHDRAWAL_PROCESSING,
)
from payout_engine.schemas.auth import Principal
from payout_engine.services.amounts import format_minor, normalize_amount_to_cents, percent_of
from payout_engine.services.audit import record_admin_action
from payout_engine.services.balance import get_spendable_amount
from payout_engine.services.earnings import get_event_earnings, release_earnings, reserve_earnings
from payout_engine.services.moncash import MonCashClient, moncash_client
from payout_engine.services.payout_profiles import get_payout_profile
from payout_engine.services.quotes import instant_payout_available
from payout_engine.services.transactions import run_in_transaction
from payout_engine.services.verification import derive_payout_status, is_bank_destination_verified

logger = logging.getLogger(__name__)

WITHDRAWAL_ACTIONS = ("approve", "reject", "complete", "fail")


async def _get_withdrawal(db: AsyncSession, withdrawal_id: str, lock: bool = True) -> WithdrawalRequest:
    query = (
        select(WithdrawalRequest)
        .where(WithdrawalRequest.id == withdrawal_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update()
    withdrawal = (await db.execute(query)).scalar_one_or_none()
    if withdrawal is None:
        raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
    return withdrawal


async def _compare_and_set(db: AsyncSession, withdrawal_id: str, expected: Tuple[str, ...], **values) -> bool:
    values.setdefault("updated_at", datetime.utcnow())
    result = await db.execute(
        update(WithdrawalRequest)
        .where(WithdrawalRequest.id == withdrawal_id, WithdrawalRequest.status.in_(expected))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def withdrawal_amount_cents(withdrawal: WithdrawalRequest) -> int:
    return normalize_amount_to_cents(withdrawal.amount, withdrawal.amount_unit)


async def _refund_reservation(db: AsyncSession, withdrawal: WithdrawalRequest) -> int:
    amount = withdrawal_amount_cents(withdrawal)
    await release_earnings(db, withdrawal.event_id, amount)
    return amount


async def create_withdrawal(
    db: AsyncSession,
    organizer: Principal,
    event_id: str,
    amount: int,
    method: str,
    config: PlatformPayoutConfig,
    moncash_number: Optional[str] = None,
    destination_id: Optional[str] = None,
    client: Optional[MonCashClient] = None,
) -> Dict[str, Any]:
    """
    Withdraw ``amount`` minor units from one event's ready earnings.

    The amount is reserved on the earnings in the same transaction that
    records the request. MonCash withdrawals take the instant path when the
    prefunding pool is offered to this organizer: the transfer is sent at
    once and a failed transfer refunds the reservation.
    """
    if not isinstance(amount, int) or amount <= 0:
        raise PayoutValidationError("amount must be a positive integer in minor units")
    if method not in (METHOD_MONCASH, METHOD_BANK):
        raise PayoutValidationError("method must be 'moncash' or 'bank'")
    if method == METHOD_MONCASH and not (moncash_number or "").strip():
        raise PayoutValidationError("moncash_number is required for MonCash withdrawals")

    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    if event.organizer_id != organizer.id:
        raise ForbiddenError("Not authorized for this event")

    payout_status = await derive_payout_status(db, organizer.id)
    if payout_status != STATUS_ACTIVE:
        raise AccountNotActiveError(
            "Please complete payout verification before requesting withdrawals.",
            payout_status=payout_status,
        )

    earnings = await get_event_earnings(db, event_id)
    if earnings is None:
        raise NotFoundError(f"No earnings found for event {event_id}")
    currency = earnings.currency

    if amount < config.minimum_payout_amount:
        raise PayoutValidationError(
            f"Minimum withdrawal amount is {format_minor(config.minimum_payout_amount, currency)}"
        )
    if earnings.settlement_status != SETTLEMENT_READY:
        raise PayoutValidationError("Earnings are not yet available for withdrawal")
    if amount > earnings.available_to_withdraw:
        raise InsufficientBalanceError(
            f"Insufficient balance. Available: {format_minor(max(0, earnings.available_to_withdraw), currency)}",
            available=max(0, earnings.available_to_withdraw),
        )

    profile = await get_payout_profile(db, organizer.id)
    account_last4 = None
    instant = False
    if method == METHOD_MONCASH:
        if profile.method != PAYOUT_METHOD_MOBILE_MONEY:
            raise PayoutValidationError("Configure mobile money as your payout method to withdraw via MonCash")
        instant = instant_payout_available(config, profile)
        if instant and currency != "HTG":
            raise PayoutValidationError("Instant MonCash is only available for HTG withdrawals")
        moncash_number = moncash_number.strip()
        account_last4 = moncash_number[-4:]
    else:
        destination_id = destination_id or PRIMARY_BANK_DESTINATION_ID
        destination = await db.get(PayoutDestination, (organizer.id, destination_id))
        if destination is None:
            raise NotFoundError(f"Payout destination {destination_id} not found")
        if not await is_bank_destination_verified(db, organizer.id, destination_id):
            raise PayoutValidationError("This bank account has not been verified yet")
        account_last4 = destination.account_number_last4

    fee = percent_of(amount, settings.PREFUNDING_FEE_PERCENT) if instant else 0
    payout_amount = amount - fee

    async def _reserve() -> WithdrawalRequest:
        spendable = await get_spendable_amount(db, organizer.id)
        if amount > spendable:
            raise InsufficientBalanceError(
                f"Insufficient balance. Available: {format_minor(max(0, spendable), currency)}",
                available=max(0, spendable),
            )

        now = datetime.utcnow()
        withdrawal = WithdrawalRequest(
            organizer_id=organizer.id,
            event_id=event_id,
            amount=amount,
            amount_unit=UNIT_MINOR,
            currency=currency,
            method=method,
            status=WITHDRAWAL_PROCESSING if instant else WITHDRAWAL_PENDING,
            moncash_number=moncash_number if method == METHOD_MONCASH else None,
            destination_id=destination_id if method == METHOD_BANK else None,
            account_last4=account_last4,
            fee_cents=fee,
            payout_amount_cents=payout_amount,
            prefunding_used=instant,
            prefunding_fee_percent=settings.PREFUNDING_FEE_PERCENT if instant else None,
            reserved_cents=amount,
            reserved_at=now,
        )
        db.add(withdrawal)
        await db.flush()
        if not await reserve_earnings(db, event_id, amount):
            raise InsufficientBalanceError("Insufficient balance for this withdrawal")
        return withdrawal

    withdrawal = await run_in_transaction(db, _reserve)
    logger.info(
        f"Withdrawal {withdrawal.id} created for event {event_id}: {amount} {currency} via {method}"
        f"{' (instant)' if instant else ''}"
    )

    if instant:
        await _execute_instant_transfer(db, withdrawal, client or moncash_client)

    withdrawal = await _get_withdrawal(db, withdrawal.id, lock=False)
    return {
        "withdrawal": withdrawal,
        "instant": instant,
        "fee_cents": fee,
        "payout_amount_cents": payout_amount,
    }


async def _execute_instant_transfer(db: AsyncSession, withdrawal: WithdrawalRequest, client: MonCashClient) -> None:
    """Send a reserved instant withdrawal. Refunds the reservation if the transfer fails."""
    try:
        result = await client.prefunded_transfer(
            amount=round(withdrawal.payout_amount_cents / 100, 2),
            receiver=withdrawal.moncash_number,
            desc=f"Instant withdrawal ({withdrawal.event_id})",
            reference=withdrawal.id,
        )
    except ExternalDependencyError as e:
        failure_reason = e.message

        async def _rollback() -> None:
            now = datetime.utcnow()
            if await _compare_and_set(
                db, withdrawal.id, (WITHDRAWAL_PROCESSING, WITHDRAWAL_PENDING),
                status=WITHDRAWAL_FAILED, failure_reason=failure_reason, reservation_released_at=now,
            ):
                await _refund_reservation(db, withdrawal)

        await run_in_transaction(db, _rollback)
        logger.error(f"Instant withdrawal {withdrawal.id} failed, reservation released: {failure_reason}")
        raise ExternalDependencyError(
            f"Instant MonCash transfer failed: {failure_reason}", withdrawal_id=withdrawal.id
        ) from e

    async def _complete() -> None:
        now = datetime.utcnow()
        await _compare_and_set(
            db, withdrawal.id, (WITHDRAWAL_PROCESSING,),
            status=WITHDRAWAL_COMPLETED,
            completed_at=now,
            processed_at=now,
            moncash_transaction_id=result["transaction_id"],
        )

    await run_in_transaction(db, _complete)
    logger.info(f"Instant withdrawal {withdrawal.id} completed ({result['transaction_id']})")


async def update_withdrawal(
    db: AsyncSession,
    admin: Principal,
    withdrawal_id: str,
    action: str,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Apply an admin action to a withdrawal.

    ==========  =====================  ==============  =======================
    action      from                   to              repeat
    ==========  =====================  ==============  =======================
    approve     pending                processing      processing → idempotent
    reject      pending                failed + refund failed → idempotent
    complete    processing             completed       completed → idempotent
    fail        pending, processing    failed + refund failed → idempotent
    ==========  =====================  ==============  =======================

    Any other combination raises WithdrawalTransitionError naming the status.
    """
    if action not in WITHDRAWAL_ACTIONS:
        raise PayoutValidationError(f"action must be one of: {', '.join(WITHDRAWAL_ACTIONS)}")
    note = (note or "").strip() or None

    idempotent_status = {
        "approve": WITHDRAWAL_PROCESSING,
        "reject": WITHDRAWAL_FAILED,
        "complete": WITHDRAWAL_COMPLETED,
        "fail": WITHDRAWAL_FAILED,
    }[action]
    allowed_from = {
        "approve": (WITHDRAWAL_PENDING,),
        "reject": (WITHDRAWAL_PENDING,),
        "complete": (WITHDRAWAL_PROCESSING,),
        "fail": (WITHDRAWAL_PENDING, WITHDRAWAL_PROCESSING),
    }[action]

    async def _update() -> Tuple[WithdrawalRequest, bool]:
        while True:
            withdrawal = await _get_withdrawal(db, withdrawal_id)
            previous = withdrawal.status
            if previous == idempotent_status:
                return withdrawal, True
            if previous not in allowed_from:
                raise WithdrawalTransitionError(
                    f"Cannot {action} - withdrawal is {previous}", current_status=previous
                )

            now = datetime.utcnow()
            values = {"status": idempotent_status, "processed_by": admin.id, "processed_at": now}
            if note:
                values["notes"] = note
            if action in ("reject", "fail"):
                values["failure_reason"] = note or f"Withdrawal {action}ed by admin"
                values["reservation_released_at"] = now
            if action == "complete":
                values["completed_at"] = now

            if not await _compare_and_set(db, withdrawal_id, (previous,), **values):
                continue

            details = {"from": previous, "to": idempotent_status, "note": note}
            if action in ("reject", "fail"):
                details["refunded"] = await _refund_reservation(db, withdrawal)
            await record_admin_action(db, admin, f"withdrawal.{action}", "withdrawal", withdrawal_id, details)
            return await _get_withdrawal(db, withdrawal_id, lock=False), False

    withdrawal, idempotent = await run_in_transaction(db, _update)
    if idempotent:
        logger.info(f"Withdrawal {withdrawal_id} {action} repeated, already {withdrawal.status}")
    else:
        logger.info(f"Withdrawal {withdrawal_id} {action} by {admin.id}: now {withdrawal.status}")
    return {"success": True, "idempotent": idempotent, "withdrawal": withdrawal}


async def list_withdrawals(
    db: AsyncSession,
    organizer_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[WithdrawalRequest]:
    query = select(WithdrawalRequest).order_by(WithdrawalRequest.created_at.desc()).limit(limit)
    if organizer_id:
        query = query.where(WithdrawalRequest.organizer_id == organizer_id)
    if status:
        query = query.where(WithdrawalRequest.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())
