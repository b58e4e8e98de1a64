"""Verification gate: evidence submission, admin review and payout eligibility."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.errors import NotFoundError, PayoutValidationError
from payout_engine.models.destination import PayoutDestination, PRIMARY_BANK_DESTINATION_ID
from payout_engine.models.payout_profile import (
    PayoutProfile,
    PAYOUT_METHOD_BANK,
    PAYOUT_METHOD_MOBILE_MONEY,
    STATUS_ACTIVE,
    STATUS_NOT_SETUP,
    STATUS_ON_HOLD,
    STATUS_PENDING_VERIFICATION,
)
from payout_engine.models.verification import (
    VerificationDocument,
    VERIFICATION_BANK,
    VERIFICATION_IDENTITY,
    VERIFICATION_PENDING,
    VERIFICATION_PHONE,
    VERIFICATION_REJECTED,
    VERIFICATION_TYPES,
    VERIFICATION_VERIFIED,
    bank_doc_key,
)
from payout_engine.schemas.auth import Principal
from payout_engine.services.audit import record_admin_action
from payout_engine.services.email_service import EmailService, dispatch_in_background
from payout_engine.services.payout_profiles import get_or_create_payout_profile, get_payout_profile
from payout_engine.services.transactions import run_in_transaction

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = {"approve": VERIFICATION_VERIFIED, "reject": VERIFICATION_REJECTED}


async def _get_documents(db: AsyncSession, organizer_id: str) -> Dict[str, VerificationDocument]:
    result = await db.execute(
        select(VerificationDocument)
        .where(VerificationDocument.organizer_id == organizer_id)
        .execution_options(populate_existing=True)
    )
    return {doc.doc_key: doc for doc in result.scalars().all()}


def _is_verified(docs: Dict[str, VerificationDocument], *keys: str) -> bool:
    return any(docs.get(key) is not None and docs[key].is_verified for key in keys)


async def is_bank_destination_verified(db: AsyncSession, organizer_id: str, destination_id: str) -> bool:
    """A destination is verified by its own proof, or by the legacy ``bank`` proof for the primary."""
    docs = await _get_documents(db, organizer_id)
    keys = [bank_doc_key(destination_id)]
    if destination_id == PRIMARY_BANK_DESTINATION_ID:
        keys.append(VERIFICATION_BANK)
    return _is_verified(docs, *keys)


async def _has_destination(db: AsyncSession, profile: PayoutProfile) -> bool:
    if profile.method == PAYOUT_METHOD_BANK:
        primary = await db.get(PayoutDestination, (profile.organizer_id, PRIMARY_BANK_DESTINATION_ID))
        return primary is not None
    if profile.method == PAYOUT_METHOD_MOBILE_MONEY:
        return bool(profile.sealed_mobile_money)
    return False


async def derive_payout_status(db: AsyncSession, organizer_id: str) -> str:
    """
    Derive PayoutStatus from the current destination and verification records.

    - manual hold → on_hold (overrides everything else)
    - no destination configured → not_setup
    - identity plus the method's own proof (bank or phone) verified → active
    - otherwise → pending_verification
    """
    profile = await get_payout_profile(db, organizer_id)
    if profile is None:
        return STATUS_NOT_SETUP
    if profile.on_hold:
        return STATUS_ON_HOLD
    if not await _has_destination(db, profile):
        return STATUS_NOT_SETUP

    docs = await _get_documents(db, organizer_id)
    identity_ok = _is_verified(docs, VERIFICATION_IDENTITY)
    if profile.method == PAYOUT_METHOD_BANK:
        method_ok = _is_verified(docs, bank_doc_key(PRIMARY_BANK_DESTINATION_ID), VERIFICATION_BANK)
    else:
        method_ok = _is_verified(docs, VERIFICATION_PHONE)

    return STATUS_ACTIVE if identity_ok and method_ok else STATUS_PENDING_VERIFICATION


async def recompute_payout_status(db: AsyncSession, organizer_id: str) -> str:
    """Derive PayoutStatus and store it on the profile. Safe to call repeatedly."""
    payout_status = await derive_payout_status(db, organizer_id)
    profile = await get_payout_profile(db, organizer_id)
    if profile is not None and profile.status != payout_status:
        logger.info(f"Payout status for {organizer_id}: {profile.status} -> {payout_status}")
        profile.status = payout_status
        await db.flush()
    return payout_status


async def submit_verification(
    db: AsyncSession,
    organizer: Principal,
    doc_type: str,
    evidence: Optional[Dict[str, Any]] = None,
    destination_id: Optional[str] = None,
) -> VerificationDocument:
    """
    Store evidence as a pending VerificationDocument and notify admins.

    Bank proofs are tied to a destination and stored under
    ``bank_<destination id>``. Admin notification runs detached and never
    affects the outcome of the submission.
    """
    if doc_type not in VERIFICATION_TYPES:
        raise PayoutValidationError(f"Unknown verification type: {doc_type}")
    if doc_type == VERIFICATION_BANK and not destination_id:
        raise PayoutValidationError("destination_id is required for bank verification")
    if not evidence:
        raise PayoutValidationError("Verification evidence is required")

    doc_key = bank_doc_key(destination_id) if doc_type == VERIFICATION_BANK else doc_type

    async def _submit() -> VerificationDocument:
        if doc_type == VERIFICATION_BANK:
            destination = await db.get(PayoutDestination, (organizer.id, destination_id))
            if destination is None:
                raise NotFoundError(f"Payout destination {destination_id} not found")

        doc = await db.get(VerificationDocument, (organizer.id, doc_key), with_for_update=True)
        if doc is None:
            doc = VerificationDocument(organizer_id=organizer.id, doc_key=doc_key, type=doc_type)
            db.add(doc)
        doc.destination_id = destination_id if doc_type == VERIFICATION_BANK else None
        doc.status = VERIFICATION_PENDING
        doc.evidence = dict(evidence)
        doc.contact_email = organizer.email
        doc.submitted_at = datetime.utcnow()
        doc.reviewed_at = None
        doc.reviewed_by = None
        doc.rejection_reason = None
        await db.flush()

        await recompute_payout_status(db, organizer.id)
        return doc

    doc = await run_in_transaction(db, _submit)
    logger.info(f"Verification {doc_key} submitted by organizer {organizer.id}")

    dispatch_in_background(EmailService.send_verification_submitted_email, organizer.id, doc_type, destination_id)
    return doc


async def review_verification(
    db: AsyncSession,
    admin: Principal,
    organizer_id: str,
    doc_key: str,
    decision: str,
    reason: Optional[str] = None,
) -> VerificationDocument:
    """Approve or reject a verification document, then recompute eligibility."""
    if decision not in REVIEW_DECISIONS:
        raise PayoutValidationError("decision must be 'approve' or 'reject'")
    if decision == "reject" and not (reason or "").strip():
        raise PayoutValidationError("A rejection reason is required")

    new_status = REVIEW_DECISIONS[decision]
    changed = False

    async def _review() -> VerificationDocument:
        nonlocal changed
        changed = False
        doc = await db.get(VerificationDocument, (organizer_id, doc_key), with_for_update=True)
        if doc is None:
            raise NotFoundError(f"Verification {doc_key} not found for organizer {organizer_id}")

        if doc.status == new_status:
            return doc

        previous = doc.status
        doc.status = new_status
        doc.reviewed_at = datetime.utcnow()
        doc.reviewed_by = admin.id
        doc.rejection_reason = reason.strip() if decision == "reject" else None
        await record_admin_action(
            db, admin, "verification.review", "verification", f"{organizer_id}:{doc_key}",
            {"decision": decision, "from": previous, "to": new_status, "reason": doc.rejection_reason},
        )
        await recompute_payout_status(db, organizer_id)
        changed = True
        return doc

    doc = await run_in_transaction(db, _review)

    if changed:
        logger.info(f"Verification {organizer_id}:{doc_key} reviewed by {admin.id}: {new_status}")
        if doc.contact_email:
            dispatch_in_background(
                EmailService.send_verification_reviewed_email,
                doc.contact_email, doc.type, new_status, doc.rejection_reason,
            )
    return doc


async def set_payout_hold(
    db: AsyncSession,
    admin: Principal,
    organizer_id: str,
    on_hold: bool,
    reason: Optional[str] = None,
) -> PayoutProfile:
    """Set or clear the manual hold flag, which overrides every other status."""
    if on_hold and not (reason or "").strip():
        raise PayoutValidationError("A reason is required to place payouts on hold")

    async def _set_hold() -> PayoutProfile:
        profile = await get_or_create_payout_profile(db, organizer_id)
        if profile.on_hold != on_hold:
            profile.on_hold = on_hold
            profile.hold_reason = reason.strip() if on_hold else None
            await record_admin_action(
                db, admin, "payout.hold", "organizer", organizer_id,
                {"on_hold": on_hold, "reason": profile.hold_reason},
            )
        await recompute_payout_status(db, organizer_id)
        return profile

    profile = await run_in_transaction(db, _set_hold)
    logger.info(f"Payout hold for {organizer_id} set to {on_hold} by {admin.id}")
    return profile


async def set_instant_moncash_allowed(
    db: AsyncSession,
    admin: Principal,
    organizer_id: str,
    allowed: bool,
) -> PayoutProfile:
    async def _set_allowed() -> PayoutProfile:
        profile = await get_or_create_payout_profile(db, organizer_id)
        if profile.allow_instant_moncash != allowed:
            profile.allow_instant_moncash = allowed
            await record_admin_action(
                db, admin, "payout.instant_moncash", "organizer", organizer_id, {"allowed": allowed},
            )
            await db.flush()
        return profile

    return await run_in_transaction(db, _set_allowed)


async def list_verifications(
    db: AsyncSession,
    status: Optional[str] = VERIFICATION_PENDING,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    """Admin review queue. Bank entries carry masked destination metadata only."""
    query = select(VerificationDocument).order_by(VerificationDocument.submitted_at.asc()).limit(limit)
    if status:
        query = query.where(VerificationDocument.status == status)
    docs = (await db.execute(query)).scalars().all()

    items = []
    for doc in docs:
        destination = None
        if doc.type == VERIFICATION_BANK:
            dest = await db.get(PayoutDestination, (doc.organizer_id, doc.destination_id or PRIMARY_BANK_DESTINATION_ID))
            if dest is not None:
                destination = {
                    "id": dest.id,
                    "bank_name": dest.bank_name,
                    "account_name": dest.account_name,
                    "account_number_last4": dest.account_number_last4,
                    "is_primary": dest.is_primary,
                }
        items.append({
            "organizer_id": doc.organizer_id,
            "doc_key": doc.doc_key,
            "type": doc.type,
            "status": doc.status,
            "submitted_at": doc.submitted_at,
            "reviewed_at": doc.reviewed_at,
            "rejection_reason": doc.rejection_reason,
            "destination": destination,
        })
    return items
