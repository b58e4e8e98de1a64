"""Destination store: sealed bank accounts and mobile-money details."""
import logging
import re
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.errors import NotFoundError, PayoutValidationError
from payout_engine.models.destination import PayoutDestination, PRIMARY_BANK_DESTINATION_ID
from payout_engine.models.payout_profile import PayoutProfile, PAYOUT_METHODS, PAYOUT_METHOD_BANK
from payout_engine.models.verification import VerificationDocument, VERIFICATION_BANK, bank_doc_key
from payout_engine.services.payout_profiles import get_or_create_payout_profile, get_payout_profile
from payout_engine.services.sealing import get_sealer
from payout_engine.services.transactions import run_in_transaction
from payout_engine.services.verification import recompute_payout_status

logger = logging.getLogger(__name__)

SEALED_BANK_FIELDS = ("account_number", "account_name", "routing_number", "swift_code", "iban", "account_holder")


def _clean(value: Any) -> str:
    return str(value or "").strip()


def normalize_name(value: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "", (value or "").lower())


def names_match(a: Optional[str], b: Optional[str]) -> bool:
    """Loose holder-name comparison: equal or one contains the other after normalising."""
    left, right = normalize_name(a), normalize_name(b)
    if not left or not right:
        return False
    return left == right or left in right or right in left


def _validate_bank_details(details: Dict[str, Any]) -> Dict[str, str]:
    cleaned = {key: _clean(details.get(key)) for key in ("bank_name",) + SEALED_BANK_FIELDS}
    missing = [key for key in ("bank_name", "account_name", "account_number") if not cleaned[key]]
    if missing:
        raise PayoutValidationError(f"Missing bank details: {', '.join(missing)}")

    account_number = re.sub(r"[\s-]", "", cleaned["account_number"])
    if not account_number.isalnum() or len(account_number) < 4:
        raise PayoutValidationError("Account number must have at least 4 alphanumeric characters")
    cleaned["account_number"] = account_number
    if not cleaned["account_holder"]:
        cleaned["account_holder"] = cleaned["account_name"]
    return cleaned


def _sealed_payload(cleaned: Dict[str, str]) -> str:
    return get_sealer().seal({key: cleaned[key] for key in SEALED_BANK_FIELDS if cleaned.get(key)})


async def _upsert_primary(db: AsyncSession, organizer_id: str, details: Dict[str, Any]) -> PayoutDestination:
    cleaned = _validate_bank_details(details)
    destination = await db.get(PayoutDestination, (organizer_id, PRIMARY_BANK_DESTINATION_ID), with_for_update=True)

    if destination is None:
        destination = PayoutDestination(organizer_id=organizer_id, id=PRIMARY_BANK_DESTINATION_ID)
        db.add(destination)
    else:
        previous = get_sealer().open(destination.sealed_payload)
        if previous.get("account_number") != cleaned["account_number"]:
            # A new account needs a new proof
            await db.execute(
                delete(VerificationDocument).where(
                    VerificationDocument.organizer_id == organizer_id,
                    VerificationDocument.doc_key.in_([bank_doc_key(PRIMARY_BANK_DESTINATION_ID), VERIFICATION_BANK]),
                )
            )
            logger.info(f"Primary bank account changed for {organizer_id}, bank verification reset")

    destination.type = "bank"
    destination.bank_name = cleaned["bank_name"]
    destination.account_name = cleaned["account_name"]
    destination.account_number_last4 = cleaned["account_number"][-4:]
    destination.is_primary = True
    destination.sealed_payload = _sealed_payload(cleaned)
    await db.flush()
    return destination


async def upsert_primary_bank_destination(db: AsyncSession, organizer_id: str, details: Dict[str, Any]) -> PayoutDestination:
    """Create or replace the organizer's primary bank destination."""
    async def _upsert() -> PayoutDestination:
        destination = await _upsert_primary(db, organizer_id, details)
        await recompute_payout_status(db, organizer_id)
        return destination

    destination = await run_in_transaction(db, _upsert)
    logger.info(f"Primary bank destination saved for {organizer_id} (****{destination.account_number_last4})")
    return destination


async def add_secondary_bank_destination(db: AsyncSession, organizer_id: str, details: Dict[str, Any]) -> PayoutDestination:
    """
    Register an additional bank account.

    The holder name must match the organizer's legal name, or the primary
    account holder when no legal name is on file.
    """
    cleaned = _validate_bank_details(details)

    async def _add() -> PayoutDestination:
        primary = await db.get(PayoutDestination, (organizer_id, PRIMARY_BANK_DESTINATION_ID))
        if primary is None:
            raise PayoutValidationError("Add a primary bank account before adding another one")

        profile = await get_payout_profile(db, organizer_id)
        expected_name = profile.legal_name if profile is not None and profile.legal_name else None
        if expected_name is None:
            expected_name = get_sealer().open(primary.sealed_payload).get("account_holder") or primary.account_name
        if not names_match(cleaned["account_holder"], expected_name):
            raise PayoutValidationError("Account holder name must match the organizer's legal name")

        destination = PayoutDestination(
            organizer_id=organizer_id,
            id=f"bank_{uuid4().hex[:12]}",
            type="bank",
            bank_name=cleaned["bank_name"],
            account_name=cleaned["account_name"],
            account_number_last4=cleaned["account_number"][-4:],
            is_primary=False,
            sealed_payload=_sealed_payload(cleaned),
        )
        db.add(destination)
        await db.flush()
        return destination

    destination = await run_in_transaction(db, _add)
    logger.info(f"Secondary bank destination {destination.id} added for {organizer_id}")
    return destination


async def list_bank_destinations(db: AsyncSession, organizer_id: str) -> List[PayoutDestination]:
    """Masked destinations, primary first. Never decrypts."""
    result = await db.execute(
        select(PayoutDestination)
        .where(PayoutDestination.organizer_id == organizer_id, PayoutDestination.type == "bank")
        .order_by(PayoutDestination.is_primary.desc(), PayoutDestination.created_at.asc())
    )
    return list(result.scalars().all())


async def get_decrypted_bank_destination(db: AsyncSession, organizer_id: str, destination_id: str) -> Dict[str, Any]:
    """Full account details for verification review or payout execution."""
    destination = await db.get(PayoutDestination, (organizer_id, destination_id))
    if destination is None:
        raise NotFoundError(f"Payout destination {destination_id} not found")

    details = get_sealer().open(destination.sealed_payload)
    logger.info(f"Decrypted bank destination {organizer_id}:{destination_id}")
    return {
        "id": destination.id,
        "organizer_id": organizer_id,
        "bank_name": destination.bank_name,
        "is_primary": destination.is_primary,
        **details,
    }


async def configure_payout_method(
    db: AsyncSession,
    organizer_id: str,
    method: str,
    bank_details: Optional[Dict[str, Any]] = None,
    mobile_money: Optional[Dict[str, Any]] = None,
    legal_name: Optional[str] = None,
) -> PayoutProfile:
    """Select the payout method and store its destination details."""
    if method not in PAYOUT_METHODS:
        raise PayoutValidationError(f"method must be one of: {', '.join(PAYOUT_METHODS)}")
    if method == PAYOUT_METHOD_BANK and not bank_details:
        raise PayoutValidationError("bank_details are required for bank transfers")

    sealed_mobile = None
    phone_last4 = None
    provider = None
    if method != PAYOUT_METHOD_BANK:
        phone = re.sub(r"[\s()+-]", "", _clean((mobile_money or {}).get("phone_number")))
        if not phone.isdigit() or len(phone) < 8:
            raise PayoutValidationError("A valid mobile money phone number is required")
        provider = _clean((mobile_money or {}).get("provider")) or "moncash"
        sealed_mobile = get_sealer().seal({
            "phone_number": phone,
            "provider": provider,
            "account_name": _clean((mobile_money or {}).get("account_name")),
        })
        phone_last4 = phone[-4:]

    async def _configure() -> PayoutProfile:
        profile = await get_or_create_payout_profile(db, organizer_id)
        if legal_name:
            profile.legal_name = legal_name.strip()
        if method == PAYOUT_METHOD_BANK:
            await _upsert_primary(db, organizer_id, bank_details)
        else:
            if profile.phone_last4 and profile.phone_last4 != phone_last4:
                await db.execute(
                    delete(VerificationDocument).where(
                        VerificationDocument.organizer_id == organizer_id,
                        VerificationDocument.doc_key == "phone",
                    )
                )
            profile.sealed_mobile_money = sealed_mobile
            profile.phone_last4 = phone_last4
            profile.mobile_provider = provider
        profile.method = method
        await db.flush()
        await recompute_payout_status(db, organizer_id)
        return profile

    profile = await run_in_transaction(db, _configure)
    logger.info(f"Payout method for {organizer_id} set to {method}")
    return profile
