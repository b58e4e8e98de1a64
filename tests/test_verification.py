"""Tests for payout setup, destinations and the verification gate."""
import pytest
from sqlalchemy import select

from payout_engine.errors import NotFoundError, PayoutValidationError
from payout_engine.models.audit_log import AdminAuditLog
from payout_engine.models.destination import PayoutDestination, PRIMARY_BANK_DESTINATION_ID
from payout_engine.models.payout_profile import (
    PayoutProfile,
    STATUS_ACTIVE,
    STATUS_NOT_SETUP,
    STATUS_ON_HOLD,
    STATUS_PENDING_VERIFICATION,
)
from payout_engine.models.verification import VerificationDocument
from payout_engine.services.destinations import (
    add_secondary_bank_destination,
    configure_payout_method,
    get_decrypted_bank_destination,
    list_bank_destinations,
    names_match,
    upsert_primary_bank_destination,
)
from payout_engine.services.sealing import get_sealer
from payout_engine.services.verification import (
    derive_payout_status,
    is_bank_destination_verified,
    list_verifications,
    review_verification,
    set_instant_moncash_allowed,
    set_payout_hold,
    submit_verification,
)

BANK_DETAILS = {
    "bank_name": "Unibank",
    "account_name": "Marie Joseph",
    "account_number": "0123 4567 89",
}
EVIDENCE = {"document_url": "https://files.example.com/id.pdf"}


async def _verify_bank_setup(db, organizer, admin):
    await configure_payout_method(db, organizer.id, "bank_transfer", bank_details=BANK_DETAILS, legal_name="Marie Joseph")
    await submit_verification(db, organizer, "identity", EVIDENCE)
    await submit_verification(db, organizer, "bank", EVIDENCE, destination_id=PRIMARY_BANK_DESTINATION_ID)
    await review_verification(db, admin, organizer.id, "identity", "approve")
    await review_verification(db, admin, organizer.id, "bank_bank_primary", "approve")


def test_names_match():
    assert names_match("Marie Joseph", "marie  joseph")
    assert names_match("Marie-Claire Joseph", "Marie Claire Joseph")
    assert names_match("Joseph", "Marie Joseph")
    assert not names_match("Jean Pierre", "Marie Joseph")
    assert not names_match("", "Marie Joseph")


@pytest.mark.asyncio
async def test_status_without_setup(test_db, organizer):
    assert await derive_payout_status(test_db, organizer.id) == STATUS_NOT_SETUP


@pytest.mark.asyncio
async def test_configure_bank_seals_account(test_db, organizer):
    profile = await configure_payout_method(
        test_db, organizer.id, "bank_transfer", bank_details=BANK_DETAILS, legal_name="Marie Joseph"
    )

    assert profile.status == STATUS_PENDING_VERIFICATION
    destination = await test_db.get(PayoutDestination, (organizer.id, PRIMARY_BANK_DESTINATION_ID))
    assert destination.account_number_last4 == "6789"
    assert "0123456789" not in destination.sealed_payload
    assert get_sealer().open(destination.sealed_payload)["account_number"] == "0123456789"


@pytest.mark.asyncio
async def test_configure_bank_requires_details(test_db, organizer):
    with pytest.raises(PayoutValidationError):
        await configure_payout_method(test_db, organizer.id, "bank_transfer")
    with pytest.raises(PayoutValidationError):
        await configure_payout_method(test_db, organizer.id, "bank_transfer", bank_details={"bank_name": "Unibank"})
    with pytest.raises(PayoutValidationError):
        await configure_payout_method(test_db, organizer.id, "cheque")


@pytest.mark.asyncio
async def test_verified_identity_and_bank_activate_payouts(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    assert await derive_payout_status(test_db, organizer.id) == STATUS_ACTIVE
    profile = await test_db.get(PayoutProfile, organizer.id)
    assert profile.status == STATUS_ACTIVE

    audit = (await test_db.execute(
        select(AdminAuditLog).where(AdminAuditLog.action == "verification.review")
    )).scalars().all()
    assert len(audit) == 2


@pytest.mark.asyncio
async def test_identity_alone_is_not_enough(test_db, organizer, admin):
    await configure_payout_method(test_db, organizer.id, "bank_transfer", bank_details=BANK_DETAILS)
    await submit_verification(test_db, organizer, "identity", EVIDENCE)
    await review_verification(test_db, admin, organizer.id, "identity", "approve")

    assert await derive_payout_status(test_db, organizer.id) == STATUS_PENDING_VERIFICATION


@pytest.mark.asyncio
async def test_rejection_requires_reason_and_deactivates(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    with pytest.raises(PayoutValidationError):
        await review_verification(test_db, admin, organizer.id, "identity", "reject")

    doc = await review_verification(test_db, admin, organizer.id, "identity", "reject", reason="Document expired")

    assert doc.status == "rejected"
    assert doc.rejection_reason == "Document expired"
    assert await derive_payout_status(test_db, organizer.id) == STATUS_PENDING_VERIFICATION


@pytest.mark.asyncio
async def test_repeated_approval_is_a_no_op(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    await review_verification(test_db, admin, organizer.id, "identity", "approve")

    audit = (await test_db.execute(
        select(AdminAuditLog).where(AdminAuditLog.target_id == f"{organizer.id}:identity")
    )).scalars().all()
    assert len(audit) == 1


@pytest.mark.asyncio
async def test_review_missing_document(test_db, organizer, admin):
    with pytest.raises(NotFoundError):
        await review_verification(test_db, admin, organizer.id, "identity", "approve")


@pytest.mark.asyncio
async def test_submit_validation(test_db, organizer):
    with pytest.raises(PayoutValidationError):
        await submit_verification(test_db, organizer, "passport", EVIDENCE)
    with pytest.raises(PayoutValidationError):
        await submit_verification(test_db, organizer, "bank", EVIDENCE)
    with pytest.raises(PayoutValidationError):
        await submit_verification(test_db, organizer, "identity", {})
    with pytest.raises(NotFoundError):
        await submit_verification(test_db, organizer, "bank", EVIDENCE, destination_id="bank_unknown")


@pytest.mark.asyncio
async def test_resubmission_resets_to_pending(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    doc = await submit_verification(test_db, organizer, "identity", {"document_url": "https://files.example.com/new.pdf"})

    assert doc.status == "pending"
    assert doc.reviewed_by is None
    assert await derive_payout_status(test_db, organizer.id) == STATUS_PENDING_VERIFICATION


@pytest.mark.asyncio
async def test_hold_overrides_everything(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    with pytest.raises(PayoutValidationError):
        await set_payout_hold(test_db, admin, organizer.id, True)

    profile = await set_payout_hold(test_db, admin, organizer.id, True, reason="Chargeback investigation")
    assert profile.status == STATUS_ON_HOLD
    assert profile.hold_reason == "Chargeback investigation"

    profile = await set_payout_hold(test_db, admin, organizer.id, False)
    assert profile.status == STATUS_ACTIVE
    assert profile.hold_reason is None

    audit = (await test_db.execute(
        select(AdminAuditLog).where(AdminAuditLog.action == "payout.hold")
    )).scalars().all()
    assert len(audit) == 2


@pytest.mark.asyncio
async def test_changing_primary_account_resets_bank_verification(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    await upsert_primary_bank_destination(test_db, organizer.id, {**BANK_DETAILS, "account_number": "9999888877"})

    assert await derive_payout_status(test_db, organizer.id) == STATUS_PENDING_VERIFICATION
    assert await test_db.get(VerificationDocument, (organizer.id, "bank_bank_primary")) is None
    assert await test_db.get(VerificationDocument, (organizer.id, "identity")) is not None


@pytest.mark.asyncio
async def test_resaving_same_account_keeps_verification(test_db, organizer, admin):
    await _verify_bank_setup(test_db, organizer, admin)

    await upsert_primary_bank_destination(test_db, organizer.id, {**BANK_DETAILS, "bank_name": "Sogebank"})

    assert await derive_payout_status(test_db, organizer.id) == STATUS_ACTIVE


@pytest.mark.asyncio
async def test_legacy_bank_proof_covers_primary(test_db, organizer):
    await configure_payout_method(test_db, organizer.id, "bank_transfer", bank_details=BANK_DETAILS)
    test_db.add(VerificationDocument(organizer_id=organizer.id, doc_key="bank", type="bank", status="approved", evidence=EVIDENCE))
    test_db.add(VerificationDocument(organizer_id=organizer.id, doc_key="identity", type="identity", status="verified", evidence=EVIDENCE))
    await test_db.commit()

    assert await is_bank_destination_verified(test_db, organizer.id, PRIMARY_BANK_DESTINATION_ID)
    assert await derive_payout_status(test_db, organizer.id) == STATUS_ACTIVE


@pytest.mark.asyncio
async def test_mobile_money_keeps_only_last4(test_db, organizer, admin):
    profile = await configure_payout_method(
        test_db, organizer.id, "mobile_money",
        mobile_money={"phone_number": "+509 3765-4567", "provider": "moncash"},
    )

    assert profile.phone_last4 == "4567"
    assert "37654567" not in profile.sealed_mobile_money
    assert get_sealer().open(profile.sealed_mobile_money)["phone_number"] == "50937654567"

    await submit_verification(test_db, organizer, "identity", EVIDENCE)
    await submit_verification(test_db, organizer, "phone", EVIDENCE)
    await review_verification(test_db, admin, organizer.id, "identity", "approve")
    await review_verification(test_db, admin, organizer.id, "phone", "approve")
    assert await derive_payout_status(test_db, organizer.id) == STATUS_ACTIVE

    await configure_payout_method(
        test_db, organizer.id, "mobile_money", mobile_money={"phone_number": "50938881111"}
    )
    assert await derive_payout_status(test_db, organizer.id) == STATUS_PENDING_VERIFICATION


@pytest.mark.asyncio
async def test_mobile_money_requires_valid_phone(test_db, organizer):
    with pytest.raises(PayoutValidationError):
        await configure_payout_method(test_db, organizer.id, "mobile_money", mobile_money={"phone_number": "12ab"})


@pytest.mark.asyncio
async def test_secondary_destination_requires_primary(test_db, organizer):
    with pytest.raises(PayoutValidationError):
        await add_secondary_bank_destination(test_db, organizer.id, BANK_DETAILS)


@pytest.mark.asyncio
async def test_secondary_destination_holder_must_match(test_db, organizer):
    await configure_payout_method(test_db, organizer.id, "bank_transfer", bank_details=BANK_DETAILS, legal_name="Marie Joseph")

    with pytest.raises(PayoutValidationError):
        await add_secondary_bank_destination(test_db, organizer.id, {
            "bank_name": "BNC", "account_name": "Jean Pierre", "account_number": "55554444",
        })

    destination = await add_secondary_bank_destination(test_db, organizer.id, {
        "bank_name": "BNC", "account_name": "MARIE JOSEPH", "account_number": "55554444",
    })
    assert destination.id.startswith("bank_")
    assert destination.id != PRIMARY_BANK_DESTINATION_ID
    assert destination.is_primary is False

    destinations = await list_bank_destinations(test_db, organizer.id)
    assert [d.id for d in destinations] == [PRIMARY_BANK_DESTINATION_ID, destination.id]
    assert not await is_bank_destination_verified(test_db, organizer.id, destination.id)

    details = await get_decrypted_bank_destination(test_db, organizer.id, destination.id)
    assert details["account_number"] == "55554444"
    assert details["bank_name"] == "BNC"


@pytest.mark.asyncio
async def test_decrypt_unknown_destination(test_db, organizer):
    with pytest.raises(NotFoundError):
        await get_decrypted_bank_destination(test_db, organizer.id, "bank_missing")


@pytest.mark.asyncio
async def test_review_queue_is_masked(test_db, organizer):
    await configure_payout_method(test_db, organizer.id, "bank_transfer", bank_details=BANK_DETAILS)
    await submit_verification(test_db, organizer, "bank", EVIDENCE, destination_id=PRIMARY_BANK_DESTINATION_ID)

    items = await list_verifications(test_db)

    assert len(items) == 1
    assert items[0]["doc_key"] == "bank_bank_primary"
    assert items[0]["destination"]["account_number_last4"] == "6789"
    assert "account_number" not in items[0]["destination"]


@pytest.mark.asyncio
async def test_instant_moncash_flag(test_db, organizer, admin):
    profile = await set_instant_moncash_allowed(test_db, admin, organizer.id, True)
    assert profile.allow_instant_moncash is True

    await set_instant_moncash_allowed(test_db, admin, organizer.id, True)
    audit = (await test_db.execute(
        select(AdminAuditLog).where(AdminAuditLog.action == "payout.instant_moncash")
    )).scalars().all()
    assert len(audit) == 1
