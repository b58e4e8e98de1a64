"""Pytest configuration and fixtures."""
import base64
import os
from datetime import datetime, timedelta

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PAYOUT_ENCRYPTION_KEY"] = base64.b64encode(b"k" * 32).decode("ascii")
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RESEND_API_KEY"] = ""
os.environ["MONCASH_CLIENT_ID"] = ""
os.environ["MONCASH_SECRET_KEY"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payout_engine.database import Base, get_db
from payout_engine.auth.security import create_access_token
from payout_engine.models.destination import PayoutDestination, PRIMARY_BANK_DESTINATION_ID
from payout_engine.models.earnings import EventEarnings, SETTLEMENT_READY
from payout_engine.models.event import Event, Ticket
from payout_engine.models.payout_profile import (
    PayoutProfile,
    PAYOUT_METHOD_BANK,
    PAYOUT_METHOD_MOBILE_MONEY,
    STATUS_ACTIVE,
)
from payout_engine.models.platform_config import PlatformPayoutConfig, PLATFORM_CONFIG_ID
from payout_engine.models.verification import (
    VerificationDocument,
    VERIFICATION_IDENTITY,
    VERIFICATION_PHONE,
    VERIFICATION_VERIFIED,
    bank_doc_key,
)
from payout_engine.rate_limit import limiter
from payout_engine.schemas.auth import Principal
from payout_engine.services.sealing import get_sealer
from main import app

ORGANIZER_ID = "org-1"
ADMIN_ID = "admin-1"


@pytest.fixture
async def test_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create test database session."""
    AsyncSessionLocal = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client(test_db):
    """Create async test client bound to the test session."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    limiter.enabled = True


def auth_headers(subject: str, role: str = "organizer", email: str = None) -> dict:
    token = create_access_token(data={"sub": subject, "email": email or f"{subject}@example.com", "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def organizer():
    return Principal(id=ORGANIZER_ID, email="organizer@example.com", role="organizer")


@pytest.fixture
def admin():
    return Principal(id=ADMIN_ID, email="admin@example.com", role="admin")


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def organizer_headers():
    return auth_headers(ORGANIZER_ID, email="organizer@example.com")


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, role="admin", email="admin@example.com")


@pytest.fixture
async def platform_config(test_db):
    """Stored platform config with the default rules and prefunding off."""
    config = PlatformPayoutConfig(
        id=PLATFORM_CONFIG_ID,
        settlement_hold_days=7,
        minimum_payout_amount=5000,
        prefunding_enabled=False,
        prefunding_available=False,
    )
    test_db.add(config)
    await test_db.commit()
    return config


@pytest.fixture
def make_event(test_db):
    """Factory for events that ended ``ended_days_ago`` days ago."""
    async def _make(organizer_id: str = ORGANIZER_ID, ended_days_ago: int = 10, currency: str = "HTG", title: str = "Konpa Night"):
        end = datetime.utcnow() - timedelta(days=ended_days_ago)
        event = Event(
            organizer_id=organizer_id,
            title=title,
            currency=currency,
            start_datetime=end - timedelta(hours=4),
            end_datetime=end,
        )
        test_db.add(event)
        await test_db.commit()
        return event
    return _make


@pytest.fixture
def make_earnings(test_db):
    """Factory for an earnings row with explicit amounts."""
    async def _make(
        event: Event,
        net: int,
        withdrawn: int = 0,
        status: str = SETTLEMENT_READY,
        ready_date: datetime = None,
    ):
        earnings = EventEarnings(
            event_id=event.id,
            organizer_id=event.organizer_id,
            gross_amount=net,
            platform_fee=0,
            net_amount=net,
            withdrawn_amount=withdrawn,
            tickets_sold=1,
            currency=event.currency,
            settlement_status=status,
            settlement_ready_date=ready_date or (event.end_datetime + timedelta(days=7)),
        )
        test_db.add(earnings)
        await test_db.commit()
        return earnings
    return _make


@pytest.fixture
def make_ticket(test_db):
    async def _make(event: Event, price_paid: int, status: str = "valid"):
        ticket = Ticket(event_id=event.id, price_paid=price_paid, status=status)
        test_db.add(ticket)
        await test_db.commit()
        return ticket
    return _make


def _verified(organizer_id: str, doc_key: str, doc_type: str, destination_id: str = None) -> VerificationDocument:
    return VerificationDocument(
        organizer_id=organizer_id,
        doc_key=doc_key,
        type=doc_type,
        destination_id=destination_id,
        status=VERIFICATION_VERIFIED,
        evidence={"document_url": "https://files.example.com/doc.pdf"},
        reviewed_at=datetime.utcnow(),
        reviewed_by=ADMIN_ID,
    )


@pytest.fixture
def activate_bank_organizer(test_db):
    """Fully verified organizer paid out by bank transfer."""
    async def _activate(organizer_id: str = ORGANIZER_ID, legal_name: str = "Marie Joseph"):
        test_db.add(PayoutProfile(
            organizer_id=organizer_id,
            method=PAYOUT_METHOD_BANK,
            status=STATUS_ACTIVE,
            legal_name=legal_name,
        ))
        test_db.add(PayoutDestination(
            organizer_id=organizer_id,
            id=PRIMARY_BANK_DESTINATION_ID,
            type="bank",
            bank_name="Unibank",
            account_name=legal_name,
            account_number_last4="6789",
            is_primary=True,
            sealed_payload=get_sealer().seal({
                "account_number": "0123456789",
                "account_name": legal_name,
                "account_holder": legal_name,
            }),
        ))
        test_db.add(_verified(organizer_id, VERIFICATION_IDENTITY, VERIFICATION_IDENTITY))
        test_db.add(_verified(
            organizer_id, bank_doc_key(PRIMARY_BANK_DESTINATION_ID), "bank", PRIMARY_BANK_DESTINATION_ID
        ))
        await test_db.commit()
    return _activate


@pytest.fixture
def activate_mobile_organizer(test_db):
    """Fully verified organizer paid out by mobile money."""
    async def _activate(organizer_id: str = ORGANIZER_ID, allow_instant: bool = False):
        test_db.add(PayoutProfile(
            organizer_id=organizer_id,
            method=PAYOUT_METHOD_MOBILE_MONEY,
            status=STATUS_ACTIVE,
            legal_name="Marie Joseph",
            mobile_provider="moncash",
            phone_last4="4567",
            sealed_mobile_money=get_sealer().seal({"phone_number": "50937654567", "provider": "moncash"}),
            allow_instant_moncash=allow_instant,
        ))
        test_db.add(_verified(organizer_id, VERIFICATION_IDENTITY, VERIFICATION_IDENTITY))
        test_db.add(_verified(organizer_id, VERIFICATION_PHONE, VERIFICATION_PHONE))
        await test_db.commit()
    return _activate
