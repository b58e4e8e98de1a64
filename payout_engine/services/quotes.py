"""Prefunding quote engine: advisory instant-payout pricing for one event."""
import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import settings
from payout_engine.errors import ForbiddenError, NotFoundError
from payout_engine.models.earnings import SETTLEMENT_READY
from payout_engine.models.event import Event
from payout_engine.models.payout_profile import PayoutProfile
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.services.amounts import percent_of, round_half_up
from payout_engine.services.earnings import get_event_earnings
from payout_engine.services.exchange_rates import fetch_exchange_rate
from payout_engine.services.payout_profiles import get_payout_profile

logger = logging.getLogger(__name__)


def instant_payout_available(config: PlatformPayoutConfig, profile: PayoutProfile = None) -> bool:
    """Platform switch, live pool availability and the organizer's own flag must all agree."""
    return bool(
        config.prefunding_enabled
        and config.prefunding_available
        and profile is not None
        and profile.allow_instant_moncash
    )


async def get_payout_quote(
    db: AsyncSession,
    event_id: str,
    organizer_id: str,
    config: PlatformPayoutConfig,
) -> Dict[str, Any]:
    """
    Quote the withdrawable amount of an event and, when offered, the instant fee.

    Read-only: nothing is reserved until a withdrawal is created.
    """
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    if event.organizer_id != organizer_id:
        raise ForbiddenError("Not authorized for this event")

    earnings = await get_event_earnings(db, event_id)
    amount = 0
    currency = event.currency
    if earnings is not None:
        currency = earnings.currency
        if earnings.settlement_status == SETTLEMENT_READY:
            amount = max(0, earnings.available_to_withdraw)

    profile = await get_payout_profile(db, organizer_id)
    instant = instant_payout_available(config, profile)
    fee = percent_of(amount, settings.PREFUNDING_FEE_PERCENT) if instant else 0
    payout_amount = amount - fee

    payout_currency = settings.PAYOUT_CURRENCY
    rate = None
    converted = payout_amount
    if currency.upper() != payout_currency:
        rate = await fetch_exchange_rate(currency, payout_currency)
        converted = round_half_up(payout_amount * rate) if rate is not None else None

    return {
        "event_id": event_id,
        "amount_cents": amount,
        "currency": currency,
        "settlement_status": earnings.settlement_status if earnings is not None else None,
        "instant_available": instant,
        "prefunding_fee_percent": settings.PREFUNDING_FEE_PERCENT if instant else 0,
        "fee_cents": fee,
        "payout_amount_cents": payout_amount,
        "payout_currency": payout_currency,
        "payout_amount_in_payout_currency": converted,
        "usd_to_htg_rate": rate,
    }
