"""Prefunding pool availability refresh."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import settings
from payout_engine.errors import ExternalDependencyError
from payout_engine.models.platform_config import PlatformPayoutConfig
from payout_engine.services.amounts import round_half_up
from payout_engine.services.moncash import MonCashClient, moncash_client
from payout_engine.services.platform_config import get_or_create_platform_config
from payout_engine.services.transactions import run_in_transaction

logger = logging.getLogger(__name__)


async def refresh_prefunding_availability(
    db: AsyncSession,
    client: Optional[MonCashClient] = None,
) -> PlatformPayoutConfig:
    """
    Query the prefunded balance and record whether instant payouts can be offered.

    Any lookup failure records the pool as unavailable.
    """
    client = client or moncash_client
    balance_minor: Optional[int] = None
    error: Optional[str] = None

    config = await get_or_create_platform_config(db)
    enabled = config.prefunding_enabled
    await db.commit()

    if enabled:
        try:
            balance_minor = round_half_up(await client.get_prefunded_balance() * 100)
        except ExternalDependencyError as e:
            error = e.message
            logger.warning(f"Prefunded balance check failed: {error}")

    async def _store() -> PlatformPayoutConfig:
        config = await get_or_create_platform_config(db)
        config.prefunding_balance = balance_minor
        config.prefunding_available = (
            config.prefunding_enabled
            and balance_minor is not None
            and balance_minor > settings.PREFUNDING_MIN_BALANCE
        )
        config.prefunding_last_checked_at = datetime.utcnow()
        config.prefunding_last_error = error[:500] if error else None
        await db.flush()
        return config

    config = await run_in_transaction(db, _store)
    logger.info(
        f"Prefunding refreshed: available={config.prefunding_available} balance={config.prefunding_balance}"
    )
    return config
