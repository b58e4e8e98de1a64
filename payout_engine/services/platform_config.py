"""Loading and editing the platform payout configuration."""
import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import settings
from payout_engine.database import get_db
from payout_engine.errors import PayoutValidationError
from payout_engine.models.platform_config import PlatformPayoutConfig, PLATFORM_CONFIG_ID
from payout_engine.schemas.auth import Principal
from payout_engine.services.audit import record_admin_action
from payout_engine.services.transactions import run_in_transaction

logger = logging.getLogger(__name__)


def default_platform_config() -> PlatformPayoutConfig:
    return PlatformPayoutConfig(
        id=PLATFORM_CONFIG_ID,
        settlement_hold_days=settings.SETTLEMENT_HOLD_DAYS,
        minimum_payout_amount=settings.MINIMUM_PAYOUT_AMOUNT,
        prefunding_enabled=False,
        prefunding_available=False,
    )


async def load_platform_config(db: AsyncSession) -> PlatformPayoutConfig:
    """Return the stored config, or unsaved defaults when none exists yet."""
    config = await db.get(PlatformPayoutConfig, PLATFORM_CONFIG_ID)
    return config if config is not None else default_platform_config()


async def get_or_create_platform_config(db: AsyncSession) -> PlatformPayoutConfig:
    config = await db.get(PlatformPayoutConfig, PLATFORM_CONFIG_ID, with_for_update=True)
    if config is None:
        config = default_platform_config()
        db.add(config)
        await db.flush()
    return config


async def get_platform_payout_config(db: AsyncSession = Depends(get_db)) -> PlatformPayoutConfig:
    """FastAPI dependency: platform config loaded once per request."""
    return await load_platform_config(db)


async def update_platform_config(
    db: AsyncSession,
    actor: Principal,
    settlement_hold_days: Optional[int] = None,
    minimum_payout_amount: Optional[int] = None,
    prefunding_enabled: Optional[bool] = None,
) -> PlatformPayoutConfig:
    if settlement_hold_days is not None and settlement_hold_days < 0:
        raise PayoutValidationError("settlement_hold_days must be zero or positive")
    if minimum_payout_amount is not None and minimum_payout_amount < 0:
        raise PayoutValidationError("minimum_payout_amount must be zero or positive")

    async def _update() -> PlatformPayoutConfig:
        config = await get_or_create_platform_config(db)
        changes = {}
        if settlement_hold_days is not None and settlement_hold_days != config.settlement_hold_days:
            changes["settlement_hold_days"] = [config.settlement_hold_days, settlement_hold_days]
            config.settlement_hold_days = settlement_hold_days
        if minimum_payout_amount is not None and minimum_payout_amount != config.minimum_payout_amount:
            changes["minimum_payout_amount"] = [config.minimum_payout_amount, minimum_payout_amount]
            config.minimum_payout_amount = minimum_payout_amount
        if prefunding_enabled is not None and prefunding_enabled != config.prefunding_enabled:
            changes["prefunding_enabled"] = [config.prefunding_enabled, prefunding_enabled]
            config.prefunding_enabled = prefunding_enabled
            if not prefunding_enabled:
                config.prefunding_available = False

        if changes:
            config.updated_by = actor.id
            await record_admin_action(db, actor, "payout.settings.update", "platform_config", config.id, changes)
            await db.flush()
        return config

    config = await run_in_transaction(db, _update)
    logger.info(f"Platform payout config updated by {actor.id}")
    return config
