"""Payout profile lookups."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.payout_profile import PayoutProfile


async def get_payout_profile(db: AsyncSession, organizer_id: str, for_update: bool = False) -> Optional[PayoutProfile]:
    return await db.get(PayoutProfile, organizer_id, with_for_update=for_update)


async def get_or_create_payout_profile(db: AsyncSession, organizer_id: str) -> PayoutProfile:
    profile = await get_payout_profile(db, organizer_id, for_update=True)
    if profile is None:
        profile = PayoutProfile(organizer_id=organizer_id)
        db.add(profile)
        await db.flush()
    return profile
