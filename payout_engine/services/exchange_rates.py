"""Spot exchange-rate lookup used for payout quotes."""
import logging
from typing import Optional

import httpx

from payout_engine.config import settings

logger = logging.getLogger(__name__)


async def fetch_exchange_rate(base: str, target: str) -> Optional[float]:
    """
    Return the spot rate for ``base`` -> ``target``.

    Returns None on timeout, HTTP error or a malformed response; callers
    omit the converted amount rather than fail.
    """
    base, target = base.upper(), target.upper()
    if base == target:
        return 1.0

    url = f"{settings.EXCHANGE_RATE_API_URL.rstrip('/')}/{base}"
    try:
        async with httpx.AsyncClient(timeout=settings.EXTERNAL_API_TIMEOUT_SECONDS) as client:
            response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        rate = float(data["rates"][target])
        if rate <= 0:
            raise ValueError(f"non-positive rate {rate}")
        return rate
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Exchange rate lookup {base}->{target} failed: {e}")
        return None
