"""Transaction boundary with bounded retries for store contention."""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import settings
from payout_engine.errors import RetryableStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _sleep_with_jitter(delay: float, jitter: float) -> None:
    jitter_val = random.uniform(-jitter * delay, jitter * delay)
    await asyncio.sleep(max(0.0, delay + jitter_val))


async def run_in_transaction(
    db: AsyncSession,
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: Optional[int] = None,
    base_delay: float = 0.05,
    factor: float = 2.0,
    max_delay: float = 1.0,
    jitter: float = 0.15,
) -> T:
    """
    Run ``fn`` as a single atomic unit of work on ``db``.

    Commits when ``fn`` returns and rolls back on any exception. Lock
    contention and serialization failures surface as ``OperationalError``;
    those are retried with exponential backoff, re-running ``fn`` from the
    start, and raise ``RetryableStoreError`` once attempts are exhausted.
    Any other exception propagates unchanged after the rollback.
    """
    attempts = attempts or settings.TRANSACTION_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            result = await fn()
            await db.commit()
            return result
        except OperationalError as exc:
            await db.rollback()
            if attempt == attempts:
                logger.error(f"Transaction failed after {attempts} attempts: {exc}")
                raise RetryableStoreError(
                    "The payout store is busy, please retry the request"
                ) from exc
            delay = min(max_delay, base_delay * (factor ** (attempt - 1)))
            logger.warning(f"Transaction attempt {attempt} failed, retrying in {delay:.2f}s: {exc}")
            await _sleep_with_jitter(delay, jitter)
        except BaseException:
            await db.rollback()
            raise

    raise RetryableStoreError("The payout store is busy, please retry the request")
