"""Scheduler service for cron jobs using APScheduler."""
import logging
import os
import multiprocessing
from datetime import datetime, timedelta
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import redis.asyncio as redis

from payout_engine.config import settings
from payout_engine.database import AsyncSessionLocal
from payout_engine.services.prefunding import refresh_prefunding_availability
from payout_engine.services.settlement import update_settlement_statuses

logger = logging.getLogger(__name__)

# Initialize scheduler
scheduler = AsyncIOScheduler()

# Redis client for distributed locking
redis_client = None


async def get_redis_client():
    """Get or create Redis client."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return redis_client


async def acquire_lock(lock_name: str, timeout: int = 300) -> bool:
    """
    Acquire a distributed lock using Redis.

    Args:
        lock_name: Name of the lock
        timeout: Lock timeout in seconds

    Returns:
        True if lock acquired, False otherwise
    """
    try:
        client = await get_redis_client()
        # Use SET with NX (only set if not exists) and EX (expiry)
        result = await client.set(f"payouts:lock:{lock_name}", "1", nx=True, ex=timeout)
        return result is not None
    except Exception as e:
        logger.error(f"Failed to acquire lock {lock_name}: {e}")
        return False


async def release_lock(lock_name: str):
    """Release a distributed lock."""
    try:
        client = await get_redis_client()
        await client.delete(f"payouts:lock:{lock_name}")
    except Exception as e:
        logger.error(f"Failed to release lock {lock_name}: {e}")


async def settlement_status_job():
    """Release earnings whose settlement hold has elapsed."""
    lock_name = "update_settlement_status"

    if not await acquire_lock(lock_name):
        logger.info(f"Skipping {lock_name} - another instance is running")
        return

    try:
        logger.info("Running settlement status job")
        async with AsyncSessionLocal() as session:
            await update_settlement_statuses(session)
    except Exception as e:
        logger.error(f"Error in {lock_name}: {e}")
    finally:
        await release_lock(lock_name)


async def prefunding_refresh_job():
    """Refresh the prefunded MonCash balance used to offer instant payouts."""
    lock_name = "refresh_prefunding"

    if not await acquire_lock(lock_name, timeout=120):
        logger.info(f"Skipping {lock_name} - another instance is running")
        return

    try:
        async with AsyncSessionLocal() as session:
            await refresh_prefunding_availability(session)
    except Exception as e:
        logger.error(f"Error in {lock_name}: {e}")
    finally:
        await release_lock(lock_name)


def start_scheduler():
    """Start the APScheduler with all cron jobs."""
    # Only start scheduler on the FIRST worker process
    # Worker processes have names like "SpawnProcess-1", "SpawnProcess-2", etc.
    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name != "SpawnProcess-1":
        logger.info(f"Skipping scheduler on {current_process_name} (PID: {current_pid}) - scheduler only runs on SpawnProcess-1")
        return

    logger.info(f"Starting scheduler on {current_process_name} (PID: {current_pid})...")

    # Job 1: Settlement status every hour
    scheduler.add_job(
        settlement_status_job,
        trigger=IntervalTrigger(hours=1, start_date=datetime.utcnow() + timedelta(minutes=1)),
        id="update_settlement_status",
        name="Update settlement status",
        replace_existing=True
    )

    # Job 2: Prefunded balance every 15 minutes (staggered)
    scheduler.add_job(
        prefunding_refresh_job,
        trigger=IntervalTrigger(minutes=15, start_date=datetime.utcnow() + timedelta(seconds=30)),
        id="refresh_prefunding",
        name="Refresh prefunding availability",
        replace_existing=True
    )

    scheduler.start()
    logger.info("Scheduler started with 2 payout jobs on master process")


def stop_scheduler():
    """Stop the APScheduler."""
    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name != "SpawnProcess-1":
        logger.info(f"Skipping scheduler shutdown on {current_process_name} (PID: {current_pid})")
        return

    logger.info(f"Stopping scheduler on {current_process_name} (PID: {current_pid})...")
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
    else:
        logger.info("Scheduler was not running")
