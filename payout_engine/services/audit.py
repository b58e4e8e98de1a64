"""Admin audit log writes."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.models.audit_log import AdminAuditLog
from payout_engine.schemas.auth import Principal

logger = logging.getLogger(__name__)


async def record_admin_action(
    db: AsyncSession,
    actor: Principal,
    action: str,
    target_type: str,
    target_id: str,
    details: Optional[Dict[str, Any]] = None,
) -> AdminAuditLog:
    """Add an audit entry to the current transaction."""
    entry = AdminAuditLog(
        action=action,
        actor_id=actor.id,
        actor_email=actor.email,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
    )
    db.add(entry)
    await db.flush()
    logger.info(f"Audit {action} on {target_type}:{target_id} by {actor.id}")
    return entry
