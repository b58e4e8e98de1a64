"""FastAPI dependencies for authentication and authorization."""
import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError

from payout_engine.config import settings
from payout_engine.auth.security import decode_token
from payout_engine.schemas.auth import TokenData, Principal

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """
    FastAPI dependency to extract the authenticated principal from a JWT Bearer token.
    Raises HTTPException if the token is missing or invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        token_data = TokenData(**payload)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(id=token_data.sub, email=token_data.email, role=token_data.role)


async def admin_required(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    FastAPI dependency to ensure the caller has an admin role.
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return principal


async def cron_secret_required(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    """Protect cron endpoints with ``Authorization: Bearer <CRON_SECRET>``."""
    if not settings.CRON_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if credentials is None or not hmac.compare_digest(credentials.credentials, settings.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
