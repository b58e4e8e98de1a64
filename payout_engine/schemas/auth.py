"""Authentication schemas for the principal supplied by the auth service."""
from typing import Optional
from pydantic import BaseModel

ADMIN_ROLES = ("admin", "super_admin")


class TokenData(BaseModel):
    """Schema for JWT token payload data."""

    sub: str
    email: Optional[str] = None
    role: str = "organizer"


class Principal(BaseModel):
    """Authenticated caller."""

    id: str
    email: Optional[str] = None
    role: str = "organizer"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
