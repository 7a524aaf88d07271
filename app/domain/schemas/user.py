"""
User schemas.

User accounts are managed by the CRUD side of the platform; the security
core only needs identity and role.
"""
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """Platform roles."""
    ADMIN = "ADMIN"
    TECHNICIAN = "TECHNICIAN"
    CLIENT = "CLIENT"


class UserRead(BaseModel):
    """User response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    role: Role
    full_name: Optional[str] = None


class CurrentUser(BaseModel):
    """Authenticated principal handed to the security core."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    username: str
    role: Role
