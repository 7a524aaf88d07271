"""
Authentication schemas.
"""
from pydantic import BaseModel, Field

from .user import UserRead


class UserLogin(BaseModel):
    """User login credentials."""
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    """Authentication response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
