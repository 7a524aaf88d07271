"""
Authentication endpoints.
"""
from typing import Any

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_auth_service, get_current_user
from app.domain.schemas.auth import AuthResponse, UserLogin
from app.domain.schemas.user import CurrentUser
from app.services.auth import AuthService
from app.services.security.middleware import get_client_ip

router = APIRouter()


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> Any:
    """
    Login with username and password.

    - Refuses locked accounts before checking the password
    - Locks the account after repeated failures
    - Returns an access token and user profile
    """
    return await auth_service.login(
        username=credentials.username,
        password=credentials.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.get("/me", response_model=CurrentUser)
async def read_current_user(
    current_user: CurrentUser = Depends(get_current_user),
) -> Any:
    """Get the authenticated principal."""
    return current_user
