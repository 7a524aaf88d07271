"""
User fixtures for CoolCare tests.

Provides one user per role plus helpers for bearer tokens.
"""
from typing import Dict

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, get_password_hash
from app.domain.schemas.user import Role
from app.infrastructure.database.models import User
from app.repositories.user import UserRepository


class UserTestData:
    """Credentials for test users."""

    PASSWORD = "Coolcare@Pass123"

    ADMIN = {"username": "admin", "full_name": "Site Administrator", "role": Role.ADMIN}
    SECOND_ADMIN = {"username": "admin2", "full_name": "Second Administrator", "role": Role.ADMIN}
    TECHNICIAN = {"username": "tech01", "full_name": "Field Technician", "role": Role.TECHNICIAN}
    CLIENT = {"username": "client01", "full_name": "Client Contact", "role": Role.CLIENT}


async def create_user(db: AsyncSession, clock, data: Dict) -> User:
    return await UserRepository(db).create({
        **data,
        "password_hash": get_password_hash(UserTestData.PASSWORD),
        "created_at": clock.now(),
    })


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer token headers for a user."""
    token = create_access_token(
        subject=str(user.id),
        role=user.role.value,
        username=user.username,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db_session, clock) -> User:
    return await create_user(db_session, clock, UserTestData.ADMIN)


@pytest_asyncio.fixture
async def second_admin(db_session, clock) -> User:
    return await create_user(db_session, clock, UserTestData.SECOND_ADMIN)


@pytest_asyncio.fixture
async def technician_user(db_session, clock) -> User:
    return await create_user(db_session, clock, UserTestData.TECHNICIAN)


@pytest_asyncio.fixture
async def client_user(db_session, clock) -> User:
    return await create_user(db_session, clock, UserTestData.CLIENT)


@pytest.fixture
def admin_headers(admin_user) -> Dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def technician_headers(technician_user) -> Dict[str, str]:
    return auth_headers(technician_user)
