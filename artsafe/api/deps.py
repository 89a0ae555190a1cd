from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from typing import Optional
from uuid import UUID
from artsafe.config import settings
from artsafe.database import get_db, AsyncSessionLocal
from artsafe.core.security import decode_access_token
from artsafe.core.permissions import Permission, has_permission
from artsafe.models.profile import Profile
from artsafe.core.exceptions import UnauthorizedException, ForbiddenException

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Profile:
    if credentials is None:
        raise UnauthorizedException("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Invalid authentication credentials")

    user_id = payload.get("sub")
    if user_id is None:
        raise UnauthorizedException("Invalid authentication credentials")

    try:
        profile_id = UUID(user_id)
    except ValueError:
        raise UnauthorizedException("Invalid authentication credentials")

    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()

    if profile is None:
        raise UnauthorizedException("User not found")

    return profile


def require_permission(permission: Permission):
    async def checker(current_user: Profile = Depends(get_current_user)) -> Profile:
        if not has_permission(current_user.role, permission):
            raise ForbiddenException(f"Missing permission {permission.value}")
        return current_user
    return checker


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not settings.CRON_SECRET or authorization != f"Bearer {settings.CRON_SECRET}":
        raise UnauthorizedException("Invalid cron secret")


def get_session_factory() -> async_sessionmaker:
    """Session factory for work that needs its own sessions, such as batch evaluation"""
    return AsyncSessionLocal
