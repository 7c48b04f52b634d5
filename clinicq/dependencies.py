"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinicq.core.exceptions import UnauthorizedException
from clinicq.core.redis_client import CacheManager, get_redis_client
from clinicq.core.security import decode_access_token
from clinicq.database import get_db
from clinicq.schemas.auth import TokenUser, UserRole
from clinicq.services.notifier import RealtimeNotifier, get_notifier

# Security
security = HTTPBearer(auto_error=False)


def user_from_token(token: str) -> TokenUser | None:
    """
    Resolve the caller asserted by an access token.

    Args:
        token: Encoded JWT

    Returns:
        The token's user, or None if the token is invalid, expired or malformed
    """
    payload = decode_access_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not isinstance(user_id, str) or role not in {r.value for r in UserRole}:
        return None

    try:
        return TokenUser(id=UUID(user_id), role=UserRole(role))
    except ValueError:
        return None


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> TokenUser:
    """
    Extract and validate the caller from the bearer token.

    Raises:
        UnauthorizedException: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise UnauthorizedException("Not authenticated")

    user = user_from_token(credentials.credentials)
    if user is None:
        raise UnauthorizedException("Could not validate credentials")
    return user


def get_cache_manager() -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[TokenUser, Depends(get_current_user)]
Cache = Annotated[CacheManager, Depends(get_cache_manager)]
Notifier = Annotated[RealtimeNotifier, Depends(get_notifier)]
