"""
Bearer token helpers.

Tokens are issued by the clinic's auth service and only verified here.
``create_access_token`` mints tokens with the same claims for scripts and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from clinicq.config import settings

ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    user_id: UUID | str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Mint an access token for a clinic user.

    Args:
        user_id: Subject of the token
        role: ``patient``, ``doctor`` or ``admin``
        expires_delta: Lifetime, ``ACCESS_TOKEN_EXPIRE_MINUTES`` when omitted

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verified claims of an access token, or None if it is invalid, expired or of another type."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    return claims if claims.get("type") == ACCESS_TOKEN_TYPE else None
