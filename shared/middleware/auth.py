"""
shared/middleware/auth.py
FastAPI dependency functions for authentication and authorization.
App JWTs are validated here; revoked tokens are rejected via the Redis deny-list.
"""

import uuid
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from shared.models.models import User, UserRole
from shared.utils.exceptions import AuthenticationError, AuthorizationError
from shared.utils.security import verify_access_token

security = HTTPBearer(auto_error=False)


class TokenData:
    def __init__(self, payload: dict):
        self.user_id: str = payload["sub"]
        self.role: UserRole = UserRole(payload["role"])
        self.email: str = payload["email"]
        self.jti: str = payload["jti"]
        self.payload = payload


async def decode_token(token: str, cache: RedisCache) -> TokenData:
    """Verify signature/expiry and the deny-list. Shared with the WebSocket endpoint."""
    try:
        payload = verify_access_token(token)
    except JWTError:
        raise AuthenticationError("Invalid or expired token")

    jti = payload.get("jti")
    if jti and await cache.is_token_revoked(jti):
        raise AuthenticationError("Token has been revoked")
    return TokenData(payload)


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    redis=Depends(get_redis),
) -> TokenData:
    """Extract and validate the JWT from the Authorization header."""
    if not credentials:
        raise AuthenticationError("Authentication required")
    return await decode_token(credentials.credentials, RedisCache(redis))


async def load_active_user(db: AsyncSession, token_data: TokenData) -> User:
    user = await db.get(User, uuid.UUID(token_data.user_id))
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthorizationError("User account is inactive")
    return user


async def get_current_user(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load full User object from database using JWT sub claim."""
    return await load_active_user(db, token_data)


class RoleRequired:
    """Dependency factory for role-based access control."""

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(
        self,
        current_user: User = Depends(get_current_user),
    ) -> User:
        if current_user.role not in self.roles:
            raise AuthorizationError(f"Required role: {[r.value for r in self.roles]}")
        return current_user


# Convenience role dependencies
require_admin = RoleRequired(UserRole.ADMIN)
require_planner = RoleRequired(UserRole.EVENT_PLANNER)
require_professional = RoleRequired(UserRole.CREATIVE_PROFESSIONAL)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
) -> Optional[User]:
    """Returns current user if authenticated, None otherwise. For public endpoints."""
    if not credentials:
        return None
    try:
        token_data = await decode_token(credentials.credentials, RedisCache(redis))
        return await load_active_user(db, token_data)
    except (AuthenticationError, AuthorizationError):
        return None
