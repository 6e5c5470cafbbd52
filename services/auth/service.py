"""
services/auth/service.py
Account creation and app-token issuance.

Email/password accounts and Firebase accounts share one token model:
short-lived HS256 access JWTs plus rotating refresh tokens whose SHA-256
hash is stored in refresh_tokens and revoked on use.
"""

import logging
import uuid
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.redis_client import RedisCache
from config.settings import settings
from services.user.service import UserService, create_role_profile
from shared.models.models import RefreshToken, User, UserRole
from shared.schemas.schemas import FirebaseRegisterRequest, SignupRequest, UserResponse
from shared.utils.dates import ensure_utc, utcnow
from shared.utils.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from shared.utils.security import (
    FirebaseTokenError,
    create_access_token,
    create_refresh_token,
    get_token_remaining_ttl,
    hash_password,
    hash_token,
    verify_firebase_token,
    verify_password,
)

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], Awaitable[dict]]


def get_token_verifier() -> TokenVerifier:
    """Dependency returning the Firebase ID-token verifier."""
    return verify_firebase_token


class AuthService:
    def __init__(self, db: AsyncSession, verifier: Optional[TokenVerifier] = None):
        self.db = db
        self.verifier = verifier or verify_firebase_token

    # ── Helpers ───────────────────────────────────────────────
    async def _user_by_email(self, email: str) -> Optional[User]:
        return await self.db.scalar(select(User).where(func.lower(User.email) == email.lower()))

    async def _claims(self, id_token: str) -> dict:
        try:
            return await self.verifier(id_token)
        except FirebaseTokenError as e:
            raise AuthenticationError(f"Invalid Firebase token: {e}")

    async def _ensure_username_free(self, username: Optional[str]) -> None:
        if not username:
            return
        status = await UserService(self.db).check_username(username)
        if not status["available"]:
            raise ConflictError(status["reason"])

    def _stage_refresh_token(self, user: User, user_agent: Optional[str], ip_address: Optional[str]) -> str:
        raw, hashed = create_refresh_token()
        self.db.add(RefreshToken(
            id=uuid.uuid4(),
            user_id=user.id,
            token_hash=hashed,
            expires_at=utcnow() + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS),
            user_agent=(user_agent or "")[:500] or None,
            ip_address=ip_address,
        ))
        return raw

    async def issue_tokens(
        self,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> dict:
        """Commit a fresh refresh token and return the auth payload."""
        role = user.role.value if isinstance(user.role, UserRole) else user.role
        access_token, _ = create_access_token(user_id=str(user.id), role=role, email=user.email)
        refresh_token = self._stage_refresh_token(user, user_agent, ip_address)
        await self.db.commit()
        await self.db.refresh(user)
        return {
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "tokenType": "bearer",
            "expiresIn": settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "user": UserResponse.model_validate(user).model_dump(by_alias=True),
        }

    def _new_user(self, email: str, name: str, role: UserRole, username: Optional[str], **fields) -> User:
        user = User(id=uuid.uuid4(), email=email.lower(), name=name, role=role, username=username, **fields)
        self.db.add(user)
        create_role_profile(self.db, user)
        return user

    # ── Email / password ──────────────────────────────────────
    async def signup(self, data: SignupRequest, user_agent=None, ip_address=None) -> dict:
        if await self._user_by_email(data.email):
            raise ConflictError("An account with this email already exists")
        await self._ensure_username_free(data.username)

        user = self._new_user(
            data.email,
            data.name,
            UserRole(data.role),
            data.username,
            password_hash=hash_password(data.password),
        )
        logger.info(f"New {user.role.value} account {user.email}")
        return await self.issue_tokens(user, user_agent, ip_address)

    async def signin(self, email: str, password: str, user_agent=None, ip_address=None) -> dict:
        user = await self._user_by_email(email)
        if not user or not user.password_hash or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        return await self.issue_tokens(user, user_agent, ip_address)

    # ── Firebase ──────────────────────────────────────────────
    async def register(self, data: FirebaseRegisterRequest, user_agent=None, ip_address=None) -> tuple[dict, bool]:
        """Create the user on first Firebase sign-in. Returns (payload, created)."""
        claims = await self._claims(data.id_token)
        uid = claims.get("uid") or claims.get("sub")
        email = claims.get("email")
        if not uid or not email:
            raise AuthenticationError("Firebase token has no email")

        user = await self.db.scalar(select(User).where(User.firebase_uid == uid))
        if user is None:
            user = await self._user_by_email(email)
            if user is not None:
                user.firebase_uid = uid
        if user is not None:
            if not user.is_active:
                raise AuthorizationError("User account is inactive")
            return await self.issue_tokens(user, user_agent, ip_address), False

        await self._ensure_username_free(data.username)
        user = self._new_user(
            email,
            data.name,
            UserRole(data.role),
            data.username,
            firebase_uid=uid,
            avatar=claims.get("picture"),
            is_verified=bool(claims.get("email_verified")),
        )
        logger.info(f"Registered Firebase user {uid} as {user.role.value}")
        return await self.issue_tokens(user, user_agent, ip_address), True

    async def verify_token(self, id_token: str, user_agent=None, ip_address=None) -> dict:
        claims = await self._claims(id_token)
        uid = claims.get("uid") or claims.get("sub")
        user = await self.db.scalar(select(User).where(User.firebase_uid == uid))
        if user is None:
            raise NotFoundError("User not registered")
        if not user.is_active:
            raise AuthorizationError("User account is inactive")
        return await self.issue_tokens(user, user_agent, ip_address)

    # ── Refresh / logout ──────────────────────────────────────
    async def refresh(self, raw_token: str, user_agent=None, ip_address=None) -> dict:
        """Rotate: the presented token is revoked and a new pair is issued."""
        db_token = await self.db.scalar(
            select(RefreshToken).where(
                RefreshToken.token_hash == hash_token(raw_token),
                RefreshToken.is_revoked.is_(False),
            )
        )
        if db_token is None:
            raise AuthenticationError("Invalid or revoked refresh token")
        if ensure_utc(db_token.expires_at) < utcnow():
            raise AuthenticationError("Refresh token expired")

        user = await self.db.get(User, db_token.user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("User not found")

        db_token.is_revoked = True
        return await self.issue_tokens(user, user_agent, ip_address)

    async def logout(self, token_payload: dict, cache: RedisCache, raw_refresh: Optional[str] = None) -> None:
        jti = token_payload.get("jti")
        if jti:
            await cache.revoke_token(jti, get_token_remaining_ttl(token_payload))

        if raw_refresh:
            db_token = await self.db.scalar(
                select(RefreshToken).where(RefreshToken.token_hash == hash_token(raw_refresh))
            )
            if db_token is not None:
                db_token.is_revoked = True
        await self.db.commit()
