"""
services/auth/router.py
Authentication endpoints.
Implements: Signup / Signin → JWT issue → Refresh (rotation) → Logout,
plus Firebase register / verify-token exchange.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from services.auth.service import AuthService, TokenVerifier, get_token_verifier
from shared.middleware.auth import TokenData, get_current_user, get_token_data
from shared.middleware.rate_limit import RateLimit, client_key
from shared.models.models import User
from shared.schemas.schemas import (
    FirebaseRegisterRequest,
    LogoutRequest,
    RefreshRequest,
    SigninRequest,
    SignupRequest,
    UserResponse,
    VerifyTokenRequest,
)
from shared.utils.pagination import ok

router = APIRouter(prefix="/auth", tags=["Authentication"])

auth_limit = Depends(RateLimit("auth"))


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthService:
    return AuthService(db, verifier)


def _client(request: Request) -> dict:
    return {"user_agent": request.headers.get("User-Agent"), "ip_address": client_key(request)}


@router.post("/signup", status_code=status.HTTP_201_CREATED, dependencies=[auth_limit])
async def signup(data: SignupRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    """Create an email/password account with its role profile."""
    return ok(await service.signup(data, **_client(request)), "Account created successfully")


@router.post("/signin", dependencies=[auth_limit])
async def signin(data: SigninRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    return ok(await service.signin(data.email, data.password, **_client(request)), "Signed in successfully")


@router.post("/register", dependencies=[auth_limit])
async def register(
    data: FirebaseRegisterRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    """
    First sign-in with a Firebase ID token. Existing accounts are returned
    unchanged with 200; new accounts are created with 201.
    """
    payload, created = await service.register(data, **_client(request))
    body = ok(payload, "User registered successfully" if created else "User already registered")
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content=jsonable_encoder(body),
    )


@router.post("/verify-token", dependencies=[auth_limit])
async def verify_token(
    data: VerifyTokenRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    return ok(await service.verify_token(data.id_token, **_client(request)), "Token verified")


@router.post("/refresh", dependencies=[auth_limit])
async def refresh(data: RefreshRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    return ok(await service.refresh(data.refresh_token, **_client(request)), "Token refreshed")


@router.post("/logout")
async def logout(
    data: Optional[LogoutRequest] = None,
    token_data: TokenData = Depends(get_token_data),
    service: AuthService = Depends(get_auth_service),
    redis=Depends(get_redis),
):
    """Revoke the refresh token and deny-list the access token until it expires."""
    await service.logout(token_data.payload, RedisCache(redis), data.refresh_token if data else None)
    return ok(None, "Logged out successfully")


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return ok(UserResponse.model_validate(current_user).model_dump(by_alias=True))
