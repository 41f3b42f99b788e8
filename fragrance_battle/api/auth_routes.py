"""Authentication API routes."""

import logging
import time
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status

from fragrance_battle.api.schemas import (
    APIResponse,
    AuthData,
    ChangePasswordRequest,
    LoginRequest,
    MessageData,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)
from fragrance_battle.core.dependencies import get_auth_service, get_current_user, oauth2_scheme
from fragrance_battle.core.rate_limit import general_limiter
from fragrance_battle.core.redis_client import get_redis, revoke_token
from fragrance_battle.core.security import decode_access_token
from fragrance_battle.domain.entities import User
from fragrance_battle.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"], dependencies=[Depends(general_limiter)])


def _auth_data(user: User, token: str) -> APIResponse[AuthData]:
    return APIResponse(data=AuthData(user=UserResponse.model_validate(user), token=token))


@router.post("/register", response_model=APIResponse[AuthData], status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> APIResponse[AuthData]:
    """Create an account with its default collection and sign it in."""
    user, token = await auth_service.register(body.username, body.email, body.password)
    return _auth_data(user, token)


@router.post("/login", response_model=APIResponse[AuthData])
async def login(
    body: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> APIResponse[AuthData]:
    user, token = await auth_service.login(body.email, body.password)
    return _auth_data(user, token)


@router.get("/me", response_model=APIResponse[UserResponse])
async def get_me(current_user: Annotated[User, Depends(get_current_user)]) -> APIResponse[UserResponse]:
    return APIResponse(data=UserResponse.model_validate(current_user))


@router.put("/me", response_model=APIResponse[UserResponse])
async def update_me(
    body: ProfileUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> APIResponse[UserResponse]:
    updated = await auth_service.update_profile(current_user, body.username, body.email, body.bio)
    return APIResponse(data=UserResponse.model_validate(updated))


@router.put("/change-password", response_model=APIResponse[MessageData])
async def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> APIResponse[MessageData]:
    await auth_service.change_password(current_user, body.current_password, body.new_password)
    return APIResponse(data=MessageData(message="Password changed successfully"))


@router.delete("/me", response_model=APIResponse[MessageData])
async def delete_me(
    current_user: Annotated[User, Depends(get_current_user)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> APIResponse[MessageData]:
    """Delete the account and everything it owns."""
    await auth_service.delete_account(current_user)
    return APIResponse(data=MessageData(message="Account deleted successfully"))


@router.post("/logout", response_model=APIResponse[MessageData])
async def logout(
    current_user: Annotated[User, Depends(get_current_user)],
    token: Annotated[str, Depends(oauth2_scheme)],
    redis_client: Annotated[aioredis.Redis, Depends(get_redis)],
) -> APIResponse[MessageData]:
    """Sign out the current token.

    The token's ``jti`` goes on the Redis revocation blacklist with a TTL
    equal to the token's remaining lifetime, so ``get_current_user`` rejects
    it from now on.
    """
    payload = decode_access_token(token)
    if payload:
        jti = payload.get("jti")
        exp = payload.get("exp")
        if jti and exp:
            ttl = max(int(exp - time.time()), 1)
            await revoke_token(redis_client, jti, ttl)
            logger.info("Token jti=%s revoked (TTL=%ds) for user %s", jti, ttl, current_user.id)
    return APIResponse(data=MessageData(message="Successfully logged out"))
