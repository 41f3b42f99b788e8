"""Dependency injection container."""

import logging
from typing import Annotated, Optional
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fragrance_battle.core.config import settings
from fragrance_battle.core.errors import AuthenticationError, ForbiddenError, InvalidTokenError
from fragrance_battle.core.redis_client import get_redis, is_token_revoked
from fragrance_battle.core.security import decode_access_token
from fragrance_battle.domain.entities import User
from fragrance_battle.domain.repositories import (
    IAIFeedbackRepository,
    IBattleRepository,
    ICollectionRepository,
    IFragranceRepository,
    ILLMService,
    IUserRepository,
)
from fragrance_battle.infrastructure.database.connection import get_db
from fragrance_battle.infrastructure.database.repository import (
    AIFeedbackRepository,
    BattleRepository,
    CollectionRepository,
    FragranceRepository,
    UserRepository,
)
from fragrance_battle.infrastructure.llm.services import (
    LlamaLLMService,
    MockLLMService,
    OpenAILLMService,
)
from fragrance_battle.services.admin_service import AdminService
from fragrance_battle.services.ai_service import AIService
from fragrance_battle.services.auth_service import AuthService
from fragrance_battle.services.battle_service import BattleService
from fragrance_battle.services.collection_service import CollectionService
from fragrance_battle.services.fragrance_service import FragranceService
from fragrance_battle.services.recommendation import SimilarFragranceService
from fragrance_battle.services.user_service import UserService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
def get_llm_service() -> ILLMService:
    """Return the configured LLM provider."""
    if settings.llm_provider == "mock":
        return MockLLMService()
    elif settings.llm_provider == "llama":
        return LlamaLLMService(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
        )
    elif settings.llm_provider == "openai":
        return OpenAILLMService(
            api_key=settings.llm_api_key,
            model=settings.openai_model,
            timeout=settings.llm_timeout,
        )
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")


# ---------------------------------------------------------------------------
# Repository providers
# ---------------------------------------------------------------------------
async def get_user_repository(session: AsyncSession = Depends(get_db)) -> IUserRepository:
    return UserRepository(session)


async def get_fragrance_repository(session: AsyncSession = Depends(get_db)) -> IFragranceRepository:
    return FragranceRepository(session)


async def get_collection_repository(
    session: AsyncSession = Depends(get_db),
) -> ICollectionRepository:
    return CollectionRepository(session)


async def get_battle_repository(session: AsyncSession = Depends(get_db)) -> IBattleRepository:
    return BattleRepository(session)


async def get_feedback_repository(
    session: AsyncSession = Depends(get_db),
) -> IAIFeedbackRepository:
    return AIFeedbackRepository(session)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
async def get_auth_service(
    user_repo: IUserRepository = Depends(get_user_repository),
    collection_repo: ICollectionRepository = Depends(get_collection_repository),
) -> AuthService:
    return AuthService(user_repository=user_repo, collection_repository=collection_repo)


async def get_fragrance_service(
    repo: IFragranceRepository = Depends(get_fragrance_repository),
) -> FragranceService:
    return FragranceService(fragrance_repository=repo)


async def get_similar_fragrance_service(
    repo: IFragranceRepository = Depends(get_fragrance_repository),
) -> SimilarFragranceService:
    return SimilarFragranceService(fragrance_repository=repo)


async def get_collection_service(
    collection_repo: ICollectionRepository = Depends(get_collection_repository),
    fragrance_repo: IFragranceRepository = Depends(get_fragrance_repository),
) -> CollectionService:
    return CollectionService(collection_repository=collection_repo, fragrance_repository=fragrance_repo)


async def get_battle_service(
    battle_repo: IBattleRepository = Depends(get_battle_repository),
    fragrance_repo: IFragranceRepository = Depends(get_fragrance_repository),
) -> BattleService:
    return BattleService(battle_repository=battle_repo, fragrance_repository=fragrance_repo)


async def get_ai_service(
    llm: ILLMService = Depends(get_llm_service),
    fragrance_repo: IFragranceRepository = Depends(get_fragrance_repository),
    feedback_repo: IAIFeedbackRepository = Depends(get_feedback_repository),
) -> AIService:
    return AIService(
        llm_service=llm,
        fragrance_repository=fragrance_repo,
        feedback_repository=feedback_repo,
    )


async def get_user_service(
    collection_repo: ICollectionRepository = Depends(get_collection_repository),
    battle_repo: IBattleRepository = Depends(get_battle_repository),
    feedback_repo: IAIFeedbackRepository = Depends(get_feedback_repository),
) -> UserService:
    return UserService(
        collection_repository=collection_repo,
        battle_repository=battle_repo,
        feedback_repository=feedback_repo,
    )


async def get_admin_service(
    repo: IFragranceRepository = Depends(get_fragrance_repository),
) -> AdminService:
    return AdminService(fragrance_repository=repo)


# ---------------------------------------------------------------------------
# Auth dependencies
# ---------------------------------------------------------------------------
async def _resolve_user(
    token: str, user_repo: IUserRepository, redis_client: aioredis.Redis
) -> User:
    payload = decode_access_token(token)
    if payload is None:
        raise InvalidTokenError()

    jti: Optional[str] = payload.get("jti")
    if jti and await is_token_revoked(redis_client, jti):
        raise InvalidTokenError("Token has been revoked")

    try:
        user_id = UUID(payload.get("sub") or "")
    except ValueError:
        raise InvalidTokenError()
    user = await user_repo.get_by_id(user_id)
    if user is None:
        raise InvalidTokenError("User no longer exists")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    user_repo: Annotated[IUserRepository, Depends(get_user_repository)],
    redis_client: Annotated[aioredis.Redis, Depends(get_redis)],
) -> User:
    """Decode the bearer JWT and return the authenticated user.

    Rejects tokens whose ``jti`` is on the Redis revocation blacklist
    (the user has logged out).
    """
    return await _resolve_user(token, user_repo, redis_client)


async def get_optional_user(
    token: Annotated[Optional[str], Depends(optional_oauth2_scheme)],
    user_repo: Annotated[IUserRepository, Depends(get_user_repository)],
    redis_client: Annotated[aioredis.Redis, Depends(get_redis)],
) -> Optional[User]:
    """Like :func:`get_current_user`, but anonymous callers and bad tokens get ``None``."""
    if not token:
        return None
    try:
        return await _resolve_user(token, user_repo, redis_client)
    except AuthenticationError as exc:
        logger.debug("Ignoring bad token on optional-auth route: %s", exc.code)
        return None


async def require_admin(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user
