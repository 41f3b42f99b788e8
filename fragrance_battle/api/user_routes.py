"""Per-user analytics, profile, activity and favorites routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from fragrance_battle.api.schemas import (
    ActivityData,
    AIFeedbackResponse,
    APIResponse,
    BattleResponse,
    CollectionItemResponse,
    CollectionSummary,
    ProfileUpdateRequest,
    UserAnalyticsData,
    UserProfileData,
    UserResponse,
)
from fragrance_battle.core.dependencies import get_auth_service, get_current_user, get_user_service
from fragrance_battle.core.rate_limit import general_limiter
from fragrance_battle.domain.entities import User
from fragrance_battle.services.auth_service import AuthService
from fragrance_battle.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(general_limiter)])

CurrentUser = Annotated[User, Depends(get_current_user)]
Service = Annotated[UserService, Depends(get_user_service)]


@router.get("/analytics", response_model=APIResponse[UserAnalyticsData])
async def get_analytics(current_user: CurrentUser, user_service: Service) -> APIResponse[UserAnalyticsData]:
    return APIResponse(data=UserAnalyticsData(**await user_service.get_analytics(current_user)))


@router.get("/profile", response_model=APIResponse[UserProfileData])
async def get_profile(current_user: CurrentUser, user_service: Service) -> APIResponse[UserProfileData]:
    profile = await user_service.get_profile(current_user)
    return APIResponse(
        data=UserProfileData(
            user=UserResponse.model_validate(profile["user"]),
            collections=[CollectionSummary(**c) for c in profile["collections"]],
            recent_battles=[BattleResponse.model_validate(b) for b in profile["recent_battles"]],
            recent_feedback=[AIFeedbackResponse.model_validate(f) for f in profile["recent_feedback"]],
        )
    )


@router.put("/profile", response_model=APIResponse[UserResponse])
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: CurrentUser,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> APIResponse[UserResponse]:
    updated = await auth_service.update_profile(current_user, body.username, body.email, body.bio)
    return APIResponse(data=UserResponse.model_validate(updated))


@router.get("/activity", response_model=APIResponse[ActivityData])
async def get_activity(
    current_user: CurrentUser,
    user_service: Service,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
) -> APIResponse[ActivityData]:
    """Collection additions, battles created and AI feedback, newest first."""
    return APIResponse(data=ActivityData(**await user_service.get_activity(current_user, page, limit)))


@router.get("/favorites", response_model=APIResponse[list[CollectionItemResponse]])
async def get_favorites(
    current_user: CurrentUser,
    user_service: Service,
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
) -> APIResponse[list[CollectionItemResponse]]:
    items = await user_service.get_favorites(current_user, limit)
    return APIResponse(data=[CollectionItemResponse.model_validate(i) for i in items])
