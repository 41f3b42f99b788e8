"""AI categorization API routes."""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from fragrance_battle.api.schemas import (
    AIHealthData,
    APIResponse,
    BatchCategorizeRequest,
    CategorizationResponse,
    CategorizeData,
    CategorizeRequest,
    FeedbackData,
    FeedbackRequest,
    ImproveRequest,
    TaskDispatchData,
)
from fragrance_battle.core.config import settings
from fragrance_battle.core.dependencies import (
    get_ai_service,
    get_current_user,
    get_optional_user,
    require_admin,
)
from fragrance_battle.core.rate_limit import ai_limiter, general_limiter
from fragrance_battle.domain.entities import Categorization, FragranceProfile, User
from fragrance_battle.infrastructure.tasks.ai_tasks import categorize_batch
from fragrance_battle.services.ai_service import AIService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ai", tags=["ai"])

Service = Annotated[AIService, Depends(get_ai_service)]


def _categorize_data(categorization: Categorization, fragrance_id: Optional[UUID] = None) -> CategorizeData:
    return CategorizeData(
        categorization=CategorizationResponse.model_validate(categorization),
        reasoning=categorization.reasoning,
        fragrance_id=fragrance_id,
    )


@router.post("/categorize", response_model=APIResponse[CategorizeData], dependencies=[Depends(ai_limiter)])
async def categorize(
    body: CategorizeRequest,
    ai_service: Service,
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
) -> APIResponse[CategorizeData]:
    """Suggest seasons, occasions and moods for a fragrance.

    Signed-in callers also update the tags of the matching catalog entry,
    whose id is returned as ``fragrance_id``.
    """
    profile = FragranceProfile(**body.model_dump())
    categorization, fragrance_id = await ai_service.categorize(profile, current_user)
    return APIResponse(data=_categorize_data(categorization, fragrance_id))


@router.post(
    "/categorize/batch",
    response_model=APIResponse[TaskDispatchData],
    status_code=status.HTTP_202_ACCEPTED,
)
async def dispatch_batch_categorization(
    admin: Annotated[User, Depends(require_admin)],
    body: Optional[BatchCategorizeRequest] = None,
) -> APIResponse[TaskDispatchData]:
    """Queue AI tagging of uncategorized fragrances; poll ``/api/tasks/{task_id}``."""
    limit = body.limit if body else BatchCategorizeRequest().limit
    task = categorize_batch.delay(limit)
    logger.info("Celery batch categorization task %s dispatched by %s", task.id, admin.id)
    return APIResponse(data=TaskDispatchData(task_id=task.id))


@router.get(
    "/categorize/{fragrance_id}",
    response_model=APIResponse[CategorizeData],
    dependencies=[Depends(ai_limiter)],
)
async def categorize_existing(fragrance_id: UUID, ai_service: Service) -> APIResponse[CategorizeData]:
    categorization, fragrance = await ai_service.categorize_existing(fragrance_id)
    return APIResponse(data=_categorize_data(categorization, fragrance.id))


@router.post(
    "/feedback",
    response_model=APIResponse[FeedbackData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(general_limiter)],
)
async def submit_feedback(
    body: FeedbackRequest,
    ai_service: Service,
    current_user: Annotated[User, Depends(get_current_user)],
) -> APIResponse[FeedbackData]:
    feedback = await ai_service.submit_feedback(
        current_user, body.fragrance_id, body.feedback_type, body.ai_suggestion, body.user_correction
    )
    return APIResponse(data=FeedbackData(message="Feedback submitted successfully", feedback_id=feedback.id))


@router.post("/improve", response_model=APIResponse[CategorizeData], dependencies=[Depends(ai_limiter)])
async def improve_categorization(
    body: ImproveRequest,
    ai_service: Service,
    current_user: Annotated[User, Depends(get_current_user)],
) -> APIResponse[CategorizeData]:
    """Re-categorize a catalog fragrance taking the caller's corrections into account."""
    categorization = await ai_service.improve(body.fragrance_id, body.corrections)
    return APIResponse(data=_categorize_data(categorization, body.fragrance_id))


@router.get("/health", response_model=APIResponse[AIHealthData], dependencies=[Depends(general_limiter)])
async def ai_health(ai_service: Service) -> APIResponse[AIHealthData]:
    healthy = await ai_service.health()
    return APIResponse(data=AIHealthData(provider=settings.llm_provider, healthy=healthy))


@router.get("/stats", response_model=APIResponse[dict], dependencies=[Depends(general_limiter)])
async def ai_stats(
    ai_service: Service,
    current_user: Annotated[User, Depends(get_current_user)],
) -> APIResponse[dict]:
    return APIResponse(data=await ai_service.get_stats())
