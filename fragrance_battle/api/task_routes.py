"""Task status API route.

Lets clients poll a background Celery task dispatched by
``POST /api/ai/categorize/batch``.

Possible ``status`` values mirror Celery's task state machine:
PENDING, STARTED, SUCCESS (``result`` populated), FAILURE (``error``
populated) and RETRY.
"""

import logging
from typing import Annotated

from celery.result import AsyncResult
from fastapi import APIRouter, Depends

from fragrance_battle.api.schemas import APIResponse, TaskStatusResponse
from fragrance_battle.core.dependencies import get_current_user
from fragrance_battle.domain.entities import User
from fragrance_battle.infrastructure.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/{task_id}", response_model=APIResponse[TaskStatusResponse])
async def get_task_status(
    task_id: str, current_user: Annotated[User, Depends(get_current_user)]
) -> APIResponse[TaskStatusResponse]:
    result = AsyncResult(task_id, app=celery_app)

    error = str(result.result) if result.state == "FAILURE" else None
    payload = result.result if result.state == "SUCCESS" and isinstance(result.result, dict) else None
    logger.debug("Task %s state: %s", task_id, result.state)

    return APIResponse(
        data=TaskStatusResponse(task_id=task_id, status=result.state, result=payload, error=error)
    )
