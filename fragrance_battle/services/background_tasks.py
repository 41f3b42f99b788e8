"""Async implementations of AI background work.

These coroutines hold the logic executed by Celery workers.  Each one is
self-contained: it opens its own DB session (independent of any request) and
builds the LLM service from config rather than through FastAPI DI.

The Celery wrappers in ``fragrance_battle.infrastructure.tasks.ai_tasks`` call
these with ``asyncio.run()``.
"""

import logging

from fragrance_battle.core.config import settings
from fragrance_battle.core.dependencies import get_llm_service
from fragrance_battle.infrastructure.database.connection import worker_session_maker
from fragrance_battle.infrastructure.database.repository import (
    AIFeedbackRepository,
    FragranceRepository,
)
from fragrance_battle.services.ai_service import AIService

logger = logging.getLogger(__name__)


async def categorize_uncategorized_task(limit: int) -> dict:
    """Tag up to ``limit`` fragrances that have no AI tags yet."""
    logger.info("BG-TASK: batch categorization of up to %d fragrances", limit)
    try:
        async with worker_session_maker() as session:
            service = AIService(
                llm_service=get_llm_service(),
                fragrance_repository=FragranceRepository(session),
                feedback_repository=AIFeedbackRepository(session),
            )
            summary = await service.categorize_batch(
                limit=limit,
                batch_size=settings.ai_batch_size,
                delay_seconds=settings.ai_batch_delay_seconds,
            )
    except Exception as exc:
        logger.error("BG-TASK: batch categorization failed: %s", exc, exc_info=True)
        raise
    logger.info("BG-TASK: batch categorization done: %s", summary)
    return summary
