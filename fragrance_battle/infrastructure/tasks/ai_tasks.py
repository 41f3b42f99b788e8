"""Celery task wrappers for AI background work.

Retry policy: up to 3 further attempts, 60 s apart.
"""

import asyncio
import logging

from fragrance_battle.infrastructure.tasks.celery_app import celery_app
from fragrance_battle.services.background_tasks import categorize_uncategorized_task

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="ai.categorize_batch", max_retries=3)
def categorize_batch(self, limit: int = 30) -> dict:
    """Celery task: AI-tag fragrances that have no seasons, occasions or moods yet."""
    try:
        return asyncio.run(categorize_uncategorized_task(limit))
    except Exception as exc:
        logger.warning(
            "categorize_batch failed (attempt %d/%d): %s",
            self.request.retries + 1,
            self.max_retries + 1,
            exc,
        )
        raise self.retry(exc=exc, countdown=60)
