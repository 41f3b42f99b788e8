"""Celery application; broker and result backend both backed by Redis.

Workers run as a separate process from the API server, so slow LLM batches
never block request handlers.

Task states stored in Redis:
  PENDING  task dispatched, not yet picked up by a worker
  STARTED  worker has begun execution (task_track_started=True)
  SUCCESS  task finished; ``result`` holds the batch summary
  FAILURE  task raised an unhandled exception
  RETRY    task failed and is waiting for its next attempt
"""

from celery import Celery

from fragrance_battle.core.config import settings

celery_app = Celery(
    "fragrance_battle",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["fragrance_battle.infrastructure.tasks.ai_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    result_expires=86400,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
)
