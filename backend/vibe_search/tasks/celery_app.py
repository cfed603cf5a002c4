"""Celery application configuration.

Vectorization runs on the ``high`` queue. There is no beat schedule:
backfills are started explicitly (admin API, CLI, or ``delay()``).
"""
from celery import Celery

from vibe_search.config import settings

celery_app = Celery(
    "vibe_search",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "vibe_search.tasks.vectorization_tasks.*": {"queue": "high"},
    },
    task_default_retry_delay=60,
    task_max_retries=3,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
)

celery_app.autodiscover_tasks([
    "vibe_search.tasks.vectorization_tasks",
])
