"""
Celery application configuration for background batch classification.

Tasks are defined in classification_tasks.py.
"""

from celery import Celery

from jobmail_inference.config import settings

celery_app = Celery(
    "jobmail_inference",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    # Task execution
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,  # Hard limit (kills task)
    task_soft_time_limit=settings.CELERY_TASK_TIME_LIMIT - 30,  # Soft limit (raises exception)

    # Worker settings
    worker_concurrency=settings.CELERY_WORKER_CONCURRENCY,
    worker_prefetch_multiplier=1,  # batches are long; fetch one at a time
    worker_max_tasks_per_child=50,  # recycle workers holding model memory

    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    timezone="UTC",
    enable_utc=True,

    result_expires=3600,
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.autodiscover_tasks(["jobmail_inference.tasks"], related_name="classification_tasks")
