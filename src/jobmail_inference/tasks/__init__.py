"""
Celery tasks for background batch processing.

- celery_app.py: Celery application configuration (broker, backend, etc.)
- classification_tasks.py: classify_batch (classify or ingest a batch of emails)
"""

from jobmail_inference.tasks.celery_app import celery_app
from jobmail_inference.tasks.classification_tasks import classify_batch_task

__all__ = [
    "celery_app",
    "classify_batch_task",
]
