"""
Celery application - Track-Hub
Broker from settings (Redis in production, memory:// in tests).

Run a worker with:
    celery -A trackhub.tasks.celery_app worker --loglevel=INFO
"""

from celery import Celery

from trackhub.core.config import settings

celery_app = Celery(
    "trackhub",
    broker=settings.broker_url,
    include=[
        "trackhub.tasks.repository",
        "trackhub.services.audit",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_backend=None,
    task_ignore_result=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    timezone="UTC",
    enable_utc=True,
)
