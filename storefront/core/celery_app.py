"""
Celery application: broker and result backend from settings.
Tasks are in storefront.workers.tasks (pending-order reconciliation).
"""
from celery import Celery
from celery.schedules import crontab

from storefront.core.config import settings

celery_app = Celery(
    "storefront",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "storefront.workers.tasks.sync_pending",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "sync-pending-orders": {
            "task": "storefront.workers.tasks.sync_pending.sync_pending_orders",
            "schedule": crontab(minute=f"*/{settings.sync_pending_interval_minutes}"),
        },
    },
)

celery_app.autodiscover_tasks(["storefront.workers.tasks"])
