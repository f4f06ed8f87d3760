"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "kardex",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.alerts.*": {"queue": "alerts"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    beat_schedule={
        # Expiration conditions change with time, not only with stock movements.
        "scan-products-daily": {
            "task": "workers.alerts.scan_products",
            "schedule": crontab(hour=1, minute=0),
            "options": {"queue": "alerts"},
        },
        "process-active-alerts-daily": {
            "task": "workers.alerts.process_active_alerts",
            "schedule": crontab(hour=8, minute=0),
            "options": {"queue": "alerts"},
        },
        "retry-pending-notifications-hourly": {
            "task": "workers.alerts.retry_pending_notifications",
            "schedule": crontab(minute=15),
            "options": {"queue": "alerts"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"], related_name="alerts")
