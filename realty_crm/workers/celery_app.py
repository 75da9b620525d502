# realty_crm/workers/celery_app.py
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from ..config import settings

BROKER = settings.celery_broker_url or "redis://localhost:6379/0"
BACKEND = settings.celery_result_backend or "redis://localhost:6379/1"

celery_app = Celery(
    "realty_crm",
    broker=BROKER,
    backend=BACKEND,
    include=["realty_crm.workers.reminder_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

celery_app.conf.task_routes = {
    "realty_crm.workers.reminder_tasks.*": {"queue": "reminders"},
}

celery_app.conf.beat_schedule = {
    "sweep-due-reminders": {
        "task": "realty_crm.workers.reminder_tasks.sweep_due_reminders",
        "schedule": crontab(minute=f"*/{int(settings.reminder_sweep_minutes)}"),
    },
    "cleanup-old-reminders": {
        "task": "realty_crm.workers.reminder_tasks.cleanup_old_reminders",
        "schedule": crontab(hour=2, minute=0),
    },
}
