# realty_crm/workers/reminder_tasks.py
from __future__ import annotations

import logging

from ..db import SessionLocal
from ..services import reminders
from .celery_app import celery_app

log = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    name="realty_crm.workers.reminder_tasks.sweep_due_reminders",
)
def sweep_due_reminders(self) -> dict:
    """
    Periodic sweep. Safe to overlap with another sweep or a manual run;
    rows are claimed one at a time before dispatch.
    """
    db = SessionLocal()
    try:
        return reminders.sweep_due_reminders(db)
    except Exception as e:
        db.rollback()
        log.exception("reminder_sweep_failed")
        raise self.retry(exc=e)
    finally:
        db.close()


@celery_app.task(name="realty_crm.workers.reminder_tasks.cleanup_old_reminders")
def cleanup_old_reminders(days: int | None = None) -> dict:
    db = SessionLocal()
    try:
        deleted = reminders.cleanup_old_reminders(db, days=days)
        return {"ok": True, "deleted": deleted}
    finally:
        db.close()

