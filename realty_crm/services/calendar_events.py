# realty_crm/services/calendar_events.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import CalendarEvent
from .reminders import must_get_event, schedule_event_reminders

log = logging.getLogger(__name__)


def _utc_naive(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _check_times(start: datetime, end: datetime | None) -> None:
    if end is not None and end < start:
        raise ValidationError("End time cannot be before start time")


def create_event(
    db: Session, data: dict[str, Any], *, created_by: int | None, now: datetime | None = None
) -> CalendarEvent:
    payload = dict(data)
    payload["start_time"] = _utc_naive(payload["start_time"])
    payload["end_time"] = _utc_naive(payload.get("end_time"))
    _check_times(payload["start_time"], payload["end_time"])

    ts = datetime.utcnow()
    ev = CalendarEvent(**payload, created_by=created_by, created_at=ts, updated_at=ts)
    db.add(ev)
    db.commit()
    db.refresh(ev)
    log.info("calendar_event_created", extra={"event_id": ev.id, "user_id": created_by})

    schedule_event_reminders(db, ev.id, now=now)
    return ev


def update_event(db: Session, event_id: int, changes: dict[str, Any], *, now: datetime | None = None) -> CalendarEvent:
    ev = must_get_event(db, event_id)
    for k in ("start_time", "end_time"):
        if k in changes:
            changes[k] = _utc_naive(changes[k])
    for k in ("start_time", "title"):
        if k in changes and changes[k] is None:
            changes.pop(k)

    for k, v in changes.items():
        setattr(ev, k, v)
    _check_times(ev.start_time, ev.end_time)
    ev.updated_at = datetime.utcnow()
    db.add(ev)
    db.commit()
    db.refresh(ev)

    schedule_event_reminders(db, ev.id, now=now)
    return ev
