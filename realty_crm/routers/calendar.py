# realty_crm/routers/calendar.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..responses import ok
from ..schemas import CalendarEventCreate, CalendarEventOut, CalendarEventUpdate, ReminderTrackingOut
from ..services import calendar_events, reminders

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.post("/events")
def create_event(payload: CalendarEventCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ev = calendar_events.create_event(db, payload.model_dump(), created_by=actor.user_id)
    return ok(CalendarEventOut.model_validate(ev), "Event created successfully", status_code=201)


@router.patch("/events/{event_id}")
def update_event(event_id: int, payload: CalendarEventUpdate, db: Session = Depends(get_db)):
    ev = calendar_events.update_event(db, event_id, payload.model_dump(exclude_unset=True))
    return ok(CalendarEventOut.model_validate(ev), "Event updated successfully")


@router.get("/events/{event_id}/reminders")
def event_reminders(event_id: int, db: Session = Depends(get_db)):
    reminders.must_get_event(db, event_id)
    rows = reminders.list_event_reminders(db, event_id)
    return ok([ReminderTrackingOut.model_validate(r) for r in rows], "Reminders retrieved successfully")


@router.post("/reminders/run")
def run_reminders(db: Session = Depends(get_db)):
    summary = reminders.sweep_due_reminders(db)
    return ok(summary, "Reminder sweep completed")
