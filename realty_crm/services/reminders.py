# realty_crm/services/reminders.py
"""
Calendar reminder scheduling and dispatch.

Each (event, recipient, reminder type) gets one ReminderTracking row that moves
through a small state machine:

    pending -> claimed -> sent
    pending -> skipped            (window passed, type disabled, no longer applicable)
    claimed -> skipped            (type disabled or recipient gone at dispatch time)
    claimed -> pending            (claim abandoned past reminder_claim_timeout_minutes)

A sweep only dispatches rows it claimed with a conditional UPDATE, so two
sweepers running at once never send the same reminder twice.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Protocol

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError
from ..models import CalendarEvent, Notification, ReminderTracking, User
from . import system_settings

log = logging.getLogger(__name__)

REMINDER_1_DAY = "1_day"
REMINDER_SAME_DAY = "same_day"
REMINDER_1_HOUR = "1_hour"
REMINDER_TYPES = (REMINDER_1_DAY, REMINDER_SAME_DAY, REMINDER_1_HOUR)

SETTING_KEYS = {
    REMINDER_1_DAY: "reminder_1_day_before",
    REMINDER_SAME_DAY: "reminder_same_day",
    REMINDER_1_HOUR: "reminder_1_hour_before",
}

PENDING = "pending"
CLAIMED = "claimed"
SENT = "sent"
SKIPPED = "skipped"

_LABELS = {
    REMINDER_1_DAY: "tomorrow",
    REMINDER_SAME_DAY: "today",
    REMINDER_1_HOUR: "in 1 hour",
}


def _now() -> datetime:
    return datetime.utcnow()


def window_for(reminder_type: str) -> timedelta:
    minutes = {
        REMINDER_1_DAY: settings.reminder_window_1_day_minutes,
        REMINDER_SAME_DAY: settings.reminder_window_same_day_minutes,
        REMINDER_1_HOUR: settings.reminder_window_1_hour_minutes,
    }[reminder_type]
    return timedelta(minutes=int(minutes))


def grace_for(reminder_type: str) -> timedelta:
    """How late a reminder may still go out: its window plus one sweep interval."""
    return window_for(reminder_type) + timedelta(minutes=int(settings.reminder_sweep_minutes))


def compute_scheduled_time(reminder_type: str, start_time: datetime) -> datetime:
    """
    Canonical send time for a reminder.

    same_day goes out at 09:00 on the event day; events starting before 09:00
    get it at 20:00 the evening before instead.
    """
    if reminder_type == REMINDER_1_DAY:
        return start_time - timedelta(hours=24)
    if reminder_type == REMINDER_1_HOUR:
        return start_time - timedelta(hours=1)
    if reminder_type == REMINDER_SAME_DAY:
        morning = start_time.replace(hour=int(settings.reminder_same_day_hour), minute=0, second=0, microsecond=0)
        if start_time >= morning:
            return morning
        evening = start_time - timedelta(days=1)
        return evening.replace(hour=int(settings.reminder_previous_evening_hour), minute=0, second=0, microsecond=0)
    raise ValueError(f"unknown reminder type: {reminder_type}")


def reminder_enabled(db: Session, reminder_type: str) -> bool:
    return system_settings.get_bool(db, SETTING_KEYS[reminder_type])


def set_reminder_enabled(db: Session, reminder_type: str, enabled: bool) -> dict[str, Any]:
    return system_settings.update_setting(db, SETTING_KEYS[reminder_type], bool(enabled))


# -----------------------------
# Sending
# -----------------------------
class ReminderSender(Protocol):
    def send(self, *, user: User, event: CalendarEvent, reminder_type: str) -> None: ...


class LoggingReminderSender:
    """Default sender: records the email that would go out."""

    def send(self, *, user: User, event: CalendarEvent, reminder_type: str) -> None:
        log.info(
            "reminder_email",
            extra={"user_id": user.id, "event_id": event.id, "reminder_type": reminder_type},
        )


def _notification_text(event: CalendarEvent, reminder_type: str) -> tuple[str, str]:
    when = event.start_time.strftime("%Y-%m-%d %H:%M")
    title = f"Reminder: {event.title}"
    message = f'Your event "{event.title}" starts {_LABELS[reminder_type]} ({when} UTC).'
    if event.location:
        message += f" Location: {event.location}."
    return title, message


# -----------------------------
# Scheduling
# -----------------------------
def must_get_event(db: Session, event_id: int) -> CalendarEvent:
    ev = db.get(CalendarEvent, int(event_id))
    if ev is None:
        raise NotFoundError("Event not found")
    return ev


def get_event_recipients(db: Session, event: CalendarEvent) -> list[User]:
    conds = []
    if event.created_by is not None:
        conds.append(User.id == event.created_by)
    if event.assigned_to is not None:
        conds.append(User.id == event.assigned_to)
    names = [n for n in (event.attendees or []) if isinstance(n, str) and n.strip()]
    if names:
        conds.append(User.name.in_(names))
    if not conds:
        return []
    q = select(User).where(or_(*conds)).where(User.email.is_not(None)).order_by(User.id)
    return list(db.scalars(q).all())


def schedule_event_reminders(db: Session, event_id: int, now: datetime | None = None) -> list[ReminderTracking]:
    """
    Bring the event's tracking rows in line with its current start time and recipients.

    Creates pending rows for every reminder a sweep can still deliver (its
    scheduled time is before the event and not older than its grace period),
    moves unsent rows to the new time, and skips unsent rows that no longer
    apply. Sent and in-flight rows are left alone.
    """
    now = now or _now()
    event = must_get_event(db, event_id)

    existing = {
        (r.user_id, r.reminder_type): r
        for r in db.scalars(
            select(ReminderTracking)
            .where(ReminderTracking.event_id == event.id)
            .execution_options(populate_existing=True)
        )
    }
    wanted: dict[tuple[int, str], datetime] = {}
    recipients = {u.id: u for u in get_event_recipients(db, event)}
    if event.start_time > now:
        for user in recipients.values():
            for rtype in REMINDER_TYPES:
                at = compute_scheduled_time(rtype, event.start_time)
                if now - grace_for(rtype) <= at < event.start_time:
                    wanted[(user.id, rtype)] = at

    for key, at in wanted.items():
        row = existing.get(key)
        if row is None:
            db.add(
                ReminderTracking(
                    event_id=event.id,
                    user_id=key[0],
                    reminder_type=key[1],
                    scheduled_time=at,
                    status=PENDING,
                    created_at=now,
                )
            )
        elif row.status in (PENDING, SKIPPED) and (row.scheduled_time != at or row.status != PENDING):
            row.scheduled_time = at
            row.status = PENDING
            row.skip_reason = None
            db.add(row)

    for key, row in existing.items():
        if key not in wanted and row.status == PENDING:
            row.status = SKIPPED
            row.skip_reason = "window_passed" if key[0] in recipients else "not_applicable"
            db.add(row)

    db.commit()
    log.info("reminders_scheduled", extra={"event_id": event.id, "count": len(wanted)})
    return list_event_reminders(db, event.id)


def list_event_reminders(db: Session, event_id: int) -> list[ReminderTracking]:
    q = (
        select(ReminderTracking)
        .where(ReminderTracking.event_id == int(event_id))
        .order_by(ReminderTracking.scheduled_time, ReminderTracking.user_id)
        .execution_options(populate_existing=True)
    )
    return list(db.scalars(q).all())


# -----------------------------
# Sweeping
# -----------------------------
def _window_condition(now: datetime, *, due: bool):
    """
    due: the row may go out early by up to its window, or late by up to its
    grace period, so a sweep every `reminder_sweep_minutes` always sees it once.
    not due: the grace period has run out.
    """
    parts = []
    for rtype in REMINDER_TYPES:
        oldest = now - grace_for(rtype)
        if due:
            cond = and_(
                ReminderTracking.reminder_type == rtype,
                ReminderTracking.scheduled_time >= oldest,
                ReminderTracking.scheduled_time <= now + window_for(rtype),
            )
        else:
            cond = and_(ReminderTracking.reminder_type == rtype, ReminderTracking.scheduled_time < oldest)
        parts.append(cond)
    return or_(*parts)


def release_stale_claims(db: Session, now: datetime | None = None) -> int:
    """Claims older than `reminder_claim_timeout_minutes` belong to a dead sweeper; put them back to pending."""
    now = now or _now()
    cutoff = now - timedelta(minutes=int(settings.reminder_claim_timeout_minutes))
    res = db.execute(
        update(ReminderTracking)
        .where(ReminderTracking.status == CLAIMED, ReminderTracking.claimed_at < cutoff)
        .values(status=PENDING, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    n = int(res.rowcount or 0)
    if n:
        log.warning("reminder_claims_released", extra={"count": n})
    return n


def expire_stale_reminders(db: Session, now: datetime | None = None) -> int:
    """Pending rows whose grace period ran out before `now` become skipped."""
    now = now or _now()
    res = db.execute(
        update(ReminderTracking)
        .where(ReminderTracking.status == PENDING)
        .where(_window_condition(now, due=False))
        .values(status=SKIPPED, skip_reason="window_passed")
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return int(res.rowcount or 0)


def claim_reminder(db: Session, tracking_id: int, now: datetime | None = None) -> bool:
    """True when this caller moved the row from pending to claimed."""
    res = db.execute(
        update(ReminderTracking)
        .where(ReminderTracking.id == int(tracking_id), ReminderTracking.status == PENDING)
        .values(status=CLAIMED, claimed_at=now or _now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return int(res.rowcount or 0) == 1


def _skip(db: Session, row: ReminderTracking, reason: str) -> None:
    row.status = SKIPPED
    row.skip_reason = reason
    db.add(row)
    db.commit()
    log.info(
        "reminder_skipped",
        extra={"tracking_id": row.id, "event_id": row.event_id, "reminder_type": row.reminder_type, "summary": reason},
    )


def dispatch_reminder(db: Session, row: ReminderTracking, sender: ReminderSender, now: datetime | None = None) -> bool:
    """Send one claimed reminder. Returns False when it was skipped instead."""
    now = now or _now()

    if not reminder_enabled(db, row.reminder_type):
        _skip(db, row, "disabled")
        return False

    event = db.get(CalendarEvent, row.event_id)
    user = db.get(User, row.user_id)
    if event is None or user is None or not user.email:
        _skip(db, row, "recipient_unavailable")
        return False

    email_sent = False
    try:
        sender.send(user=user, event=event, reminder_type=row.reminder_type)
        email_sent = True
    except Exception:
        log.exception(
            "reminder_email_failed",
            extra={"tracking_id": row.id, "user_id": user.id, "reminder_type": row.reminder_type},
        )

    title, message = _notification_text(event, row.reminder_type)
    db.add(
        Notification(
            user_id=user.id,
            type="calendar_reminder",
            title=title,
            message=message,
            event_id=event.id,
            created_at=now,
        )
    )

    row.status = SENT
    row.email_sent = email_sent
    row.notification_sent = True
    row.sent_at = now
    db.add(row)
    db.commit()
    log.info(
        "reminder_sent",
        extra={"tracking_id": row.id, "user_id": user.id, "event_id": event.id, "reminder_type": row.reminder_type},
    )
    return True


def sweep_due_reminders(
    db: Session,
    now: datetime | None = None,
    sender: ReminderSender | None = None,
) -> dict[str, Any]:
    now = now or _now()
    sender = sender or LoggingReminderSender()

    release_stale_claims(db, now)
    summary = {"claimed": 0, "sent": 0, "skipped": expire_stale_reminders(db, now)}

    due_ids = list(
        db.scalars(
            select(ReminderTracking.id)
            .where(ReminderTracking.status == PENDING)
            .where(_window_condition(now, due=True))
            .order_by(ReminderTracking.scheduled_time, ReminderTracking.id)
        ).all()
    )

    for tracking_id in due_ids:
        if not claim_reminder(db, tracking_id, now):
            # another sweeper got there first
            continue
        summary["claimed"] += 1
        row = db.get(ReminderTracking, tracking_id)
        db.refresh(row)
        if dispatch_reminder(db, row, sender, now):
            summary["sent"] += 1
        else:
            summary["skipped"] += 1

    log.info("reminder_sweep_done", extra={"summary": summary})
    return summary


def cleanup_old_reminders(db: Session, days: int | None = None, now: datetime | None = None) -> int:
    """Delete finished rows (sent or skipped) created more than `days` ago. Pending rows are kept."""
    days = int(settings.reminder_cleanup_days if days is None else days)
    cutoff = (now or _now()) - timedelta(days=days)
    res = db.execute(
        delete(ReminderTracking)
        .where(ReminderTracking.status.in_((SENT, SKIPPED)))
        .where(ReminderTracking.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    n = int(res.rowcount or 0)
    log.info("reminder_cleanup_done", extra={"count": n})
    return n
