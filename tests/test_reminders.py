from __future__ import annotations

from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy import select

from realty_crm.db import SessionLocal
from realty_crm.main import create_app
from realty_crm.models import Notification, ReminderTracking, User
from realty_crm.services import reminders
from realty_crm.services.calendar_events import create_event, update_event

NOW = datetime(2026, 5, 10, 8, 0)
START = datetime(2026, 5, 12, 14, 0)


class RecordingSender:
    def __init__(self, fail: bool = False):
        self.sent: list[tuple[int, int, str]] = []
        self.fail = fail

    def send(self, *, user, event, reminder_type):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((user.id, event.id, reminder_type))


def _mk_people(db) -> dict[str, User]:
    people = {
        "creator": User(name="Lina", email="lina@crm.local", role="agent"),
        "assignee": User(name="Omar", email="omar@crm.local", role="agent"),
        "attendee": User(name="Sara", email="sara@crm.local", role="agent"),
        "no_email": User(name="Ziad", email=None, role="agent"),
    }
    db.add_all(people.values())
    db.commit()
    return people


def _mk_event(db, people, start=START):
    return create_event(
        db,
        {
            "title": "Site visit",
            "location": "Batroun",
            "start_time": start,
            "assigned_to": people["assignee"].id,
            "attendees": ["Sara", "Ziad"],
        },
        created_by=people["creator"].id,
        now=NOW,
    )


def test_canonical_scheduled_times():
    assert reminders.compute_scheduled_time("1_day", START) == datetime(2026, 5, 11, 14, 0)
    assert reminders.compute_scheduled_time("1_hour", START) == datetime(2026, 5, 12, 13, 0)
    assert reminders.compute_scheduled_time("same_day", START) == datetime(2026, 5, 12, 9, 0)
    assert reminders.compute_scheduled_time("same_day", datetime(2026, 5, 12, 9, 0)) == datetime(2026, 5, 12, 9, 0)
    # early events get the reminder the evening before
    assert reminders.compute_scheduled_time("same_day", datetime(2026, 5, 12, 7, 30)) == datetime(2026, 5, 11, 20, 0)


def test_windows_per_type():
    assert reminders.window_for("1_day") == timedelta(minutes=60)
    assert reminders.window_for("same_day") == timedelta(minutes=30)
    assert reminders.window_for("1_hour") == timedelta(minutes=5)


def test_schedule_creates_one_pending_row_per_recipient_and_type(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)

    rows = reminders.list_event_reminders(db, ev.id)
    assert len(rows) == 9
    assert {r.user_id for r in rows} == {people["creator"].id, people["assignee"].id, people["attendee"].id}
    assert {r.status for r in rows} == {"pending"}

    # scheduling again does not duplicate
    again = reminders.schedule_event_reminders(db, ev.id, now=NOW)
    assert len(again) == 9


def test_schedule_skips_reminders_already_in_the_past(db):
    people = _mk_people(db)
    soon = NOW + timedelta(hours=3)
    ev = _mk_event(db, people, start=soon)

    # 1_day would be yesterday; same_day (09:00) and 1_hour are still ahead
    types = {r.reminder_type for r in reminders.list_event_reminders(db, ev.id)}
    assert types == {"same_day", "1_hour"}


def test_sweep_sends_once_and_is_idempotent(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)
    sender = RecordingSender()

    at = datetime(2026, 5, 12, 13, 2)
    first = reminders.sweep_due_reminders(db, now=at, sender=sender)
    assert first == {"claimed": 3, "sent": 3, "skipped": 6}
    assert sorted(t for _, _, t in sender.sent) == ["1_hour"] * 3

    second = reminders.sweep_due_reminders(db, now=at, sender=sender)
    assert second == {"claimed": 0, "sent": 0, "skipped": 0}
    assert len(sender.sent) == 3

    sent = [r for r in reminders.list_event_reminders(db, ev.id) if r.status == "sent"]
    assert len(sent) == 3
    assert all(r.email_sent and r.notification_sent and r.sent_at == at for r in sent)
    notes = db.scalars(select(Notification).where(Notification.event_id == ev.id)).all()
    assert len(notes) == 3
    assert "in 1 hour" in notes[0].message


def test_claim_is_exclusive_across_sessions(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)
    row_id = reminders.list_event_reminders(db, ev.id)[0].id

    s1, s2 = SessionLocal(), SessionLocal()
    try:
        assert reminders.claim_reminder(s1, row_id) is True
        assert reminders.claim_reminder(s2, row_id) is False
    finally:
        s1.close()
        s2.close()


def test_disabled_type_is_skipped_not_sent(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)
    reminders.set_reminder_enabled(db, "1_day", False)
    assert reminders.reminder_enabled(db, "1_day") is False
    assert reminders.reminder_enabled(db, "1_hour") is True

    sender = RecordingSender()
    out = reminders.sweep_due_reminders(db, now=datetime(2026, 5, 11, 14, 10), sender=sender)
    assert out == {"claimed": 3, "sent": 0, "skipped": 3}
    assert sender.sent == []

    day_rows = [r for r in reminders.list_event_reminders(db, ev.id) if r.reminder_type == "1_day"]
    assert {(r.status, r.skip_reason) for r in day_rows} == {("skipped", "disabled")}


def test_failed_email_still_records_notification(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)

    out = reminders.sweep_due_reminders(db, now=datetime(2026, 5, 12, 9, 0), sender=RecordingSender(fail=True))
    assert out["sent"] == 3

    rows = [r for r in reminders.list_event_reminders(db, ev.id) if r.reminder_type == "same_day"]
    assert all(r.status == "sent" and not r.email_sent and r.notification_sent for r in rows)


def test_reschedule_moves_unsent_rows(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)

    new_start = START + timedelta(days=2)
    update_event(db, ev.id, {"start_time": new_start}, now=NOW)

    rows = reminders.list_event_reminders(db, ev.id)
    by_type = {r.reminder_type: r.scheduled_time for r in rows}
    assert by_type["1_day"] == new_start - timedelta(days=1)
    assert by_type["1_hour"] == new_start - timedelta(hours=1)
    assert all(r.status == "pending" for r in rows)

    # dropping an attendee skips their unsent reminders
    update_event(db, ev.id, {"attendees": []}, now=NOW)
    sara = [r for r in reminders.list_event_reminders(db, ev.id) if r.user_id == people["attendee"].id]
    assert {r.status for r in sara} == {"skipped"}


def test_cleanup_removes_old_finished_rows(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)
    rows = reminders.list_event_reminders(db, ev.id)
    for r in rows[:4]:
        r.created_at = NOW - timedelta(days=10)
        r.status = "skipped"
    # old but still pending: its event has not happened yet
    rows[4].created_at = NOW - timedelta(days=10)
    db.commit()

    assert reminders.cleanup_old_reminders(db, days=7, now=NOW) == 4
    assert db.query(ReminderTracking).count() == 5


def test_cleanup_keeps_pending_rows_of_events_scheduled_far_ahead(db):
    people = _mk_people(db)
    created = datetime(2026, 5, 1, 10, 0)
    ev = create_event(
        db,
        {"title": "Handover", "start_time": datetime(2026, 5, 20, 11, 0), "attendees": []},
        created_by=people["creator"].id,
        now=created,
    )
    assert len(reminders.list_event_reminders(db, ev.id)) == 3

    assert reminders.cleanup_old_reminders(db, days=7, now=datetime(2026, 5, 9, 2, 0)) == 0

    sender = RecordingSender()
    reminders.sweep_due_reminders(db, now=datetime(2026, 5, 20, 10, 0), sender=sender)
    assert [t for _, _, t in sender.sent] == ["1_hour"]


def test_quarter_hour_sweeps_deliver_every_reminder_once(db):
    people = _mk_people(db)
    start = datetime(2026, 5, 12, 14, 7)
    ev = _mk_event(db, people, start=start)
    sender = RecordingSender()

    when = datetime(2026, 5, 11, 0, 0)
    while when < start:
        reminders.sweep_due_reminders(db, now=when, sender=sender)
        when += timedelta(minutes=15)

    assert sorted(t for _, _, t in sender.sent) == ["1_day"] * 3 + ["1_hour"] * 3 + ["same_day"] * 3
    assert len(set(sender.sent)) == 9
    rows = reminders.list_event_reminders(db, ev.id)
    assert {r.status for r in rows} == {"sent"}


def test_editing_event_inside_open_window_keeps_reminder_pending(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)
    at = datetime(2026, 5, 12, 13, 2)

    update_event(db, ev.id, {"title": "Site visit (moved room)"}, now=at)

    hour_rows = [r for r in reminders.list_event_reminders(db, ev.id) if r.reminder_type == "1_hour"]
    assert {r.status for r in hour_rows} == {"pending"}

    sender = RecordingSender()
    out = reminders.sweep_due_reminders(db, now=at, sender=sender)
    assert out["sent"] == 3
    assert sorted(t for _, _, t in sender.sent) == ["1_hour"] * 3


def test_abandoned_claim_is_released_and_sent(db):
    people = _mk_people(db)
    ev = _mk_event(db, people)
    at = datetime(2026, 5, 12, 13, 0)
    row_id = next(r.id for r in reminders.list_event_reminders(db, ev.id) if r.reminder_type == "1_hour")

    # a sweeper claimed it and died before dispatching
    assert reminders.claim_reminder(db, row_id, now=at - timedelta(minutes=1)) is True
    assert reminders.release_stale_claims(db, now=at) == 0

    sender = RecordingSender()
    reminders.sweep_due_reminders(db, now=at + timedelta(minutes=12), sender=sender)

    row = db.get(ReminderTracking, row_id)
    db.refresh(row)
    assert row.status == "sent"
    assert sorted(t for _, _, t in sender.sent) == ["1_hour"] * 3


def test_http_event_schedules_reminders():
    db = SessionLocal()
    try:
        people = _mk_people(db)
        creator_id = people["creator"].id
    finally:
        db.close()

    client = TestClient(create_app())
    start = (datetime.utcnow() + timedelta(days=3)).replace(hour=15, minute=0, second=0, microsecond=0)
    r = client.post(
        "/api/calendar/events",
        json={"title": "Contract signing", "start_time": start.isoformat(), "attendees": ["Sara"]},
        headers={"X-User-Id": str(creator_id)},
    )
    assert r.status_code == 201, r.text
    event_id = r.json()["data"]["id"]

    r = client.get(f"/api/calendar/events/{event_id}/reminders")
    assert r.status_code == 200
    assert len(r.json()["data"]) == 6

    r = client.post("/api/calendar/reminders/run")
    assert r.status_code == 200
    assert r.json()["data"]["sent"] == 0

    assert client.get("/api/calendar/events/9999/reminders").status_code == 404
