from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from realty_crm.db import SessionLocal
from realty_crm.errors import ConflictError, NotFoundError, ValidationError
from realty_crm.main import create_app
from realty_crm.models import Category, DCSRReport, Lead, Property, TeamAgent, User, Viewing
from realty_crm.services import dcsr


def _seed_activity(db, *, day: date, agent_id: int | None = None, ops_id: int, tag: str) -> None:
    """One listing, one lead, one sale, one rent closure and one viewing on `day`."""
    cat = db.query(Category).filter_by(code="APT").first()
    if cat is None:
        cat = Category(name="Apartment", code="APT")
        db.add(cat)
        db.flush()

    at = datetime(day.year, day.month, day.day, 12, 0)
    listing = Property(reference_number=f"FSAPT{tag}1", property_type="sale", category_id=cat.id, agent_id=agent_id, created_at=at)
    sold = Property(
        reference_number=f"FSAPT{tag}2",
        property_type="sale",
        category_id=cat.id,
        agent_id=agent_id,
        created_at=datetime(2020, 1, 1),
        closed_date=day,
    )
    rented = Property(
        reference_number=f"FRAPT{tag}3",
        property_type="rent",
        category_id=cat.id,
        agent_id=agent_id,
        created_at=datetime(2020, 1, 1),
        closed_date=day,
    )
    db.add_all([listing, sold, rented])
    db.flush()
    db.add(Lead(lead_date=day, customer_name=f"Client {tag}", operations_id=ops_id, agent_id=agent_id))
    db.add(Viewing(property_id=listing.id, agent_id=agent_id, viewing_date=day, viewing_time="10:30"))
    db.commit()


def _mk_user(db, name: str, role: str = "agent", **kw) -> User:
    u = User(name=name, role=role, email=f"{name.lower().replace(' ', '.')}@crm.local", **kw)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


# -----------------------------
# Date ranges
# -----------------------------
def test_start_after_end_is_invalid_range():
    with pytest.raises(ValidationError) as e:
        dcsr.normalize_date_range("2026-03-10", "2026-03-01")
    assert e.value.message == "Invalid date range"


def test_missing_dates_are_required():
    with pytest.raises(ValidationError) as e:
        dcsr.normalize_date_range(None, "2026-03-01")
    assert e.value.message == "Start date and end date are required"


def test_unparseable_date_rejected():
    with pytest.raises(ValidationError) as e:
        dcsr.normalize_date_range("March 1st", "2026-03-01")
    assert e.value.message.startswith("Invalid date format")


def test_range_widens_to_whole_utc_days():
    rng = dcsr.normalize_date_range("2026-03-01", "2026-03-01")
    assert rng.start_utc == datetime(2026, 3, 1, 0, 0, 0, 0)
    assert rng.end_utc == datetime(2026, 3, 1, 23, 59, 59, 999999)


# -----------------------------
# Aggregation
# -----------------------------
def test_single_day_range_counts_only_that_day(db):
    ops = _mk_user(db, "Ops", role="operations")
    _seed_activity(db, day=date(2026, 3, 5), ops_id=ops.id, tag="26005")
    _seed_activity(db, day=date(2026, 3, 6), ops_id=ops.id, tag="26006")

    counts = dcsr.calculate_dcsr_data(db, "2026-03-05", "2026-03-05")
    assert counts == {
        "listings_count": 1,
        "leads_count": 1,
        "sales_count": 1,
        "rent_count": 1,
        "viewings_count": 1,
    }

    both = dcsr.calculate_dcsr_data(db, "2026-03-05", "2026-03-06")
    assert both["listings_count"] == 2
    assert both["viewings_count"] == 2


def test_empty_range_returns_zeros(db):
    counts = dcsr.calculate_dcsr_data(db, "2030-01-01", "2030-01-31")
    assert counts == {k: 0 for k in dcsr.COUNT_KEYS}


# -----------------------------
# Report store
# -----------------------------
def test_create_report_and_reject_duplicate_range(db):
    ops = _mk_user(db, "Ops", role="operations")
    _seed_activity(db, day=date(2026, 2, 14), ops_id=ops.id, tag="26214")

    r = dcsr.create_dcsr_report(db, {"start_date": "2026-02-01", "end_date": "2026-02-28"}, ops.id)
    assert (r.month, r.year) == (2, 2026)
    assert r.leads_count == 1
    assert r.sales_count == 1
    assert r.created_by == ops.id

    with pytest.raises(ConflictError) as e:
        dcsr.create_dcsr_report(db, {"start_date": "2026-02-01", "end_date": "2026-02-28"}, ops.id)
    assert e.value.message == "A DCSR report already exists for this date range"


def test_report_before_2020_rejected(db):
    with pytest.raises(ValidationError) as e:
        dcsr.create_dcsr_report(db, {"start_date": "2019-12-01", "end_date": "2020-01-31"}, None)
    assert "2020 or later" in e.value.message


def test_list_filters_month_only_without_start_filter(db):
    for sd, ed in [("2026-01-01", "2026-01-31"), ("2026-02-01", "2026-02-28"), ("2025-02-01", "2025-02-28")]:
        dcsr.create_dcsr_report(db, {"start_date": sd, "end_date": ed}, None)

    feb = dcsr.list_dcsr_reports(db, month=2)
    assert [(r.year, r.month) for r in feb] == [(2026, 2), (2025, 2)]

    # month is ignored once a start bound is given
    from_2026 = dcsr.list_dcsr_reports(db, start_date="2026-01-01", month=2)
    assert [r.start_date for r in from_2026] == [date(2026, 2, 1), date(2026, 1, 1)]

    # year only applies when neither bound is given
    by_year = dcsr.list_dcsr_reports(db, year=2025)
    assert len(by_year) == 1
    assert len(dcsr.list_dcsr_reports(db, date_to="2026-01-31", year=2025)) == 2


def test_update_only_overrides_given_counts(db):
    r = dcsr.create_dcsr_report(db, {"start_date": "2026-04-01", "end_date": "2026-04-30"}, None)
    r = dcsr.update_dcsr_report(db, r.id, {"leads_count": 7, "sales_count": None})
    assert r.leads_count == 7
    assert r.sales_count == 0


def test_recalculate_legacy_row_derives_month_bounds(db):
    ops = _mk_user(db, "Ops", role="operations")
    legacy = DCSRReport(month=3, year=2026, leads_count=99)
    db.add(legacy)
    db.commit()
    db.add(Lead(lead_date=date(2026, 3, 15), customer_name="Legacy", operations_id=ops.id))
    db.commit()

    r = dcsr.recalculate_dcsr_report(db, legacy.id)
    assert r.start_date == date(2026, 3, 1)
    assert r.end_date == date(2026, 3, 31)
    assert r.leads_count == 1


def test_missing_report_is_not_found(db):
    with pytest.raises(NotFoundError):
        dcsr.get_dcsr_report(db, 12345)
    with pytest.raises(NotFoundError):
        dcsr.delete_dcsr_report(db, 12345)


# -----------------------------
# Teams
# -----------------------------
def test_team_with_no_members_is_not_found(db):
    with pytest.raises(NotFoundError) as e:
        dcsr.calculate_team_dcsr_data(db, 4242, "2026-03-01", "2026-03-31")
    assert e.value.message == "Team not found or has no members"


def test_team_members_include_active_agents_and_legacy_assignments(db):
    leader = _mk_user(db, "Leader", role="team_leader")
    a1 = _mk_user(db, "Agent One")
    a2 = _mk_user(db, "Agent Two", assigned_to=leader.id)
    gone = _mk_user(db, "Agent Gone")
    db.add_all(
        [
            TeamAgent(team_leader_id=leader.id, agent_id=a1.id, is_active=True),
            TeamAgent(team_leader_id=leader.id, agent_id=gone.id, is_active=False),
        ]
    )
    db.commit()

    assert sorted(dcsr.get_team_member_ids(db, leader.id)) == sorted([leader.id, a1.id, a2.id])


def test_team_breakdown_counts_and_per_member(db):
    ops = _mk_user(db, "Ops", role="operations")
    leader = _mk_user(db, "Leader", role="team_leader")
    a1 = _mk_user(db, "Agent One")
    outsider = _mk_user(db, "Outsider")
    db.add(TeamAgent(team_leader_id=leader.id, agent_id=a1.id, is_active=True))
    db.commit()

    _seed_activity(db, day=date(2026, 5, 3), agent_id=a1.id, ops_id=ops.id, tag="26503")
    _seed_activity(db, day=date(2026, 5, 4), agent_id=outsider.id, ops_id=ops.id, tag="26504")

    data = dcsr.calculate_team_dcsr_data(db, leader.id, "2026-05-01", "2026-05-31")
    assert data["team_leader_name"] == "Leader"
    assert data["leads_count"] == 1
    assert data["rent_count"] == 1
    members = {m["id"]: m for m in data["team_members"]}
    assert members[a1.id]["listings_count"] == 1
    assert members[leader.id]["listings_count"] == 0

    everything = dcsr.get_all_teams_breakdown(db, "2026-05-01", "2026-05-31")
    assert [t["team_leader_id"] for t in everything["teams"]] == [leader.id]
    assert [m["id"] for m in everything["unassigned"]["team_members"]] == [outsider.id]
    assert everything["unassigned"]["viewings_count"] == 1
    assert everything["totals"]["leads_count"] == 2


def test_team_listings(db):
    ops = _mk_user(db, "Ops", role="operations")
    leader = _mk_user(db, "Leader", role="team_leader")
    _seed_activity(db, day=date(2026, 6, 1), agent_id=leader.id, ops_id=ops.id, tag="26601")

    props = dcsr.get_team_properties(db, leader.id, "2026-06-01", "2026-06-30")
    assert [p["reference_number"] for p in props] == ["FSAPT266011"]
    assert props[0]["category_code"] == "APT"
    assert props[0]["status_name"] == "Uncategorized Status"

    leads = dcsr.get_team_leads(db, leader.id, "2026-06-01", "2026-06-30")
    assert [lead["customer_name"] for lead in leads] == ["Client 26601"]

    viewings = dcsr.get_team_viewings(db, leader.id, "2026-06-01", "2026-06-30", {"status": "Scheduled"})
    assert len(viewings) == 1
    assert viewings[0]["property_reference"] == "FSAPT266011"

    assert dcsr.get_team_properties(db, 9999, "2026-06-01", "2026-06-30") == []


# -----------------------------
# HTTP
# -----------------------------
def test_http_create_requires_acting_user():
    client = TestClient(create_app())
    r = client.post("/api/dcsr-reports/monthly", json={"start_date": "2026-01-01", "end_date": "2026-01-31"})
    assert r.status_code == 400
    assert r.json()["message"] == "User ID is required"


def test_http_report_flow():
    db = SessionLocal()
    try:
        user = _mk_user(db, "Manager", role="admin")
        uid = user.id
    finally:
        db.close()

    client = TestClient(create_app())
    headers = {"X-User-Id": str(uid)}
    payload = {"start_date": "2026-01-01", "end_date": "2026-01-31"}

    r = client.post("/api/dcsr-reports/monthly", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    report = r.json()["data"]
    assert report["created_by"] == uid

    r = client.post("/api/dcsr-reports/monthly", json=payload, headers=headers)
    assert r.status_code == 409
    assert r.json()["message"] == "A DCSR report already exists for this date range"

    r = client.post(
        "/api/dcsr-reports/monthly",
        json={"start_date": "2026-02-10", "end_date": "2026-02-01"},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid date range"

    r = client.put(f"/api/dcsr-reports/monthly/{report['id']}", json={"viewings_count": 4})
    assert r.json()["data"]["viewings_count"] == 4

    r = client.post(f"/api/dcsr-reports/monthly/{report['id']}/recalculate")
    assert r.json()["data"]["viewings_count"] == 0

    r = client.get("/api/dcsr-reports/team-breakdown", params={"team_leader_id": 777, "start_date": "2026-01-01", "end_date": "2026-01-31"})
    assert r.status_code == 404
    assert r.json()["message"] == "Team not found or has no members"

    r = client.delete(f"/api/dcsr-reports/monthly/{report['id']}")
    assert r.status_code == 200
    assert client.get(f"/api/dcsr-reports/monthly/{report['id']}").status_code == 404
