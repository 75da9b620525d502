from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from realty_crm.db import SessionLocal
from realty_crm.errors import ConflictError, NotFoundError, ValidationError
from realty_crm.main import create_app
from realty_crm.models import Category, Lead, LeadReferral, Property, ReferenceSource, User, Viewing
from realty_crm.services import agent_reports as svc
from realty_crm.services import system_settings
from realty_crm.services.properties import refer_property

MAY = {"start_date": "2026-05-01", "end_date": "2026-05-31"}


def _mk_world(db) -> dict[str, int]:
    """Karim sells one flat in May that Nadia referred; Rita sells one owned by a lead Nadia referred."""
    karim = User(name="Karim", email="karim@crm.local", role="agent", user_code="AG01")
    nadia = User(name="Nadia", email="nadia@crm.local", role="agent", user_code="AG02")
    rita = User(name="Rita", email="rita@crm.local", role="agent", user_code="AG03")
    ops = User(name="Hala", email="hala@crm.local", role="operations")
    apt = Category(name="Apartment", code="APT")
    insta = ReferenceSource(source_name="Instagram")
    db.add_all([karim, nadia, rita, ops, apt, insta])
    db.commit()

    sold = Property(
        reference_number="FSAPT261",
        property_type="sale",
        category_id=apt.id,
        agent_id=karim.id,
        price=95000,
        sold_amount=100000,
        closed_date=date(2026, 5, 10),
        created_at=datetime(2026, 5, 3, 10, 0),
    )
    listed = Property(
        reference_number="FSAPT262",
        property_type="sale",
        category_id=apt.id,
        agent_id=karim.id,
        price=240000,
        created_at=datetime(2026, 5, 20, 16, 0),
    )
    old = Property(
        reference_number="FRAPT263",
        property_type="rent",
        category_id=apt.id,
        agent_id=karim.id,
        price=1200,
        sold_amount=1200,
        closed_date=date(2026, 4, 28),
        created_at=datetime(2026, 4, 1, 9, 0),
    )
    db.add_all([sold, listed, old])

    owner = Lead(customer_name="Samir", operations_id=ops.id, agent_id=karim.id, lead_date=date(2026, 5, 4),
                 reference_source_id=insta.id)
    walk_in = Lead(customer_name="Joelle", operations_id=ops.id, agent_id=karim.id, lead_date=date(2026, 5, 12))
    db.add_all([owner, walk_in])
    db.commit()

    db.add(LeadReferral(lead_id=owner.id, agent_id=nadia.id, name="Nadia", type="employee", external=False))
    db.add(
        Property(
            reference_number="FSAPT264",
            property_type="sale",
            category_id=apt.id,
            agent_id=rita.id,
            owner_id=owner.id,
            price=50000,
            closed_date=date(2026, 5, 20),
            created_at=datetime(2026, 5, 2, 9, 0),
        )
    )
    db.add(Viewing(property_id=sold.id, agent_id=karim.id, viewing_date=date(2026, 5, 6)))
    db.commit()

    refer_property(db, sold.id, employee_id=nadia.id, referral_date=date(2026, 5, 5))
    refer_property(db, sold.id, name="Doorman", referral_date=date(2026, 5, 5))

    return {"karim": karim.id, "nadia": nadia.id, "rita": rita.id, "sold": sold.id}


def test_commissions_use_default_rates(db):
    ids = _mk_world(db)
    data = svc.calculate_agent_report_data(db, ids["karim"], MAY["start_date"], MAY["end_date"])

    assert data["listings_count"] == 2
    assert data["lead_sources"] == {"Instagram": 1, "Unknown": 1}
    assert data["viewings_count"] == 1
    assert data["sales_count"] == 1
    assert data["sales_amount"] == 100000
    assert data["agent_commission"] == 2000
    assert data["finders_commission"] == 1000
    assert data["referral_commission"] == 500
    assert data["team_leader_commission"] == 1000
    assert data["administration_commission"] == 4000
    # only the internal referral counts
    assert data["referrals_on_properties_count"] == 1
    assert data["referrals_on_properties_commission"] == 500
    assert data["total_commission"] == 8500


def test_referrer_receives_commission_for_listing_and_lead_referrals(db):
    ids = _mk_world(db)
    data = svc.calculate_agent_report_data(db, ids["nadia"], MAY["start_date"], MAY["end_date"])

    assert data["sales_count"] == 0
    assert data["referral_received_count"] == 2
    # 0.5% of 100000 plus 0.5% of the 50000 list price (no sold amount recorded)
    assert data["referral_received_commission"] == 750
    assert data["total_commission"] == 0


def test_create_report_snapshot_and_duplicate(db):
    ids = _mk_world(db)
    row = svc.create_agent_report(db, {"agent_id": ids["karim"], "boosts": 2, **MAY}, created_by=ids["rita"])
    assert (row.month, row.year) == (5, 2026)
    assert (row.start_date, row.end_date) == (date(2026, 5, 1), date(2026, 5, 31))
    assert row.boosts == 2
    assert row.total_commission == 8500
    assert row.created_by == ids["rita"]

    with pytest.raises(ConflictError) as e:
        svc.create_agent_report(db, {"agent_id": ids["karim"], **MAY}, created_by=None)
    assert e.value.message == "Report already exists for this agent and date range"

    # a different agent over the same range is fine
    svc.create_agent_report(db, {"agent_id": ids["nadia"], **MAY}, created_by=None)
    assert [r.agent_id for r in svc.list_agent_reports(db, start_date="2026-05-01")] == [ids["karim"], ids["nadia"]]
    assert len(svc.list_agent_reports(db, agent_id=ids["nadia"])) == 1


def test_create_report_validation(db):
    ids = _mk_world(db)
    with pytest.raises(ValidationError):
        svc.create_agent_report(db, {"agent_id": None, **MAY}, created_by=None)
    with pytest.raises(NotFoundError):
        svc.create_agent_report(db, {"agent_id": 9999, **MAY}, created_by=None)
    with pytest.raises(ValidationError) as e:
        svc.create_agent_report(
            db, {"agent_id": ids["karim"], "start_date": "2026-05-31", "end_date": "2026-05-01"}, created_by=None
        )
    assert e.value.message == "Invalid date range"


def test_recalculate_picks_up_new_rates_and_keeps_boosts(db):
    ids = _mk_world(db)
    row = svc.create_agent_report(db, {"agent_id": ids["karim"], **MAY}, created_by=None)
    svc.update_agent_report(db, row.id, {"boosts": 5})

    system_settings.update_setting(db, "commission_agent", "3")
    assert svc.commission_rates(db)["agent"] == 3.0

    row = svc.recalculate_agent_report(db, row.id)
    assert row.boosts == 5
    assert row.agent_commission == 3000
    assert row.total_commission == 9500


def test_recalculate_legacy_month_only_row(db):
    ids = _mk_world(db)
    row = svc.create_agent_report(db, {"agent_id": ids["karim"], **MAY}, created_by=None)
    row.start_date = None
    row.end_date = None
    db.commit()

    row = svc.recalculate_agent_report(db, row.id)
    assert (row.start_date, row.end_date) == (date(2026, 5, 1), date(2026, 5, 31))
    assert row.sales_count == 1


def test_http_agent_report_flow():
    db = SessionLocal()
    try:
        ids = _mk_world(db)
    finally:
        db.close()
    client = TestClient(create_app())

    r = client.post("/api/reports/monthly", json={"agent_id": ids["karim"], **MAY})
    assert r.status_code == 400
    assert r.json()["message"] == "User ID is required"

    headers = {"X-User-Id": str(ids["rita"])}
    r = client.post("/api/reports/monthly", json={"agent_id": ids["karim"], "boosts": 1, **MAY}, headers=headers)
    assert r.status_code == 201, r.text
    body = r.json()["data"]
    assert body["agent_name"] == "Karim"
    assert body["agent_code"] == "AG01"
    assert body["sales_amount"] == 100000
    report_id = body["id"]

    r = client.post("/api/reports/monthly", json={"agent_id": ids["karim"], **MAY}, headers=headers)
    assert r.status_code == 409

    r = client.put(f"/api/reports/monthly/{report_id}", json={"boosts": 4})
    assert r.status_code == 200
    assert r.json()["data"]["boosts"] == 4

    r = client.post(f"/api/reports/monthly/{report_id}/recalculate")
    assert r.status_code == 200
    assert r.json()["data"]["boosts"] == 4

    r = client.get("/api/reports/monthly", params={"agent_id": ids["karim"]})
    assert r.json()["count"] == 1

    assert client.get("/api/reports/lead-sources").json()["data"] == ["Instagram"]

    assert client.delete(f"/api/reports/monthly/{report_id}").status_code == 200
    assert client.get(f"/api/reports/monthly/{report_id}").status_code == 404
