# realty_crm/services/agent_reports.py
"""
Per-agent monthly reports: activity counts plus commissions on closed deals.

A deal counts in a range when its property's closed_date falls inside it; the
deal amount is the sold amount, or the listing price when none was recorded.
Commission rates are percentages read from system settings at calculation time.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError, ValidationError, is_unique_violation
from ..models import AgentReport, Lead, LeadReferral, Property, PropertyReferral, ReferenceSource, User, Viewing
from . import system_settings
from .dcsr import DateRange, parse_date, month_bounds, normalize_date_range

log = logging.getLogger(__name__)

COMMISSION_KEYS = ("agent", "finders", "referral", "team_leader", "administration")


def round_money(value: float) -> float:
    return round(float(value), 2)


def commission_rates(db: Session) -> dict[str, float]:
    return {k: system_settings.get_number(db, f"commission_{k}") for k in COMMISSION_KEYS}


def _deal_amount():
    return func.coalesce(Property.sold_amount, Property.price, 0.0)


def _closed_in(rng: DateRange):
    return (
        Property.closed_date.is_not(None),
        Property.closed_date >= rng.start_date,
        Property.closed_date <= rng.end_date,
    )


def _count_and_sum(db: Session, property_ids_q, rng: DateRange) -> tuple[int, float]:
    row = db.execute(
        select(func.count(Property.id), func.coalesce(func.sum(_deal_amount()), 0.0))
        .where(Property.id.in_(property_ids_q))
        .where(*_closed_in(rng))
    ).one()
    return int(row[0] or 0), float(row[1] or 0.0)


def calculate_agent_report_data(db: Session, agent_id: int, start: Any, end: Any = None) -> dict[str, Any]:
    rng = start if isinstance(start, DateRange) else normalize_date_range(start, end)
    agent_id = int(agent_id)
    rates = commission_rates(db)

    listings_count = db.scalar(
        select(func.count())
        .select_from(Property)
        .where(Property.agent_id == agent_id)
        .where(Property.created_at >= rng.start_utc, Property.created_at <= rng.end_utc)
    )

    lead_sources: dict[str, int] = {}
    q = (
        select(ReferenceSource.source_name, func.count(Lead.id))
        .select_from(Lead)
        .outerjoin(ReferenceSource, Lead.reference_source_id == ReferenceSource.id)
        .where(Lead.agent_id == agent_id)
        .where(Lead.lead_date >= rng.start_date, Lead.lead_date <= rng.end_date)
        .group_by(ReferenceSource.source_name)
    )
    for name, c in db.execute(q).all():
        key = name or "Unknown"
        lead_sources[key] = lead_sources.get(key, 0) + int(c)

    viewings_count = db.scalar(
        select(func.count())
        .select_from(Viewing)
        .where(Viewing.agent_id == agent_id)
        .where(Viewing.viewing_date >= rng.start_date, Viewing.viewing_date <= rng.end_date)
    )

    sales = db.execute(
        select(func.count(Property.id), func.coalesce(func.sum(_deal_amount()), 0.0))
        .where(Property.agent_id == agent_id)
        .where(*_closed_in(rng))
    ).one()
    sales_count = int(sales[0] or 0)
    sales_amount = round_money(sales[1] or 0.0)

    out: dict[str, Any] = {
        "listings_count": int(listings_count or 0),
        "lead_sources": lead_sources,
        "viewings_count": int(viewings_count or 0),
        "sales_count": sales_count,
        "sales_amount": sales_amount,
    }
    for k in COMMISSION_KEYS:
        out[f"{k}_commission"] = round_money(sales_amount * rates[k] / 100)

    # closed deals this agent brought in: listings they referred, and listings owned by leads they referred
    referred_listings = select(PropertyReferral.property_id).where(
        PropertyReferral.employee_id == agent_id, PropertyReferral.external.is_(False)
    )
    referred_owners = select(Property.id).where(
        Property.owner_id.in_(
            select(LeadReferral.lead_id).where(LeadReferral.agent_id == agent_id, LeadReferral.external.is_(False))
        )
    )
    listing_count, listing_amount = _count_and_sum(db, referred_listings, rng)
    owner_count, owner_amount = _count_and_sum(db, referred_owners, rng)
    out["referral_received_count"] = listing_count + owner_count
    out["referral_received_commission"] = round_money((listing_amount + owner_amount) * rates["referral"] / 100)

    # internal referrals dated in the range on this agent's own closed listings
    on_props = db.execute(
        select(func.count(PropertyReferral.id), func.coalesce(func.sum(_deal_amount()), 0.0))
        .select_from(PropertyReferral)
        .join(Property, PropertyReferral.property_id == Property.id)
        .where(Property.agent_id == agent_id, Property.closed_date.is_not(None))
        .where(PropertyReferral.external.is_(False))
        .where(PropertyReferral.referral_date >= rng.start_date, PropertyReferral.referral_date <= rng.end_date)
    ).one()
    out["referrals_on_properties_count"] = int(on_props[0] or 0)
    out["referrals_on_properties_commission"] = round_money(float(on_props[1] or 0.0) * rates["referral"] / 100)

    # referral_commission is informational; referrers are paid through referrals_on_properties
    out["total_commission"] = round_money(
        sum(out[f"{k}_commission"] for k in COMMISSION_KEYS if k != "referral")
        + out["referrals_on_properties_commission"]
    )
    return out


# -----------------------------
# Report store
# -----------------------------
def must_get_agent_report(db: Session, report_id: int) -> AgentReport:
    row = db.get(AgentReport, int(report_id))
    if row is None:
        raise NotFoundError("Report not found")
    return row


def create_agent_report(db: Session, data: dict[str, Any], created_by: Optional[int]) -> AgentReport:
    agent_id = data.get("agent_id")
    if agent_id is None:
        raise ValidationError("Agent is required")
    agent = db.get(User, int(agent_id))
    if agent is None:
        raise NotFoundError("Agent not found")

    rng = normalize_date_range(data.get("start_date"), data.get("end_date"))

    existing = db.scalar(
        select(AgentReport.id).where(
            AgentReport.agent_id == agent.id,
            AgentReport.start_date == rng.start_date,
            AgentReport.end_date == rng.end_date,
        )
    )
    if existing is not None:
        raise ConflictError("Report already exists for this agent and date range")

    now = datetime.utcnow()
    row = AgentReport(
        agent_id=agent.id,
        month=rng.start_date.month,
        year=rng.start_date.year,
        start_date=rng.start_date,
        end_date=rng.end_date,
        boosts=int(data.get("boosts") or 0),
        created_by=created_by,
        created_at=now,
        updated_at=now,
        **calculate_agent_report_data(db, agent.id, rng),
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            raise ConflictError("Report already exists for this agent and date range", error=str(e.orig))
        raise
    db.refresh(row)
    log.info("agent_report_created", extra={"report_id": row.id, "agent_id": agent.id, "summary": row.total_commission})
    return row


def list_agent_reports(
    db: Session,
    *,
    agent_id: int | None = None,
    start_date: Any = None,
    end_date: Any = None,
    date_from: Any = None,
    date_to: Any = None,
) -> list[AgentReport]:
    start_filter = start_date or date_from
    end_filter = end_date or date_to

    q = select(AgentReport).outerjoin(User, AgentReport.agent_id == User.id)
    if agent_id is not None:
        q = q.where(AgentReport.agent_id == int(agent_id))
    if start_filter:
        q = q.where(AgentReport.start_date >= parse_date(start_filter))
    if end_filter:
        q = q.where(AgentReport.end_date <= parse_date(end_filter))
    q = q.order_by(desc(AgentReport.start_date), desc(AgentReport.end_date), User.name.asc())
    return list(db.scalars(q).all())


def get_agent_report(db: Session, report_id: int) -> AgentReport:
    return must_get_agent_report(db, report_id)


def update_agent_report(db: Session, report_id: int, changes: dict[str, Any]) -> AgentReport:
    """Only the hand-entered fields are editable."""
    row = must_get_agent_report(db, report_id)
    if changes.get("boosts") is not None:
        row.boosts = int(changes["boosts"])
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def recalculate_agent_report(db: Session, report_id: int) -> AgentReport:
    row = must_get_agent_report(db, report_id)

    sd, ed = row.start_date, row.end_date
    if sd is None or ed is None:
        sd, ed = month_bounds(row.year, row.month)
    rng = normalize_date_range(sd, ed)

    for k, v in calculate_agent_report_data(db, row.agent_id, rng).items():
        setattr(row, k, v)
    row.start_date = rng.start_date
    row.end_date = rng.end_date
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("agent_report_recalculated", extra={"report_id": row.id})
    return row


def delete_agent_report(db: Session, report_id: int) -> None:
    row = must_get_agent_report(db, report_id)
    db.delete(row)
    db.commit()
    log.info("agent_report_deleted", extra={"report_id": report_id})


def list_lead_sources(db: Session) -> list[str]:
    return list(db.scalars(select(ReferenceSource.source_name).order_by(ReferenceSource.source_name)).all())
