# realty_crm/services/dcsr.py
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Optional

from sqlalchemy import and_, desc, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from ..config import settings
from ..errors import ConflictError, NotFoundError, ValidationError, is_unique_violation
from ..models import Category, DCSRReport, Lead, Property, Status, TeamAgent, User, Viewing

log = logging.getLogger(__name__)

COUNT_KEYS = ("listings_count", "leads_count", "sales_count", "rent_count", "viewings_count")


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: date
    # naive UTC, matching how timestamps are stored
    start_utc: datetime
    end_utc: datetime


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            "Invalid date format. Please use ISO date strings (YYYY-MM-DD).",
            error=f"could not parse {value!r}",
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def normalize_date_range(start: Any, end: Any) -> DateRange:
    """Validate an inclusive calendar range and widen it to whole UTC days."""
    if not start or not end:
        raise ValidationError("Start date and end date are required")

    sd = parse_date(start)
    ed = parse_date(end)
    if ed < sd:
        raise ValidationError("Invalid date range", error="End date cannot be before start date")

    return DateRange(
        start_date=sd,
        end_date=ed,
        start_utc=datetime.combine(sd, time.min),
        end_utc=datetime.combine(ed, time.max),
    )


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last = calendar.monthrange(int(year), int(month))[1]
    return date(int(year), int(month), 1), date(int(year), int(month), last)


# -----------------------------
# Aggregation
# -----------------------------
def _count_queries(rng: DateRange, agent_col_filter=None) -> dict[str, Any]:
    """The five COUNT statements for a range, optionally restricted by agent ids."""

    def scoped(q, col):
        return q.where(col.in_(agent_col_filter)) if agent_col_filter is not None else q

    return {
        "listings_count": scoped(
            select(func.count()).select_from(Property).where(
                Property.created_at >= rng.start_utc, Property.created_at <= rng.end_utc
            ),
            Property.agent_id,
        ),
        "leads_count": scoped(
            select(func.count()).select_from(Lead).where(
                Lead.lead_date >= rng.start_date, Lead.lead_date <= rng.end_date
            ),
            Lead.agent_id,
        ),
        "sales_count": scoped(
            select(func.count()).select_from(Property).where(
                Property.closed_date.is_not(None),
                Property.closed_date >= rng.start_date,
                Property.closed_date <= rng.end_date,
                Property.property_type == "sale",
            ),
            Property.agent_id,
        ),
        "rent_count": scoped(
            select(func.count()).select_from(Property).where(
                Property.closed_date.is_not(None),
                Property.closed_date >= rng.start_date,
                Property.closed_date <= rng.end_date,
                Property.property_type == "rent",
            ),
            Property.agent_id,
        ),
        "viewings_count": scoped(
            select(func.count()).select_from(Viewing).where(
                Viewing.viewing_date >= rng.start_date, Viewing.viewing_date <= rng.end_date
            ),
            Viewing.agent_id,
        ),
    }


def _run_counts(db: Session, queries: dict[str, Any]) -> dict[str, int]:
    return {k: int(db.scalar(q) or 0) for k, q in queries.items()}


def calculate_dcsr_data(db: Session, start: Any, end: Any) -> dict[str, int]:
    rng = start if isinstance(start, DateRange) else normalize_date_range(start, end)
    return _run_counts(db, _count_queries(rng))


def _counts_by_agent(db: Session, rng: DateRange, member_ids: list[int]) -> dict[int, dict[str, int]]:
    out: dict[int, dict[str, int]] = {i: {k: 0 for k in COUNT_KEYS} for i in member_ids}
    sources = {
        "listings_count": (Property.agent_id, [Property.created_at >= rng.start_utc, Property.created_at <= rng.end_utc]),
        "leads_count": (Lead.agent_id, [Lead.lead_date >= rng.start_date, Lead.lead_date <= rng.end_date]),
        "sales_count": (
            Property.agent_id,
            [
                Property.closed_date.is_not(None),
                Property.closed_date >= rng.start_date,
                Property.closed_date <= rng.end_date,
                Property.property_type == "sale",
            ],
        ),
        "rent_count": (
            Property.agent_id,
            [
                Property.closed_date.is_not(None),
                Property.closed_date >= rng.start_date,
                Property.closed_date <= rng.end_date,
                Property.property_type == "rent",
            ],
        ),
        "viewings_count": (Viewing.agent_id, [Viewing.viewing_date >= rng.start_date, Viewing.viewing_date <= rng.end_date]),
    }
    for key, (col, conds) in sources.items():
        q = select(col, func.count()).where(*conds).where(col.in_(member_ids)).group_by(col)
        for agent_id, c in db.execute(q).all():
            out[int(agent_id)][key] = int(c)
    return out


# -----------------------------
# Report store
# -----------------------------
def must_get_report(db: Session, report_id: int) -> DCSRReport:
    row = db.get(DCSRReport, int(report_id))
    if row is None:
        raise NotFoundError("Report not found")
    return row


def create_dcsr_report(db: Session, data: dict[str, Any], created_by: Optional[int]) -> DCSRReport:
    rng = normalize_date_range(data.get("start_date"), data.get("end_date"))

    year = rng.start_date.year
    month = rng.start_date.month
    if year < int(settings.dcsr_min_year):
        raise ValidationError(
            f"Year must be {settings.dcsr_min_year} or later. Selected date range results in year {year}. "
            f"Please select a date range starting from {settings.dcsr_min_year} or later."
        )

    existing = db.scalar(
        select(DCSRReport.id).where(DCSRReport.start_date == rng.start_date, DCSRReport.end_date == rng.end_date)
    )
    if existing is not None:
        raise ConflictError("A DCSR report already exists for this date range")

    counts = calculate_dcsr_data(db, rng, None)
    now = datetime.utcnow()
    row = DCSRReport(
        month=month,
        year=year,
        start_date=rng.start_date,
        end_date=rng.end_date,
        created_by=created_by,
        created_at=now,
        updated_at=now,
        **counts,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            raise ConflictError("A DCSR report already exists for this date range", error=str(e.orig))
        raise
    db.refresh(row)
    log.info("dcsr_report_created", extra={"report_id": row.id, "user_id": created_by})
    return row


def list_dcsr_reports(
    db: Session,
    *,
    start_date: Any = None,
    end_date: Any = None,
    date_from: Any = None,
    date_to: Any = None,
    month: int | None = None,
    year: int | None = None,
) -> list[DCSRReport]:
    start_filter = start_date or date_from
    end_filter = end_date or date_to

    q = select(DCSRReport)
    if start_filter:
        q = q.where(DCSRReport.start_date >= parse_date(start_filter))
    if end_filter:
        q = q.where(DCSRReport.end_date <= parse_date(end_filter))
    # month/year only narrow when no explicit range is given
    if month and not start_filter:
        q = q.where(DCSRReport.month == int(month))
    if year and not start_filter and not end_filter:
        q = q.where(DCSRReport.year == int(year))

    q = q.order_by(desc(DCSRReport.start_date), desc(DCSRReport.end_date), desc(DCSRReport.id))
    return list(db.scalars(q).all())


def get_dcsr_report(db: Session, report_id: int) -> DCSRReport:
    return must_get_report(db, report_id)


def update_dcsr_report(db: Session, report_id: int, changes: dict[str, Any]) -> DCSRReport:
    row = must_get_report(db, report_id)
    for k in COUNT_KEYS:
        v = changes.get(k)
        if v is not None:
            setattr(row, k, int(v))
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def recalculate_dcsr_report(db: Session, report_id: int) -> DCSRReport:
    row = must_get_report(db, report_id)

    sd, ed = row.start_date, row.end_date
    if sd is None or ed is None:
        sd, ed = month_bounds(row.year, row.month)

    rng = normalize_date_range(sd, ed)
    counts = calculate_dcsr_data(db, rng, None)
    for k, v in counts.items():
        setattr(row, k, v)
    row.start_date = rng.start_date
    row.end_date = rng.end_date
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("dcsr_report_recalculated", extra={"report_id": row.id})
    return row


def delete_dcsr_report(db: Session, report_id: int) -> None:
    row = must_get_report(db, report_id)
    db.delete(row)
    db.commit()
    log.info("dcsr_report_deleted", extra={"report_id": report_id})


# -----------------------------
# Teams
# -----------------------------
def _team_members_stmt(leader_id: int):
    active_agents = select(TeamAgent.agent_id).where(
        TeamAgent.team_leader_id == int(leader_id), TeamAgent.is_active.is_(True)
    )
    return (
        select(User)
        .where(
            or_(
                User.id == int(leader_id),
                User.id.in_(active_agents),
                and_(User.assigned_to == int(leader_id), User.role == "agent"),
            )
        )
        .order_by(desc(User.role), User.name.asc())
    )


def get_team_members(db: Session, leader_id: int) -> list[User]:
    return list(db.scalars(_team_members_stmt(leader_id)).all())


def get_team_member_ids(db: Session, leader_id: int) -> list[int]:
    return [u.id for u in get_team_members(db, leader_id)]


def _member_dict(u: User) -> dict[str, Any]:
    return {"id": u.id, "name": u.name, "user_code": u.user_code, "role": u.role}


def get_all_teams(db: Session) -> list[dict[str, Any]]:
    leaders = db.scalars(select(User).where(User.role == "team_leader").order_by(User.name.asc())).all()
    return [
        {
            "team_leader_id": leader.id,
            "team_leader_name": leader.name,
            "team_leader_code": leader.user_code,
            "team_members": [_member_dict(m) for m in get_team_members(db, leader.id)],
        }
        for leader in leaders
    ]


def _breakdown(db: Session, rng: DateRange, members: list[User]) -> dict[str, Any]:
    ids = [m.id for m in members]
    per_agent = _counts_by_agent(db, rng, ids)
    totals = _run_counts(db, _count_queries(rng, ids))
    return {
        "team_members": [{**_member_dict(m), **per_agent.get(m.id, {})} for m in members],
        **totals,
    }


def calculate_team_dcsr_data(db: Session, leader_id: int, start: Any, end: Any) -> dict[str, Any]:
    rng = normalize_date_range(start, end)
    members = get_team_members(db, leader_id)
    if not members:
        raise NotFoundError("Team not found or has no members")

    leader = db.get(User, int(leader_id))
    return {
        "team_leader_id": int(leader_id),
        "team_leader_name": leader.name if leader else "Unknown",
        "team_leader_code": leader.user_code if leader else None,
        "start_date": rng.start_date.isoformat(),
        "end_date": rng.end_date.isoformat(),
        **_breakdown(db, rng, members),
    }


def get_all_teams_breakdown(db: Session, start: Any, end: Any) -> dict[str, Any]:
    """Per-team counts for every team leader, plus agents that belong to no team."""
    rng = normalize_date_range(start, end)

    teams = []
    assigned: set[int] = set()
    leaders = db.scalars(select(User).where(User.role == "team_leader").order_by(User.name.asc())).all()
    for leader in leaders:
        members = get_team_members(db, leader.id)
        assigned.update(m.id for m in members)
        teams.append(
            {
                "team_leader_id": leader.id,
                "team_leader_name": leader.name,
                "team_leader_code": leader.user_code,
                **_breakdown(db, rng, members),
            }
        )

    loose_q = select(User).where(User.role == "agent")
    if assigned:
        loose_q = loose_q.where(User.id.not_in(assigned))
    loose = db.scalars(loose_q.order_by(User.name.asc())).all()
    unassigned = _breakdown(db, rng, list(loose)) if loose else {"team_members": [], **{k: 0 for k in COUNT_KEYS}}

    return {
        "start_date": rng.start_date.isoformat(),
        "end_date": rng.end_date.isoformat(),
        "teams": teams,
        "unassigned": unassigned,
        "totals": calculate_dcsr_data(db, rng, None),
    }


def _as_int(v: Any) -> int | None:
    if v is None or v == "":
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError("Invalid filter value", error=f"expected an integer, got {v!r}")


def get_team_properties(db: Session, leader_id: int, start: Any, end: Any, filters: dict | None = None) -> list[dict]:
    filters = filters or {}
    rng = normalize_date_range(start, end)
    ids = get_team_member_ids(db, leader_id)
    if not ids:
        return []

    cat = aliased(Category)
    st = aliased(Status)
    q = (
        select(Property, cat, st, User)
        .outerjoin(st, and_(Property.status_id == st.id, st.is_active.is_(True)))
        .outerjoin(cat, and_(Property.category_id == cat.id, cat.is_active.is_(True)))
        .outerjoin(User, Property.agent_id == User.id)
        .where(Property.agent_id.in_(ids))
        .where(Property.created_at >= rng.start_utc, Property.created_at <= rng.end_utc)
    )
    if filters.get("property_type"):
        q = q.where(Property.property_type == filters["property_type"])
    if _as_int(filters.get("status_id")) is not None:
        q = q.where(Property.status_id == _as_int(filters["status_id"]))
    if _as_int(filters.get("category_id")) is not None:
        q = q.where(Property.category_id == _as_int(filters["category_id"]))
    if _as_int(filters.get("agent_id")) is not None:
        q = q.where(Property.agent_id == _as_int(filters["agent_id"]))
    q = q.order_by(desc(Property.created_at))

    out = []
    for p, c, s, u in db.execute(q).all():
        out.append(
            {
                "id": p.id,
                "reference_number": p.reference_number,
                "status_id": p.status_id,
                "status_name": s.name if s else "Uncategorized Status",
                "status_color": s.color if s else "#6B7280",
                "property_type": p.property_type,
                "location": p.location,
                "category_id": p.category_id,
                "category_name": c.name if c else "Uncategorized",
                "category_code": c.code if c else "UNCAT",
                "building_name": p.building_name,
                "owner_name": p.owner_name,
                "phone_number": p.phone_number,
                "surface": p.surface,
                "price": p.price,
                "agent_id": p.agent_id,
                "agent_name": u.name if u else None,
                "agent_code": u.user_code if u else None,
                "agent_role": u.role if u else None,
                "closed_date": p.closed_date,
                "sold_amount": p.sold_amount,
                "created_at": p.created_at,
                "updated_at": p.updated_at,
            }
        )
    return out


def get_team_leads(db: Session, leader_id: int, start: Any, end: Any, filters: dict | None = None) -> list[dict]:
    filters = filters or {}
    rng = normalize_date_range(start, end)
    ids = get_team_member_ids(db, leader_id)
    if not ids:
        return []

    q = (
        select(Lead, User)
        .outerjoin(User, Lead.agent_id == User.id)
        .where(Lead.agent_id.in_(ids))
        .where(Lead.lead_date >= rng.start_date, Lead.lead_date <= rng.end_date)
    )
    if filters.get("status"):
        q = q.where(Lead.status == filters["status"])
    if _as_int(filters.get("agent_id")) is not None:
        q = q.where(Lead.agent_id == _as_int(filters["agent_id"]))
    q = q.order_by(desc(Lead.lead_date), desc(Lead.created_at))

    return [
        {
            "id": lead.id,
            "date": lead.lead_date,
            "customer_name": lead.customer_name,
            "phone_number": lead.phone_number,
            "agent_id": lead.agent_id,
            "agent_name": u.name if u else None,
            "agent_code": u.user_code if u else None,
            "price": lead.price,
            "status": lead.status,
            "notes": lead.notes,
            "created_at": lead.created_at,
            "updated_at": lead.updated_at,
        }
        for lead, u in db.execute(q).all()
    ]


def get_team_viewings(db: Session, leader_id: int, start: Any, end: Any, filters: dict | None = None) -> list[dict]:
    filters = filters or {}
    rng = normalize_date_range(start, end)
    ids = get_team_member_ids(db, leader_id)
    if not ids:
        return []

    q = (
        select(Viewing, User, Property, Lead)
        .outerjoin(User, Viewing.agent_id == User.id)
        .outerjoin(Property, Viewing.property_id == Property.id)
        .outerjoin(Lead, Viewing.lead_id == Lead.id)
        .where(Viewing.agent_id.in_(ids))
        .where(Viewing.viewing_date >= rng.start_date, Viewing.viewing_date <= rng.end_date)
    )
    if filters.get("status"):
        q = q.where(Viewing.status == filters["status"])
    if _as_int(filters.get("agent_id")) is not None:
        q = q.where(Viewing.agent_id == _as_int(filters["agent_id"]))
    q = q.order_by(desc(Viewing.viewing_date), desc(Viewing.viewing_time))

    return [
        {
            "id": v.id,
            "viewing_date": v.viewing_date,
            "viewing_time": v.viewing_time,
            "status": v.status,
            "agent_id": v.agent_id,
            "agent_name": u.name if u else None,
            "agent_code": u.user_code if u else None,
            "property_id": v.property_id,
            "property_reference": p.reference_number if p else None,
            "property_location": p.location if p else None,
            "lead_id": v.lead_id,
            "lead_name": lead.customer_name if lead else None,
            "lead_phone": lead.phone_number if lead else None,
            "created_at": v.created_at,
            "updated_at": v.updated_at,
        }
        for v, u, p, lead in db.execute(q).all()
    ]
