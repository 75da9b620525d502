# realty_crm/services/leads.py
from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError, RateLimitError, ValidationError
from ..models import Lead, LeadReferral, LeadStatus, ReferenceSource, User

log = logging.getLogger(__name__)


# -----------------------------
# Write rate limiting
# -----------------------------
class SlidingWindowRateLimiter:
    """In-process limiter: at most `limit` hits per key within `window_seconds`."""

    def __init__(self, limit: int, window_seconds: float = 60.0):
        self.limit = int(limit)
        self.window_seconds = float(window_seconds)
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str, now: float | None = None) -> None:
        now = time.monotonic() if now is None else float(now)
        cutoff = now - self.window_seconds
        with self._lock:
            self._evict(cutoff)
            q = self._hits[key]
            if len(q) >= self.limit:
                raise RateLimitError(
                    "Too many lead requests, please try again later.",
                    error=f"limit {self.limit} per {int(self.window_seconds)}s",
                )
            q.append(now)

    def _evict(self, cutoff: float) -> None:
        for k in list(self._hits):
            q = self._hits[k]
            while q and q[0] <= cutoff:
                q.popleft()
            if not q:
                del self._hits[k]

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


lead_write_limiter = SlidingWindowRateLimiter(settings.lead_writes_per_minute, 60.0)


# -----------------------------
# Statuses
# -----------------------------
def list_lead_statuses(db: Session, *, active_only: bool = True) -> list[LeadStatus]:
    q = select(LeadStatus)
    if active_only:
        q = q.where(LeadStatus.is_active.is_(True))
    return list(db.scalars(q.order_by(LeadStatus.id)).all())


def allowed_status_names(db: Session) -> list[str]:
    names = [s.status_name for s in list_lead_statuses(db)]
    return names or list(settings.lead_fallback_statuses)


def resolve_status(db: Session, status: str | None) -> str:
    """Canonical spelling of `status` from the configured list; default when empty."""
    if status is None or not str(status).strip():
        return settings.lead_default_status
    wanted = str(status).strip().lower()
    allowed = allowed_status_names(db)
    for name in allowed:
        if name.lower() == wanted:
            return name
    raise ValidationError(
        f"Invalid status. Must be one of: {', '.join(allowed)}",
        error=f"unknown lead status {status!r}",
    )


# -----------------------------
# CRUD
# -----------------------------
def _check_user(db: Session, user_id: int | None, label: str) -> None:
    if user_id is not None and db.get(User, int(user_id)) is None:
        raise ValidationError(f"Invalid {label}", error=f"user {user_id} does not exist")


def must_get_lead(db: Session, lead_id: int) -> Lead:
    row = db.get(Lead, int(lead_id))
    if row is None:
        raise NotFoundError("Lead not found")
    return row


def _apply_fields(row: Lead, data: dict[str, Any]) -> None:
    for k, v in data.items():
        if k == "date":
            if v is not None:
                row.lead_date = v
            continue
        setattr(row, k, v)


def create_lead(db: Session, data: dict[str, Any], *, added_by_id: int | None = None) -> Lead:
    if data.get("operations_id") is None:
        raise ValidationError("Operations ID is required")
    _check_user(db, data.get("operations_id"), "operations user")
    _check_user(db, data.get("agent_id"), "agent")
    if data.get("reference_source_id") is not None and db.get(ReferenceSource, int(data["reference_source_id"])) is None:
        raise ValidationError("Invalid reference source")

    payload = dict(data)
    payload["status"] = resolve_status(db, payload.get("status"))
    if payload.get("added_by_id") is None:
        payload["added_by_id"] = added_by_id

    now = datetime.utcnow()
    row = Lead(lead_date=payload.pop("date", None) or now.date(), created_at=now, updated_at=now)
    _apply_fields(row, payload)
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("lead_created", extra={"lead_id": row.id, "user_id": added_by_id})
    return row


def update_lead(db: Session, lead_id: int, changes: dict[str, Any]) -> Lead:
    row = must_get_lead(db, lead_id)
    if "status" in changes:
        if changes["status"] is None:
            changes.pop("status")
        else:
            changes["status"] = resolve_status(db, changes["status"])
    if "operations_id" in changes and changes["operations_id"] is None:
        raise ValidationError("Operations ID is required")
    _check_user(db, changes.get("operations_id"), "operations user")
    _check_user(db, changes.get("agent_id"), "agent")

    _apply_fields(row, changes)
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_lead(db: Session, lead_id: int) -> Lead:
    return must_get_lead(db, lead_id)


def list_leads(
    db: Session,
    *,
    agent_id: int | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 500,
) -> list[Lead]:
    q = select(Lead)
    if agent_id is not None:
        q = q.where(Lead.agent_id == int(agent_id))
    if status:
        q = q.where(func.lower(Lead.status) == status.strip().lower())
    if date_from is not None:
        q = q.where(Lead.lead_date >= date_from)
    if date_to is not None:
        q = q.where(Lead.lead_date <= date_to)
    q = q.order_by(desc(Lead.lead_date), desc(Lead.id)).limit(int(limit))
    return list(db.scalars(q).all())


def delete_lead(db: Session, lead_id: int) -> None:
    row = must_get_lead(db, lead_id)
    db.delete(row)
    db.commit()
    log.info("lead_deleted", extra={"lead_id": lead_id})


# -----------------------------
# Referrals
# -----------------------------
def refer_lead(
    db: Session,
    lead_id: int,
    *,
    type: str = "employee",
    agent_id: int | None = None,
    name: str | None = None,
    referral_date: Optional[datetime] = None,
) -> LeadReferral:
    lead = must_get_lead(db, lead_id)

    st = db.scalar(select(LeadStatus).where(func.lower(LeadStatus.status_name) == lead.status.lower()))
    if st is not None and not st.can_be_referred:
        raise ValidationError(f"Leads with status '{lead.status}' cannot be referred")

    if type == "employee":
        if agent_id is None:
            raise ValidationError("Agent is required for employee referrals")
        agent = db.get(User, int(agent_id))
        if agent is None:
            raise ValidationError("Invalid agent", error=f"user {agent_id} does not exist")
        ref = LeadReferral(lead_id=lead.id, agent_id=agent.id, name=agent.name, type="employee", external=False)
    elif type == "custom":
        if not (name or "").strip():
            raise ValidationError("Referrer name is required for custom referrals")
        ref = LeadReferral(lead_id=lead.id, agent_id=None, name=name.strip(), type="custom", external=True)
    else:
        raise ValidationError("Invalid referral type", error=f"type must be employee|custom, got {type!r}")

    ref.referral_date = referral_date or datetime.utcnow()
    db.add(ref)
    db.commit()
    db.refresh(ref)
    log.info("lead_referred", extra={"lead_id": lead.id, "user_id": agent_id})
    return ref


def list_referrals(db: Session, lead_id: int) -> list[LeadReferral]:
    must_get_lead(db, lead_id)
    q = select(LeadReferral).where(LeadReferral.lead_id == int(lead_id)).order_by(desc(LeadReferral.referral_date))
    return list(db.scalars(q).all())


# -----------------------------
# Stats
# -----------------------------
def _months_back(today: date, n: int) -> date:
    y, m = today.year, today.month - n
    while m <= 0:
        m += 12
        y -= 1
    return date(y, m, 1)


def get_leads_stats(db: Session, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.utcnow()

    total = int(db.scalar(select(func.count()).select_from(Lead)) or 0)

    by_status = [
        {"status": s, "count": int(c)}
        for s, c in db.execute(
            select(Lead.status, func.count().label("c")).group_by(Lead.status).order_by(desc("c"), Lead.status)
        ).all()
    ]

    priced = Lead.price.is_not(None) & (Lead.price > 0)
    with_price, avg_p, sum_p, min_p, max_p = db.execute(
        select(
            func.count(Lead.id),
            func.avg(Lead.price),
            func.sum(Lead.price),
            func.min(Lead.price),
            func.max(Lead.price),
        ).where(priced)
    ).one()
    pricing = {
        "withPrice": int(with_price or 0),
        "averagePrice": round(float(avg_p or 0), 2),
        "totalValue": float(sum_p or 0),
        "minPrice": float(min_p or 0),
        "maxPrice": float(max_p or 0),
    }

    top_sources = [
        {"name": n, "count": int(c)}
        for n, c in db.execute(
            select(ReferenceSource.source_name, func.count(Lead.id).label("c"))
            .join(Lead, Lead.reference_source_id == ReferenceSource.id)
            .group_by(ReferenceSource.source_name)
            .order_by(desc("c"), ReferenceSource.source_name)
            .limit(5)
        ).all()
    ]

    new_7 = int(
        db.scalar(select(func.count()).select_from(Lead).where(Lead.created_at >= now - timedelta(days=7))) or 0
    )

    top_agents = [
        {"name": n, "count": int(c)}
        for n, c in db.execute(
            select(User.name, func.count(Lead.id).label("c"))
            .join(Lead, Lead.agent_id == User.id)
            .group_by(User.name)
            .order_by(desc("c"), User.name)
            .limit(5)
        ).all()
    ]

    # bucket in python; date formatting functions differ between postgres and sqlite
    since = _months_back(now.date(), 11)
    buckets: dict[str, int] = {}
    for d in db.scalars(select(Lead.lead_date).where(Lead.lead_date >= since)):
        key = f"{d.year:04d}-{d.month:02d}"
        buckets[key] = buckets.get(key, 0) + 1
    monthly = [{"month": k, "count": buckets[k]} for k in sorted(buckets)]

    return {
        "total": total,
        "byStatus": by_status,
        "pricing": pricing,
        "topSources": top_sources,
        "recentActivity": {"newLeads7Days": new_7},
        "topAgents": top_agents,
        "monthlyTrends": monthly,
    }
