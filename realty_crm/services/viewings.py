# realty_crm/services/viewings.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import Lead, Property, User, Viewing


def create_viewing(db: Session, data: dict[str, Any]) -> Viewing:
    if db.get(Property, int(data["property_id"])) is None:
        raise ValidationError("Invalid property", error=f"property {data['property_id']} does not exist")
    if data.get("lead_id") is not None and db.get(Lead, int(data["lead_id"])) is None:
        raise ValidationError("Invalid lead", error=f"lead {data['lead_id']} does not exist")
    if data.get("agent_id") is not None and db.get(User, int(data["agent_id"])) is None:
        raise ValidationError("Invalid agent", error=f"user {data['agent_id']} does not exist")

    now = datetime.utcnow()
    row = Viewing(**data, created_at=now, updated_at=now)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_viewings(
    db: Session,
    *,
    agent_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 500,
) -> list[Viewing]:
    q = select(Viewing)
    if agent_id is not None:
        q = q.where(Viewing.agent_id == int(agent_id))
    if date_from is not None:
        q = q.where(Viewing.viewing_date >= date_from)
    if date_to is not None:
        q = q.where(Viewing.viewing_date <= date_to)
    q = q.order_by(desc(Viewing.viewing_date), desc(Viewing.id)).limit(int(limit))
    return list(db.scalars(q).all())
