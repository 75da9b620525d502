# realty_crm/services/properties.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import desc, or_, select
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models import Category, Property, PropertyReferral, Status, User
from .reference_numbers import generate_reference_number

log = logging.getLogger(__name__)


def _category(db: Session, category_id: int | None) -> Category:
    if category_id is None:
        raise ValidationError("Category is required")
    cat = db.get(Category, int(category_id))
    if cat is None:
        raise ValidationError("Invalid category", error=f"category {category_id} does not exist")
    return cat


def must_get_property(db: Session, property_id: int) -> Property:
    row = db.get(Property, int(property_id))
    if row is None:
        raise NotFoundError("Property not found")
    return row


def create_property(db: Session, data: dict[str, Any]) -> Property:
    cat = _category(db, data.get("category_id"))
    if data.get("status_id") is not None and db.get(Status, int(data["status_id"])) is None:
        raise ValidationError("Invalid status", error=f"status {data['status_id']} does not exist")

    ptype = data.get("property_type") or "sale"
    now = datetime.utcnow()
    row = Property(**{**data, "property_type": ptype})
    row.reference_number = generate_reference_number(db, cat.code, ptype, year=now.year)
    row.created_at = now
    row.updated_at = now
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("property_created", extra={"property_id": row.id, "reference_number": row.reference_number})
    return row


def update_property(db: Session, property_id: int, changes: dict[str, Any]) -> Property:
    """
    Partial update. A change of category or type reissues the reference number
    so it keeps encoding the row's current classification.
    """
    row = must_get_property(db, property_id)

    regen = False
    if "category_id" in changes and changes["category_id"] is not None and changes["category_id"] != row.category_id:
        _category(db, changes["category_id"])
        regen = True
    if "property_type" in changes and changes["property_type"] is not None and changes["property_type"] != row.property_type:
        regen = True
    if changes.get("status_id") is not None and db.get(Status, int(changes["status_id"])) is None:
        raise ValidationError("Invalid status", error=f"status {changes['status_id']} does not exist")

    for k, v in changes.items():
        if v is None and k in ("category_id", "property_type"):
            continue
        setattr(row, k, v)

    if regen:
        db.flush()
        cat = _category(db, row.category_id)
        old = row.reference_number
        row.reference_number = generate_reference_number(db, cat.code, row.property_type)
        log.info(
            "property_reference_regenerated",
            extra={"property_id": row.id, "reference_number": f"{old}->{row.reference_number}"},
        )

    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def close_property(db: Session, property_id: int, *, closed_date: date, sold_amount: Optional[float] = None) -> Property:
    row = must_get_property(db, property_id)
    row.closed_date = closed_date
    if sold_amount is not None:
        row.sold_amount = float(sold_amount)
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_property(db: Session, property_id: int) -> Property:
    return must_get_property(db, property_id)


def list_properties(
    db: Session,
    *,
    status_id: int | None = None,
    category_id: int | None = None,
    agent_id: int | None = None,
    property_type: str | None = None,
    price_min: float | None = None,
    price_max: float | None = None,
    search: str | None = None,
    limit: int = 200,
) -> list[Property]:
    q = select(Property)
    if status_id is not None:
        q = q.where(Property.status_id == int(status_id))
    if category_id is not None:
        q = q.where(Property.category_id == int(category_id))
    if agent_id is not None:
        q = q.where(Property.agent_id == int(agent_id))
    if property_type:
        q = q.where(Property.property_type == property_type)
    if price_min is not None:
        q = q.where(Property.price >= float(price_min))
    if price_max is not None:
        q = q.where(Property.price <= float(price_max))
    if search:
        like = f"%{search.strip()}%"
        q = q.where(
            or_(
                Property.reference_number.ilike(like),
                Property.location.ilike(like),
                Property.building_name.ilike(like),
                Property.owner_name.ilike(like),
            )
        )
    q = q.order_by(desc(Property.created_at), desc(Property.id)).limit(int(limit))
    return list(db.scalars(q).all())


def delete_property(db: Session, property_id: int) -> None:
    row = must_get_property(db, property_id)
    db.delete(row)
    db.commit()
    log.info("property_deleted", extra={"property_id": property_id})


# -----------------------------
# Referrals
# -----------------------------
def refer_property(
    db: Session,
    property_id: int,
    *,
    employee_id: int | None = None,
    name: str | None = None,
    referral_date: Optional[date] = None,
) -> PropertyReferral:
    """Record who brought a listing in: an employee (internal) or a named outsider (external)."""
    row = must_get_property(db, property_id)

    if employee_id is not None:
        employee = db.get(User, int(employee_id))
        if employee is None:
            raise ValidationError("Invalid employee", error=f"user {employee_id} does not exist")
        ref = PropertyReferral(property_id=row.id, employee_id=employee.id, name=employee.name, external=False)
    elif (name or "").strip():
        ref = PropertyReferral(property_id=row.id, employee_id=None, name=name.strip(), external=True)
    else:
        raise ValidationError("Referrer is required", error="pass employee_id or name")

    ref.referral_date = referral_date or datetime.utcnow().date()
    ref.created_at = datetime.utcnow()
    db.add(ref)
    db.commit()
    db.refresh(ref)
    log.info("property_referred", extra={"property_id": row.id, "user_id": employee_id})
    return ref


def list_property_referrals(db: Session, property_id: int) -> list[PropertyReferral]:
    must_get_property(db, property_id)
    q = (
        select(PropertyReferral)
        .where(PropertyReferral.property_id == int(property_id))
        .order_by(desc(PropertyReferral.referral_date), desc(PropertyReferral.id))
    )
    return list(db.scalars(q).all())
