# realty_crm/routers/properties.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..responses import ok
from ..schemas import (
    PropertyClose,
    PropertyCreate,
    PropertyOut,
    PropertyReferralCreate,
    PropertyReferralOut,
    PropertyUpdate,
)
from ..services import properties as svc

router = APIRouter(prefix="/properties", tags=["properties"])


def _out(row) -> PropertyOut:
    return PropertyOut.model_validate(row)


@router.post("")
def create_property(payload: PropertyCreate, db: Session = Depends(get_db)):
    row = svc.create_property(db, payload.model_dump())
    return ok(_out(row), "Property created successfully", status_code=201)


@router.get("")
def list_properties(
    status_id: Optional[int] = Query(default=None),
    category_id: Optional[int] = Query(default=None),
    agent_id: Optional[int] = Query(default=None),
    property_type: Optional[str] = Query(default=None, pattern="^(sale|rent)$"),
    price_min: Optional[float] = Query(default=None, ge=0),
    price_max: Optional[float] = Query(default=None, ge=0),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    rows = svc.list_properties(
        db,
        status_id=status_id,
        category_id=category_id,
        agent_id=agent_id,
        property_type=property_type,
        price_min=price_min,
        price_max=price_max,
        search=search,
        limit=limit,
    )
    return ok([_out(r) for r in rows], "Properties retrieved successfully", count=len(rows))


@router.get("/{property_id}")
def get_property(property_id: int, db: Session = Depends(get_db)):
    return ok(_out(svc.get_property(db, property_id)), "Property retrieved successfully")


@router.patch("/{property_id}")
def update_property(property_id: int, payload: PropertyUpdate, db: Session = Depends(get_db)):
    row = svc.update_property(db, property_id, payload.model_dump(exclude_unset=True))
    return ok(_out(row), "Property updated successfully")


@router.post("/{property_id}/close")
def close_property(property_id: int, payload: PropertyClose, db: Session = Depends(get_db)):
    row = svc.close_property(db, property_id, closed_date=payload.closed_date, sold_amount=payload.sold_amount)
    return ok(_out(row), "Property closed successfully")


@router.delete("/{property_id}")
def delete_property(property_id: int, db: Session = Depends(get_db)):
    svc.delete_property(db, property_id)
    return ok(None, "Property deleted successfully")


@router.post("/{property_id}/referrals")
def refer_property(property_id: int, payload: PropertyReferralCreate, db: Session = Depends(get_db)):
    ref = svc.refer_property(
        db,
        property_id,
        employee_id=payload.employee_id,
        name=payload.name,
        referral_date=payload.referral_date,
    )
    return ok(PropertyReferralOut.model_validate(ref), "Property referral added successfully", status_code=201)


@router.get("/{property_id}/referrals")
def property_referrals(property_id: int, db: Session = Depends(get_db)):
    rows = svc.list_property_referrals(db, property_id)
    return ok([PropertyReferralOut.model_validate(r) for r in rows], "Referrals retrieved successfully")
