# realty_crm/routers/leads.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..responses import ok
from ..schemas import (
    LeadCreate,
    LeadOut,
    LeadReferralCreate,
    LeadReferralOut,
    LeadStatusOut,
    LeadUpdate,
)
from ..services import leads as svc

router = APIRouter(prefix="/leads", tags=["leads"])


def limit_lead_writes(request: Request) -> None:
    client = request.client.host if request.client else "unknown"
    svc.lead_write_limiter.hit(client)


@router.get("/stats")
def leads_stats(db: Session = Depends(get_db)):
    return ok(svc.get_leads_stats(db), "Lead statistics retrieved successfully")


@router.get("/statuses")
def lead_statuses(db: Session = Depends(get_db)):
    rows = svc.list_lead_statuses(db)
    if rows:
        data = [LeadStatusOut.model_validate(r) for r in rows]
    else:
        data = [{"status_name": n, "is_active": True, "can_be_referred": True} for n in svc.allowed_status_names(db)]
    return ok(data, "Lead statuses retrieved successfully")


@router.post("", dependencies=[Depends(limit_lead_writes)])
def create_lead(payload: LeadCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = svc.create_lead(db, payload.model_dump(), added_by_id=actor.user_id)
    return ok(LeadOut.model_validate(row), "Lead created successfully", status_code=201)


@router.get("")
def list_leads(
    agent_id: Optional[int] = Query(default=None),
    status: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
):
    rows = svc.list_leads(db, agent_id=agent_id, status=status, date_from=date_from, date_to=date_to, limit=limit)
    return ok([LeadOut.model_validate(r) for r in rows], "Leads retrieved successfully", count=len(rows))


@router.get("/{lead_id}")
def get_lead(lead_id: int, db: Session = Depends(get_db)):
    return ok(LeadOut.model_validate(svc.get_lead(db, lead_id)), "Lead retrieved successfully")


@router.put("/{lead_id}", dependencies=[Depends(limit_lead_writes)])
def update_lead(lead_id: int, payload: LeadUpdate, db: Session = Depends(get_db)):
    row = svc.update_lead(db, lead_id, payload.model_dump(exclude_unset=True))
    return ok(LeadOut.model_validate(row), "Lead updated successfully")


@router.delete("/{lead_id}", dependencies=[Depends(limit_lead_writes)])
def delete_lead(lead_id: int, db: Session = Depends(get_db)):
    svc.delete_lead(db, lead_id)
    return ok(None, "Lead deleted successfully")


@router.post("/{lead_id}/referrals", dependencies=[Depends(limit_lead_writes)])
def refer_lead(lead_id: int, payload: LeadReferralCreate, db: Session = Depends(get_db)):
    ref = svc.refer_lead(
        db,
        lead_id,
        type=payload.type,
        agent_id=payload.agent_id,
        name=payload.name,
        referral_date=payload.referral_date,
    )
    return ok(LeadReferralOut.model_validate(ref), "Lead referred successfully", status_code=201)


@router.get("/{lead_id}/referrals")
def lead_referrals(lead_id: int, db: Session = Depends(get_db)):
    rows = svc.list_referrals(db, lead_id)
    return ok([LeadReferralOut.model_validate(r) for r in rows], "Referrals retrieved successfully")
