# realty_crm/routers/viewings.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..responses import ok
from ..schemas import ViewingCreate, ViewingOut
from ..services import viewings as svc

router = APIRouter(prefix="/viewings", tags=["viewings"])


@router.post("")
def create_viewing(payload: ViewingCreate, db: Session = Depends(get_db)):
    row = svc.create_viewing(db, payload.model_dump())
    return ok(ViewingOut.model_validate(row), "Viewing created successfully", status_code=201)


@router.get("")
def list_viewings(
    agent_id: Optional[int] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = svc.list_viewings(db, agent_id=agent_id, date_from=date_from, date_to=date_to)
    return ok([ViewingOut.model_validate(r) for r in rows], "Viewings retrieved successfully", count=len(rows))
