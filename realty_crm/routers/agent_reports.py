# realty_crm/routers/agent_reports.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Actor, require_actor
from ..db import get_db
from ..models import AgentReport
from ..responses import ok
from ..schemas import AgentReportCreate, AgentReportOut, AgentReportUpdate
from ..services import agent_reports as svc

router = APIRouter(prefix="/reports", tags=["reports"])


def _out(row: AgentReport) -> dict[str, Any]:
    data = AgentReportOut.model_validate(row).model_dump()
    agent = row.agent
    data["agent_name"] = agent.name if agent else None
    data["agent_code"] = agent.user_code if agent else None
    data["agent_role"] = agent.role if agent else None
    return data


@router.get("/lead-sources")
def lead_sources(db: Session = Depends(get_db)):
    return ok(svc.list_lead_sources(db), "Lead sources retrieved successfully")


@router.get("/monthly")
def list_reports(
    agent_id: Optional[int] = Query(default=None),
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    date_from: Optional[str] = Query(default=None),
    date_to: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = svc.list_agent_reports(
        db,
        agent_id=agent_id,
        start_date=start_date,
        end_date=end_date,
        date_from=date_from,
        date_to=date_to,
    )
    return ok([_out(r) for r in rows], "Reports retrieved successfully", count=len(rows))


@router.post("/monthly")
def create_report(payload: AgentReportCreate, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    row = svc.create_agent_report(db, payload.model_dump(), actor.user_id)
    return ok(_out(row), "Report created successfully", status_code=201)


@router.get("/monthly/{report_id}")
def get_report(report_id: int, db: Session = Depends(get_db)):
    return ok(_out(svc.get_agent_report(db, report_id)), "Report retrieved successfully")


@router.put("/monthly/{report_id}")
def update_report(report_id: int, payload: AgentReportUpdate, db: Session = Depends(get_db)):
    row = svc.update_agent_report(db, report_id, payload.model_dump(exclude_unset=True))
    return ok(_out(row), "Report updated successfully")


@router.post("/monthly/{report_id}/recalculate")
def recalculate_report(report_id: int, db: Session = Depends(get_db)):
    return ok(_out(svc.recalculate_agent_report(db, report_id)), "Report recalculated successfully")


@router.delete("/monthly/{report_id}")
def delete_report(report_id: int, db: Session = Depends(get_db)):
    svc.delete_agent_report(db, report_id)
    return ok(None, "Report deleted successfully")
