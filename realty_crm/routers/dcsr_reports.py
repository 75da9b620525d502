# realty_crm/routers/dcsr_reports.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Actor, require_actor
from ..db import get_db
from ..responses import ok
from ..schemas import DCSRReportCreate, DCSRReportOut, DCSRReportUpdate
from ..services import dcsr as svc

router = APIRouter(prefix="/dcsr-reports", tags=["dcsr-reports"])


def _out(row) -> DCSRReportOut:
    return DCSRReportOut.model_validate(row)


@router.get("/monthly")
def list_reports(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    date_from: Optional[str] = Query(default=None),
    date_to: Optional[str] = Query(default=None),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = svc.list_dcsr_reports(
        db,
        start_date=start_date,
        end_date=end_date,
        date_from=date_from,
        date_to=date_to,
        month=month,
        year=year,
    )
    return ok([_out(r) for r in rows], "DCSR reports retrieved successfully", count=len(rows))


@router.post("/monthly")
def create_report(payload: DCSRReportCreate, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    row = svc.create_dcsr_report(db, payload.model_dump(), actor.user_id)
    return ok(_out(row), "DCSR report created successfully", status_code=201)


@router.get("/monthly/{report_id}")
def get_report(report_id: int, db: Session = Depends(get_db)):
    return ok(_out(svc.get_dcsr_report(db, report_id)), "DCSR report retrieved successfully")


@router.put("/monthly/{report_id}")
def update_report(report_id: int, payload: DCSRReportUpdate, db: Session = Depends(get_db)):
    row = svc.update_dcsr_report(db, report_id, payload.model_dump())
    return ok(_out(row), "DCSR report updated successfully")


@router.post("/monthly/{report_id}/recalculate")
def recalculate_report(report_id: int, db: Session = Depends(get_db)):
    row = svc.recalculate_dcsr_report(db, report_id)
    return ok(_out(row), "DCSR report recalculated successfully")


@router.delete("/monthly/{report_id}")
def delete_report(report_id: int, db: Session = Depends(get_db)):
    svc.delete_dcsr_report(db, report_id)
    return ok(None, "DCSR report deleted successfully")


@router.get("/teams")
def list_teams(db: Session = Depends(get_db)):
    return ok(svc.get_all_teams(db), "Teams retrieved successfully")


@router.get("/team-breakdown")
def team_breakdown(
    team_leader_id: int = Query(...),
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    data = svc.calculate_team_dcsr_data(db, team_leader_id, start_date, end_date)
    return ok(data, "Team DCSR breakdown retrieved successfully")


@router.get("/teams-breakdown")
def teams_breakdown(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    data = svc.get_all_teams_breakdown(db, start_date, end_date)
    return ok(data, "Teams DCSR breakdown retrieved successfully")


@router.get("/team/{team_leader_id}/properties")
def team_properties(
    team_leader_id: int,
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    property_type: Optional[str] = Query(default=None),
    status_id: Optional[int] = Query(default=None),
    category_id: Optional[int] = Query(default=None),
    agent_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    filters = {
        "property_type": property_type,
        "status_id": status_id,
        "category_id": category_id,
        "agent_id": agent_id,
    }
    rows = svc.get_team_properties(db, team_leader_id, start_date, end_date, filters)
    return ok(rows, "Team properties retrieved successfully", count=len(rows))


@router.get("/team/{team_leader_id}/leads")
def team_leads(
    team_leader_id: int,
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    agent_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = svc.get_team_leads(db, team_leader_id, start_date, end_date, {"status": status, "agent_id": agent_id})
    return ok(rows, "Team leads retrieved successfully", count=len(rows))


@router.get("/team/{team_leader_id}/viewings")
def team_viewings(
    team_leader_id: int,
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    agent_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = svc.get_team_viewings(db, team_leader_id, start_date, end_date, {"status": status, "agent_id": agent_id})
    return ok(rows, "Team viewings retrieved successfully", count=len(rows))
