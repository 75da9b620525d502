# realty_crm/routers/settings.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..responses import ok
from ..schemas import SettingsBulkUpdate, SettingUpdate
from ..services import system_settings as svc

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
def list_settings(category: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    return ok(svc.list_settings(db, category), "Settings retrieved successfully")


@router.put("")
def update_settings(payload: SettingsBulkUpdate, db: Session = Depends(get_db)):
    rows = svc.update_settings(db, [item.model_dump() for item in payload.settings])
    return ok(rows, "Settings updated successfully")


@router.get("/{key}")
def get_setting(key: str, db: Session = Depends(get_db)):
    return ok(svc.get_setting(db, key), "Setting retrieved successfully")


@router.put("/{key}")
def update_setting(key: str, payload: SettingUpdate, db: Session = Depends(get_db)):
    return ok(svc.update_setting(db, key, payload.value), "Setting updated successfully")
