# realty_crm/services/system_settings.py
"""
Key/value system settings stored in the `settings` table.

Known keys carry a type, a default and a category; a stored row overrides the
default. Values are kept as text and coerced on write so readers can trust them.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models import Setting

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownSetting:
    setting_type: str  # boolean|number|string|json
    default: Optional[str]
    description: str
    category: str


KNOWN_SETTINGS: dict[str, KnownSetting] = {
    "reminder_1_day_before": KnownSetting("boolean", "true", "Email calendar reminders one day before events", "reminders"),
    "reminder_same_day": KnownSetting("boolean", "true", "Email calendar reminders on the morning of events", "reminders"),
    "reminder_1_hour_before": KnownSetting("boolean", "true", "Email calendar reminders one hour before events", "reminders"),
    "commission_agent": KnownSetting("number", "2", "Agent commission, percent of closed amount", "commissions"),
    "commission_finders": KnownSetting("number", "1", "Finders commission, percent of closed amount", "commissions"),
    "commission_referral": KnownSetting("number", "0.5", "Referral commission, percent of closed amount", "commissions"),
    "commission_team_leader": KnownSetting("number", "1", "Team leader commission, percent of closed amount", "commissions"),
    "commission_administration": KnownSetting(
        "number", "4", "Administration commission, percent of closed amount", "commissions"
    ),
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE


def _coerce(key: str, setting_type: str, value: Any) -> Optional[str]:
    if value is None:
        if setting_type in ("boolean", "number"):
            raise ValidationError("Invalid setting value", error=f"{key} cannot be empty")
        return None

    if setting_type == "boolean":
        if isinstance(value, bool):
            return "true" if value else "false"
        s = str(value).strip().lower()
        if s in _TRUE:
            return "true"
        if s in _FALSE:
            return "false"
        raise ValidationError("Invalid setting value", error=f"{key} expects a boolean, got {value!r}")

    if setting_type == "number":
        if isinstance(value, bool):
            raise ValidationError("Invalid setting value", error=f"{key} expects a number, got {value!r}")
        try:
            n = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid setting value", error=f"{key} expects a number, got {value!r}")
        if n < 0:
            raise ValidationError("Invalid setting value", error=f"{key} cannot be negative")
        return str(int(n)) if n.is_integer() else str(n)

    if setting_type == "json":
        return value if isinstance(value, str) else json.dumps(value)

    return str(value)


def _row(db: Session, key: str) -> Optional[Setting]:
    return db.scalar(select(Setting).where(Setting.setting_key == key))


def _as_dict(key: str, row: Optional[Setting]) -> dict[str, Any]:
    if row is None:
        known = KNOWN_SETTINGS[key]
        return {
            "setting_key": key,
            "setting_value": known.default,
            "setting_type": known.setting_type,
            "description": known.description,
            "category": known.category,
            "updated_at": None,
        }
    return {
        "setting_key": key,
        "setting_value": row.setting_value,
        "setting_type": row.setting_type,
        "description": row.description,
        "category": row.category,
        "updated_at": row.updated_at,
    }


def list_settings(db: Session, category: str | None = None) -> list[dict[str, Any]]:
    rows = {r.setting_key: r for r in db.scalars(select(Setting))}
    keys = set(rows) | set(KNOWN_SETTINGS)
    out = [_as_dict(k, rows.get(k)) for k in keys]
    if category:
        out = [s for s in out if s["category"] == category]
    return sorted(out, key=lambda s: (s["category"], s["setting_key"]))


def get_setting(db: Session, key: str) -> dict[str, Any]:
    row = _row(db, key)
    if row is None and key not in KNOWN_SETTINGS:
        raise NotFoundError("Setting not found")
    return _as_dict(key, row)


def get_value(db: Session, key: str) -> Optional[str]:
    row = _row(db, key)
    if row is not None:
        return row.setting_value
    known = KNOWN_SETTINGS.get(key)
    return known.default if known else None


def get_bool(db: Session, key: str) -> bool:
    value = get_value(db, key)
    if value is None:
        known = KNOWN_SETTINGS.get(key)
        return _truthy(known.default) if known else False
    return _truthy(value)


def get_number(db: Session, key: str) -> float:
    value = get_value(db, key)
    try:
        return float(value) if value is not None else 0.0
    except ValueError:
        known = KNOWN_SETTINGS.get(key)
        log.warning("setting_not_numeric", extra={"setting_key": key, "summary": repr(value)})
        return float(known.default) if known and known.default is not None else 0.0


def _apply(db: Session, key: str, value: Any) -> Setting:
    row = _row(db, key)
    known = KNOWN_SETTINGS.get(key)
    if row is None and known is None:
        raise NotFoundError("Setting not found", error=f"unknown setting {key!r}")

    setting_type = row.setting_type if row is not None else known.setting_type
    stored = _coerce(key, setting_type, value)
    if row is None:
        row = Setting(
            setting_key=key,
            setting_type=known.setting_type,
            description=known.description,
            category=known.category,
        )
    row.setting_value = stored
    row.updated_at = datetime.utcnow()
    db.add(row)
    return row


def update_setting(db: Session, key: str, value: Any) -> dict[str, Any]:
    row = _apply(db, key, value)
    db.commit()
    log.info("setting_updated", extra={"setting_key": key, "summary": row.setting_value})
    return _as_dict(key, row)


def update_settings(db: Session, items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Apply several updates in one transaction; nothing is written if any of them is invalid."""
    applied = []
    try:
        for item in items:
            key = str(item.get("key") or "").strip()
            if not key:
                raise ValidationError("Setting key is required")
            applied.append((key, _apply(db, key, item.get("value"))))
        db.commit()
    except Exception:
        db.rollback()
        raise
    log.info("settings_updated", extra={"count": len(applied)})
    return [_as_dict(k, row) for k, row in applied]
