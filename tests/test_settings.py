from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from realty_crm.errors import NotFoundError, ValidationError
from realty_crm.main import create_app
from realty_crm.models import Setting
from realty_crm.services import reminders
from realty_crm.services import system_settings as svc


def test_defaults_listed_without_rows(db):
    rows = svc.list_settings(db)
    keys = [r["setting_key"] for r in rows]
    assert "reminder_1_hour_before" in keys
    assert "commission_administration" in keys
    assert db.query(Setting).count() == 0

    reminder_rows = svc.list_settings(db, "reminders")
    assert {r["setting_value"] for r in reminder_rows} == {"true"}
    assert svc.get_number(db, "commission_referral") == 0.5


def test_boolean_values_are_normalised(db):
    assert svc.update_setting(db, "reminder_same_day", "off")["setting_value"] == "false"
    assert reminders.reminder_enabled(db, "same_day") is False
    assert svc.update_setting(db, "reminder_same_day", True)["setting_value"] == "true"
    assert reminders.reminder_enabled(db, "same_day") is True

    with pytest.raises(ValidationError):
        svc.update_setting(db, "reminder_same_day", "sometimes")


def test_number_values_are_checked(db):
    assert svc.update_setting(db, "commission_agent", 2.5)["setting_value"] == "2.5"
    assert svc.update_setting(db, "commission_agent", "3.0")["setting_value"] == "3"
    for bad in ("abc", -1, None, True):
        with pytest.raises(ValidationError):
            svc.update_setting(db, "commission_agent", bad)
    assert svc.get_number(db, "commission_agent") == 3.0


def test_unknown_key(db):
    with pytest.raises(NotFoundError):
        svc.get_setting(db, "dark_mode")
    with pytest.raises(NotFoundError):
        svc.update_setting(db, "dark_mode", "true")


def test_bulk_update_is_all_or_nothing(db):
    with pytest.raises(ValidationError):
        svc.update_settings(
            db,
            [
                {"key": "commission_agent", "value": 5},
                {"key": "commission_finders", "value": "lots"},
            ],
        )
    assert svc.get_number(db, "commission_agent") == 2.0
    assert db.query(Setting).count() == 0

    out = svc.update_settings(
        db,
        [{"key": "commission_agent", "value": 5}, {"key": "reminder_1_day_before", "value": "no"}],
    )
    assert [r["setting_value"] for r in out] == ["5", "false"]


def test_http_settings_endpoints():
    client = TestClient(create_app())

    r = client.get("/api/settings", params={"category": "commissions"})
    assert r.status_code == 200
    assert {s["category"] for s in r.json()["data"]} == {"commissions"}

    r = client.put("/api/settings/reminder_1_hour_before", json={"value": False})
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Setting updated successfully"

    r = client.get("/api/settings/reminder_1_hour_before")
    assert r.json()["data"]["setting_value"] == "false"

    r = client.put("/api/settings/reminder_1_hour_before", json={"value": "maybe"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid setting value"

    assert client.get("/api/settings/dark_mode").status_code == 404
    assert client.put("/api/settings/dark_mode", json={"value": 1}).status_code == 404

    r = client.put("/api/settings", json={"settings": [{"key": "commission_finders", "value": 1.5}]})
    assert r.status_code == 200
    assert r.json()["data"][0]["setting_value"] == "1.5"


def test_cli_set_setting(db, capsys, monkeypatch):
    from realty_crm.cli import __main__ as cli

    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    assert cli.main(["set-setting", "reminder_1_day_before", "no"]) == 0
    assert '"setting_value": "false"' in capsys.readouterr().out
    assert reminders.reminder_enabled(db, "1_day") is False
