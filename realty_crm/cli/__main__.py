# realty_crm/cli/__main__.py
from __future__ import annotations

import argparse
import json
import sys

from realty_crm.db import SessionLocal
from realty_crm.logging_config import configure_logging
from realty_crm.services import reminders, system_settings
from realty_crm.services.reference_numbers import reset_all_reference_numbers


def _reset_reference_numbers(args: argparse.Namespace) -> dict:
    if not args.confirm:
        return {"ok": False, "reason": "pass --confirm to renumber every property"}
    db = SessionLocal()
    try:
        out = reset_all_reference_numbers(db, scheme=args.scheme)
        db.commit()
        return {"ok": True, **out}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _run_reminders(args: argparse.Namespace) -> dict:
    db = SessionLocal()
    try:
        return {"ok": True, **reminders.sweep_due_reminders(db)}
    finally:
        db.close()


def _cleanup_reminders(args: argparse.Namespace) -> dict:
    db = SessionLocal()
    try:
        return {"ok": True, "deleted": reminders.cleanup_old_reminders(db, days=args.days)}
    finally:
        db.close()


def _set_setting(args: argparse.Namespace) -> dict:
    db = SessionLocal()
    try:
        return {"ok": True, **system_settings.update_setting(db, args.key, args.value)}
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="python -m realty_crm.cli")
    sub = p.add_subparsers(dest="command", required=True)

    reset = sub.add_parser("reset-reference-numbers", help="renumber all properties in creation order")
    reset.add_argument("--confirm", action="store_true")
    reset.add_argument("--scheme", choices=["global", "per_group"], default=None)
    reset.set_defaults(func=_reset_reference_numbers)

    run = sub.add_parser("run-reminders", help="run one reminder sweep now")
    run.set_defaults(func=_run_reminders)

    cleanup = sub.add_parser("cleanup-reminders", help="delete old reminder tracking rows")
    cleanup.add_argument("--days", type=int, default=None)
    cleanup.set_defaults(func=_cleanup_reminders)

    setting = sub.add_parser("set-setting", help="change one system setting")
    setting.add_argument("key")
    setting.add_argument("value")
    setting.set_defaults(func=_set_setting)
    return p


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    out = args.func(args)
    print(json.dumps(out, default=str))
    return 0 if out.get("ok") else 1


if __name__ == "__main__":
    sys.exit(main())
