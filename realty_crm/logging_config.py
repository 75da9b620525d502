# realty_crm/logging_config.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import settings
from .middleware.request_context import current_request

# fields services may attach with extra=
EXTRA_KEYS = (
    "method",
    "path",
    "query",
    "status_code",
    "latency_ms",
    "user_id",
    "property_id",
    "lead_id",
    "report_id",
    "event_id",
    "reminder_type",
    "tracking_id",
    "reference_number",
    "scheme",
    "count",
    "summary",
    "setting_key",
    "agent_id",
)


class CRMLogFormatter(logging.Formatter):
    """One JSON object per line, tagged with the deployment env and the current request."""

    def __init__(self, env: str | None = None):
        super().__init__()
        self.env = env or settings.app_env

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "env": self.env,
            "logger": record.name,
            "event": record.getMessage(),
        }

        ctx = current_request()
        if ctx is not None:
            payload["request_id"] = ctx.request_id
            if ctx.actor_id:
                payload["actor_id"] = ctx.actor_id

        extras = {k: getattr(record, k) for k in EXTRA_KEYS if hasattr(record, k)}
        if extras:
            payload["ctx"] = extras

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or settings.log_level or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)

    # uvicorn --reload re-imports the app; drop handlers from the previous import
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(CRMLogFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel((settings.sql_log_level or "WARNING").upper())
    logging.getLogger("celery").setLevel(level)
