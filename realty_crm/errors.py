# realty_crm/errors.py
from __future__ import annotations

from typing import Optional


class CRMError(Exception):
    """Base for errors raised by services; main.py maps status_code onto the response envelope."""

    status_code = 500

    def __init__(self, message: str, *, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ValidationError(CRMError):
    status_code = 400


class NotFoundError(CRMError):
    status_code = 404


class ConflictError(CRMError):
    status_code = 409


class RateLimitError(CRMError):
    status_code = 429


def is_unique_violation(exc: BaseException) -> bool:
    """True for a unique-constraint failure from psycopg (pgcode 23505) or sqlite."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == "23505":
        return True
    return "UNIQUE constraint failed" in str(orig or exc)
