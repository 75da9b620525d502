# realty_crm/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .db import get_db
from .errors import ValidationError
from .models import User


@dataclass(frozen=True)
class Actor:
    user_id: int | None
    role: str | None = None
    name: str | None = None


def get_actor(
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> Actor:
    """
    Acting user from the X-User-Id header.

    Authentication happens in front of this service; the header is trusted as-is
    once it names an existing user.
    """
    raw = str(x_user_id or "").strip()
    if not raw:
        return Actor(user_id=None)
    try:
        uid = int(raw)
    except ValueError:
        raise ValidationError("Invalid X-User-Id header", error=f"expected an integer, got {raw!r}")

    user = db.get(User, uid)
    if user is None:
        raise ValidationError("Unknown user", error=f"user {uid} does not exist")
    return Actor(user_id=user.id, role=user.role, name=user.name)


def require_actor(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.user_id is None:
        raise ValidationError("User ID is required", error="missing X-User-Id header")
    return actor
