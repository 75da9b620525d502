# realty_crm/services/reference_numbers.py
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ValidationError
from ..models import Property, ReferenceSequence

log = logging.getLogger(__name__)

CATEGORY_CODE_RE = re.compile(r"^[A-Z]{1,10}$")

TYPE_CODES = {"sale": "S", "rent": "R"}


def _prefix() -> str:
    return settings.reference_prefix or "F"


def _ref_re() -> re.Pattern:
    return re.compile(rf"^{re.escape(_prefix())}([RS])([A-Z]+)(\d{{2}})(\d+)$")


def _valid_re() -> re.Pattern:
    return re.compile(rf"^{re.escape(_prefix())}[RS][A-Z]+\d{{2}}[1-9]\d*$")


def _now() -> datetime:
    return datetime.utcnow()


def normalize_category_code(code: str | None) -> str:
    c = (code or "").strip().upper()
    max_len = int(settings.category_code_max_len)
    if not c or len(c) > max_len or not CATEGORY_CODE_RE.match(c):
        raise ValidationError(
            "Invalid category code",
            error=f"category code must be 1-{max_len} letters A-Z, got {code!r}",
        )
    return c


def type_code(property_type: str | None) -> str:
    t = (property_type or "").strip().lower()
    if t not in TYPE_CODES:
        raise ValidationError("Invalid property type", error=f"property_type must be sale|rent, got {property_type!r}")
    return TYPE_CODES[t]


def parse_reference_number(ref: str | None) -> Optional[tuple[str, str, str, int]]:
    """Split a reference number into (type_code, category, yy, trailing_id); None when malformed."""
    if not ref:
        return None
    m = _ref_re().match(ref.strip())
    if not m:
        return None
    return m.group(1), m.group(2), m.group(3), int(m.group(4))


def is_valid_reference_number(ref: str | None) -> bool:
    return bool(ref) and _valid_re().match(ref) is not None


def format_reference_number(t: str, category: str, yy: str, n: int) -> str:
    return f"{_prefix()}{t}{category}{yy}{int(n)}"


def _scope(scheme: str, t: str, category: str, yy: str) -> str:
    if scheme == "per_group":
        return f"{t}:{category}:{yy}"
    return "global"


def _max_existing_id(db: Session, scheme: str, t: str, category: str, yy: str) -> int:
    q = select(Property.reference_number)
    if scheme == "per_group":
        q = q.where(Property.reference_number.like(f"{_prefix()}{t}{category}{yy}%"))

    best = 0
    for ref in db.scalars(q):
        parsed = parse_reference_number(ref)
        if parsed is None:
            continue
        if scheme == "per_group" and parsed[:3] != (t, category, yy):
            continue
        best = max(best, parsed[3])
    return best


def _insert_counter_if_missing(db: Session, scope: str, seed: int) -> None:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"unsupported dialect for reference counters: {dialect}")

    stmt = (
        insert(ReferenceSequence)
        .values(scope=scope, last_value=int(seed), updated_at=_now())
        .on_conflict_do_nothing(index_elements=["scope"])
    )
    db.execute(stmt)


def _bump(db: Session, scope: str) -> int:
    res = db.execute(
        update(ReferenceSequence)
        .where(ReferenceSequence.scope == scope)
        .values(last_value=ReferenceSequence.last_value + 1, updated_at=_now())
    )
    return int(res.rowcount or 0)


def next_sequence_value(db: Session, scope: str, *, seed: int = 0) -> int:
    """
    Increment the counter row for `scope` and return the new value.

    The UPDATE takes the row lock, so concurrent callers in other transactions
    wait and then see the incremented value. A missing row is created from
    `seed` (the highest id already in use) before incrementing.
    """
    if _bump(db, scope) == 0:
        _insert_counter_if_missing(db, scope, seed)
        _bump(db, scope)
    return int(db.scalar(select(ReferenceSequence.last_value).where(ReferenceSequence.scope == scope)))


def generate_reference_number(
    db: Session,
    category_code: str,
    property_type: str,
    *,
    year: int | None = None,
    scheme: str | None = None,
) -> str:
    cat = normalize_category_code(category_code)
    t = type_code(property_type)
    yy = f"{int(year if year is not None else _now().year) % 100:02d}"
    scheme = (scheme or settings.reference_number_scheme).strip().lower()
    if scheme not in ("global", "per_group"):
        raise ValidationError("Invalid reference number scheme", error=scheme)

    scope = _scope(scheme, t, cat, yy)

    # a missing counter is seeded lazily, only the first call in a scope pays for the scan
    has_counter = db.scalar(select(ReferenceSequence.scope).where(ReferenceSequence.scope == scope)) is not None
    seed = 0 if has_counter else _max_existing_id(db, scheme, t, cat, yy)

    while True:
        n = next_sequence_value(db, scope, seed=seed)
        ref = format_reference_number(t, cat, yy, n)
        # rows written under the other scheme can already hold this number
        taken = db.scalar(select(Property.id).where(Property.reference_number == ref))
        if taken is None:
            return ref
        log.warning("reference_number_taken", extra={"property_id": taken, "reference_number": ref})


def reset_all_reference_numbers(db: Session, *, scheme: str | None = None) -> dict:
    """
    Renumber every property in (created_at, id) order and rebuild the counters.

    Uses the creation year of each row. Does not commit.
    """
    scheme = (scheme or settings.reference_number_scheme).strip().lower()
    rows = db.scalars(select(Property).order_by(Property.created_at.asc(), Property.id.asc())).all()

    # park every row on a placeholder first so the unique index never sees two equal refs
    for p in rows:
        p.reference_number = f"TMP-{p.id}"
    db.flush()

    counters: dict[str, int] = {}
    changed = 0
    for p in rows:
        cat = normalize_category_code(p.category.code if p.category else None)
        t = type_code(p.property_type)
        yy = f"{(p.created_at or _now()).year % 100:02d}"
        scope = _scope(scheme, t, cat, yy)
        counters[scope] = counters.get(scope, 0) + 1
        p.reference_number = format_reference_number(t, cat, yy, counters[scope])
        changed += 1
    db.flush()

    db.execute(delete(ReferenceSequence))
    for scope, last in counters.items():
        db.add(ReferenceSequence(scope=scope, last_value=last, updated_at=_now()))
    db.flush()

    log.info("reference_numbers_reset", extra={"count": changed, "scheme": scheme})
    return {"scheme": scheme, "renumbered": changed, "counters": counters}
