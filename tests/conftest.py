# tests/conftest.py
from __future__ import annotations

import os
import tempfile

# must be set before realty_crm.config builds its settings
_DB_DIR = tempfile.mkdtemp(prefix="realty_crm_tests_")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ.setdefault("APP_ENV", "test")

import pytest

import realty_crm.models  # noqa: F401,E402
from realty_crm.db import Base, SessionLocal, engine  # noqa: E402
from realty_crm.services.leads import lead_write_limiter  # noqa: E402

Base.metadata.create_all(engine)


def _truncate_all() -> None:
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def _clean_db():
    _truncate_all()
    lead_write_limiter.reset()
    yield
    _truncate_all()


@pytest.fixture()
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()
