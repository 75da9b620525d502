from __future__ import annotations

import re
from datetime import datetime

import pytest

from realty_crm.db import SessionLocal
from realty_crm.errors import ValidationError
from realty_crm.models import Category, Property, ReferenceSequence
from realty_crm.services.properties import create_property
from realty_crm.services.reference_numbers import (
    generate_reference_number,
    is_valid_reference_number,
    parse_reference_number,
    reset_all_reference_numbers,
)

REF_RE = re.compile(r"^F[RS][A-Z]+\d{2}[1-9]\d*$")


def _mk_category(db, code: str) -> Category:
    c = Category(name=code.title(), code=code, is_active=True)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def _trailing(ref: str) -> int:
    return parse_reference_number(ref)[3]


def test_generated_reference_matches_format(db):
    _mk_category(db, "APT")
    ref = generate_reference_number(db, "APT", "sale", year=2026)
    db.commit()

    assert REF_RE.match(ref)
    assert ref.startswith("FSAPT26")
    assert is_valid_reference_number(ref)


def test_rent_uses_r_and_lowercase_category_is_upper_cased(db):
    ref = generate_reference_number(db, "vil", "rent", year=2025)
    assert ref.startswith("FRVIL25")


def test_sequential_creates_increment_trailing_id_by_one(db):
    cat = _mk_category(db, "APT")
    p1 = create_property(db, {"category_id": cat.id, "property_type": "sale", "location": "Beirut"})
    p2 = create_property(db, {"category_id": cat.id, "property_type": "sale", "location": "Jounieh"})

    assert _trailing(p2.reference_number) == _trailing(p1.reference_number) + 1


def test_global_scheme_numbers_across_types_and_categories(db):
    apt = _mk_category(db, "APT")
    vil = _mk_category(db, "VIL")

    refs = [
        generate_reference_number(db, apt.code, "sale", year=2026, scheme="global"),
        generate_reference_number(db, vil.code, "rent", year=2026, scheme="global"),
        generate_reference_number(db, apt.code, "rent", year=2025, scheme="global"),
    ]
    db.commit()

    assert [_trailing(r) for r in refs] == [1, 2, 3]


def test_per_group_scheme_counts_each_group_separately(db):
    refs = [
        generate_reference_number(db, "APT", "sale", year=2026, scheme="per_group"),
        generate_reference_number(db, "VIL", "rent", year=2026, scheme="per_group"),
        generate_reference_number(db, "APT", "sale", year=2026, scheme="per_group"),
    ]
    db.commit()

    assert refs == ["FSAPT261", "FRVIL261", "FSAPT262"]
    scopes = {r.scope: r.last_value for r in db.query(ReferenceSequence).all()}
    assert scopes == {"S:APT:26": 2, "R:VIL:26": 1}


def test_missing_counter_is_seeded_from_existing_references(db):
    cat = _mk_category(db, "OFF")
    db.add(Property(reference_number="FSOFF2641", property_type="sale", category_id=cat.id))
    db.commit()

    ref = generate_reference_number(db, "OFF", "sale", year=2026)
    assert ref == "FSOFF2642"


@pytest.mark.parametrize("code", ["", "AP-T", "APT1", "ABCDEFGHIJK"])
def test_invalid_category_code_rejected(db, code):
    with pytest.raises(ValidationError):
        generate_reference_number(db, code, "sale")


def test_invalid_property_type_rejected(db):
    with pytest.raises(ValidationError):
        generate_reference_number(db, "APT", "lease")


def test_parse_and_validate():
    assert parse_reference_number("FRVIL257") == ("R", "VIL", "25", 7)
    assert parse_reference_number("XRVIL257") is None
    assert parse_reference_number(None) is None

    assert is_valid_reference_number("FSAPT26123")
    assert not is_valid_reference_number("FSAPT260")
    assert not is_valid_reference_number("FSAPT2607")
    assert not is_valid_reference_number("FXAPT261")
    assert not is_valid_reference_number("")


def test_reset_renumbers_in_creation_order():
    db = SessionLocal()
    try:
        apt = _mk_category(db, "APT")
        vil = _mk_category(db, "VIL")
        db.add_all(
            [
                Property(reference_number="junk-b", property_type="rent", category_id=vil.id, created_at=datetime(2025, 3, 1)),
                Property(reference_number="junk-a", property_type="sale", category_id=apt.id, created_at=datetime(2024, 1, 5)),
                Property(reference_number="FSAPT2699", property_type="sale", category_id=apt.id, created_at=datetime(2026, 2, 1)),
            ]
        )
        db.commit()

        out = reset_all_reference_numbers(db, scheme="global")
        db.commit()

        refs = [p.reference_number for p in db.query(Property).order_by(Property.created_at).all()]
        assert refs == ["FSAPT241", "FRVIL252", "FSAPT263"]
        assert out["renumbered"] == 3
        assert db.get(ReferenceSequence, "global").last_value == 3

        # the next id continues from the rebuilt counter
        assert generate_reference_number(db, "APT", "sale", year=2026, scheme="global") == "FSAPT264"
    finally:
        db.close()
