"""
Shared pytest fixtures for the plant questionnaire test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - ten_field_catalog: 10 answerable templates (4 required, 2 CQS-owned)
    - cqs_material: CQS mirror row resolving both CQS-owned catalog fields
    - make_template: factory for unsaved QuestionTemplate rows
"""

import json

import pytest

from qrmfg import create_app
from qrmfg.models import db as _db
from qrmfg.models.cqs import CqsMaterialData
from qrmfg.models.questionnaire import OWNER_CQS, OWNER_PLANT, QuestionTemplate

PLANT = "1102"
MATERIAL = "R123456"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Catalog fixtures ─────────────────────────────────────────────────────

_YES_NO = json.dumps([{"value": "yes", "label": "Yes"}, {"value": "no", "label": "No"}])

# (sr_no, step, owner, type, field_name, required)
TEN_FIELDS = [
    (1, 1, OWNER_CQS, "radio", "flash_point_21", True),
    (2, 1, OWNER_CQS, "radio", "is_corrosive", True),
    (3, 1, OWNER_PLANT, "radio", "msds_available", True),
    (4, 2, OWNER_PLANT, "text", "storage_license", True),
    (5, 2, OWNER_PLANT, "text", "storage_location", False),
    (6, 2, OWNER_PLANT, "text", "max_storage_qty", False),
    (7, 3, OWNER_PLANT, "textarea", "spill_kit_details", False),
    (8, 3, OWNER_PLANT, "text", "fire_extinguisher_type", False),
    (9, 3, "Display", "display", "section_note", False),
    (10, 4, OWNER_PLANT, "text", "emergency_contact", False),
    (11, 4, OWNER_PLANT, "checkbox", "ppe_available", False),
]


def _make_template(sr_no, step, owner, qtype, field_name, required=False, **kwargs):
    """Build (not add) a QuestionTemplate row."""
    options = kwargs.pop("options", _YES_NO if qtype in ("radio", "select") else None)
    return QuestionTemplate(
        sr_no=sr_no,
        step_number=step,
        category=kwargs.pop("category", f"Step {step} category"),
        question_text=kwargs.pop("question_text", field_name.replace("_", " ").title() + "?"),
        responsible=owner,
        question_type=qtype,
        field_name=field_name,
        is_required=required,
        options=options,
        is_active=kwargs.pop("is_active", True),
        **kwargs,
    )


@pytest.fixture()
def ten_field_catalog():
    """10 answerable templates plus one display-only entry."""
    rows = [_make_template(*row) for row in TEN_FIELDS]
    _db.session.add_all(rows)
    _db.session.commit()
    return rows


@pytest.fixture()
def cqs_material():
    """CQS data answering both CQS-owned catalog fields."""
    row = CqsMaterialData(
        material_code=MATERIAL,
        flash_point_21="yes",
        is_corrosive="no",
        petroleum_class="class_b",
        created_by="test",
    )
    _db.session.add(row)
    _db.session.commit()
    return row


@pytest.fixture()
def make_template():
    """Factory for unsaved QuestionTemplate rows."""
    return _make_template
