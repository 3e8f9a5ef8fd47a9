"""Tests for qrmfg.services.template_catalog.

Coverage
--------
    1. default seed: 87 questions, 12 steps, CQS fields match the attribute set
    2. seeding twice creates nothing the second time
    3. load_answerable_templates filters inactive / display / unowned rows
    4. step title and description fallbacks
"""

from sqlalchemy import func, select

from qrmfg.models import db
from qrmfg.models.cqs import CQS_ATTRIBUTE_NAMES
from qrmfg.models.questionnaire import OWNER_CQS, OWNER_DISPLAY, OWNER_NONE, OWNER_PLANT, QuestionTemplate
from qrmfg.services import template_catalog


class TestSeed:
    def test_default_seed(self):
        assert template_catalog.seed_default_templates() == 87
        db.session.commit()

        templates = template_catalog.load_answerable_templates()
        assert len(templates) == 87
        assert {t.step_number for t in templates} == set(range(1, 13))
        cqs_fields = {t.field_name for t in templates if t.responsible == OWNER_CQS}
        assert cqs_fields == set(CQS_ATTRIBUTE_NAMES)

    def test_seed_is_idempotent(self):
        template_catalog.seed_default_templates()
        db.session.commit()
        assert template_catalog.seed_default_templates() == 0
        count = db.session.execute(select(func.count()).select_from(QuestionTemplate)).scalar()
        assert count == 87


class TestLoad:
    def test_filters_and_orders(self, make_template):
        db.session.add_all([
            make_template(3, 2, OWNER_PLANT, "text", "late_field"),
            make_template(2, 1, OWNER_PLANT, "text", "second_field", order_index=1),
            make_template(1, 1, OWNER_CQS, "radio", "first_field", order_index=5),
            make_template(4, 1, OWNER_PLANT, "text", "retired", is_active=False),
            make_template(5, 1, OWNER_DISPLAY, "display", "banner"),
            make_template(6, 1, OWNER_NONE, "text", "nobody"),
        ])
        db.session.commit()

        names = [t.field_name for t in template_catalog.load_answerable_templates()]
        assert names == ["second_field", "first_field", "late_field"]

    def test_step_fallbacks(self, make_template):
        template = make_template(1, 3, OWNER_PLANT, "text", "x", category=None, comments=None)
        assert template_catalog.step_title(3, template) == "Step 3"
        assert template_catalog.step_description(3, template) == template_catalog.DEFAULT_STEP_DESCRIPTIONS[3]
        assert template_catalog.step_description(42, None) == "Questions for step 42"

        template.category, template.comments = "Storage", "Bulk tanks"
        assert template_catalog.step_title(3, template) == "Storage"
        assert template_catalog.step_description(3, template) == "Bulk tanks"
