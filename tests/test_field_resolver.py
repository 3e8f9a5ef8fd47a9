"""Unit tests for qrmfg.services.field_resolver.

Coverage
--------
    - normalize_cqs_value: booleans, yes/no/n-a spellings, option matching,
      free text, empties
    - is_filled
    - merge_field_value precedence and is_field_complete per owner
    - build_steps: grouping, ordering, display-only exclusion, descriptors
    - resolve_template: empty catalog → NotFoundError
    - merged_view leaves out the unavailable sentinel
"""

import pytest

from qrmfg.core.exceptions import NotFoundError
from qrmfg.models import db
from qrmfg.models.questionnaire import OWNER_CQS, OWNER_PLANT
from qrmfg.services import field_resolver as fr
from qrmfg.services import template_catalog

_OPTIONS = [{"value": "class_a", "label": "Class A"}, {"value": "class_b", "label": "Class B"}]


class TestNormalizeCqsValue:
    @pytest.mark.parametrize("raw,expected", [
        (True, "Yes"),
        (False, "No"),
        ("yes", "Yes"),
        ("TRUE", "Yes"),
        ("n", "No"),
        ("na", "N/A"),
        ("Not Applicable", "N/A"),
        (None, None),
        ("", None),
        ("   ", None),
        ("null", None),
        ("undefined", None),
    ])
    def test_common_spellings(self, raw, expected):
        assert fr.normalize_cqs_value(raw, "radio", _OPTIONS) == expected

    def test_choice_matches_option_value_and_returns_label(self):
        assert fr.normalize_cqs_value("class_b", "select", _OPTIONS) == "Class B"

    def test_choice_matches_option_label_case_insensitive(self):
        assert fr.normalize_cqs_value("class a", "radio", _OPTIONS) == "Class A"

    def test_choice_without_matching_option_keeps_text(self):
        assert fr.normalize_cqs_value(" Class Z ", "radio", _OPTIONS) == "Class Z"
        assert fr.normalize_cqs_value("< 1%", "select", []) == "< 1%"

    def test_free_text_is_trimmed(self):
        assert fr.normalize_cqs_value("  465°C ", "text") == "465°C"


class TestIsFilled:
    @pytest.mark.parametrize("value,expected", [
        (None, False),
        ("", False),
        ("  ", False),
        ("null", False),
        (fr.UNAVAILABLE, False),
        ([], False),
        ({}, False),
        ("x", True),
        (0, True),
        (False, True),
        (["gloves"], True),
    ])
    def test_values(self, value, expected):
        assert fr.is_filled(value) is expected


class TestMerge:
    def test_cqs_value_wins_for_cqs_field(self):
        assert fr.merge_field_value(OWNER_CQS, "Yes", "No") == ("Yes", fr.SOURCE_CQS)

    def test_manual_used_when_cqs_unresolved(self):
        assert fr.merge_field_value(OWNER_CQS, None, "No") == ("No", fr.SOURCE_MANUAL)

    def test_cqs_field_without_any_value_shows_sentinel(self):
        assert fr.merge_field_value(OWNER_CQS, None, "") == (fr.UNAVAILABLE, fr.SOURCE_NONE)

    def test_plant_field_ignores_cqs_value(self):
        assert fr.merge_field_value(OWNER_PLANT, "Yes", None) == (None, fr.SOURCE_NONE)
        assert fr.merge_field_value(OWNER_PLANT, None, "Shed 4") == ("Shed 4", fr.SOURCE_MANUAL)

    def test_completion_rules(self):
        assert fr.is_field_complete(OWNER_CQS, "Yes", None) is True
        assert fr.is_field_complete(OWNER_CQS, None, "override") is True
        assert fr.is_field_complete(OWNER_CQS, None, None) is False
        assert fr.is_field_complete(OWNER_PLANT, "Yes", None) is False
        assert fr.is_field_complete(OWNER_PLANT, None, "Shed 4") is True


class TestBuildSteps:
    def test_groups_and_orders_answerable_fields(self, ten_field_catalog):
        templates = template_catalog.load_answerable_templates()
        steps = fr.build_steps(templates, {}, {})

        assert [s.step_number for s in steps] == [1, 2, 3, 4]
        names = [f.name for f in fr.iter_fields(steps)]
        assert "section_note" not in names
        assert len(names) == 10
        assert names[:2] == ["flash_point_21", "is_corrosive"]

    def test_order_index_overrides_serial_number(self, make_template):
        db.session.add_all([
            make_template(1, 1, OWNER_PLANT, "text", "first_by_sr", order_index=5),
            make_template(2, 1, OWNER_PLANT, "text", "second_by_sr", order_index=1),
        ])
        db.session.commit()
        steps = fr.build_steps(template_catalog.load_answerable_templates(), {}, {})
        assert [f.name for f in steps[0].fields] == ["second_by_sr", "first_by_sr"]

    def test_cqs_descriptor_is_disabled_and_auto_populated(self, ten_field_catalog):
        templates = template_catalog.load_answerable_templates()
        steps = fr.build_steps(templates, {"flash_point_21": "yes", "is_corrosive": None}, {})
        by_name = {f.name: f for f in fr.iter_fields(steps)}

        flash = by_name["flash_point_21"].to_dict()
        assert flash["value"] == "Yes"
        assert flash["disabled"] is True
        assert flash["cqsAutoPopulated"] is True
        assert flash["completed"] is True

        corrosive = by_name["is_corrosive"].to_dict()
        assert corrosive["value"] == fr.UNAVAILABLE
        assert corrosive["disabled"] is False
        assert corrosive["completed"] is False
        assert "manually" in corrosive["placeholder"]

    def test_unlisted_cqs_choice_counts_as_complete(self, ten_field_catalog):
        templates = template_catalog.load_answerable_templates()
        steps = fr.build_steps(templates, {"flash_point_21": "Low Risk"}, {})
        flash = {f.name: f for f in fr.iter_fields(steps)}["flash_point_21"]
        assert flash.value == "Low Risk"
        assert flash.completed is True
        assert flash.disabled is True

    def test_manual_override_completes_cqs_field(self, ten_field_catalog):
        templates = template_catalog.load_answerable_templates()
        steps = fr.build_steps(templates, {}, {"isCorrosive": "No"})
        corrosive = next(f for f in fr.iter_fields(steps) if f.name == "is_corrosive")
        assert corrosive.completed is True
        assert corrosive.source == fr.SOURCE_MANUAL

    def test_step_title_falls_back_to_category(self, ten_field_catalog):
        steps = fr.build_steps(template_catalog.load_answerable_templates(), {}, {})
        assert steps[0].to_dict()["title"] == "Step 1 category"
        assert steps[0].description == template_catalog.DEFAULT_STEP_DESCRIPTIONS[1]


class TestResolveTemplate:
    def test_empty_catalog_raises(self):
        with pytest.raises(NotFoundError):
            fr.resolve_template("R1", "1102")

    def test_merged_view_skips_sentinel_and_blanks(self, ten_field_catalog):
        steps = fr.build_steps(
            template_catalog.load_answerable_templates(),
            {"flash_point_21": "no"},
            {"storage_location": "Shed 4"},
        )
        view = fr.merged_view(steps)
        assert view == {"flash_point_21": "No", "storage_location": "Shed 4"}
