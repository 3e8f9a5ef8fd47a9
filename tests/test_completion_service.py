"""Unit tests for qrmfg.services.completion_service.

Uses the shared ten_field_catalog (10 answerable fields, 4 required, 2
CQS-owned) and cqs_material (both CQS fields resolvable) fixtures.

Coverage
--------
    1. ten-field scenario → completed=5, required=4, completedRequired=4, 50 %
    2. recalculation is idempotent (counters and version unchanged)
    3. counter bounds across fill levels
    4. CQS-owned required field complete with no manual input
    5. CQS-owned required field without CQS value completed by manual input
    6. status derivation DRAFT → IN_PROGRESS, never back from COMPLETED
    7. submitted records keep frozen counters
    8. recalculate on a missing record → NotFoundError
"""

import pytest

from qrmfg.core.exceptions import NotFoundError
from qrmfg.models import db
from qrmfg.models.plant_response import (
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
    PlantResponseRecord,
)
from qrmfg.services import completion_service, questionnaire_service

PLANT = "1102"
MATERIAL = "R123456"

_SCENARIO_INPUTS = {
    "msds_available": "Yes",
    "storageLicense": "LIC-42",
    "storage_location": "Warehouse B",
}


def _make_record(inputs=None, snapshot=None):
    record = PlantResponseRecord(plant_code=PLANT, material_code=MATERIAL)
    if inputs is not None:
        record.set_plant_inputs(inputs)
    if snapshot is not None:
        record.set_cqs_snapshot(snapshot)
    db.session.add(record)
    db.session.commit()
    return record


class TestScenario:
    def test_ten_field_scenario(self, ten_field_catalog, cqs_material):
        record = questionnaire_service.get_or_create_record(PLANT, MATERIAL)
        questionnaire_service.save_manual_inputs(PLANT, MATERIAL, _SCENARIO_INPUTS, actor="alice")

        record = db.session.get(PlantResponseRecord, (PLANT, MATERIAL))
        assert record.total_fields == 10
        assert record.completed_fields == 5
        assert record.required_fields == 4
        assert record.completed_required_fields == 4
        assert record.completion_percentage == 50
        assert record.completion_status == STATUS_IN_PROGRESS

    def test_scenario_validation_depends_on_threshold(self, ten_field_catalog, cqs_material):
        questionnaire_service.get_or_create_record(PLANT, MATERIAL)
        questionnaire_service.save_manual_inputs(PLANT, MATERIAL, _SCENARIO_INPUTS, actor="alice")

        assert questionnaire_service.validate_completion(PLANT, MATERIAL, threshold=50).valid is True
        assert questionnaire_service.validate_completion(PLANT, MATERIAL, threshold=51).valid is False
        result = questionnaire_service.validate_completion(PLANT, MATERIAL)
        assert result.valid is False
        assert result.threshold == 80
        assert result.missing_required_fields == []


class TestIdempotence:
    def test_recalculating_twice_changes_nothing(self, ten_field_catalog, cqs_material):
        questionnaire_service.get_or_create_record(PLANT, MATERIAL)
        first = completion_service.recalculate(MATERIAL, PLANT)
        record = db.session.get(PlantResponseRecord, (PLANT, MATERIAL))
        counters = (record.total_fields, record.completed_fields, record.required_fields,
                    record.completed_required_fields, record.completion_percentage)
        version = record.version

        second = completion_service.recalculate(MATERIAL, PLANT)
        record = db.session.get(PlantResponseRecord, (PLANT, MATERIAL))
        assert second == first
        assert (record.total_fields, record.completed_fields, record.required_fields,
                record.completed_required_fields, record.completion_percentage) == counters
        assert record.version == version


class TestCounterBounds:
    @pytest.mark.parametrize("inputs", [
        {},
        {"msds_available": "Yes"},
        _SCENARIO_INPUTS,
        {name: "x" for name in (
            "msds_available", "storage_license", "storage_location", "max_storage_qty",
            "spill_kit_details", "fire_extinguisher_type", "emergency_contact", "ppe_available",
        )},
    ])
    def test_counter_bounds(self, ten_field_catalog, inputs):
        record = _make_record(inputs=inputs)
        stats = completion_service.recalculate_record(record)
        assert 0 <= stats.completed <= stats.total
        assert 0 <= stats.completed_required <= stats.required <= stats.total
        assert 0 <= stats.percentage <= 100


class TestCqsOwnedFields:
    def test_required_cqs_field_complete_without_manual_input(self, ten_field_catalog):
        record = _make_record(snapshot={"flash_point_21": "yes", "is_corrosive": "no"})
        _, stats = completion_service.preview(record)
        assert "flash_point_21" not in stats.missing_required_fields
        assert "is_corrosive" not in stats.missing_required_fields
        assert stats.completed == 2

    def test_required_cqs_field_completed_by_manual_key(self, ten_field_catalog):
        record = _make_record(snapshot={"flash_point_21": None})
        _, before = completion_service.preview(record)
        assert "flash_point_21" in before.missing_required_fields

        record.set_plant_inputs({"flashPoint21": "No"})
        _, after = completion_service.preview(record)
        assert "flash_point_21" not in after.missing_required_fields
        assert after.completed == before.completed + 1


class TestStatus:
    def test_derive_status(self):
        assert completion_service.derive_status(STATUS_DRAFT, 0, False) == STATUS_DRAFT
        assert completion_service.derive_status(STATUS_DRAFT, 10, False) == STATUS_IN_PROGRESS
        assert completion_service.derive_status(STATUS_IN_PROGRESS, 0, False) == STATUS_DRAFT
        assert completion_service.derive_status(STATUS_IN_PROGRESS, 40, True) == STATUS_COMPLETED
        assert completion_service.derive_status(STATUS_COMPLETED, 0, False) == STATUS_COMPLETED

    def test_percentage_rounding(self):
        assert completion_service.completion_percentage(0, 0) == 0
        assert completion_service.completion_percentage(1, 3) == 33
        assert completion_service.completion_percentage(2, 3) == 67
        assert completion_service.completion_percentage(1, 8) == 13
        assert completion_service.completion_percentage(5, 8) == 63
        assert completion_service.completion_percentage(1, 200) == 1

    def test_submitted_record_counters_are_frozen(self, ten_field_catalog):
        record = _make_record(inputs={"msds_available": "Yes"})
        completion_service.recalculate_record(record)
        record.mark_submitted("alice")
        db.session.commit()

        record.set_plant_inputs({})
        stats = completion_service.recalculate_record(record)
        assert stats.percentage == 100
        assert record.completed_fields == 1
        assert record.completion_status == STATUS_COMPLETED


class TestErrors:
    def test_recalculate_missing_record(self, ten_field_catalog):
        with pytest.raises(NotFoundError):
            completion_service.recalculate(MATERIAL, "9999")
