"""Tests for qrmfg.services.cqs_sync_service.

Providers are plain stubs or MagicMock so no CQS endpoint is needed.

Coverage
--------
    1. SYNCED snapshot holds every attribute name
    2. NO_DATA when the provider has nothing
    3. FAILED keeps the previous snapshot and stamps last_cqs_sync
    4. sync_if_needed skips records that already have a snapshot
    5. upsert rejects unknown attributes and converts booleans
    6. get_cqs_data stats with and without a mirror row; demo data text
       outside a question's options is still shown
    7. propagation skips submitted records
    8. force_sync_cqs recalculates the record
"""

from unittest.mock import MagicMock

import pytest

from qrmfg.core.exceptions import ValidationError
from qrmfg.integrations.cqs_gateway import CqsIntegrationError
from qrmfg.models import db
from qrmfg.models.cqs import CQS_ATTRIBUTE_NAMES, CqsMaterialData
from qrmfg.models.plant_response import (
    CQS_FAILED,
    CQS_NO_DATA,
    CQS_NOT_SYNCED,
    CQS_SYNCED,
    PlantResponseRecord,
)
from qrmfg.services import cqs_sync_service, questionnaire_service, template_catalog

PLANT = "1102"
MATERIAL = "R123456"


def _make_record(plant=PLANT, material=MATERIAL):
    record = PlantResponseRecord(plant_code=plant, material_code=material)
    db.session.add(record)
    db.session.commit()
    return record


def _provider(returns=None, raises=None):
    provider = MagicMock()
    if raises is not None:
        provider.get_attributes.side_effect = raises
    else:
        provider.get_attributes.return_value = returns
    return provider


class TestSnapshotSync:
    def test_synced_snapshot_has_all_attribute_names(self):
        record = _make_record()
        status = cqs_sync_service.force_sync(record, _provider({"flash_point_21": "yes"}))

        assert status == CQS_SYNCED
        assert record.cqs_sync_status == CQS_SYNCED
        snapshot = record.get_cqs_snapshot()
        assert set(snapshot) == set(CQS_ATTRIBUTE_NAMES)
        assert snapshot["flash_point_21"] == "yes"
        assert snapshot["is_corrosive"] is None
        assert record.last_cqs_sync is not None

    @pytest.mark.parametrize("returns", [None, {}, {"flash_point_21": None}])
    def test_no_data(self, returns):
        record = _make_record()
        assert cqs_sync_service.force_sync(record, _provider(returns)) == CQS_NO_DATA
        assert record.get_cqs_snapshot() == {}

    def test_failure_keeps_previous_snapshot(self):
        record = _make_record()
        cqs_sync_service.force_sync(record, _provider({"is_corrosive": "no"}))
        first_sync = record.last_cqs_sync

        status = cqs_sync_service.force_sync(
            record, _provider(raises=CqsIntegrationError(MATERIAL, "timeout")),
        )
        assert status == CQS_FAILED
        assert record.cqs_sync_status == CQS_FAILED
        assert record.get_cqs_snapshot()["is_corrosive"] == "no"
        assert record.last_cqs_sync >= first_sync

    def test_sync_if_needed_only_when_snapshot_missing(self):
        record = _make_record()
        assert record.cqs_sync_status == CQS_NOT_SYNCED
        provider = _provider({"is_corrosive": "no"})

        assert cqs_sync_service.sync_if_needed(record, provider) == CQS_SYNCED
        assert cqs_sync_service.sync_if_needed(record, provider) is None
        provider.get_attributes.assert_called_once_with(MATERIAL)

    def test_database_provider_used_by_default(self, cqs_material):
        record = _make_record()
        assert cqs_sync_service.sync_if_needed(record) == CQS_SYNCED
        assert record.get_cqs_snapshot()["flash_point_21"] == "yes"


class TestMirrorAdministration:
    def test_upsert_rejects_unknown_attribute(self):
        with pytest.raises(ValidationError) as exc_info:
            cqs_sync_service.upsert_cqs_data(MATERIAL, {"flash_point_21": "yes", "colour": "blue"}, "admin")
        assert "colour" in exc_info.value.details
        assert db.session.get(CqsMaterialData, MATERIAL) is None

    def test_upsert_creates_and_updates(self):
        row = cqs_sync_service.upsert_cqs_data(MATERIAL, {"is_corrosive": True, "ld50_oral": 300}, "admin")
        assert row.is_corrosive == "Yes"
        assert row.ld50_oral == "300"

        row = cqs_sync_service.upsert_cqs_data(MATERIAL, {"is_corrosive": False}, "admin2")
        assert row.is_corrosive == "No"
        assert row.ld50_oral == "300"
        assert row.updated_by == "admin2"

    def test_get_cqs_data_without_row(self):
        data = cqs_sync_service.get_cqs_data("UNKNOWN")
        assert data["populated_fields"] == 0
        assert data["total_fields"] == len(CQS_ATTRIBUTE_NAMES)
        assert data["sync_status"] == CQS_NO_DATA

    def test_get_cqs_data_with_plant_record(self, cqs_material):
        record = _make_record()
        cqs_sync_service.force_sync(record)
        db.session.commit()

        data = cqs_sync_service.get_cqs_data(MATERIAL, PLANT)
        assert data["populated_fields"] == 3
        assert data["completion_percentage"] == 9
        assert data["record_sync_status"] == CQS_SYNCED

    def test_field_mapping(self):
        mapping = cqs_sync_service.get_field_mapping()
        assert mapping["flash_point_21"] == "Flash Point < 21°C"
        assert len(mapping) == len(CQS_ATTRIBUTE_NAMES)

    def test_seed_demo_materials_is_idempotent(self):
        assert cqs_sync_service.seed_demo_materials() == 5
        db.session.commit()
        assert cqs_sync_service.seed_demo_materials() == 0
        assert db.session.get(CqsMaterialData, "MAT001").petroleum_class == "class_b"

    def test_demo_material_text_outside_options_is_shown(self):
        template_catalog.seed_default_templates()
        cqs_sync_service.seed_demo_materials()
        db.session.commit()

        data = questionnaire_service.get_template("MAT001", "P1")
        fields = {f["name"]: f for step in data["steps"] for f in step["fields"]}
        assert fields["autoignition_temp"]["value"] == "465°C"
        assert fields["electrostatic_charge"]["value"] == "Low Risk"
        assert fields["sap_compatibility"]["value"] == "Compatible"
        assert fields["sap_compatibility"]["completed"] is True


class TestPropagation:
    def test_submitted_records_are_skipped(self, ten_field_catalog, cqs_material):
        open_record = _make_record(plant="1102")
        submitted = _make_record(plant="2201")
        submitted.mark_submitted("alice")
        db.session.commit()

        result = cqs_sync_service.propagate_cqs_to_records(MATERIAL, "admin")
        assert result["synced_plants"] == ["1102"]
        assert result["skipped_plants"] == ["2201"]

        open_record = db.session.get(PlantResponseRecord, ("1102", MATERIAL))
        assert open_record.cqs_sync_status == CQS_SYNCED
        assert open_record.completed_fields == 2
        assert db.session.get(PlantResponseRecord, ("2201", MATERIAL)).cqs_sync_status == CQS_NOT_SYNCED

    def test_force_sync_cqs_recalculates(self, ten_field_catalog):
        _make_record()
        result = questionnaire_service.force_sync_cqs(
            PLANT, MATERIAL, provider=_provider({"flash_point_21": "yes", "is_corrosive": "yes"}),
        )
        assert result["cqsSyncStatus"] == CQS_SYNCED
        assert result["completion"]["completed"] == 2
        assert db.session.get(PlantResponseRecord, (PLANT, MATERIAL)).completion_percentage == 20
