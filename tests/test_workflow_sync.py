"""Tests for qrmfg.services.workflow_sync_service.

Coverage
--------
    1. direct composite lookup fails, by-plant scan finds the workflow → ADVANCED
    2. by-material scan as last resort
    3. already COMPLETED workflow → ALREADY_COMPLETED, no transition
    4. transition not allowed → DEGRADED with reason
    5. gateway error / requests error → DEGRADED, never raises
    6. no workflow → NOT_FOUND
    7. repair_status: re-finalise submitted record, complete from workflow,
       retry advancement
"""

from unittest.mock import MagicMock

import pytest
import requests

from qrmfg.core.exceptions import NotFoundError
from qrmfg.integrations.workflow_gateway import SqlWorkflowGateway, WorkflowGatewayError, WorkflowRef
from qrmfg.models import db
from qrmfg.models.plant_response import STATUS_COMPLETED, STATUS_IN_PROGRESS, PlantResponseRecord
from qrmfg.models.workflow import COMPLETED, JVC_PENDING, PLANT_PENDING, Workflow
from qrmfg.services import workflow_sync_service as wss

PLANT = "1102"
MATERIAL = "R123456"


class _NoCompositeLookupGateway(SqlWorkflowGateway):
    """SQL gateway whose composite-key query never matches."""

    def find_by_plant_and_material(self, plant_code, material_code):
        return None


def _make_workflow(plant=PLANT, material=MATERIAL, state=PLANT_PENDING):
    wf = Workflow(plant_code=plant, material_code=material, state=state)
    db.session.add(wf)
    db.session.commit()
    return wf


def _mock_gateway(**overrides):
    gateway = MagicMock()
    gateway.find_by_id.return_value = None
    gateway.find_by_plant_and_material.return_value = None
    gateway.find_by_plant.return_value = []
    gateway.find_by_material.return_value = []
    gateway.can_transition_to.return_value = True
    for name, value in overrides.items():
        setattr(gateway, name, value)
    return gateway


class TestLookupChain:
    def test_plant_scan_advances_when_direct_lookup_fails(self):
        _make_workflow(material="OTHER")
        wf = _make_workflow()

        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=_NoCompositeLookupGateway())

        assert result.status == wss.ADVANCED
        assert result.lookup == wss.LOOKUP_BY_PLANT
        assert result.workflow_id == wf.id
        assert result.previous_state == PLANT_PENDING
        assert db.session.get(Workflow, wf.id).state == COMPLETED

    def test_material_scan_is_last_resort(self):
        ref = WorkflowRef(id=7, plant_code=PLANT, material_code=MATERIAL, state=PLANT_PENDING)
        gateway = _mock_gateway()
        gateway.find_by_material.return_value = [
            WorkflowRef(id=6, plant_code="9999", material_code=MATERIAL, state=PLANT_PENDING), ref,
        ]
        gateway.transition_to.return_value = WorkflowRef(7, PLANT, MATERIAL, COMPLETED)

        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=gateway)

        assert result.status == wss.ADVANCED
        assert result.lookup == wss.LOOKUP_BY_MATERIAL
        gateway.transition_to.assert_called_once_with(7, COMPLETED, "alice")

    def test_linked_id_checked_first(self):
        wf = _make_workflow()
        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", workflow_id=wf.id,
                                           gateway=SqlWorkflowGateway())
        assert result.lookup == wss.LOOKUP_LINKED

    def test_not_found(self):
        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=SqlWorkflowGateway())
        assert result.status == wss.NOT_FOUND
        assert result.ok is False


class TestOutcomes:
    def test_already_completed(self):
        gateway = _mock_gateway()
        gateway.find_by_plant_and_material.return_value = WorkflowRef(3, PLANT, MATERIAL, COMPLETED)

        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=gateway)

        assert result.status == wss.ALREADY_COMPLETED
        assert result.ok is True
        gateway.transition_to.assert_not_called()

    def test_transition_not_allowed_is_degraded(self):
        wf = _make_workflow(state=JVC_PENDING)
        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=SqlWorkflowGateway())

        assert result.status == wss.DEGRADED
        assert JVC_PENDING in result.reason
        assert db.session.get(Workflow, wf.id).state == JVC_PENDING

    @pytest.mark.parametrize("error", [
        WorkflowGatewayError("workflow service down"),
        requests.ConnectionError("connection refused"),
    ])
    def test_gateway_errors_are_degraded(self, error):
        gateway = _mock_gateway()
        gateway.find_by_plant_and_material.side_effect = error

        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=gateway)

        assert result.status == wss.DEGRADED
        assert result.reason == str(error)

    def test_transition_failure_is_degraded(self):
        gateway = _mock_gateway()
        gateway.find_by_plant_and_material.return_value = WorkflowRef(3, PLANT, MATERIAL, PLANT_PENDING)
        gateway.transition_to.side_effect = WorkflowGatewayError("HTTP 503")

        result = wss.advance_on_submission(PLANT, MATERIAL, "alice", gateway=gateway)
        assert result.status == wss.DEGRADED
        assert result.workflow_id == 3


class TestRepairStatus:
    def _make_record(self, **kwargs):
        record = PlantResponseRecord(plant_code=PLANT, material_code=MATERIAL, **kwargs)
        db.session.add(record)
        db.session.commit()
        return record

    def test_missing_record(self):
        with pytest.raises(NotFoundError):
            wss.repair_status(PLANT, MATERIAL, "admin")

    def test_submitted_record_refinalised_and_workflow_advanced(self):
        wf = _make_workflow()
        record = self._make_record(workflow_id=wf.id)
        record.mark_submitted("alice")
        db.session.commit()
        # simulate a partial write from an older client
        record.completion_percentage = 82
        record.completion_status = STATUS_IN_PROGRESS
        db.session.commit()

        result = wss.repair_status(PLANT, MATERIAL, "admin")

        assert "finalised_submitted_record" in result["actions"]
        assert "advanced_workflow" in result["actions"]
        assert result["completionPercentage"] == 100
        assert result["completionStatus"] == STATUS_COMPLETED
        assert db.session.get(Workflow, wf.id).state == COMPLETED

    def test_open_record_completed_from_workflow(self):
        _make_workflow(state=COMPLETED)
        self._make_record(completion_status=STATUS_IN_PROGRESS)

        result = wss.repair_status(PLANT, MATERIAL, "admin")

        assert result["actions"] == ["completed_from_workflow"]
        assert result["workflowSync"] is None
        record = db.session.get(PlantResponseRecord, (PLANT, MATERIAL))
        assert record.completion_status == STATUS_COMPLETED

    def test_nothing_to_do(self):
        _make_workflow()
        self._make_record()
        result = wss.repair_status(PLANT, MATERIAL, "admin")
        assert result["actions"] == []
