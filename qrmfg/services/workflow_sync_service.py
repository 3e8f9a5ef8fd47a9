"""
Workflow sync service — advances the material extension workflow once a
plant questionnaire has been submitted.

Advancement is best effort and runs after the submission commit. Whatever
happens here (workflow missing, transition not allowed, gateway down) is
reported as a WorkflowSyncResult and logged; it never raises into the
caller and never undoes the submission. ``repair_status`` is the
administrative reconciliation for records where it did not go through.

Lookup chain, first match wins:
    1. the workflow id linked on the record
    2. gateway.find_by_plant_and_material
    3. gateway.find_by_plant, filtered by material
    4. gateway.find_by_material, filtered by plant
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

import requests

from qrmfg.core.exceptions import NotFoundError
from qrmfg.integrations.workflow_gateway import (
    WorkflowGateway,
    WorkflowGatewayError,
    WorkflowRef,
    get_workflow_gateway,
)
from qrmfg.models import db
from qrmfg.models.plant_response import STATUS_COMPLETED, PlantResponseRecord
from qrmfg.models.workflow import COMPLETED
from qrmfg.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)

ADVANCED = "ADVANCED"
ALREADY_COMPLETED = "ALREADY_COMPLETED"
NOT_FOUND = "NOT_FOUND"
DEGRADED = "DEGRADED"

LOOKUP_LINKED = "linked_id"
LOOKUP_DIRECT = "plant_and_material"
LOOKUP_BY_PLANT = "plant_scan"
LOOKUP_BY_MATERIAL = "material_scan"


@dataclass(frozen=True)
class WorkflowSyncResult:
    status: str
    workflow_id: int | None = None
    previous_state: str | None = None
    new_state: str | None = None
    lookup: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ADVANCED, ALREADY_COMPLETED)

    def to_dict(self) -> dict:
        return asdict(self)


def find_workflow(gateway: WorkflowGateway, plant_code: str, material_code: str,
                  workflow_id: int | None = None) -> tuple[WorkflowRef | None, str | None]:
    """Walk the lookup chain. Returns ``(workflow, lookup_name)``."""
    if workflow_id is not None:
        ref = gateway.find_by_id(workflow_id)
        if ref is not None:
            return ref, LOOKUP_LINKED

    ref = gateway.find_by_plant_and_material(plant_code, material_code)
    if ref is not None:
        return ref, LOOKUP_DIRECT

    for ref in gateway.find_by_plant(plant_code):
        if ref.material_code == material_code:
            return ref, LOOKUP_BY_PLANT

    for ref in gateway.find_by_material(material_code):
        if ref.plant_code == plant_code:
            return ref, LOOKUP_BY_MATERIAL

    return None, None


def advance_on_submission(plant_code: str, material_code: str, actor: str,
                          workflow_id: int | None = None,
                          gateway: WorkflowGateway | None = None) -> WorkflowSyncResult:
    """Move the pair's workflow to COMPLETED. Never raises."""
    ctx = {"plant_code": plant_code, "material_code": material_code}
    try:
        gateway = gateway or get_workflow_gateway()
        ref, lookup = find_workflow(gateway, plant_code, material_code, workflow_id)
        if ref is None:
            logger.warning("No workflow found for submitted questionnaire", extra={**ctx, "outcome": NOT_FOUND})
            return WorkflowSyncResult(status=NOT_FOUND, reason="no workflow matches plant and material")

        ctx["workflow_id"] = ref.id
        if ref.state == COMPLETED:
            logger.info("Workflow %s already completed", ref.id, extra={**ctx, "outcome": ALREADY_COMPLETED})
            return WorkflowSyncResult(
                status=ALREADY_COMPLETED, workflow_id=ref.id,
                previous_state=ref.state, new_state=ref.state, lookup=lookup,
            )

        if not gateway.can_transition_to(ref.id, COMPLETED):
            reason = f"transition {ref.state} → {COMPLETED} not allowed"
            logger.warning("Workflow %s not advanced: %s", ref.id, reason, extra={**ctx, "outcome": DEGRADED})
            return WorkflowSyncResult(
                status=DEGRADED, workflow_id=ref.id, previous_state=ref.state, lookup=lookup, reason=reason,
            )

        updated = gateway.transition_to(ref.id, COMPLETED, actor)
    except (WorkflowGatewayError, requests.RequestException) as exc:
        db.session.rollback()
        logger.warning("Workflow advancement failed: %s", exc, extra={**ctx, "outcome": DEGRADED})
        return WorkflowSyncResult(status=DEGRADED, workflow_id=ctx.get("workflow_id"), reason=str(exc))

    logger.info(
        "Workflow %s advanced %s → %s (lookup=%s)", updated.id, ref.state, updated.state, lookup,
        extra={**ctx, "outcome": ADVANCED},
    )
    return WorkflowSyncResult(
        status=ADVANCED, workflow_id=updated.id,
        previous_state=ref.state, new_state=updated.state, lookup=lookup,
    )


def repair_status(plant_code: str, material_code: str, actor: str,
                  gateway: WorkflowGateway | None = None) -> dict:
    """Reconcile a record with its workflow.

    - a submitted record is re-pinned to 100 % / COMPLETED
    - an open record whose workflow is already COMPLETED is marked COMPLETED
    - for submitted records the workflow advancement is retried
    """
    record = db.session.get(PlantResponseRecord, (plant_code, material_code))
    if record is None:
        raise NotFoundError(resource="PlantResponseRecord", resource_id=f"{plant_code}/{material_code}")

    actions: list[str] = []
    gateway = gateway or get_workflow_gateway()

    if record.is_submitted:
        if record.completion_percentage != 100 or record.completion_status != STATUS_COMPLETED:
            record.completion_percentage = 100
            record.completion_status = STATUS_COMPLETED
            record.updated_by = actor
            actions.append("finalised_submitted_record")
    else:
        try:
            ref, _ = find_workflow(gateway, plant_code, material_code, record.workflow_id)
        except (WorkflowGatewayError, requests.RequestException) as exc:
            logger.warning("Workflow lookup failed during repair: %s", exc,
                           extra={"plant_code": plant_code, "material_code": material_code})
            ref = None
        if ref is not None and ref.state == COMPLETED and record.completion_status != STATUS_COMPLETED:
            record.completion_status = STATUS_COMPLETED
            record.updated_by = actor
            actions.append("completed_from_workflow")

    if actions:
        commit_or_conflict("PlantResponseRecord", key=(plant_code, material_code))

    sync = None
    if record.is_submitted:
        sync = advance_on_submission(plant_code, material_code, actor,
                                     workflow_id=record.workflow_id, gateway=gateway)
        if sync.status == ADVANCED:
            actions.append("advanced_workflow")

    logger.info(
        "Repair for %s/%s: %s", plant_code, material_code, ", ".join(actions) or "nothing to do",
        extra={"plant_code": plant_code, "material_code": material_code},
    )
    return {
        "plantCode": plant_code,
        "materialCode": material_code,
        "actions": actions,
        "completionStatus": record.completion_status,
        "completionPercentage": record.completion_percentage,
        "workflowSync": sync.to_dict() if sync else None,
    }
