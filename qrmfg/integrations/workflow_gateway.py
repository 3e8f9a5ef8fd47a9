"""
Workflow gateway — lookup and state transitions for material extension
workflows.

The questionnaire engine never touches workflow rows directly; it asks a
gateway. Two implementations:

  SqlWorkflowGateway   the local ``workflows`` table (Workflow model)
  HttpWorkflowGateway  a remote workflow service over JSON/HTTP

Every method raises WorkflowGatewayError on transport or persistence
failure. Lookups return None (or an empty list) when nothing matches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from qrmfg.integrations.http_client import JsonHttpClient
from qrmfg.models import db
from qrmfg.models.workflow import COMPLETED, Workflow, validate_workflow_transition

logger = logging.getLogger(__name__)


class WorkflowGatewayError(Exception):
    """Raised when the workflow source cannot be read or updated."""


@dataclass(frozen=True)
class WorkflowRef:
    """Gateway-neutral view of a workflow."""

    id: int
    plant_code: str
    material_code: str
    state: str

    @classmethod
    def from_model(cls, wf: Workflow) -> "WorkflowRef":
        return cls(id=wf.id, plant_code=wf.plant_code, material_code=wf.material_code, state=wf.state)

    @classmethod
    def from_payload(cls, payload) -> "WorkflowRef":
        """Parse a workflow service body; WorkflowGatewayError when malformed."""
        if not isinstance(payload, dict):
            raise WorkflowGatewayError(f"Workflow payload must be an object, got {type(payload).__name__}")
        try:
            workflow_id = int(payload["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise WorkflowGatewayError(f"Workflow payload has no usable id: {payload.get('id')!r}") from exc
        return cls(
            id=workflow_id,
            plant_code=payload.get("plantCode") or payload.get("plant_code") or "",
            material_code=payload.get("materialCode") or payload.get("material_code") or "",
            state=payload.get("state") or "",
        )


class WorkflowGateway:
    """Interface for workflow sources."""

    def find_by_id(self, workflow_id: int) -> WorkflowRef | None:
        raise NotImplementedError

    def find_by_plant_and_material(self, plant_code: str, material_code: str) -> WorkflowRef | None:
        raise NotImplementedError

    def find_by_plant(self, plant_code: str) -> list[WorkflowRef]:
        raise NotImplementedError

    def find_by_material(self, material_code: str) -> list[WorkflowRef]:
        raise NotImplementedError

    def get_state(self, workflow_id: int) -> str:
        ref = self.find_by_id(workflow_id)
        if ref is None:
            raise WorkflowGatewayError(f"Workflow {workflow_id} not found")
        return ref.state

    def can_transition_to(self, workflow_id: int, new_state: str) -> bool:
        return validate_workflow_transition(self.get_state(workflow_id), new_state)

    def transition_to(self, workflow_id: int, new_state: str, actor: str) -> WorkflowRef:
        raise NotImplementedError


# ── SQL implementation ───────────────────────────────────────────────────────


class SqlWorkflowGateway(WorkflowGateway):
    """Workflow access backed by the local ``workflows`` table."""

    def _one(self, stmt) -> WorkflowRef | None:
        try:
            wf = db.session.execute(stmt).scalars().first()
        except SQLAlchemyError as exc:
            raise WorkflowGatewayError(f"Workflow lookup failed: {exc}") from exc
        return WorkflowRef.from_model(wf) if wf else None

    def _many(self, stmt) -> list[WorkflowRef]:
        try:
            rows = db.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise WorkflowGatewayError(f"Workflow lookup failed: {exc}") from exc
        return [WorkflowRef.from_model(wf) for wf in rows]

    def find_by_id(self, workflow_id: int) -> WorkflowRef | None:
        return self._one(select(Workflow).where(Workflow.id == workflow_id))

    def find_by_plant_and_material(self, plant_code: str, material_code: str) -> WorkflowRef | None:
        return self._one(
            select(Workflow)
            .where(Workflow.plant_code == plant_code, Workflow.material_code == material_code)
            .order_by(Workflow.id.desc())
        )

    def find_by_plant(self, plant_code: str) -> list[WorkflowRef]:
        return self._many(select(Workflow).where(Workflow.plant_code == plant_code).order_by(Workflow.id))

    def find_by_material(self, material_code: str) -> list[WorkflowRef]:
        return self._many(select(Workflow).where(Workflow.material_code == material_code).order_by(Workflow.id))

    def transition_to(self, workflow_id: int, new_state: str, actor: str) -> WorkflowRef:
        wf = db.session.get(Workflow, workflow_id)
        if wf is None:
            raise WorkflowGatewayError(f"Workflow {workflow_id} not found")
        if not validate_workflow_transition(wf.state, new_state):
            raise WorkflowGatewayError(f"Invalid workflow transition {wf.state} → {new_state}")

        old_state = wf.state
        wf.state = new_state
        wf.updated_by = actor
        if new_state == COMPLETED:
            wf.completed_at = datetime.now(timezone.utc)
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise WorkflowGatewayError(f"Workflow {workflow_id} transition failed: {exc}") from exc

        logger.info(
            "Workflow %s transitioned %s → %s by %s",
            workflow_id, old_state, new_state, actor,
            extra={"workflow_id": workflow_id},
        )
        return WorkflowRef.from_model(wf)


# ── HTTP implementation ──────────────────────────────────────────────────────


class HttpWorkflowGateway(WorkflowGateway):
    """Workflow access through the remote workflow service.

    Endpoints (relative to ``WORKFLOW_API_URL``):
        GET  workflows/<id>
        GET  workflows?plantCode=&materialCode=
        POST workflows/<id>/transitions   {"targetState", "actor"}
    """

    def __init__(self, client: JsonHttpClient) -> None:
        self.client = client

    def _list(self, params: dict) -> list[WorkflowRef]:
        result = self.client.request("GET", "workflows", params=params)
        if not result.ok:
            raise WorkflowGatewayError(f"Workflow search failed: {result.error}")
        data = result.data
        items = data if isinstance(data, list) else (data.get("items", []) if isinstance(data, dict) else None)
        if not isinstance(items, list):
            raise WorkflowGatewayError("Workflow search returned an unexpected body")
        return [WorkflowRef.from_payload(item) for item in items]

    def find_by_id(self, workflow_id: int) -> WorkflowRef | None:
        result = self.client.request("GET", f"workflows/{workflow_id}")
        if result.status_code == 404:
            return None
        if not result.ok:
            raise WorkflowGatewayError(f"Workflow {workflow_id} lookup failed: {result.error}")
        return WorkflowRef.from_payload(result.data)

    def find_by_plant_and_material(self, plant_code: str, material_code: str) -> WorkflowRef | None:
        matches = self._list({"plantCode": plant_code, "materialCode": material_code})
        return matches[-1] if matches else None

    def find_by_plant(self, plant_code: str) -> list[WorkflowRef]:
        return self._list({"plantCode": plant_code})

    def find_by_material(self, material_code: str) -> list[WorkflowRef]:
        return self._list({"materialCode": material_code})

    def transition_to(self, workflow_id: int, new_state: str, actor: str) -> WorkflowRef:
        result = self.client.request(
            "POST", f"workflows/{workflow_id}/transitions",
            json_body={"targetState": new_state, "actor": actor},
        )
        if not result.ok:
            raise WorkflowGatewayError(f"Workflow {workflow_id} transition failed: {result.error}")
        if not result.data:
            # 204 or empty body: read the workflow back
            ref = self.find_by_id(workflow_id)
            if ref is None:
                raise WorkflowGatewayError(f"Workflow {workflow_id} not found after transition")
            return ref
        return WorkflowRef.from_payload(result.data)


def get_workflow_gateway() -> WorkflowGateway:
    """Build the gateway selected by ``WORKFLOW_GATEWAY`` in the app config."""
    cfg = current_app.config
    kind = (cfg.get("WORKFLOW_GATEWAY") or "sql").lower()
    if kind == "http":
        client = JsonHttpClient(
            cfg.get("WORKFLOW_API_URL", ""),
            timeout=cfg.get("WORKFLOW_TIMEOUT_SECONDS", 10),
            name="workflow",
        )
        return HttpWorkflowGateway(client)
    if kind != "sql":
        logger.warning("Unknown WORKFLOW_GATEWAY=%r, falling back to sql", kind)
    return SqlWorkflowGateway()
