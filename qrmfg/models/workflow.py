"""
Material extension workflow — Workflow model and state machine.

A workflow tracks one material being extended to one plant. The
questionnaire engine only ever moves it to COMPLETED after a successful
submission; every other transition belongs to the query and extension
processes around it.
"""

from datetime import datetime, timezone

from qrmfg.models import db

# ── Workflow states ───────────────────────────────────────────────────────────

JVC_PENDING = "JVC_PENDING"
PLANT_PENDING = "PLANT_PENDING"
CQS_PENDING = "CQS_PENDING"
TECH_PENDING = "TECH_PENDING"
COMPLETED = "COMPLETED"

WORKFLOW_STATE_LABELS = {
    JVC_PENDING: "JVC Extension Required",
    PLANT_PENDING: "Plant Questionnaire",
    CQS_PENDING: "CQS Query Resolution",
    TECH_PENDING: "Technology Query Resolution",
    COMPLETED: "Workflow Completed",
}

# Query states may hand over to one another for multi-query scenarios.
WORKFLOW_TRANSITIONS = {
    JVC_PENDING:   [PLANT_PENDING, CQS_PENDING, TECH_PENDING],
    PLANT_PENDING: [CQS_PENDING, TECH_PENDING, JVC_PENDING, COMPLETED],
    CQS_PENDING:   [PLANT_PENDING, TECH_PENDING, JVC_PENDING],
    TECH_PENDING:  [PLANT_PENDING, CQS_PENDING, JVC_PENDING],
    COMPLETED:     [],
}


def validate_workflow_transition(old_state, new_state):
    """Return True if Workflow state transition is valid."""
    return new_state in WORKFLOW_TRANSITIONS.get(old_state, [])


class Workflow(db.Model):
    """Material-to-plant extension workflow."""

    __tablename__ = "workflows"

    id = db.Column(db.Integer, primary_key=True)
    material_code = db.Column(db.String(40), nullable=False, index=True)
    plant_code = db.Column(db.String(20), nullable=False, index=True)
    project_code = db.Column(db.String(40), nullable=True)
    material_name = db.Column(db.String(255), nullable=True)
    state = db.Column(
        db.String(20),
        nullable=False,
        default=JVC_PENDING,
        comment="JVC_PENDING | PLANT_PENDING | CQS_PENDING | TECH_PENDING | COMPLETED",
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    created_by = db.Column(db.String(100), nullable=True)
    updated_by = db.Column(db.String(100), nullable=True)

    __table_args__ = (
        db.Index("ix_workflows_plant_material", "plant_code", "material_code"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.state == COMPLETED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material_code": self.material_code,
            "plant_code": self.plant_code,
            "project_code": self.project_code,
            "material_name": self.material_name,
            "state": self.state,
            "state_label": WORKFLOW_STATE_LABELS.get(self.state, self.state),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "updated_by": self.updated_by,
        }

    def __repr__(self) -> str:
        return f"<Workflow {self.id} {self.plant_code}/{self.material_code} {self.state}>"
