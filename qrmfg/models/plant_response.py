"""
Plant response record — one questionnaire per (plant_code, material_code).

Holds both halves of the questionnaire:
    cqs_inputs     snapshot of the CQS attribute set at the last sync
    plant_inputs   manual answers keyed by field name
    combined_data  merged view written by every recalculation

All three are flat JSON objects stored as text. A value that does not
parse as a JSON object is data corruption, not a business outcome, and
raises CorruptStateError.

Optimistic locking: ``version`` is the SQLAlchemy version_id_col, so every
UPDATE carries ``WHERE version = <loaded>`` and a concurrent writer gets
StaleDataError instead of silently overwriting.
"""

import json
from datetime import datetime, timezone

from qrmfg.core.exceptions import CorruptStateError
from qrmfg.models import db

# ── Completion status ─────────────────────────────────────────────────────────

STATUS_DRAFT = "DRAFT"
STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_COMPLETED = "COMPLETED"

COMPLETION_STATUSES = frozenset({STATUS_DRAFT, STATUS_IN_PROGRESS, STATUS_COMPLETED})

COMPLETION_TRANSITIONS = {
    STATUS_DRAFT: [STATUS_IN_PROGRESS, STATUS_COMPLETED],
    STATUS_IN_PROGRESS: [STATUS_DRAFT, STATUS_COMPLETED],
    STATUS_COMPLETED: [],
}

# ── CQS sync status ───────────────────────────────────────────────────────────

CQS_NOT_SYNCED = "NOT_SYNCED"
CQS_SYNCED = "SYNCED"
CQS_NO_DATA = "NO_DATA"
CQS_FAILED = "FAILED"

CQS_SYNC_STATUSES = frozenset({CQS_NOT_SYNCED, CQS_SYNCED, CQS_NO_DATA, CQS_FAILED})


def validate_completion_transition(old_status, new_status):
    """Return True if completion status can move from old_status to new_status."""
    if old_status == new_status:
        return True
    return new_status in COMPLETION_TRANSITIONS.get(old_status, [])


def _utcnow():
    return datetime.now(timezone.utc)


class PlantResponseRecord(db.Model):
    """
    Questionnaire answers and completion counters for one plant/material pair.

    Business rules:
    - Created lazily (get-or-create) the first time the pair is touched.
    - completed_fields <= total_fields and
      completed_required_fields <= required_fields <= total_fields.
    - submitted_at is set once; afterwards answers are read-only and
      completion_percentage stays at 100.
    - Never hard-deleted by the engine.
    """

    __tablename__ = "plant_response_records"

    plant_code = db.Column(db.String(20), primary_key=True)
    material_code = db.Column(db.String(40), primary_key=True)

    cqs_inputs = db.Column(db.Text, nullable=True)
    plant_inputs = db.Column(db.Text, nullable=True)
    combined_data = db.Column(db.Text, nullable=True)

    total_fields = db.Column(db.Integer, nullable=False, default=0)
    completed_fields = db.Column(db.Integer, nullable=False, default=0)
    required_fields = db.Column(db.Integer, nullable=False, default=0)
    completed_required_fields = db.Column(db.Integer, nullable=False, default=0)
    completion_percentage = db.Column(db.Integer, nullable=False, default=0)
    completion_status = db.Column(
        db.String(20),
        nullable=False,
        default=STATUS_DRAFT,
        comment="DRAFT | IN_PROGRESS | COMPLETED",
    )

    cqs_sync_status = db.Column(
        db.String(20),
        nullable=False,
        default=CQS_NOT_SYNCED,
        comment="NOT_SYNCED | SYNCED | NO_DATA | FAILED",
    )
    last_cqs_sync = db.Column(db.DateTime(timezone=True), nullable=True)

    workflow_id = db.Column(db.Integer, nullable=True, index=True)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_by = db.Column(db.String(100), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    created_by = db.Column(db.String(100), nullable=True)
    updated_by = db.Column(db.String(100), nullable=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.Index("ix_plant_response_material", "material_code"),
        db.Index("ix_plant_response_plant_status", "plant_code", "completion_status"),
    )

    # ── JSON accessors ────────────────────────────────────────────────────

    def _load_json(self, column_name: str) -> dict:
        raw = getattr(self, column_name)
        if raw is None or not raw.strip():
            return {}
        try:
            value = json.loads(raw)
        except ValueError as exc:
            raise CorruptStateError(
                f"{column_name} is not valid JSON",
                plant_code=self.plant_code,
                material_code=self.material_code,
            ) from exc
        if not isinstance(value, dict):
            raise CorruptStateError(
                f"{column_name} must be a JSON object, got {type(value).__name__}",
                plant_code=self.plant_code,
                material_code=self.material_code,
            )
        return value

    def get_cqs_snapshot(self) -> dict:
        return self._load_json("cqs_inputs")

    def set_cqs_snapshot(self, values: dict) -> None:
        self.cqs_inputs = json.dumps(values, default=str)

    def get_plant_inputs(self) -> dict:
        return self._load_json("plant_inputs")

    def set_plant_inputs(self, values: dict) -> None:
        self.plant_inputs = json.dumps(values, default=str)

    def get_combined_data(self) -> dict:
        return self._load_json("combined_data")

    def set_combined_data(self, values: dict) -> None:
        self.combined_data = json.dumps(values, default=str)

    # ── State helpers ─────────────────────────────────────────────────────

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    @property
    def has_cqs_snapshot(self) -> bool:
        return bool(self.get_cqs_snapshot())

    def apply_completion_stats(self, stats) -> None:
        """Overwrite all counters from a CompletionStats value."""
        self.total_fields = stats.total
        self.completed_fields = stats.completed
        self.required_fields = stats.required
        self.completed_required_fields = stats.completed_required
        self.completion_percentage = stats.percentage

    def mark_submitted(self, submitted_by: str) -> None:
        """Terminal transition: lock answers and pin completion at 100%."""
        self.submitted_at = _utcnow()
        self.submitted_by = submitted_by
        self.updated_by = submitted_by
        self.completion_percentage = 100
        self.completion_status = STATUS_COMPLETED

    def to_dict(self) -> dict:
        return {
            "plantCode": self.plant_code,
            "materialCode": self.material_code,
            "workflowId": self.workflow_id,
            "cqsInputs": self.get_cqs_snapshot(),
            "plantInputs": self.get_plant_inputs(),
            "combinedData": self.get_combined_data(),
            "totalFields": self.total_fields,
            "completedFields": self.completed_fields,
            "requiredFields": self.required_fields,
            "completedRequiredFields": self.completed_required_fields,
            "completionPercentage": self.completion_percentage,
            "completionStatus": self.completion_status,
            "cqsSyncStatus": self.cqs_sync_status,
            "lastCqsSync": self.last_cqs_sync.isoformat() if self.last_cqs_sync else None,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "submittedBy": self.submitted_by,
            "isSubmitted": self.is_submitted,
            "version": self.version,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "createdBy": self.created_by,
            "updatedBy": self.updated_by,
        }

    def __repr__(self) -> str:
        return (
            f"<PlantResponseRecord {self.plant_code}/{self.material_code} "
            f"{self.completion_status} {self.completion_percentage}%>"
        )
