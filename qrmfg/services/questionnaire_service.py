"""
Questionnaire service — the operations the API exposes for one plant's
questionnaire on one material.

Transaction policy: every public function that writes owns exactly one
commit. ``submit`` recomputes, validates and finalises inside that single
commit; the workflow advancement that follows is a separate best-effort
step whose outcome is attached to the result.

Business outcomes are results, not exceptions:
    ValidationResult   valid / missing required fields / under threshold
    SubmissionResult   SUBMITTED | VALIDATION_FAILED | DUPLICATE
Exceptions are reserved for NotFoundError, ValidationError (writing to a
submitted record), ConflictError (stale version) and CorruptStateError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import select

from qrmfg.core.exceptions import ConflictError, NotFoundError, ValidationError
from qrmfg.integrations.cqs_gateway import CqsProvider
from qrmfg.integrations.workflow_gateway import WorkflowGateway
from qrmfg.models import db
from qrmfg.models.plant_response import (
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
    PlantResponseRecord,
)
from qrmfg.services import (
    completion_service,
    cqs_sync_service,
    field_resolver,
    template_catalog,
    workflow_sync_service,
)
from qrmfg.services.field_identity import FieldId, ManualInputIndex
from qrmfg.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)

OUTCOME_SUBMITTED = "SUBMITTED"
OUTCOME_VALIDATION_FAILED = "VALIDATION_FAILED"
OUTCOME_DUPLICATE = "DUPLICATE"


# ── Result types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str
    missing_required_fields: list[str]
    completion_percentage: int
    threshold: int

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "message": self.message,
            "missingRequiredFields": list(self.missing_required_fields),
            "completionPercentage": self.completion_percentage,
            "threshold": self.threshold,
        }


@dataclass
class SubmissionResult:
    outcome: str
    plant_code: str
    material_code: str
    submitted_at: object = None
    submitted_by: str | None = None
    validation: ValidationResult | None = None
    stats: completion_service.CompletionStats | None = None
    workflow_sync: workflow_sync_service.WorkflowSyncResult | None = None
    extra: dict = field(default_factory=dict)

    @property
    def submitted(self) -> bool:
        return self.outcome == OUTCOME_SUBMITTED

    def to_dict(self) -> dict:
        data = {
            "outcome": self.outcome,
            "plantCode": self.plant_code,
            "materialCode": self.material_code,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "submittedBy": self.submitted_by,
        }
        if self.validation is not None:
            data["validation"] = self.validation.to_dict()
        if self.stats is not None:
            data["stats"] = self.stats.to_dict()
        if self.workflow_sync is not None:
            data["workflowSync"] = self.workflow_sync.to_dict()
        data.update(self.extra)
        return data


# ── Helpers ──────────────────────────────────────────────────────────────────


def submission_threshold() -> int:
    return int(current_app.config.get("SUBMISSION_THRESHOLD_PERCENT", 80))


def get_record(plant_code: str, material_code: str) -> PlantResponseRecord | None:
    return db.session.get(PlantResponseRecord, (plant_code, material_code))


def get_record_or_404(plant_code: str, material_code: str) -> PlantResponseRecord:
    record = get_record(plant_code, material_code)
    if record is None:
        raise NotFoundError(resource="PlantResponseRecord", resource_id=f"{plant_code}/{material_code}")
    return record


def _check_version(record: PlantResponseRecord, expected_version: int | None) -> None:
    if expected_version is not None and record.version != int(expected_version):
        raise ConflictError("PlantResponseRecord", "version", expected_version)


def _evaluate(stats: completion_service.CompletionStats, threshold: int) -> ValidationResult:
    missing = list(stats.missing_required_fields)
    if missing:
        message = f"{len(missing)} required field(s) are not complete"
        valid = False
    elif stats.percentage < threshold:
        message = f"Completion {stats.percentage}% is below the required {threshold}%"
        valid = False
    else:
        message = "Questionnaire is ready for submission"
        valid = True
    return ValidationResult(
        valid=valid,
        message=message,
        missing_required_fields=missing,
        completion_percentage=stats.percentage,
        threshold=threshold,
    )


# ── Public API ───────────────────────────────────────────────────────────────


def get_or_create_record(plant_code: str, material_code: str, workflow_id: int | None = None,
                         actor: str | None = None, provider: CqsProvider | None = None) -> PlantResponseRecord:
    """Return the pair's record, creating it (with a CQS sync) on first touch."""
    record = get_record(plant_code, material_code)
    created = record is None
    if created:
        record = PlantResponseRecord(
            plant_code=plant_code,
            material_code=material_code,
            workflow_id=workflow_id,
            created_by=actor,
            updated_by=actor,
        )
        db.session.add(record)
    elif workflow_id is not None and record.workflow_id is None:
        record.workflow_id = workflow_id

    if not record.is_submitted:
        cqs_sync_service.sync_if_needed(record, provider)
        templates = template_catalog.load_answerable_templates()
        if templates:
            completion_service.recalculate_record(record, templates=templates, actor=actor, commit=False)

    commit_or_conflict("PlantResponseRecord", key=(plant_code, material_code))
    if created:
        logger.info(
            "Created questionnaire record (workflow=%s)", workflow_id,
            extra={"plant_code": plant_code, "material_code": material_code, "workflow_id": workflow_id},
        )
    return record


def get_template(material_code: str, plant_code: str | None = None,
                 provider: CqsProvider | None = None) -> dict:
    """Resolved questionnaire for a material, personalised for a plant.

    With ``plant_code`` the record is created if needed, its CQS snapshot
    pulled when missing and its counters refreshed from this resolution.
    """
    templates = template_catalog.load_answerable_templates()
    if not templates:
        raise NotFoundError(resource="QuestionTemplate", resource_id="active")

    record = None
    if plant_code:
        record = get_or_create_record(plant_code, material_code, provider=provider)

    steps = field_resolver.resolve_template(material_code, plant_code, record=record, templates=templates)
    stats = completion_service.compute_completion(steps)

    return {
        "materialCode": material_code,
        "plantCode": plant_code,
        "totalSteps": len(steps),
        "steps": [s.to_dict() for s in steps],
        "completion": (completion_service.frozen_stats(record) if record and record.is_submitted else stats).to_dict(),
        "isReadOnly": bool(record and record.is_submitted),
        "cqsSyncStatus": record.cqs_sync_status if record else None,
        "version": record.version if record else None,
    }


def save_manual_inputs(plant_code: str, material_code: str, inputs: dict, actor: str,
                       expected_version: int | None = None) -> PlantResponseRecord:
    """Merge manual answers into the record and recalculate.

    Keys in ``inputs`` overwrite stored keys; other stored keys are kept.
    """
    if not isinstance(inputs, dict):
        raise ValidationError("inputs must be an object of field name to value")

    record = get_record_or_404(plant_code, material_code)
    if record.is_submitted:
        raise ValidationError(
            "Questionnaire has already been submitted and is read-only",
            details={"submittedAt": record.submitted_at.isoformat(), "submittedBy": record.submitted_by},
        )
    _check_version(record, expected_version)

    merged = {**record.get_plant_inputs(), **inputs}
    record.set_plant_inputs(merged)
    completion_service.recalculate_record(record, actor=actor, commit=False)
    commit_or_conflict("PlantResponseRecord", key=(plant_code, material_code))

    logger.info(
        "Saved %d manual input(s)", len(inputs),
        extra={
            "plant_code": plant_code,
            "material_code": material_code,
            "completion_percentage": record.completion_percentage,
        },
    )
    return record


def recalculate(material_code: str, plant_code: str, actor: str | None = None) -> completion_service.CompletionStats:
    return completion_service.recalculate(material_code, plant_code, actor=actor)


def validate_completion(plant_code: str, material_code: str, threshold: int | None = None) -> ValidationResult:
    """Fresh readiness check. Never writes."""
    record = get_record_or_404(plant_code, material_code)
    threshold = submission_threshold() if threshold is None else threshold
    if record.is_submitted:
        return ValidationResult(
            valid=False,
            message="Questionnaire has already been submitted",
            missing_required_fields=[],
            completion_percentage=100,
            threshold=threshold,
        )
    _, stats = completion_service.preview(record)
    return _evaluate(stats, threshold)


def submit(plant_code: str, material_code: str, actor: str, responses: dict | None = None,
           expected_version: int | None = None, threshold: int | None = None,
           gateway: WorkflowGateway | None = None) -> SubmissionResult:
    """One-time submission of a questionnaire.

    Recompute, validate and finalise happen in one commit. On success the
    record is pinned to 100 % / COMPLETED regardless of the computed
    percentage, then the workflow is advanced best effort.
    """
    record = get_record_or_404(plant_code, material_code)
    ctx = {"plant_code": plant_code, "material_code": material_code}

    if record.is_submitted:
        logger.info("Duplicate submission ignored", extra={**ctx, "outcome": OUTCOME_DUPLICATE})
        return SubmissionResult(
            outcome=OUTCOME_DUPLICATE,
            plant_code=plant_code,
            material_code=material_code,
            submitted_at=record.submitted_at,
            submitted_by=record.submitted_by,
        )
    _check_version(record, expected_version)

    if responses:
        if not isinstance(responses, dict):
            raise ValidationError("responses must be an object of field name to value")
        record.set_plant_inputs({**record.get_plant_inputs(), **responses})

    threshold = submission_threshold() if threshold is None else threshold
    steps = field_resolver.resolve_template(material_code, plant_code, record=record)
    stats = completion_service.compute_completion(steps)
    validation = _evaluate(stats, threshold)

    if not validation.valid:
        db.session.rollback()
        logger.info(
            "Submission rejected: %s", validation.message,
            extra={**ctx, "outcome": OUTCOME_VALIDATION_FAILED, "completion_percentage": stats.percentage},
        )
        return SubmissionResult(
            outcome=OUTCOME_VALIDATION_FAILED,
            plant_code=plant_code,
            material_code=material_code,
            validation=validation,
            stats=stats,
        )

    completion_service.apply_to_record(record, steps, actor=actor)
    record.mark_submitted(actor)
    commit_or_conflict("PlantResponseRecord", key=(plant_code, material_code))
    logger.info(
        "Questionnaire submitted by %s at %d%%", actor, stats.percentage,
        extra={**ctx, "outcome": OUTCOME_SUBMITTED, "completion_percentage": stats.percentage},
    )

    sync = workflow_sync_service.advance_on_submission(
        plant_code, material_code, actor, workflow_id=record.workflow_id, gateway=gateway,
    )
    return SubmissionResult(
        outcome=OUTCOME_SUBMITTED,
        plant_code=plant_code,
        material_code=material_code,
        submitted_at=record.submitted_at,
        submitted_by=record.submitted_by,
        validation=validation,
        stats=stats,
        workflow_sync=sync,
    )


def get_status(plant_code: str, material_code: str) -> dict:
    record = get_record(plant_code, material_code)
    if record is None:
        return {
            "exists": False,
            "isSubmitted": False,
            "isReadOnly": False,
            "percentage": 0,
            "canSubmit": False,
            "completionStatus": None,
        }
    if record.is_submitted:
        return {
            "exists": True,
            "isSubmitted": True,
            "isReadOnly": True,
            "percentage": 100,
            "canSubmit": False,
            "completionStatus": record.completion_status,
            "submittedAt": record.submitted_at.isoformat(),
            "submittedBy": record.submitted_by,
            "cqsSyncStatus": record.cqs_sync_status,
            "version": record.version,
        }
    validation = validate_completion(plant_code, material_code)
    return {
        "exists": True,
        "isSubmitted": False,
        "isReadOnly": False,
        "percentage": validation.completion_percentage,
        "canSubmit": validation.valid,
        "completionStatus": record.completion_status,
        "missingRequiredFields": validation.missing_required_fields,
        "threshold": validation.threshold,
        "cqsSyncStatus": record.cqs_sync_status,
        "version": record.version,
    }


def force_sync_cqs(plant_code: str, material_code: str, actor: str | None = None,
                   provider: CqsProvider | None = None) -> dict:
    """Re-pull the CQS snapshot and recalculate (frozen for submitted records)."""
    record = get_record_or_404(plant_code, material_code)
    status = cqs_sync_service.force_sync(record, provider)
    stats = completion_service.recalculate_record(record, actor=actor, commit=False)
    commit_or_conflict("PlantResponseRecord", key=(plant_code, material_code))
    return {
        "plantCode": plant_code,
        "materialCode": material_code,
        "cqsSyncStatus": status,
        "lastCqsSync": record.last_cqs_sync.isoformat() if record.last_cqs_sync else None,
        "completion": stats.to_dict(),
    }


def repair_status(plant_code: str, material_code: str, actor: str,
                  gateway: WorkflowGateway | None = None) -> dict:
    return workflow_sync_service.repair_status(plant_code, material_code, actor, gateway=gateway)


def list_plant_progress(plant_code: str) -> dict:
    """Fresh completion for every questionnaire of a plant. Never writes.

    The catalog is loaded once; records beyond DASHBOARD_MAX_RECORDS (most
    recently updated first) are left out and reported as truncated.
    """
    limit = int(current_app.config.get("DASHBOARD_MAX_RECORDS", 500))
    records = db.session.execute(
        select(PlantResponseRecord)
        .where(PlantResponseRecord.plant_code == plant_code)
        .order_by(PlantResponseRecord.updated_at.desc())
        .limit(limit + 1)
    ).scalars().all()
    truncated = len(records) > limit
    records = records[:limit]

    templates = template_catalog.load_answerable_templates()
    counts = {STATUS_COMPLETED: 0, STATUS_IN_PROGRESS: 0, STATUS_DRAFT: 0}
    rows = []
    for record in records:
        if record.is_submitted:
            stats = completion_service.frozen_stats(record)
        elif templates:
            steps = field_resolver.build_steps(templates, record.get_cqs_snapshot(), record.get_plant_inputs())
            stats = completion_service.compute_completion(steps)
        else:
            stats = completion_service.CompletionStats(0, 0, 0, 0, 0)
        status = completion_service.derive_status(record.completion_status, stats.percentage, record.is_submitted)
        counts[status] += 1
        rows.append({
            "materialCode": record.material_code,
            "workflowId": record.workflow_id,
            "completionStatus": status,
            "completionPercentage": stats.percentage,
            "totalFields": stats.total,
            "completedFields": stats.completed,
            "requiredFields": stats.required,
            "completedRequiredFields": stats.completed_required,
            "isSubmitted": record.is_submitted,
            "submittedAt": record.submitted_at.isoformat() if record.submitted_at else None,
            "cqsSyncStatus": record.cqs_sync_status,
        })

    average = round(sum(r["completionPercentage"] for r in rows) / len(rows), 1) if rows else 0
    return {
        "plantCode": plant_code,
        "records": rows,
        "totalRecords": len(rows),
        "completedCount": counts[STATUS_COMPLETED],
        "inProgressCount": counts[STATUS_IN_PROGRESS],
        "draftCount": counts[STATUS_DRAFT],
        "averageCompletion": average,
        "truncated": truncated,
    }


def diagnose_field_matching(plant_code: str, material_code: str) -> dict:
    """Which stored input key (and strategy) each template field matched."""
    record = get_record_or_404(plant_code, material_code)
    templates = template_catalog.load_answerable_templates()
    index = ManualInputIndex(record.get_plant_inputs())
    snapshot = record.get_cqs_snapshot()

    fields = []
    for template in templates:
        found = index.match(FieldId.for_template(template))
        fields.append({
            "fieldName": template.field_name,
            "owner": template.responsible,
            "matched": found is not None,
            "strategy": found.strategy if found else None,
            "inputKey": found.key if found else None,
            "inCqsSnapshot": template.field_name in snapshot,
        })

    return {
        "plantCode": plant_code,
        "materialCode": material_code,
        "cqsFields": [t.field_name for t in templates if t.is_cqs_owned],
        "plantFields": [t.field_name for t in templates if not t.is_cqs_owned],
        "inputKeys": list(index.inputs),
        "cqsSnapshotKeys": list(snapshot),
        "fields": fields,
        "unmatchedInputKeys": index.unmatched_keys(),
        "matchedCount": sum(1 for f in fields if f["matched"]),
    }
