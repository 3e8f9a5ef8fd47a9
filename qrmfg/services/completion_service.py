"""
Completion service — counts answered fields and keeps the record's
counters and completion status current.

Counters are always recomputed from scratch and fully overwritten, so
recalculating twice with unchanged inputs leaves the record unchanged.

Status derivation:
    submitted              → COMPLETED
    percentage > 0         → IN_PROGRESS
    otherwise              → DRAFT
A record that is already COMPLETED never moves back.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from qrmfg.core.exceptions import NotFoundError
from qrmfg.models import db
from qrmfg.models.plant_response import (
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_IN_PROGRESS,
    PlantResponseRecord,
    validate_completion_transition,
)
from qrmfg.services import field_resolver
from qrmfg.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionStats:
    total: int
    completed: int
    required: int
    completed_required: int
    percentage: int
    missing_required_fields: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict:
        data = asdict(self)
        data["missing_required_fields"] = list(self.missing_required_fields)
        return data


def completion_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # half-up, so 1/8 gives 13
    return (completed * 200 + total) // (2 * total)


def compute_completion(steps: list[field_resolver.ResolvedStep]) -> CompletionStats:
    """Count resolved fields. Pure."""
    total = completed = required = completed_required = 0
    missing: list[str] = []
    for descriptor in field_resolver.iter_fields(steps):
        total += 1
        if descriptor.completed:
            completed += 1
        if descriptor.required:
            required += 1
            if descriptor.completed:
                completed_required += 1
            else:
                missing.append(descriptor.name)
    return CompletionStats(
        total=total,
        completed=completed,
        required=required,
        completed_required=completed_required,
        percentage=completion_percentage(completed, total),
        missing_required_fields=tuple(missing),
    )


def derive_status(current_status: str | None, percentage: int, submitted: bool) -> str:
    if submitted or current_status == STATUS_COMPLETED:
        return STATUS_COMPLETED
    return STATUS_IN_PROGRESS if percentage > 0 else STATUS_DRAFT


def frozen_stats(record: PlantResponseRecord) -> CompletionStats:
    """Counters of a submitted record as they were finalised."""
    return CompletionStats(
        total=record.total_fields,
        completed=record.completed_fields,
        required=record.required_fields,
        completed_required=record.completed_required_fields,
        percentage=100,
    )


def apply_to_record(record: PlantResponseRecord, steps: list[field_resolver.ResolvedStep],
                    actor: str | None = None) -> CompletionStats:
    """Write fresh counters, status and merged view onto the record (no commit)."""
    stats = compute_completion(steps)
    record.apply_completion_stats(stats)
    new_status = derive_status(record.completion_status, stats.percentage, record.is_submitted)
    if validate_completion_transition(record.completion_status or STATUS_DRAFT, new_status):
        record.completion_status = new_status
    record.set_combined_data(field_resolver.merged_view(steps))
    if actor:
        record.updated_by = actor
    return stats


def recalculate_record(record: PlantResponseRecord, templates=None, actor: str | None = None,
                       commit: bool = True) -> CompletionStats:
    """Recompute and persist counters for an already-loaded record.

    Submitted records are frozen: their counters are returned untouched.
    """
    if record.is_submitted:
        return frozen_stats(record)

    steps = field_resolver.resolve_template(
        record.material_code, record.plant_code, record=record, templates=templates,
    )
    stats = apply_to_record(record, steps, actor=actor)
    if commit:
        commit_or_conflict("PlantResponseRecord", key=(record.plant_code, record.material_code))
    logger.info(
        "Recalculated %s/%s: %d/%d fields (%d%%), required %d/%d",
        record.plant_code, record.material_code,
        stats.completed, stats.total, stats.percentage,
        stats.completed_required, stats.required,
        extra={
            "plant_code": record.plant_code,
            "material_code": record.material_code,
            "completion_percentage": stats.percentage,
        },
    )
    return stats


def recalculate(material_code: str, plant_code: str, actor: str | None = None) -> CompletionStats:
    """Recompute counters for a plant/material record and persist them."""
    record = db.session.get(PlantResponseRecord, (plant_code, material_code))
    if record is None:
        raise NotFoundError(resource="PlantResponseRecord", resource_id=f"{plant_code}/{material_code}")
    return recalculate_record(record, actor=actor)


def preview(record: PlantResponseRecord, templates=None) -> tuple[list, CompletionStats]:
    """Resolve and count without touching the record."""
    steps = field_resolver.resolve_template(
        record.material_code, record.plant_code, record=record, templates=templates,
    )
    return steps, compute_completion(steps)
