"""
Field resolver — turns the template catalog plus one plant record into the
ordered, render-ready questionnaire.

Value semantics live here:
    normalize_cqs_value   raw CQS attribute → canonical display text or None
    is_filled             whether a manual answer counts as an answer
    merge_field_value     which source a field shows, with its precedence
    is_field_complete     the per-owner completion rule

Resolution is a pure read. It never writes the record; callers that need
fresh counters run completion_service.recalculate afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from qrmfg.core.exceptions import NotFoundError
from qrmfg.models.questionnaire import CHOICE_QUESTION_TYPES, OWNER_CQS, QuestionTemplate
from qrmfg.services import template_catalog
from qrmfg.services.field_identity import FieldId, ManualInputIndex

logger = logging.getLogger(__name__)

# Shown for CQS-owned fields that CQS could not answer; stays editable.
UNAVAILABLE = "Data not available"

SOURCE_CQS = "cqs"
SOURCE_MANUAL = "manual"
SOURCE_NONE = "none"

_YES = {"true", "yes", "y"}
_NO = {"false", "no", "n"}
_NOT_APPLICABLE = {"na", "n/a", "n-a", "not_applicable", "not applicable"}
_EMPTY_LITERALS = {"null", "undefined"}


# ── Value semantics ──────────────────────────────────────────────────────────


def normalize_cqs_value(raw, question_type: str | None = None, options: list[dict] | None = None) -> str | None:
    """Canonical display text for a CQS attribute, or None when unresolved.

    Booleans and the usual yes/no/n-a spellings become ``Yes`` / ``No`` /
    ``N/A``. For choice questions, text matching an option value or label
    becomes that option's label. Any other text is kept trimmed.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return "Yes" if raw else "No"

    text = str(raw).strip()
    lowered = text.lower()
    if not text or lowered in _EMPTY_LITERALS:
        return None
    if lowered in _YES:
        return "Yes"
    if lowered in _NO:
        return "No"
    if lowered in _NOT_APPLICABLE:
        return "N/A"

    if (question_type or "").lower() in CHOICE_QUESTION_TYPES:
        for opt in options or []:
            value = str(opt.get("value") or "").strip().lower()
            label = str(opt.get("label") or "").strip()
            if lowered in (value, label.lower()):
                return label or str(opt.get("value"))
    return text


def is_filled(value) -> bool:
    """True when a manual answer counts as answered.

    Strings must be non-empty after trimming and not ``null``/``undefined``
    or the unavailable sentinel; lists must be non-empty; numbers and
    booleans count whenever present.
    """
    if value is None:
        return False
    if isinstance(value, str):
        text = value.strip()
        return bool(text) and text.lower() not in _EMPTY_LITERALS and text != UNAVAILABLE
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    if isinstance(value, dict):
        return len(value) > 0
    return True


def merge_field_value(owner: str, cqs_value: str | None, manual_value) -> tuple[object, str]:
    """Return ``(display_value, source)`` for one field.

    Precedence:
      1. a resolved CQS value (CQS-owned fields only)
      2. a filled manual value
      3. CQS-owned: the UNAVAILABLE sentinel; Plant-owned: None
    """
    if owner == OWNER_CQS and cqs_value is not None:
        return cqs_value, SOURCE_CQS
    if is_filled(manual_value):
        return manual_value, SOURCE_MANUAL
    if owner == OWNER_CQS:
        return UNAVAILABLE, SOURCE_NONE
    return None, SOURCE_NONE


def is_field_complete(owner: str, cqs_value: str | None, manual_value) -> bool:
    """CQS: resolved CQS value or a filled manual override. Plant: filled manual value."""
    if owner == OWNER_CQS and cqs_value is not None and cqs_value != UNAVAILABLE:
        return True
    return is_filled(manual_value)


# ── Resolved structures ──────────────────────────────────────────────────────


@dataclass
class FieldDescriptor:
    """One render-ready field; derived on every resolution, never stored."""

    template: QuestionTemplate
    field_id: FieldId
    value: object
    cqs_value: str | None
    manual_value: object
    source: str
    completed: bool
    disabled: bool
    options: list[dict]

    @property
    def name(self) -> str:
        return self.field_id.name

    @property
    def owner(self) -> str:
        return self.template.responsible

    @property
    def required(self) -> bool:
        return bool(self.template.is_required)

    def placeholder(self) -> str | None:
        if self.template.is_cqs_owned:
            return "Auto-populated from CQS" if self.disabled else f"{UNAVAILABLE} - please enter manually"
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "label": self.template.question_text,
            "type": (self.template.question_type or "text").lower(),
            "required": self.required,
            "value": self.value,
            "completed": self.completed,
            "disabled": self.disabled,
            "options": self.options,
            "responsible": self.owner,
            "cqsAutoPopulated": self.source == SOURCE_CQS,
            "cqsValue": self.cqs_value,
            "source": self.source,
            "helpText": self.template.help_text,
            "placeholder": self.placeholder(),
            "orderIndex": self.template.effective_order,
        }


@dataclass
class ResolvedStep:
    step_number: int
    title: str
    description: str
    fields: list[FieldDescriptor] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stepNumber": self.step_number,
            "title": self.title,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
        }


# ── Resolution ───────────────────────────────────────────────────────────────


def build_field_ids(templates: list[QuestionTemplate]) -> dict[str, FieldId]:
    return {t.field_name: FieldId.for_template(t) for t in templates}


def resolve_field(template: QuestionTemplate, field_id: FieldId, cqs_snapshot: dict,
                  index: ManualInputIndex) -> FieldDescriptor:
    options = template.parsed_options()
    cqs_value = None
    if template.is_cqs_owned:
        cqs_value = normalize_cqs_value(cqs_snapshot.get(template.field_name), template.question_type, options)
    manual_value = index.lookup(field_id)
    value, source = merge_field_value(template.responsible, cqs_value, manual_value)
    return FieldDescriptor(
        template=template,
        field_id=field_id,
        value=value,
        cqs_value=cqs_value,
        manual_value=manual_value,
        source=source,
        completed=is_field_complete(template.responsible, cqs_value, manual_value),
        disabled=source == SOURCE_CQS,
        options=options,
    )


def build_steps(templates: list[QuestionTemplate], cqs_snapshot: dict | None, manual_inputs: dict | None,
                field_ids: dict[str, FieldId] | None = None) -> list[ResolvedStep]:
    """Group answerable templates into ordered steps of resolved fields.

    ``templates`` must already be filtered and ordered (see
    template_catalog.load_answerable_templates). Pure function.
    """
    field_ids = field_ids or build_field_ids(templates)
    index = ManualInputIndex(manual_inputs)
    snapshot = cqs_snapshot or {}

    steps: dict[int, ResolvedStep] = {}
    for template in templates:
        step = steps.get(template.step_number)
        if step is None:
            step = ResolvedStep(
                step_number=template.step_number,
                title=template_catalog.step_title(template.step_number, template),
                description=template_catalog.step_description(template.step_number, template),
            )
            steps[template.step_number] = step
        step.fields.append(resolve_field(template, field_ids[template.field_name], snapshot, index))

    return [steps[n] for n in sorted(steps)]


def resolve_template(material_code: str, plant_code: str, record=None,
                     templates: list[QuestionTemplate] | None = None) -> list[ResolvedStep]:
    """Ordered steps for one plant/material pair.

    ``record`` is the PlantResponseRecord (or None when not created yet, in
    which case every field resolves empty). Raises NotFoundError when the
    catalog holds no answerable questions.
    """
    if templates is None:
        templates = template_catalog.load_answerable_templates()
    if not templates:
        raise NotFoundError(resource="QuestionTemplate", resource_id="active")

    cqs_snapshot = record.get_cqs_snapshot() if record is not None else {}
    manual_inputs = record.get_plant_inputs() if record is not None else {}
    steps = build_steps(templates, cqs_snapshot, manual_inputs)
    logger.debug(
        "Resolved %d steps for %s/%s", len(steps), plant_code, material_code,
        extra={"plant_code": plant_code, "material_code": material_code},
    )
    return steps


def iter_fields(steps: list[ResolvedStep]):
    for step in steps:
        yield from step.fields


def merged_view(steps: list[ResolvedStep]) -> dict:
    """Flat field_name → displayed value, with the sentinel left out."""
    return {
        f.name: f.value
        for f in iter_fields(steps)
        if f.value is not None and f.value != UNAVAILABLE
    }
