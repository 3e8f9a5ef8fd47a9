"""
Questionnaire template catalog — QuestionTemplate model.

One row per question in the plant questionnaire. Rows are grouped into
numbered steps (one category per step) and each row names the party that
answers it:

    CQS      auto-populated from the safety-data source, manual fallback
    Plant    filled in by plant staff
    None     nobody answers it (kept for reference, never rendered)
    Display  informational text only (never rendered as a field)

``field_name`` is the stable identity used by saved inputs, the CQS
snapshot and completion counting. Renaming a field orphans stored answers.
"""

import json
from datetime import datetime, timezone

from qrmfg.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

OWNER_CQS = "CQS"
OWNER_PLANT = "Plant"
OWNER_NONE = "None"
OWNER_DISPLAY = "Display"

ANSWERABLE_OWNERS = frozenset({OWNER_CQS, OWNER_PLANT})

QUESTION_TYPES = frozenset({
    "radio", "select", "checkbox", "text", "textarea", "input", "number", "date", "display",
})
CHOICE_QUESTION_TYPES = frozenset({"radio", "select", "checkbox"})
DISPLAY_QUESTION_TYPES = frozenset({"display"})


class QuestionTemplate(db.Model):
    """
    Catalog entry for one questionnaire field.

    Ordering inside a step uses ``order_index`` and falls back to ``sr_no``
    when no explicit index was assigned.
    """

    __tablename__ = "question_templates"

    id = db.Column(db.Integer, primary_key=True)
    sr_no = db.Column(db.Integer, nullable=False)
    step_number = db.Column(db.Integer, nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    question_text = db.Column(db.Text, nullable=False)
    comments = db.Column(db.Text, nullable=True)
    responsible = db.Column(
        db.String(20),
        nullable=False,
        default=OWNER_PLANT,
        comment="CQS | Plant | None | Display",
    )
    question_type = db.Column(db.String(20), nullable=False, default="text")
    field_name = db.Column(db.String(100), nullable=False, unique=True)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    options = db.Column(
        db.Text,
        nullable=True,
        comment='JSON [{"value","label"}] or comma-separated values',
    )
    help_text = db.Column(db.Text, nullable=True)
    validation_rules = db.Column(db.Text, nullable=True)
    conditional_logic = db.Column(db.Text, nullable=True)
    depends_on_field = db.Column(db.String(100), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version = db.Column(db.Integer, nullable=False, default=1)

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

    __table_args__ = (
        db.Index("ix_question_templates_step_order", "step_number", "order_index"),
    )

    @property
    def effective_order(self) -> int:
        return self.order_index if self.order_index is not None else self.sr_no

    @property
    def is_cqs_owned(self) -> bool:
        return self.responsible == OWNER_CQS

    @property
    def is_answerable(self) -> bool:
        """True for active, non-display questions with a responsible owner."""
        return (
            bool(self.is_active)
            and (self.question_type or "").lower() not in DISPLAY_QUESTION_TYPES
            and self.responsible in ANSWERABLE_OWNERS
        )

    def parsed_options(self) -> list[dict]:
        """Return options as ``[{"value": ..., "label": ...}]``.

        Accepts the JSON array form and the legacy comma-separated form.
        Malformed JSON is treated as having no options.
        """
        raw = (self.options or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                items = json.loads(raw)
            except ValueError:
                return []
            parsed = []
            for item in items:
                if isinstance(item, dict):
                    parsed.append({"value": item.get("value"), "label": item.get("label")})
                else:
                    parsed.append({"value": str(item), "label": str(item)})
            return parsed
        return [{"value": p.strip(), "label": p.strip()} for p in raw.split(",") if p.strip()]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sr_no": self.sr_no,
            "step_number": self.step_number,
            "order_index": self.order_index,
            "category": self.category,
            "question_text": self.question_text,
            "responsible": self.responsible,
            "question_type": self.question_type,
            "field_name": self.field_name,
            "is_required": self.is_required,
            "options": self.parsed_options(),
            "help_text": self.help_text,
            "is_active": self.is_active,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return f"<QuestionTemplate {self.step_number}.{self.effective_order} {self.field_name} ({self.responsible})>"
