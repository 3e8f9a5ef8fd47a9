"""plant_questionnaire_core

Create the question template catalog, the CQS mirror, plant response
records and the local workflow table.

Revision ID: 5e1f0c2a9b37
Revises:
Create Date: 2026-10-17 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5e1f0c2a9b37"
down_revision = None
branch_labels = None
depends_on = None

_CQS_ATTRIBUTES = (
    "narcotic_listed", "flash_point_65", "petroleum_class", "flash_point_21",
    "is_corrosive", "highly_toxic", "spill_measures_provided", "is_poisonous",
    "antidote_specified", "cmvr_listed", "msihc_listed", "factories_act_listed",
    "reproductive_toxicants", "silica_content", "swarf_analysis", "env_toxic",
    "hhrm_category", "psm_tier1_outdoor", "psm_tier1_indoor", "psm_tier2_outdoor",
    "psm_tier2_indoor", "sap_compatibility", "is_explosive", "autoignition_temp",
    "dust_explosion", "electrostatic_charge", "ld50_oral", "ld50_dermal",
    "lc50_inhalation", "carcinogenic", "mutagenic", "endocrine_disruptor",
)
_CQS_TEXT_ATTRIBUTES = ("recommended_ppe", "compatibility_class")


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("updated_by", sa.String(length=100), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "question_templates" not in existing_tables:
        op.create_table(
            "question_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sr_no", sa.Integer(), nullable=False),
            sa.Column("step_number", sa.Integer(), nullable=False),
            sa.Column("order_index", sa.Integer(), nullable=True),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("question_text", sa.Text(), nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("responsible", sa.String(length=20), nullable=False, server_default="Plant"),
            sa.Column("question_type", sa.String(length=20), nullable=False, server_default="text"),
            sa.Column("field_name", sa.String(length=100), nullable=False),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("options", sa.Text(), nullable=True),
            sa.Column("help_text", sa.Text(), nullable=True),
            sa.Column("validation_rules", sa.Text(), nullable=True),
            sa.Column("conditional_logic", sa.Text(), nullable=True),
            sa.Column("depends_on_field", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("field_name", name="uq_question_templates_field_name"),
        )
        op.create_index("ix_question_templates_step_number", "question_templates", ["step_number"])
        op.create_index(
            "ix_question_templates_step_order", "question_templates", ["step_number", "order_index"],
        )

    if "cqs_material_data" not in existing_tables:
        op.create_table(
            "cqs_material_data",
            sa.Column("material_code", sa.String(length=40), nullable=False),
            *[sa.Column(name, sa.String(length=255), nullable=True) for name in _CQS_ATTRIBUTES],
            *[sa.Column(name, sa.Text(), nullable=True) for name in _CQS_TEXT_ATTRIBUTES],
            sa.Column("sync_status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("last_sync_date", sa.DateTime(timezone=True), nullable=True),
            *_audit_columns(),
            sa.PrimaryKeyConstraint("material_code"),
        )

    if "plant_response_records" not in existing_tables:
        op.create_table(
            "plant_response_records",
            sa.Column("plant_code", sa.String(length=20), nullable=False),
            sa.Column("material_code", sa.String(length=40), nullable=False),
            sa.Column("cqs_inputs", sa.Text(), nullable=True),
            sa.Column("plant_inputs", sa.Text(), nullable=True),
            sa.Column("combined_data", sa.Text(), nullable=True),
            sa.Column("total_fields", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completed_fields", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("required_fields", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completed_required_fields", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completion_status", sa.String(length=20), nullable=False, server_default="DRAFT"),
            sa.Column("cqs_sync_status", sa.String(length=20), nullable=False, server_default="NOT_SYNCED"),
            sa.Column("last_cqs_sync", sa.DateTime(timezone=True), nullable=True),
            sa.Column("workflow_id", sa.Integer(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_by", sa.String(length=100), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            *_audit_columns(),
            sa.PrimaryKeyConstraint("plant_code", "material_code"),
        )
        op.create_index("ix_plant_response_records_workflow_id", "plant_response_records", ["workflow_id"])
        op.create_index("ix_plant_response_material", "plant_response_records", ["material_code"])
        op.create_index(
            "ix_plant_response_plant_status", "plant_response_records", ["plant_code", "completion_status"],
        )

    if "workflows" not in existing_tables:
        op.create_table(
            "workflows",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("material_code", sa.String(length=40), nullable=False),
            sa.Column("plant_code", sa.String(length=20), nullable=False),
            sa.Column("project_code", sa.String(length=40), nullable=True),
            sa.Column("material_name", sa.String(length=255), nullable=True),
            sa.Column("state", sa.String(length=20), nullable=False, server_default="JVC_PENDING"),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            *_audit_columns(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflows_material_code", "workflows", ["material_code"])
        op.create_index("ix_workflows_plant_code", "workflows", ["plant_code"])
        op.create_index("ix_workflows_plant_material", "workflows", ["plant_code", "material_code"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "workflows" in existing_tables:
        op.drop_index("ix_workflows_plant_material", table_name="workflows")
        op.drop_index("ix_workflows_plant_code", table_name="workflows")
        op.drop_index("ix_workflows_material_code", table_name="workflows")
        op.drop_table("workflows")

    if "plant_response_records" in existing_tables:
        op.drop_index("ix_plant_response_plant_status", table_name="plant_response_records")
        op.drop_index("ix_plant_response_material", table_name="plant_response_records")
        op.drop_index("ix_plant_response_records_workflow_id", table_name="plant_response_records")
        op.drop_table("plant_response_records")

    if "cqs_material_data" in existing_tables:
        op.drop_table("cqs_material_data")

    if "question_templates" in existing_tables:
        op.drop_index("ix_question_templates_step_order", table_name="question_templates")
        op.drop_index("ix_question_templates_step_number", table_name="question_templates")
        op.drop_table("question_templates")
