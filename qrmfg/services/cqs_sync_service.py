"""
CQS sync service — copies CQS hazard attributes into plant records and
administers the local CQS mirror.

Snapshot sync (per plant record):
    provider has data        → SYNCED, snapshot holds every attribute name
                               (blanks as null)
    provider has no data     → NO_DATA, snapshot cleared
    provider unreachable     → FAILED, previous snapshot kept
``last_cqs_sync`` is stamped on every attempt. Provider failures never
raise out of this module; they only show up in ``cqs_sync_status``.

Sync functions mutate the record and leave the commit to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from qrmfg.core.exceptions import ValidationError
from qrmfg.integrations.cqs_gateway import CqsIntegrationError, CqsProvider, get_cqs_provider
from qrmfg.models import db
from qrmfg.models.cqs import CQS_ATTRIBUTE_NAMES, CQS_FIELD_LABELS, SYNC_ACTIVE, CqsMaterialData
from qrmfg.models.plant_response import (
    CQS_FAILED,
    CQS_NO_DATA,
    CQS_SYNCED,
    PlantResponseRecord,
)
from qrmfg.services import completion_service, template_catalog
from qrmfg.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


# ── Snapshot sync ────────────────────────────────────────────────────────────


def _pull(record: PlantResponseRecord, provider: CqsProvider | None) -> str:
    provider = provider or get_cqs_provider()
    ctx = {"plant_code": record.plant_code, "material_code": record.material_code}
    record.last_cqs_sync = _utcnow()

    try:
        attributes = provider.get_attributes(record.material_code)
    except CqsIntegrationError as exc:
        record.cqs_sync_status = CQS_FAILED
        logger.warning("CQS sync failed: %s", exc.reason, extra={**ctx, "sync_status": CQS_FAILED})
        return CQS_FAILED

    if not attributes or all(v is None for v in attributes.values()):
        record.set_cqs_snapshot({})
        record.cqs_sync_status = CQS_NO_DATA
        logger.info("No CQS data for material", extra={**ctx, "sync_status": CQS_NO_DATA})
        return CQS_NO_DATA

    record.set_cqs_snapshot({name: attributes.get(name) for name in CQS_ATTRIBUTE_NAMES})
    record.cqs_sync_status = CQS_SYNCED
    populated = sum(1 for v in attributes.values() if v is not None)
    logger.info(
        "CQS snapshot synced (%d/%d attributes)", populated, len(CQS_ATTRIBUTE_NAMES),
        extra={**ctx, "sync_status": CQS_SYNCED},
    )
    return CQS_SYNCED


def sync_if_needed(record: PlantResponseRecord, provider: CqsProvider | None = None) -> str | None:
    """Pull CQS data only when the record has no snapshot yet.

    Returns the new sync status, or None when nothing was pulled.
    """
    if record.has_cqs_snapshot:
        return None
    return _pull(record, provider)


def force_sync(record: PlantResponseRecord, provider: CqsProvider | None = None) -> str:
    """Re-pull CQS data and overwrite the snapshot."""
    return _pull(record, provider)


# ── CQS mirror administration ────────────────────────────────────────────────


def get_field_mapping() -> dict:
    return dict(CQS_FIELD_LABELS)


def upsert_cqs_data(material_code: str, values: dict, updated_by: str) -> CqsMaterialData:
    """Create or update the CQS mirror row for a material.

    Unknown attribute names are rejected; attributes not mentioned keep
    their stored value.
    """
    unknown = sorted(set(values) - set(CQS_ATTRIBUTE_NAMES))
    if unknown:
        raise ValidationError(
            f"Unknown CQS attribute(s): {', '.join(unknown)}",
            details={name: "unknown attribute" for name in unknown},
        )

    row = db.session.get(CqsMaterialData, material_code)
    if row is None:
        row = CqsMaterialData(material_code=material_code, created_by=updated_by)
        db.session.add(row)

    for name, value in values.items():
        if isinstance(value, bool):
            value = "Yes" if value else "No"
        elif value is not None:
            value = str(value)
        setattr(row, name, value)

    row.sync_status = SYNC_ACTIVE
    row.last_sync_date = _utcnow()
    row.updated_by = updated_by
    commit_or_conflict("CqsMaterialData", key=material_code)

    logger.info(
        "CQS data saved for %s (%d attributes updated)", material_code, len(values),
        extra={"material_code": material_code},
    )
    return row


def get_cqs_data(material_code: str, plant_code: str | None = None) -> dict:
    """CQS attributes of a material with population stats.

    With ``plant_code`` the plant record's own sync status is included.
    """
    row = db.session.get(CqsMaterialData, material_code)
    total = len(CQS_ATTRIBUTE_NAMES)
    if row is None:
        result = {
            "material_code": material_code,
            "attributes": {name: None for name in CQS_ATTRIBUTE_NAMES},
            "populated_fields": 0,
            "total_fields": total,
            "completion_percentage": 0,
            "sync_status": CQS_NO_DATA,
            "last_sync_date": None,
        }
    else:
        populated = row.populated_count()
        result = {
            **row.to_dict(),
            "completion_percentage": completion_service.completion_percentage(populated, total),
        }

    if plant_code:
        record = db.session.get(PlantResponseRecord, (plant_code, material_code))
        result["plant_code"] = plant_code
        result["record_sync_status"] = record.cqs_sync_status if record else None
        result["record_last_sync"] = (
            record.last_cqs_sync.isoformat() if record and record.last_cqs_sync else None
        )
    return result


def propagate_cqs_to_records(material_code: str, updated_by: str,
                             provider: CqsProvider | None = None) -> dict:
    """Re-sync every open plant record of a material and recalculate it.

    Submitted records keep the snapshot they were submitted with.
    """
    records = db.session.execute(
        select(PlantResponseRecord).where(PlantResponseRecord.material_code == material_code)
    ).scalars().all()

    provider = provider or get_cqs_provider()
    templates = template_catalog.load_answerable_templates()
    synced, skipped = [], []
    for record in records:
        if record.is_submitted:
            skipped.append(record.plant_code)
            continue
        force_sync(record, provider)
        if templates:
            completion_service.recalculate_record(record, templates=templates, actor=updated_by, commit=False)
        synced.append(record.plant_code)

    commit_or_conflict("PlantResponseRecord", key=material_code)
    logger.info(
        "Propagated CQS data for %s to %d plant records (%d submitted skipped)",
        material_code, len(synced), len(skipped),
        extra={"material_code": material_code},
    )
    return {"material_code": material_code, "synced_plants": synced, "skipped_plants": skipped}


# ── Demo data ────────────────────────────────────────────────────────────────

_HAZARDOUS_PROFILE = {
    "narcotic_listed": "no", "flash_point_65": "no", "petroleum_class": "class_b",
    "flash_point_21": "yes", "is_corrosive": "yes", "highly_toxic": "yes",
    "spill_measures_provided": "yes", "is_poisonous": "yes", "antidote_specified": "yes",
    "cmvr_listed": "yes", "msihc_listed": "yes", "factories_act_listed": "yes",
    "recommended_ppe": "Chemical resistant gloves, safety goggles, respirator mask, chemical resistant apron",
    "reproductive_toxicants": "no", "silica_content": "< 1%", "swarf_analysis": "Not Required",
    "env_toxic": "yes", "hhrm_category": "Category 2",
    "psm_tier1_outdoor": "500 kg", "psm_tier1_indoor": "250 kg",
    "psm_tier2_outdoor": "1000 kg", "psm_tier2_indoor": "500 kg",
    "compatibility_class": "Group A", "sap_compatibility": "Compatible",
    "is_explosive": "no", "autoignition_temp": "465°C", "dust_explosion": "na",
    "electrostatic_charge": "Low Risk", "ld50_oral": "no", "ld50_dermal": "no",
    "lc50_inhalation": "no", "carcinogenic": "no", "mutagenic": "no", "endocrine_disruptor": "no",
}

_NON_HAZARDOUS_PROFILE = {
    **_HAZARDOUS_PROFILE,
    "flash_point_65": "yes", "petroleum_class": "na", "flash_point_21": "no",
    "is_corrosive": "no", "highly_toxic": "no", "is_poisonous": "no", "antidote_specified": "no",
    "cmvr_listed": "no", "msihc_listed": "no", "factories_act_listed": "no",
    "recommended_ppe": "Safety glasses, work gloves", "silica_content": "Not Applicable",
    "env_toxic": "no", "hhrm_category": "Category 4",
    "psm_tier1_outdoor": "Not Applicable", "psm_tier1_indoor": "Not Applicable",
    "psm_tier2_outdoor": "Not Applicable", "psm_tier2_indoor": "Not Applicable",
    "compatibility_class": "Group D", "autoignition_temp": "> 400°C",
    "electrostatic_charge": "Very Low Risk", "ld50_oral": "yes", "ld50_dermal": "yes",
    "lc50_inhalation": "yes",
}

DEMO_MATERIALS = {
    "MAT001": _HAZARDOUS_PROFILE,      # Acetone
    "MAT002": _HAZARDOUS_PROFILE,      # Benzene
    "MAT003": _NON_HAZARDOUS_PROFILE,  # Toluene
    "MAT004": _HAZARDOUS_PROFILE,      # Methanol
    "MAT005": _NON_HAZARDOUS_PROFILE,  # Ethanol
}


def seed_demo_materials(created_by: str = "SYSTEM") -> int:
    """Insert the demo CQS rows that are missing. Caller commits."""
    count = 0
    for material_code, profile in DEMO_MATERIALS.items():
        if db.session.get(CqsMaterialData, material_code) is not None:
            continue
        row = CqsMaterialData(
            material_code=material_code,
            sync_status=SYNC_ACTIVE,
            last_sync_date=_utcnow(),
            created_by=created_by,
            updated_by=created_by,
            **profile,
        )
        db.session.add(row)
        count += 1
    db.session.flush()
    return count
