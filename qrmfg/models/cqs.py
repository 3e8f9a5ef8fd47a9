"""
CQS attribute mirror — CqsMaterialData model.

Local copy of the Central Quality System hazard attributes for a material.
The questionnaire engine only reads it; the CQS administration endpoints
write it. Attribute names double as questionnaire field names, which is how
CQS-owned questions find their auto-populated answer.
"""

from datetime import datetime, timezone

from qrmfg.models import db

# ── Attribute catalogue ───────────────────────────────────────────────────────

CQS_FIELD_LABELS = {
    "narcotic_listed": "Narcotic Listed",
    "flash_point_65": "Flash Point > 65°C",
    "petroleum_class": "Petroleum Class",
    "flash_point_21": "Flash Point < 21°C",
    "is_corrosive": "Is Corrosive",
    "highly_toxic": "Highly Toxic",
    "spill_measures_provided": "Spill Measures Provided",
    "is_poisonous": "Is Poisonous",
    "antidote_specified": "Antidote Specified",
    "cmvr_listed": "CMVR Listed",
    "msihc_listed": "MSIHC Listed",
    "factories_act_listed": "Factories Act Listed",
    "recommended_ppe": "Recommended PPE",
    "reproductive_toxicants": "Reproductive Toxicants",
    "silica_content": "Silica Content",
    "swarf_analysis": "SWARF Analysis",
    "env_toxic": "Environmental Toxic",
    "hhrm_category": "HHRM Category",
    "psm_tier1_outdoor": "PSM Tier 1 Outdoor",
    "psm_tier1_indoor": "PSM Tier 1 Indoor",
    "psm_tier2_outdoor": "PSM Tier 2 Outdoor",
    "psm_tier2_indoor": "PSM Tier 2 Indoor",
    "compatibility_class": "Compatibility Class",
    "sap_compatibility": "SAP Compatibility",
    "is_explosive": "Is Explosive",
    "autoignition_temp": "Autoignition Temperature",
    "dust_explosion": "Dust Explosion",
    "electrostatic_charge": "Electrostatic Charge",
    "ld50_oral": "LD50 Oral",
    "ld50_dermal": "LD50 Dermal",
    "lc50_inhalation": "LC50 Inhalation",
    "carcinogenic": "Carcinogenic",
    "mutagenic": "Mutagenic",
    "endocrine_disruptor": "Endocrine Disruptor",
}

CQS_ATTRIBUTE_NAMES = tuple(CQS_FIELD_LABELS)

SYNC_ACTIVE = "ACTIVE"
SYNC_PENDING = "PENDING"
SYNC_ERROR = "ERROR"


class CqsMaterialData(db.Model):
    """Hazard attributes for one material as last received from CQS."""

    __tablename__ = "cqs_material_data"

    material_code = db.Column(db.String(40), primary_key=True)

    # Statutory listings
    narcotic_listed = db.Column(db.String(255), nullable=True)
    cmvr_listed = db.Column(db.String(255), nullable=True)
    msihc_listed = db.Column(db.String(255), nullable=True)
    factories_act_listed = db.Column(db.String(255), nullable=True)

    # Flammability and explosivity
    flash_point_65 = db.Column(db.String(255), nullable=True)
    petroleum_class = db.Column(db.String(255), nullable=True)
    flash_point_21 = db.Column(db.String(255), nullable=True)
    is_explosive = db.Column(db.String(255), nullable=True)
    autoignition_temp = db.Column(db.String(255), nullable=True)
    dust_explosion = db.Column(db.String(255), nullable=True)
    electrostatic_charge = db.Column(db.String(255), nullable=True)

    # Physical and toxicity
    is_corrosive = db.Column(db.String(255), nullable=True)
    highly_toxic = db.Column(db.String(255), nullable=True)
    ld50_oral = db.Column(db.String(255), nullable=True)
    ld50_dermal = db.Column(db.String(255), nullable=True)
    lc50_inhalation = db.Column(db.String(255), nullable=True)
    carcinogenic = db.Column(db.String(255), nullable=True)
    mutagenic = db.Column(db.String(255), nullable=True)
    endocrine_disruptor = db.Column(db.String(255), nullable=True)
    reproductive_toxicants = db.Column(db.String(255), nullable=True)
    silica_content = db.Column(db.String(255), nullable=True)
    swarf_analysis = db.Column(db.String(255), nullable=True)
    env_toxic = db.Column(db.String(255), nullable=True)
    hhrm_category = db.Column(db.String(255), nullable=True)

    # Process safety management thresholds
    psm_tier1_outdoor = db.Column(db.String(255), nullable=True)
    psm_tier1_indoor = db.Column(db.String(255), nullable=True)
    psm_tier2_outdoor = db.Column(db.String(255), nullable=True)
    psm_tier2_indoor = db.Column(db.String(255), nullable=True)

    # Reactivity, PPE, first aid
    compatibility_class = db.Column(db.Text, nullable=True)
    sap_compatibility = db.Column(db.String(255), nullable=True)
    recommended_ppe = db.Column(db.Text, nullable=True)
    spill_measures_provided = db.Column(db.String(255), nullable=True)
    is_poisonous = db.Column(db.String(255), nullable=True)
    antidote_specified = db.Column(db.String(255), nullable=True)

    sync_status = db.Column(
        db.String(20),
        nullable=False,
        default=SYNC_ACTIVE,
        comment="ACTIVE | PENDING | ERROR",
    )
    last_sync_date = db.Column(db.DateTime(timezone=True), nullable=True)

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

    def attributes(self) -> dict:
        """Every CQS attribute by name; blank strings come back as None."""
        values = {}
        for name in CQS_ATTRIBUTE_NAMES:
            value = getattr(self, name)
            if isinstance(value, str) and not value.strip():
                value = None
            values[name] = value
        return values

    def populated_count(self) -> int:
        return sum(1 for v in self.attributes().values() if v is not None)

    def to_dict(self) -> dict:
        return {
            "material_code": self.material_code,
            "attributes": self.attributes(),
            "populated_fields": self.populated_count(),
            "total_fields": len(CQS_ATTRIBUTE_NAMES),
            "sync_status": self.sync_status,
            "last_sync_date": self.last_sync_date.isoformat() if self.last_sync_date else None,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<CqsMaterialData {self.material_code} {self.sync_status}>"
