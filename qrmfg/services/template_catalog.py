"""
Template catalog service — loads the questionnaire structure and seeds the
standard MSDS questionnaire.

The catalog is the only source of which fields exist, who answers them and
in what order they are shown. Every resolution pass loads it once through
``load_answerable_templates``.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import select

from qrmfg.models import db
from qrmfg.models.questionnaire import OWNER_CQS, OWNER_PLANT, QuestionTemplate

logger = logging.getLogger(__name__)

DEFAULT_STEP_DESCRIPTIONS = {
    1: "General information about MSDS availability and completeness",
    2: "Physical properties and handling requirements",
    3: "Flammability, explosivity and fire safety measures",
    4: "Toxicity assessment and exposure control",
    5: "Process safety management thresholds",
    6: "Reactivity hazards and compatibility",
    7: "Storage and handling procedures",
    8: "Personal protective equipment requirements",
    9: "Spill control measures and procedures",
    10: "First aid measures and emergency response",
    11: "Statutory compliance and regulatory requirements",
    12: "Additional inputs and gap analysis",
}


# ── Queries ──────────────────────────────────────────────────────────────────


def load_answerable_templates() -> list[QuestionTemplate]:
    """Active, non-display CQS/Plant questions ordered by step then position."""
    rows = db.session.execute(
        select(QuestionTemplate)
        .where(QuestionTemplate.is_active.is_(True))
        .order_by(QuestionTemplate.step_number, QuestionTemplate.sr_no)
    ).scalars().all()
    answerable = [t for t in rows if t.is_answerable]
    answerable.sort(key=lambda t: (t.step_number, t.effective_order, t.sr_no))
    return answerable


def step_title(step_number: int, first_template: QuestionTemplate | None) -> str:
    if first_template is not None and first_template.category:
        return first_template.category
    return f"Step {step_number}"


def step_description(step_number: int, first_template: QuestionTemplate | None) -> str:
    if first_template is not None and first_template.comments:
        return first_template.comments
    return DEFAULT_STEP_DESCRIPTIONS.get(step_number, f"Questions for step {step_number}")


# ── Seeding ──────────────────────────────────────────────────────────────────


def seed_default_templates() -> int:
    """
    Insert the standard plant questionnaire (87 questions across 12 steps).
    Safe to run multiple times — skips field names that already exist.

    Call this from the Flask CLI command; the caller commits.
    """
    existing = set(db.session.execute(select(QuestionTemplate.field_name)).scalars().all())
    created = 0

    for t in _get_default_templates():
        if t["field_name"] in existing:
            continue
        db.session.add(QuestionTemplate(**t))
        created += 1

    if created > 0:
        db.session.flush()
        logger.info("Seeded %d question templates", created)

    return created


_YES_NO = [{"value": "yes", "label": "Yes"}, {"value": "no", "label": "No"}]
_YES_NO_NA = _YES_NO + [{"value": "na", "label": "N/A"}]
_YES_NO_PARTIAL = _YES_NO + [{"value": "partial", "label": "Partially"}]
_PETROLEUM_CLASSES = [
    {"value": "class_a", "label": "Class A"},
    {"value": "class_b", "label": "Class B"},
    {"value": "class_c", "label": "Class C"},
    {"value": "na", "label": "N/A"},
]

_C, _P = OWNER_CQS, OWNER_PLANT

# (sr_no, step, category, owner, type, field_name, options, required, question)
_QUESTIONS = [
    (1, 1, "General", _P, "radio", "msds_available", _YES_NO, True,
     "Is 16 Section MSDS of the raw material available?"),
    (2, 1, "General", _P, "textarea", "missing_info", None, False,
     "Which information in any one of the 16 sections is not available in full?"),
    (3, 1, "General", _P, "radio", "sourcing_asked", _YES_NO_NA, False,
     "Has the identified missing / more information required from the supplier asked thru Sourcing?"),
    (4, 1, "General", _P, "radio", "cas_available", _YES_NO, False,
     "Is CAS number of the raw material based on the pure substance available?"),
    (5, 1, "General", _P, "radio", "mixture_ingredients", _YES_NO_NA, False,
     "For mixtures, are ingredients of mixture available?"),
    (6, 1, "General", _P, "radio", "composition_percentage", _YES_NO_NA, False,
     "Is % age composition substances in the mixture available?"),
    (7, 1, "General", _P, "textarea", "total_percentage", None, False,
     "Is the total %age of all substances in the mixture equal to 100? "
     "If not what is the % of substances not available?"),

    (8, 2, "Physical", _C, "radio", "is_corrosive", _YES_NO, False,
     "Is the material corrosive?"),
    (9, 2, "Physical", _P, "radio", "corrosive_storage", _YES_NO_NA, False,
     "Does the plant have acid and alkali proof storage facilities to store a corrosive raw material?"),
    (10, 2, "Physical", _C, "radio", "highly_toxic", _YES_NO, False,
     "Is the material highly toxic?"),
    (11, 2, "Physical", _P, "radio", "toxic_powder_handling", _YES_NO_NA, False,
     "Does the plant have facilities to handle fine powder of highly toxic raw material?"),
    (12, 2, "Physical", _P, "radio", "crushing_facilities", _YES_NO_NA, False,
     "Does the plant have facilities to crush the stone like solid raw material?"),
    (13, 2, "Physical", _P, "radio", "heating_facilities", _YES_NO_NA, False,
     "Does the plant have facilities to heat/melt the raw material if required for charging the same in a batch?"),
    (14, 2, "Physical", _P, "radio", "paste_preparation", _YES_NO_NA, False,
     "Does the plant have facilities to prepare paste of raw material if required for charging the same in a batch?"),

    (15, 3, "Flammability and Explosivity", _C, "radio", "flash_point_65", _YES_NO_NA, False,
     "Is Flash point of the raw material given and less than or equal to 65 degree C?"),
    (16, 3, "Flammability and Explosivity", _C, "select", "petroleum_class", _PETROLEUM_CLASSES, False,
     "Is the raw material to be categorised as Class C / Class B / Class A substance as per Petroleum Act / Rules?"),
    (17, 3, "Flammability and Explosivity", _P, "radio", "storage_license", _YES_NO, True,
     "Do all the plants have the capacity and license to store the raw material?"),
    (18, 3, "Flammability and Explosivity", _P, "textarea", "ccoe_license", None, False,
     "If no, has the plant applied for CCoE license and by when expected to receive the license?"),
    (19, 3, "Flammability and Explosivity", _C, "radio", "flash_point_21", _YES_NO_NA, False,
     "Is Flash point of the raw material given is less than 21 degree C?"),
    (20, 3, "Flammability and Explosivity", _P, "radio", "flammable_infrastructure", _YES_NO_NA, False,
     "If yes, does plant have infrastructure to comply State Factories Rule for handling 'Flammable liquids'?"),
    (21, 3, "Flammability and Explosivity", _P, "radio", "additional_storage", _YES_NO, False,
     "Does the plant require to have additional storage capacities to store the raw material?"),
    (22, 3, "Flammability and Explosivity", _C, "radio", "is_explosive", _YES_NO, False,
     "Is the raw material explosive as per MSDS?"),
    (23, 3, "Flammability and Explosivity", _P, "radio", "explosive_storage", _YES_NO_NA, False,
     "If yes, does the plant have facilities to store such raw material?"),
    (24, 3, "Flammability and Explosivity", _C, "radio", "autoignition_temp", _YES_NO_NA, False,
     "Is Autoignition temperature of the material less than or equal to that of MTO?"),
    (25, 3, "Flammability and Explosivity", _P, "radio", "handling_facilities", _YES_NO, False,
     "Does the plant have facilities to handle the raw material?"),
    (26, 3, "Flammability and Explosivity", _C, "radio", "dust_explosion", _YES_NO, False,
     "Does the material have Dust explosion hazard?"),
    (27, 3, "Flammability and Explosivity", _P, "radio", "dust_explosion_handling", _YES_NO_NA, False,
     "If yes, does plant have infrastructure to handle material having dust explosion hazard?"),
    (28, 3, "Flammability and Explosivity", _C, "radio", "electrostatic_charge", _YES_NO, False,
     "Is the raw material likely to generate electrostatic charge at the time of transfer or charging?"),
    (29, 3, "Flammability and Explosivity", _P, "radio", "electrostatic_handling", _YES_NO_NA, False,
     "If yes, does plant have infrastructure to handle material having electrostatic hazard?"),

    (30, 4, "Toxicity", _C, "radio", "ld50_oral", _YES_NO_NA, False,
     "Is LD 50 (oral) value available and higher than the threshold limit of 200 mg/Kg BW?"),
    (31, 4, "Toxicity", _C, "radio", "ld50_dermal", _YES_NO_NA, False,
     "Is LD 50 (Dermal) value available and higher than 1000 mg/Kg BW?"),
    (32, 4, "Toxicity", _C, "radio", "lc50_inhalation", _YES_NO_NA, False,
     "Is LC50 Inhalation value available and higher than 10 mg/L?"),
    (33, 4, "Toxicity", _P, "textarea", "exposure_minimization", None, False,
     "If no, in any of the above three cases (where available) then does the plant have facilities "
     "and /or procedure to minimise the exposure of workman?"),
    (34, 4, "Toxicity", _C, "radio", "carcinogenic", _YES_NO_NA, False,
     "Is the RM a suspect Carcinogenic?"),
    (35, 4, "Toxicity", _P, "textarea", "carcinogenic_control", None, False,
     "If yes, plant has adequate facilities and /or procedure to minimise the exposure of workman?"),
    (36, 4, "Toxicity", _C, "radio", "mutagenic", _YES_NO_NA, False,
     "Is the RM a suspect Mutagenic?"),
    (37, 4, "Toxicity", _P, "textarea", "mutagenic_control", None, False,
     "If yes, plant has adequate facilities and /or procedure to minimise the exposure of workman?"),
    (38, 4, "Toxicity", _C, "radio", "endocrine_disruptor", _YES_NO_NA, False,
     "Is the RM a suspect endocrine disruptor?"),
    (39, 4, "Toxicity", _P, "textarea", "endocrine_control", None, False,
     "If yes, plant has adequate facilities and /or procedure to minimise the exposure of workman?"),
    (40, 4, "Toxicity", _C, "radio", "reproductive_toxicants", _YES_NO_NA, False,
     "Is the RM a reproductive toxicant?"),
    (41, 4, "Toxicity", _P, "textarea", "reproductive_control", None, False,
     "If yes, plant has adequate facilities and /or procedure to minimise the exposure of workman?"),
    (42, 4, "Toxicity", _C, "radio", "silica_content", _YES_NO_NA, False,
     "Does the RM contain Silica > 1%"),
    (43, 4, "Toxicity", _C, "radio", "swarf_analysis", _YES_NO_NA, False,
     "Is SWARF analysis required? If yes, analysis done and report available for silica content?"),
    (44, 4, "Toxicity", _C, "radio", "env_toxic", _YES_NO, False,
     "Is the RM highly toxic to the environment?"),
    (45, 4, "Toxicity", _P, "textarea", "env_impact_control", None, False,
     "If yes, plant has adequate facilities and /or procedure to minimise impact on environment?"),
    (46, 4, "Toxicity", _P, "radio", "tlv_stel_values", _YES_NO_NA, False,
     "Are the TLV / STEL values available and found to be higher than the average value observed "
     "during the work place monitoring studies at the shopfloor?"),
    (47, 4, "Toxicity", _C, "radio", "hhrm_category", _YES_NO, False,
     "Does the RM fall under HHRM category?"),
    (48, 4, "Toxicity", _P, "radio", "hhrm_infrastructure", _YES_NO_NA, False,
     "Does the plant have infrastructure to handle HHRM?"),

    (49, 5, "Process Safety Management", _C, "input", "psm_tier1_outdoor", None, False,
     "PSM Tier I Outdoor - Threshold quantity (kgs)"),
    (50, 5, "Process Safety Management", _C, "input", "psm_tier1_indoor", None, False,
     "PSM Tier I Indoor - Threshold quantity (kgs)"),
    (51, 5, "Process Safety Management", _C, "input", "psm_tier2_outdoor", None, False,
     "PSM Tier II Outdoor - Threshold quantity (kgs)"),
    (52, 5, "Process Safety Management", _C, "input", "psm_tier2_indoor", None, False,
     "PSM Tier II Indoor - Threshold quantity (kgs)"),

    (53, 6, "Reactivity Hazards", _C, "textarea", "compatibility_class", None, False,
     "What is the compatible class and its incompatibility with other chemicals?"),
    (54, 6, "Reactivity Hazards", _C, "radio", "sap_compatibility", _YES_NO, False,
     "Is compatibility class available in SAP?"),
    (55, 6, "Reactivity Hazards", _P, "radio", "isolated_storage", _YES_NO, False,
     "Does the plant have facilities to store and handle incompatible raw material in an isolated "
     "manner and away from other incompatible material"),

    (56, 7, "Storage and Handling", _P, "textarea", "storage_conditions_stores", None, False,
     "Are any storage conditions required and available in the plant stores?"),
    (57, 7, "Storage and Handling", _P, "textarea", "storage_conditions_floor", None, False,
     "Are any storage conditions required and available in the shop floor?"),
    (58, 7, "Storage and Handling", _P, "radio", "closed_loop_required", _YES_NO, False,
     "Does it require closed loop handling system during charging?"),
    (59, 7, "Storage and Handling", _P, "radio", "work_permit_available", _YES_NO, False,
     "Does the plant have required Work permit and /or WI/SOP to handle the raw material adequately?"),
    (60, 7, "Storage and Handling", _P, "textarea", "procedures_details", None, False,
     "If, yes specify the procedures"),

    (61, 8, "PPE", _C, "textarea", "recommended_ppe", None, False,
     "Recommended specific PPEs based on MSDS"),
    (62, 8, "PPE", _P, "radio", "ppe_in_use", _YES_NO_PARTIAL, False,
     "Are recommended PPE as per MSDS to handle the RM already in use at the plants?"),
    (63, 8, "PPE", _P, "input", "ppe_procurement_date", None, False,
     "If no, by when the plant can procure the required PPE?"),

    (64, 9, "Spill Control Measures", _C, "radio", "spill_measures_provided", _YES_NO, False,
     "Does the MSDS provide the specific spill control measures to be taken?"),
    (65, 9, "Spill Control Measures", _P, "radio", "spill_measures_available", _YES_NO_PARTIAL, False,
     "Are the recommended spill control measures available in the plant?"),

    (66, 10, "First Aid", _C, "radio", "is_poisonous", _YES_NO, False,
     "Is the raw material poisonous as per the MSDS?"),
    (67, 10, "First Aid", _C, "radio", "antidote_specified", _YES_NO_NA, False,
     "Is the name of antidote required to counter the impact of the material given in the MSDS?"),
    (68, 10, "First Aid", _P, "radio", "antidote_available", _YES_NO_NA, False,
     "Is the above specified antidote available in the plants?"),
    (69, 10, "First Aid", _P, "textarea", "antidote_source", None, False,
     "If the specified antidote is not available then what is source and who will obtain the antidote in the plant?"),
    (70, 10, "First Aid", _P, "radio", "first_aid_capability", _YES_NO, False,
     "Does the plant have capability to provide the first aid mentioned in the MSDS with the existing control measures?"),

    (71, 11, "Statutory", _C, "radio", "cmvr_listed", _YES_NO, False,
     "Is the RM or any of its ingredient listed in Table 3 of Rule 137 (CMVR)"),
    (72, 11, "Statutory", _C, "radio", "msihc_listed", _YES_NO, False,
     "Is the RM or any of its ingredient listed in part II of Schedule I of MSIHC Rule"),
    (73, 11, "Statutory", _C, "radio", "factories_act_listed", _YES_NO, False,
     "Is the RM or any of its ingredients listed in Schedule II of Factories Act"),
    (74, 11, "Statutory", _P, "radio", "permissible_concentration", _YES_NO_NA, False,
     "With the current infrastructure, is the concentration of RM / ingredients listed in Schedule II "
     "of Factories Act within permissible concentrations as per Factories Act in the work area."),
    (75, 11, "Statutory", _P, "textarea", "monitoring_details", None, False,
     "Mention details of work area monitoring results and describe infrastructure used for handling"),
    (76, 11, "Statutory", _P, "radio", "monitoring_included", _YES_NO_NA, False,
     "If actual concentrations of the RM / ingredients listed in Schedule II of Factories Act, in the "
     "shopfloor are not available, is the RM / ingredient listed in schedule II of Factories Act "
     "included in next six monthly work area monitoring."),
    (77, 11, "Statutory", _P, "textarea", "capex_details", None, False,
     "If permissible limits of exposure of RM / ingredients listed in Schedule II of Factories Act are "
     "not complied as per work area monitoring, share details of CAPEX planned for implementing closed "
     "loop addition system."),
    (78, 11, "Statutory", _C, "radio", "narcotic_listed", _YES_NO, False,
     "Is the RM listed under Narcotic Drugs and Psychotropic Substances, Act, 1988?"),
    (79, 11, "Statutory", _P, "radio", "valid_license", _YES_NO_NA, True,
     "Does the plant have valid license to handle / store the raw material?"),

    (80, 12, "GAPS", _P, "textarea", "plant_inputs_required", None, False,
     "Inputs required from plants based on the above assessment?"),
    (81, 12, "GAPS", _P, "textarea", "gaps_identified", None, False,
     "Gaps identified vis-à-vis existing controls / protocols"),
] + [
    (81 + n, 12, "GAPS", _P, "textarea", f"additional_input_{n}", None, False, f"Additional input {n}")
    for n in range(1, 7)
]


def _get_default_templates() -> list[dict]:
    """Return the default questionnaire as QuestionTemplate kwargs."""
    templates = []
    for sr_no, step, category, owner, qtype, field, options, required, text in _QUESTIONS:
        templates.append({
            "sr_no": sr_no,
            "step_number": step,
            "order_index": sr_no,
            "category": category,
            "question_text": text,
            "responsible": owner,
            "question_type": qtype,
            "field_name": field,
            "is_required": required,
            "options": json.dumps(options) if options else None,
            "help_text": "Auto-populated from CQS; edit only if the value is missing"
            if owner == OWNER_CQS else "Please provide the required information",
            "is_active": True,
            "version": 1,
        })
    return templates
