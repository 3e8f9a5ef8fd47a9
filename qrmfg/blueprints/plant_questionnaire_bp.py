"""
Plant Questionnaire Blueprint.

HTTP surface of the completion engine for one plant's questionnaire on
one material.

Endpoints (prefix /api/v1/plant-questionnaire):
    GET    /template?materialCode=&plantCode=
    POST   /records                                  {plantCode, materialCode, workflowId}
    GET    /records/<plant>/<material>
    PUT    /records/<plant>/<material>/inputs        {inputs, modifiedBy, version?}
    POST   /records/<plant>/<material>/recalculate
    GET    /records/<plant>/<material>/validate
    POST   /records/<plant>/<material>/submit        {submittedBy, responses?, version?}
    GET    /records/<plant>/<material>/status
    POST   /records/<plant>/<material>/sync-cqs
    POST   /records/<plant>/<material>/repair-status
    GET    /records/<plant>/<material>/field-diagnostics
    GET    /plants/<plant>/progress

Submission outcomes:
    SUBMITTED           200
    VALIDATION_FAILED   422 (body carries the ValidationResult)
    DUPLICATE           409 (body carries the original submitter)

Layer contract:
    - Blueprint: parse + validate input, call service, return JSON.
    - NO db.session calls here; all writes owned by questionnaire_service.
"""

import logging

from flask import Blueprint, jsonify, request

from qrmfg.blueprints import actor_from, parse_version
from qrmfg.core.exceptions import ConflictError, CorruptStateError, NotFoundError, ValidationError
from qrmfg.services import questionnaire_service
from qrmfg.utils.errors import E, api_error
from qrmfg.utils.helpers import require_fields

logger = logging.getLogger(__name__)

plant_questionnaire_bp = Blueprint(
    "plant_questionnaire", __name__, url_prefix="/api/v1/plant-questionnaire",
)

_SUBMISSION_STATUS = {
    questionnaire_service.OUTCOME_SUBMITTED: 200,
    questionnaire_service.OUTCOME_VALIDATION_FAILED: 422,
    questionnaire_service.OUTCOME_DUPLICATE: 409,
}


# ── Error handlers ───────────────────────────────────────────────────────────


@plant_questionnaire_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@plant_questionnaire_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.BUSINESS_RULE, str(error), details=error.details)


@plant_questionnaire_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_VERSION, str(error), details={"field": error.field, "value": error.value})


@plant_questionnaire_bp.errorhandler(CorruptStateError)
def _handle_corrupt(error: CorruptStateError):
    logger.error(
        "Corrupt questionnaire state: %s", error,
        extra={"plant_code": error.plant_code, "material_code": error.material_code},
    )
    return api_error(E.CORRUPT_STATE, str(error))


# ── Template ─────────────────────────────────────────────────────────────────


@plant_questionnaire_bp.route("/template", methods=["GET"])
def get_template():
    """Resolved questionnaire; with plantCode the record is created/synced first."""
    material_code = (request.args.get("materialCode") or "").strip()
    plant_code = (request.args.get("plantCode") or "").strip() or None
    if not material_code:
        return api_error(E.VALIDATION_REQUIRED, "materialCode query parameter is required")
    return jsonify(questionnaire_service.get_template(material_code, plant_code))


# ── Records ──────────────────────────────────────────────────────────────────


@plant_questionnaire_bp.route("/records", methods=["POST"])
def create_record():
    data, err = require_fields(request.get_json(silent=True), "plantCode", "materialCode")
    if err:
        return err

    workflow_id = data.get("workflowId")
    if workflow_id is not None:
        try:
            workflow_id = int(workflow_id)
        except (TypeError, ValueError):
            return api_error(E.VALIDATION_INVALID, "workflowId must be an integer")

    existed = questionnaire_service.get_record(data["plantCode"], data["materialCode"]) is not None
    record = questionnaire_service.get_or_create_record(
        data["plantCode"], data["materialCode"],
        workflow_id=workflow_id, actor=actor_from(data, "createdBy"),
    )
    return jsonify(record.to_dict()), 200 if existed else 201


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>", methods=["GET"])
def get_record(plant_code, material_code):
    record = questionnaire_service.get_record_or_404(plant_code, material_code)
    return jsonify(record.to_dict())


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/inputs", methods=["PUT"])
def save_inputs(plant_code, material_code):
    data, err = require_fields(request.get_json(silent=True), "inputs")
    if err:
        return err
    if not isinstance(data["inputs"], dict):
        return api_error(E.VALIDATION_INVALID, "inputs must be an object of field name to value")
    version, version_err = parse_version(data)
    if version_err:
        return api_error(E.VALIDATION_INVALID, version_err)

    record = questionnaire_service.save_manual_inputs(
        plant_code, material_code, data["inputs"],
        actor=actor_from(data, "modifiedBy"), expected_version=version,
    )
    return jsonify(record.to_dict())


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/recalculate", methods=["POST"])
def recalculate(plant_code, material_code):
    data = request.get_json(silent=True) or {}
    stats = questionnaire_service.recalculate(material_code, plant_code, actor=actor_from(data, "modifiedBy"))
    return jsonify({"plantCode": plant_code, "materialCode": material_code, "completion": stats.to_dict()})


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/validate", methods=["GET"])
def validate(plant_code, material_code):
    result = questionnaire_service.validate_completion(plant_code, material_code)
    return jsonify(result.to_dict())


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/submit", methods=["POST"])
def submit(plant_code, material_code):
    data = request.get_json(silent=True) or {}
    submitted_by = actor_from(data, "submittedBy", default="")
    if not submitted_by:
        return api_error(E.VALIDATION_REQUIRED, "submittedBy is required")
    responses = data.get("responses")
    if responses is not None and not isinstance(responses, dict):
        return api_error(E.VALIDATION_INVALID, "responses must be an object of field name to value")
    version, version_err = parse_version(data)
    if version_err:
        return api_error(E.VALIDATION_INVALID, version_err)

    result = questionnaire_service.submit(
        plant_code, material_code, submitted_by,
        responses=responses, expected_version=version,
    )
    return jsonify(result.to_dict()), _SUBMISSION_STATUS[result.outcome]


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/status", methods=["GET"])
def status(plant_code, material_code):
    return jsonify(questionnaire_service.get_status(plant_code, material_code))


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/sync-cqs", methods=["POST"])
def sync_cqs(plant_code, material_code):
    data = request.get_json(silent=True) or {}
    result = questionnaire_service.force_sync_cqs(plant_code, material_code, actor=actor_from(data, "modifiedBy"))
    return jsonify(result)


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/repair-status", methods=["POST"])
def repair_status(plant_code, material_code):
    data = request.get_json(silent=True) or {}
    result = questionnaire_service.repair_status(plant_code, material_code, actor=actor_from(data, "modifiedBy"))
    return jsonify(result)


@plant_questionnaire_bp.route("/records/<plant_code>/<material_code>/field-diagnostics", methods=["GET"])
def field_diagnostics(plant_code, material_code):
    return jsonify(questionnaire_service.diagnose_field_matching(plant_code, material_code))


# ── Plant overview ───────────────────────────────────────────────────────────


@plant_questionnaire_bp.route("/plants/<plant_code>/progress", methods=["GET"])
def plant_progress(plant_code):
    return jsonify(questionnaire_service.list_plant_progress(plant_code))
