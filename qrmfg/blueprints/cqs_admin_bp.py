"""
CQS administration Blueprint.

Maintains the local CQS mirror that DatabaseCqsProvider reads from.

Endpoints (prefix /api/v1/cqs):
    GET    /materials/<material>?plantCode=   attributes + population stats
    PUT    /materials/<material>              {attributes: {...}, updatedBy, propagate?}
    POST   /materials/<material>/sync         re-sync every open plant record
    GET    /field-mapping                     attribute name → display label
"""

import logging

from flask import Blueprint, jsonify, request

from qrmfg.blueprints import actor_from
from qrmfg.core.exceptions import ConflictError, CorruptStateError, ValidationError
from qrmfg.services import cqs_sync_service
from qrmfg.utils.errors import E, api_error
from qrmfg.utils.helpers import require_fields

logger = logging.getLogger(__name__)

cqs_admin_bp = Blueprint("cqs_admin", __name__, url_prefix="/api/v1/cqs")


@cqs_admin_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@cqs_admin_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_VERSION, str(error))


@cqs_admin_bp.errorhandler(CorruptStateError)
def _handle_corrupt(error: CorruptStateError):
    logger.error("Corrupt questionnaire state during CQS propagation: %s", error)
    return api_error(E.CORRUPT_STATE, str(error))


@cqs_admin_bp.route("/materials/<material_code>", methods=["GET"])
def get_material(material_code):
    plant_code = (request.args.get("plantCode") or "").strip() or None
    return jsonify(cqs_sync_service.get_cqs_data(material_code, plant_code))


@cqs_admin_bp.route("/materials/<material_code>", methods=["PUT"])
def put_material(material_code):
    data, err = require_fields(request.get_json(silent=True), "attributes")
    if err:
        return err
    if not isinstance(data["attributes"], dict):
        return api_error(E.VALIDATION_INVALID, "attributes must be an object of attribute name to value")

    actor = actor_from(data, "updatedBy")
    row = cqs_sync_service.upsert_cqs_data(material_code, data["attributes"], actor)
    body = row.to_dict()
    if data.get("propagate"):
        body["propagation"] = cqs_sync_service.propagate_cqs_to_records(material_code, actor)
    return jsonify(body)


@cqs_admin_bp.route("/materials/<material_code>/sync", methods=["POST"])
def sync_material(material_code):
    data = request.get_json(silent=True) or {}
    return jsonify(cqs_sync_service.propagate_cqs_to_records(material_code, actor_from(data, "updatedBy")))


@cqs_admin_bp.route("/field-mapping", methods=["GET"])
def field_mapping():
    return jsonify(cqs_sync_service.get_field_mapping())
