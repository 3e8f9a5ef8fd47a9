"""JSON error bodies for the questionnaire API.

Every error response has the same shape::

    {"error": "<message>", "code": "ERR_...", "details": {...}, "requestId": "..."}

``details`` and ``requestId`` are omitted when empty. The request id is the
one the timing middleware put on ``flask.g`` so a client report can be
matched to the service logs.

    return api_error(E.NOT_FOUND, "Plant response record not found")
    return api_error(E.BUSINESS_RULE, "Questionnaire is read-only", details={"submittedBy": "alice"})
"""

from __future__ import annotations

from flask import g, has_request_context, jsonify


class E:
    """Error codes returned in the ``code`` field."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    BUSINESS_RULE = "ERR_BUSINESS_RULE"
    NOT_FOUND = "ERR_NOT_FOUND"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    CONFLICT_VERSION = "ERR_CONFLICT_VERSION"
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    UNSUPPORTED_MEDIA_TYPE = "ERR_UNSUPPORTED_MEDIA_TYPE"
    RATE_LIMITED = "ERR_RATE_LIMITED"
    CORRUPT_STATE = "ERR_CORRUPT_STATE"
    INTERNAL = "ERR_INTERNAL"


STATUS_FOR_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT_VERSION: 409,
    E.PAYLOAD_TOO_LARGE: 413,
    E.UNSUPPORTED_MEDIA_TYPE: 415,
    E.BUSINESS_RULE: 422,
    E.RATE_LIMITED: 429,
    E.CORRUPT_STATE: 500,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(response, status)`` for a Flask view or error handler.

    The status defaults to ``STATUS_FOR_CODE[code]`` (400 for unknown codes).
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    request_id = getattr(g, "request_id", None) if has_request_context() else None
    if request_id:
        body["requestId"] = request_id
    return jsonify(body), status or STATUS_FOR_CODE.get(code, 400)
