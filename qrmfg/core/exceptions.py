"""
Service-layer exception hierarchy.

Services raise these types; blueprints register one handler per type and
get consistent HTTP status codes everywhere.

Business outcomes (a questionnaire below the submission threshold, a
duplicate submission, a workflow that could not be advanced) are returned
as structured results, never raised. Only genuinely exceptional conditions
live here.

Usage:
    from qrmfg.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="PlantResponseRecord", resource_id="1102/R123")
    raise ValidationError("Questionnaire already submitted", details={...})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Workflow", "QuestionTemplate").
        resource_id: The key that was looked up. Included in logs and the message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Example: saving answers on a questionnaire that was already submitted.
    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write loses an optimistic-locking race.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The versioned field (normally ``version``).
        value: The version the caller expected, if known.
    """

    def __init__(self, resource: str, field: str, value: str | int | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} was modified concurrently ({field}={value!r} is stale)"
        super().__init__(msg)


class CorruptStateError(Exception):
    """Raised when stored questionnaire data cannot be parsed.

    A malformed CQS snapshot or manual-input blob signals data corruption,
    not a normal business outcome, so it always propagates. Maps to HTTP 500.
    """

    def __init__(self, message: str, plant_code: str | None = None, material_code: str | None = None) -> None:
        self.plant_code = plant_code
        self.material_code = material_code
        if plant_code or material_code:
            message = f"{message} (plant={plant_code}, material={material_code})"
        super().__init__(message)
