"""Shared helpers for services and blueprints.

commit_or_conflict:   service-layer commit that turns lost optimistic-lock
                      races into ConflictError
require_fields:       tuple-return guard for JSON bodies in blueprints
"""
import logging

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from qrmfg.core.exceptions import ConflictError
from qrmfg.models import db
from qrmfg.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def commit_or_conflict(resource: str, key=None):
    """Commit the current session, rolling back on any failure.

    StaleDataError (the row's version moved under us) and IntegrityError
    (a concurrent insert of the same key) are raised as ConflictError.
    Anything else is logged and re-raised unchanged.

    Usage::

        record.set_plant_inputs(merged)
        commit_or_conflict("PlantResponseRecord", key=(plant, material))
    """
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Stale write on %s key=%s", resource, key)
        raise ConflictError(resource, "version", None) from exc
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on %s key=%s: %s", resource, key, exc.orig)
        raise ConflictError(resource, "key", str(key) if key is not None else None) from exc
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit (%s)", resource)
        raise


def require_fields(data, *fields):
    """Return ``(payload, None)`` or ``(None, error_tuple)``.

    Mirrors the tuple-return pattern used by the blueprints::

        payload, err = require_fields(request.get_json(silent=True), "plantCode")
        if err:
            return err
    """
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "JSON object body is required")
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        return None, api_error(
            E.VALIDATION_REQUIRED,
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )
    return data, None
