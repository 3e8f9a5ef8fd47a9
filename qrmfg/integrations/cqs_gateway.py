"""
CQS attribute providers.

A provider answers one question: which hazard attributes does CQS hold for
this material? ``get_attributes`` returns a dict keyed by CQS attribute name
(missing attributes as None), or None when CQS has no data for the material.
Transport failures raise CqsIntegrationError; the sync service maps that to
a FAILED sync status instead of letting it reach the questionnaire.

  DatabaseCqsProvider  reads the local cqs_material_data mirror
  HttpCqsProvider      calls the CQS REST API through JsonHttpClient

Usage:
    from qrmfg.integrations.cqs_gateway import get_cqs_provider
    attrs = get_cqs_provider().get_attributes("R12345")
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from flask import current_app

from qrmfg.integrations.http_client import JsonHttpClient
from qrmfg.models import db
from qrmfg.models.cqs import CQS_ATTRIBUTE_NAMES, CqsMaterialData

logger = logging.getLogger(__name__)


class CqsIntegrationError(Exception):
    """Raised when the CQS source cannot be reached or answers with an error."""

    def __init__(self, material_code: str, reason: str) -> None:
        self.material_code = material_code
        self.reason = reason
        super().__init__(f"CQS lookup failed for material {material_code}: {reason}")


def _project_attributes(raw: dict) -> dict:
    """Keep the known attribute names only; blanks become None."""
    values = {}
    for name in CQS_ATTRIBUTE_NAMES:
        value = raw.get(name)
        if isinstance(value, str) and not value.strip():
            value = None
        values[name] = value
    return values


class CqsProvider:
    """Interface for CQS attribute sources."""

    def get_attributes(self, material_code: str) -> dict | None:
        raise NotImplementedError


class DatabaseCqsProvider(CqsProvider):
    """Reads the local CqsMaterialData mirror."""

    def get_attributes(self, material_code: str) -> dict | None:
        row = db.session.get(CqsMaterialData, material_code)
        if row is None:
            return None
        return row.attributes()


class HttpCqsProvider(CqsProvider):
    """Reads attributes from the CQS REST API.

    ``GET {CQS_API_URL}/materials/<material_code>`` returning either the flat
    attribute object or ``{"attributes": {...}}``. 404 means no data.
    """

    def __init__(self, client: JsonHttpClient) -> None:
        self.client = client

    def get_attributes(self, material_code: str) -> dict | None:
        result = self.client.request("GET", f"materials/{quote(material_code, safe='')}")
        if result.status_code == 404:
            return None
        if not result.ok:
            raise CqsIntegrationError(material_code, result.error or "unknown error")
        body = result.data if isinstance(result.data, dict) else {}
        raw = body.get("attributes", body)
        if not isinstance(raw, dict):
            raise CqsIntegrationError(material_code, "unexpected response shape")
        return _project_attributes(raw)


def get_cqs_provider() -> CqsProvider:
    """Build the provider selected by ``CQS_PROVIDER`` in the app config."""
    cfg = current_app.config
    kind = (cfg.get("CQS_PROVIDER") or "database").lower()
    if kind == "http":
        headers = {}
        if cfg.get("CQS_API_KEY"):
            headers["X-API-Key"] = cfg["CQS_API_KEY"]
        client = JsonHttpClient(
            cfg.get("CQS_API_URL", ""),
            timeout=cfg.get("CQS_TIMEOUT_SECONDS", 10),
            headers=headers,
            name="cqs",
        )
        return HttpCqsProvider(client)
    if kind != "database":
        logger.warning("Unknown CQS_PROVIDER=%r, falling back to database", kind)
    return DatabaseCqsProvider()
