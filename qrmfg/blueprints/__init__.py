"""
Request helpers shared by the questionnaire blueprints.
"""

from flask import request


def actor_from(data: dict, *keys: str, default: str = "system") -> str:
    """First non-blank actor name from the body, then the X-User header."""
    for key in keys:
        value = (data or {}).get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    header = request.headers.get("X-User", "").strip()
    return header or default


def parse_version(data: dict):
    """Optional ``version`` from a JSON body as int; ``(value, error_message)``."""
    raw = (data or {}).get("version")
    if raw is None or raw == "":
        return None, None
    try:
        return int(raw), None
    except (TypeError, ValueError):
        return None, "version must be an integer"
