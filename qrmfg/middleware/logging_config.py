"""
Logging setup for the questionnaire service.

    production   one JSON object per line on stderr
    development  coloured single-line output with the plant/material pair
    testing      readable output, no startup banner

LOG_LEVEL overrides the level in every mode.

Questionnaire code logs through module loggers and passes its context as
``extra={"plant_code": ..., "material_code": ...}``. RequestContextFilter
adds the current request id to every record emitted inside a request, so
service log lines can be joined with the timing middleware's access line.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

QUESTIONNAIRE_FIELDS = (
    "plant_code",
    "material_code",
    "workflow_id",
    "completion_percentage",
    "outcome",
    "sync_status",
)
REQUEST_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "remote_addr")

QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic.runtime.migration")


class RequestContextFilter(logging.Filter):
    """Stamp ``request_id`` from flask.g onto records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None and has_request_context():
            record.request_id = getattr(g, "request_id", None)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in REQUEST_FIELDS + QUESTIONNAIRE_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    LEVEL_COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelname, "")
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{colour}{when} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        plant = getattr(record, "plant_code", None)
        material = getattr(record, "material_code", None)
        if plant or material:
            line += f" [{plant or '-'}/{material or '-'}]"
        outcome = getattr(record, "outcome", None)
        if outcome:
            line += f" outcome={outcome}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for this app."""
    testing = bool(app.config.get("TESTING"))
    production = not app.config.get("DEBUG") and not testing

    default_level = "INFO" if production else "DEBUG"
    level_name = (app.config.get("LOG_LEVEL") or default_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    # create_app runs once per test session; avoid stacking handlers
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging ready (level=%s, json=%s)", level_name, production)
