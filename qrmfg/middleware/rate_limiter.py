"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in qrmfg/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from qrmfg.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
ADMIN_LIMIT = "20/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Questionnaire endpoints:  60/minute
        - CQS administration:       20/minute (propagation re-syncs every plant)
        - Health check:             exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("plant_questionnaire")
    if bp:
        limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("cqs_admin")
    if bp:
        limiter.limit(ADMIN_LIMIT)(bp)

    # probes must never be throttled
    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limits: questionnaire %s, CQS admin %s", WRITE_LIMIT, ADMIN_LIMIT)
