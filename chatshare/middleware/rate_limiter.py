"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in chatshare/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from chatshare.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

AUTH_LIMIT = "10/minute"        # credential guessing
SHARING_LIMIT = "120/minute"    # token guessing + grant churn
DEFAULT_API_LIMIT = "300/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:     10/minute
        - Sharing endpoints:  120/minute
        - Project endpoints:  300/minute
        - Health check:       exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth_bp")
    if bp:
        limiter.limit(AUTH_LIMIT)(bp)

    bp = app.blueprints.get("sharing_bp")
    if bp:
        limiter.limit(SHARING_LIMIT)(bp)

    bp = app.blueprints.get("project_bp")
    if bp:
        limiter.limit(DEFAULT_API_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — auth: %s, sharing: %s, projects: %s",
        AUTH_LIMIT, SHARING_LIMIT, DEFAULT_API_LIMIT,
    )
