"""
Shared Session Hub
Blueprint registry and request helpers shared by the API blueprints.
"""

from flask import current_app, request

from chatshare.models import db
from chatshare.services.container import ServiceContainer
from chatshare.utils.helpers import clamp_page


def page_args():
    """Read ``limit`` / ``offset`` query params, clamped to the configured bounds.

    Query params:
        limit  — max items (default LISTING_DEFAULT_LIMIT, capped at LISTING_MAX_LIMIT)
        offset — starting position (default 0)
    """
    return clamp_page(
        request.args.get("limit"),
        request.args.get("offset"),
        default=current_app.config.get("LISTING_DEFAULT_LIMIT", 20),
        maximum=current_app.config.get("LISTING_MAX_LIMIT", 100),
    )


def services() -> ServiceContainer:
    """Core services bound to the request's DB session."""
    return ServiceContainer(
        db.session,
        default_limit=current_app.config.get("LISTING_DEFAULT_LIMIT", 20),
        max_limit=current_app.config.get("LISTING_MAX_LIMIT", 100),
    )


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
