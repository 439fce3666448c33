"""
Shared Session Hub
SQLAlchemy database instance and shared model helpers.
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# ── Enumerations shared by the sharing layer ────────────────────────────
VISIBILITIES = ("private", "shared", "public")
SESSION_PERMISSIONS = ("view", "comment")
PROJECT_ROLES = ("viewer", "contributor", "admin")
MESSAGE_ROLES = ("user", "assistant")


def utcnow():
    """Naive UTC now. DateTime columns are stored without a zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value):
    return value.isoformat() if value else None
