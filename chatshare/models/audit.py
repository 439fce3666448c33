"""
Shared Session Hub
Activity domain model.

Models:
    - ActivityLog: immutable, append-only trail of access and sharing events.
"""

from chatshare.models import db, iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_RESOURCE_TYPES = {"session", "project", "user"}

ACTIVITY_ACTIONS = {
    # Reads by non-owners
    "view_session",
    "view_shared_session",
    # Visibility and grants
    "update_session_visibility",
    "update_project_visibility",
    "share_session",
    "remove_session_share",
    "add_project_collaborator",
    "remove_project_collaborator",
    # Lifecycle
    "create_project",
    "create_session",
    "delete_session",
    "delete_project",
    # Account
    "register",
    "login",
    "update_profile",
}


class ActivityLog(db.Model):
    """
    One row per recorded action. Rows are never updated.

    ``user_id`` is NULL for anonymous (token) access. ``created_at`` is
    strictly increasing per (resource_type, resource_id); the recorder
    enforces it on write.
    """

    __tablename__ = "activity_log"
    __table_args__ = (
        db.Index("idx_activity_resource", "resource_type", "resource_id", "created_at"),
        db.Index("idx_activity_user", "user_id"),
        db.Index("idx_activity_action", "action"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action = db.Column(db.String(60), nullable=False)
    resource_type = db.Column(db.String(20), nullable=False, comment="session | project | user")
    resource_id = db.Column(
        db.String(64), nullable=False,
        comment="PK of the referenced resource (string id or int-as-string)",
    )
    meta = db.Column("metadata", db.JSON, default=dict)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "metadata": self.meta or {},
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.resource_type}/{self.resource_id}>"
