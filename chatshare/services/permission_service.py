"""
Permission Service — effective access level of a caller on a session or project.

Resolution is deterministic, first match wins:
  1. owner            caller_id == resource.owner_id
  2. explicit grant   SessionShare.permission (view | comment)
                      ProjectCollaborator.role (viewer | contributor | admin)
  3. public floor     visibility == "public" → "view" / "viewer" (anonymous too)
  4. None

A ``shared`` resource grants nothing here: link access goes through the
share token (see share_token_service), never through this resolver.

The rules are expressed once as a SQL CASE expression. Single-row lookups
and every listing query select the same expression, so per-row and
per-list decisions cannot drift apart.
"""

import logging

from sqlalchemy import case, select

from chatshare.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from chatshare.middleware.logging_config import log_context
from chatshare.models.project import Project, ProjectCollaborator
from chatshare.models.session import ChatSession, SessionShare

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ("session", "project")

SESSION_PUBLIC_LEVEL = "view"
PROJECT_PUBLIC_LEVEL = "viewer"
OWNER = "owner"

# Project roles that may add sessions to a project
PROJECT_WRITE_LEVELS = frozenset({OWNER, "admin", "contributor"})
# Session levels that may append messages
SESSION_WRITE_LEVELS = frozenset({OWNER, "comment"})

_LABELS = {"session": "Session", "project": "Project"}


def check_resource_type(resource_type):
    if resource_type not in RESOURCE_TYPES:
        raise ValidationError(
            f"Unknown resource type: {resource_type}",
            details={"resource_type": f"must be one of {', '.join(RESOURCE_TYPES)}"},
        )


class PermissionResolver:
    """Resolve a caller's level against an explicitly supplied DB session.

    Args:
        session: SQLAlchemy session (``db.session`` in request handlers).
    """

    def __init__(self, session):
        self.session = session

    # ── Level expressions ────────────────────────────────────────────────

    def session_level_expr(self, caller_id):
        """CASE expression yielding the caller's level for each ChatSession row."""
        if caller_id is None:
            return case(
                (ChatSession.visibility == "public", SESSION_PUBLIC_LEVEL),
                else_=None,
            )
        grant = (
            select(SessionShare.permission)
            .where(
                SessionShare.session_id == ChatSession.id,
                SessionShare.shared_with_user_id == caller_id,
            )
            .correlate(ChatSession)
            .scalar_subquery()
        )
        return case(
            (ChatSession.owner_id == caller_id, OWNER),
            (grant.is_not(None), grant),
            (ChatSession.visibility == "public", SESSION_PUBLIC_LEVEL),
            else_=None,
        )

    def project_level_expr(self, caller_id):
        """CASE expression yielding the caller's level for each Project row."""
        if caller_id is None:
            return case(
                (Project.visibility == "public", PROJECT_PUBLIC_LEVEL),
                else_=None,
            )
        grant = (
            select(ProjectCollaborator.role)
            .where(
                ProjectCollaborator.project_id == Project.id,
                ProjectCollaborator.user_id == caller_id,
            )
            .correlate(Project)
            .scalar_subquery()
        )
        return case(
            (Project.owner_id == caller_id, OWNER),
            (grant.is_not(None), grant),
            (Project.visibility == "public", PROJECT_PUBLIC_LEVEL),
            else_=None,
        )

    def level_expr(self, resource_type, caller_id):
        check_resource_type(resource_type)
        if resource_type == "session":
            return self.session_level_expr(caller_id)
        return self.project_level_expr(caller_id)

    # ── Single-resource resolution ───────────────────────────────────────

    def resolve_session(self, session_id, caller_id):
        """Return ``(ChatSession | None, level | None)``."""
        row = self.session.execute(
            select(ChatSession, self.session_level_expr(caller_id))
            .where(ChatSession.id == str(session_id))
        ).first()
        if row is None:
            return None, None
        return row[0], row[1]

    def resolve_project(self, project_id, caller_id):
        """Return ``(Project | None, level | None)``."""
        try:
            project_id = int(project_id)
        except (TypeError, ValueError):
            return None, None
        row = self.session.execute(
            select(Project, self.project_level_expr(caller_id))
            .where(Project.id == project_id)
        ).first()
        if row is None:
            return None, None
        return row[0], row[1]

    def resolve(self, resource_type, resource_id, caller_id):
        check_resource_type(resource_type)
        if resource_type == "session":
            return self.resolve_session(resource_id, caller_id)
        return self.resolve_project(resource_id, caller_id)

    def get_effective_permission(self, resource_type, resource_id, caller_id):
        """Return the caller's level, or None when the resource is missing or invisible."""
        _resource, level = self.resolve(resource_type, resource_id, caller_id)
        return level

    # ── Guards ───────────────────────────────────────────────────────────

    def require_readable(self, resource_type, resource_id, caller_id):
        """Return ``(resource, level)``; raise NotFoundError when level is None."""
        resource, level = self.resolve(resource_type, resource_id, caller_id)
        if resource is None or level is None:
            raise NotFoundError(_LABELS[resource_type], resource_id)
        return resource, level

    def require_level(self, resource_type, resource_id, caller_id, allowed, action):
        """Like require_readable, but a level outside ``allowed`` raises PermissionDeniedError."""
        resource, level = self.require_readable(resource_type, resource_id, caller_id)
        if level not in allowed:
            logger.warning(
                "Permission denied: user=%s action=%r %s=%s level=%s",
                caller_id, action, resource_type, resource_id, level,
                extra=log_context(resource_type, resource_id, caller_id, event="permission_denied"),
            )
            raise PermissionDeniedError(action, _LABELS[resource_type], level)
        return resource, level

    def require_owner(self, resource_type, resource_id, caller_id, action="modify"):
        """Mutations (visibility, grants, deletion) need exactly the owner level."""
        resource, _level = self.require_level(
            resource_type, resource_id, caller_id, (OWNER,), action,
        )
        return resource
