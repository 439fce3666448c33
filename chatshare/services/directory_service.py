"""
Directory Service — listing queries, all filtered through the permission resolver.

Listings:
    list_public            public sessions / projects, newest update first
    list_shared_with_me    explicit grants to the caller, newest grant first
    list_project_sessions  sessions of one project the caller can see
    list_user_projects     projects the caller owns or collaborates on
    list_favorites         the caller's bookmarked sessions that still resolve

Share tokens are stripped from every entry whose owner is not the caller.
"""

import logging

from sqlalchemy import exists, func, or_, select

from chatshare.core.exceptions import ValidationError
from chatshare.models.auth import User
from chatshare.models.project import Project, ProjectCollaborator
from chatshare.models.session import ChatSession, SessionFavorite, SessionShare
from chatshare.services.permission_service import check_resource_type
from chatshare.utils.helpers import DEFAULT_LIMIT, MAX_LIMIT, clamp_page, page

logger = logging.getLogger(__name__)

PROJECT_PREVIEW_SESSIONS = 10


class DirectoryService:
    """Read-side queries over sessions and projects.

    Args:
        session: SQLAlchemy session.
        resolver: PermissionResolver bound to the same session.
        default_limit / max_limit: page size bounds.
    """

    def __init__(self, session, resolver, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT):
        self.session = session
        self.resolver = resolver
        self.default_limit = default_limit
        self.max_limit = max_limit

    def _clamp(self, limit, offset):
        return clamp_page(limit, offset, default=self.default_limit, maximum=self.max_limit)

    # ── Row shaping ──────────────────────────────────────────────────────

    @staticmethod
    def _session_entry(chat, level, caller_id, owner=None, project=None):
        d = chat.to_dict(include_token=caller_id is not None and chat.owner_id == caller_id)
        d["permission"] = level
        if owner is not None:
            d["owner"] = owner.to_summary()
        if project is not None:
            d["project"] = {
                "id": project.id,
                "name": project.name,
                "display_name": project.display_name,
            }
        return d

    @staticmethod
    def _project_entry(project, level, caller_id, owner=None):
        d = project.to_dict(include_token=caller_id is not None and project.owner_id == caller_id)
        d["user_role"] = level
        if owner is not None:
            d["owner"] = owner.to_summary()
        return d

    # ═══════════════════════════════════════════════════════════════
    # Public directory
    # ═══════════════════════════════════════════════════════════════
    def list_public(self, resource_type, limit=None, offset=None, caller_id=None):
        """Public sessions or projects ordered by ``updated_at`` descending."""
        check_resource_type(resource_type)
        limit, offset = self._clamp(limit, offset)
        if resource_type == "session":
            items = self._public_sessions(limit, offset, caller_id)
        else:
            items = self._public_projects(limit, offset, caller_id)
        return page(items, limit, offset)

    def _public_sessions(self, limit, offset, caller_id):
        level = self.resolver.session_level_expr(caller_id)
        rows = self.session.execute(
            select(ChatSession, level, User, Project)
            .join(User, User.id == ChatSession.owner_id)
            .join(Project, Project.id == ChatSession.project_id)
            .where(ChatSession.visibility == "public")
            .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        return [
            self._session_entry(chat, lvl, caller_id, owner=owner, project=project)
            for chat, lvl, owner, project in rows
        ]

    def _public_projects(self, limit, offset, caller_id):
        level = self.resolver.project_level_expr(caller_id)
        public_sessions = (
            select(func.count(ChatSession.id))
            .where(
                ChatSession.project_id == Project.id,
                ChatSession.visibility == "public",
            )
            .correlate(Project)
            .scalar_subquery()
        )
        rows = self.session.execute(
            select(Project, level, public_sessions, User)
            .join(User, User.id == Project.owner_id)
            .where(Project.visibility == "public")
            .order_by(Project.updated_at.desc(), Project.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        items = []
        for project, lvl, session_count, owner in rows:
            d = self._project_entry(project, lvl, caller_id, owner=owner)
            d["session_count"] = session_count or 0
            items.append(d)
        return items

    # ═══════════════════════════════════════════════════════════════
    # Shared with me
    # ═══════════════════════════════════════════════════════════════
    def list_shared_with_me(self, caller_id, limit=None, offset=None, resource_type=None):
        """Resources explicitly granted to the caller, newest grant first.

        Session shares and project collaborations are merged into one
        stream ordered by grant ``created_at``.
        """
        if caller_id is None:
            raise ValidationError("Shared-with-me listing requires an authenticated caller")
        if resource_type is not None:
            check_resource_type(resource_type)
        limit, offset = self._clamp(limit, offset)
        window = offset + limit

        entries = []
        if resource_type in (None, "session"):
            rows = self.session.execute(
                select(SessionShare, ChatSession, User)
                .join(ChatSession, ChatSession.id == SessionShare.session_id)
                .join(User, User.id == ChatSession.owner_id)
                .where(SessionShare.shared_with_user_id == caller_id)
                .order_by(SessionShare.created_at.desc(), SessionShare.id.desc())
                .limit(window)
            ).all()
            for share, chat, owner in rows:
                entries.append((share.created_at, {
                    "resource_type": "session",
                    "permission": share.permission,
                    "shared_at": share.created_at.isoformat(),
                    "shared_by_user_id": share.shared_by_user_id,
                    "resource": self._session_entry(chat, share.permission, caller_id, owner=owner),
                }))
        if resource_type in (None, "project"):
            rows = self.session.execute(
                select(ProjectCollaborator, Project, User)
                .join(Project, Project.id == ProjectCollaborator.project_id)
                .join(User, User.id == Project.owner_id)
                .where(ProjectCollaborator.user_id == caller_id)
                .order_by(ProjectCollaborator.created_at.desc(), ProjectCollaborator.id.desc())
                .limit(window)
            ).all()
            for grant, project, owner in rows:
                entries.append((grant.created_at, {
                    "resource_type": "project",
                    "permission": grant.role,
                    "shared_at": grant.created_at.isoformat(),
                    "shared_by_user_id": grant.invited_by,
                    "resource": self._project_entry(project, grant.role, caller_id, owner=owner),
                }))

        entries.sort(key=lambda e: e[0], reverse=True)
        items = [entry for _, entry in entries[offset:window]]
        return page(items, limit, offset)

    # ═══════════════════════════════════════════════════════════════
    # Project contents
    # ═══════════════════════════════════════════════════════════════
    def _visible_sessions(self, project_id, caller_id, limit, offset):
        level = self.resolver.session_level_expr(caller_id)
        rows = self.session.execute(
            select(ChatSession, level, User)
            .join(User, User.id == ChatSession.owner_id)
            .where(ChatSession.project_id == project_id, level.is_not(None))
            .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        return [
            self._session_entry(chat, lvl, caller_id, owner=owner)
            for chat, lvl, owner in rows
        ]

    def list_project_sessions(self, project_id, caller_id, limit=None, offset=None):
        """Sessions of a project the caller may see (owner, shared or public).

        The project itself must resolve for the caller first; project-level
        access alone does not reveal private sessions inside it.
        """
        project, project_level = self.resolver.require_readable("project", project_id, caller_id)
        limit, offset = self._clamp(limit, offset)
        result = page(self._visible_sessions(project.id, caller_id, limit, offset), limit, offset)
        result["project"] = self._project_entry(project, project_level, caller_id)
        return result

    def list_user_projects(self, caller_id):
        """Projects the caller owns or collaborates on, each with a preview of visible sessions."""
        level = self.resolver.project_level_expr(caller_id)
        collaborates = exists().where(
            ProjectCollaborator.project_id == Project.id,
            ProjectCollaborator.user_id == caller_id,
        )
        rows = self.session.execute(
            select(Project, level)
            .where(or_(Project.owner_id == caller_id, collaborates))
            .order_by(Project.updated_at.desc(), Project.id.desc())
        ).all()
        items = []
        for project, lvl in rows:
            d = self._project_entry(project, lvl, caller_id)
            d["sessions"] = self._visible_sessions(project.id, caller_id, PROJECT_PREVIEW_SESSIONS, 0)
            items.append(d)
        return items

    def list_favorites(self, caller_id, limit=None, offset=None):
        """Bookmarked sessions, newest bookmark first, dropping any that no longer resolve."""
        limit, offset = self._clamp(limit, offset)
        level = self.resolver.session_level_expr(caller_id)
        rows = self.session.execute(
            select(ChatSession, level, SessionFavorite.created_at)
            .join(SessionFavorite, SessionFavorite.session_id == ChatSession.id)
            .where(SessionFavorite.user_id == caller_id, level.is_not(None))
            .order_by(SessionFavorite.created_at.desc(), SessionFavorite.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        items = []
        for chat, lvl, favorited_at in rows:
            d = self._session_entry(chat, lvl, caller_id)
            d["favorited_at"] = favorited_at.isoformat()
            items.append(d)
        return page(items, limit, offset)
