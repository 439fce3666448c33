"""
Session Service — projects, chat sessions and their messages.

Transaction boundaries live here: each public method commits its own unit
of work, then hands the outcome to the activity recorder.

Access rules (on top of the permission resolver):
    create session   project level owner | admin | contributor
    append message   session level owner | comment
    read messages    any non-None session level, or a valid share token
    delete           owner only
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from chatshare.core.exceptions import ConflictError, NotFoundError, ValidationError
from chatshare.middleware.logging_config import log_context
from chatshare.models import MESSAGE_ROLES, VISIBILITIES, utcnow
from chatshare.models.auth import User
from chatshare.models.project import Project
from chatshare.models.session import ChatSession, Message, SessionFavorite
from chatshare.services.permission_service import (
    OWNER,
    PROJECT_WRITE_LEVELS,
    SESSION_WRITE_LEVELS,
)
from chatshare.utils.helpers import clamp_page, commit_or_conflict, page

logger = logging.getLogger(__name__)

MAX_APPEND_ATTEMPTS = 3
MESSAGE_PAGE_MAX = 500
PROJECT_NAME_MAX = 200


def _check_visibility(visibility):
    if visibility not in VISIBILITIES:
        raise ValidationError(
            f"Invalid visibility: {visibility}",
            details={"visibility": f"must be one of {', '.join(VISIBILITIES)}"},
        )


class SessionService:
    """Conversation store operations.

    Args:
        session: SQLAlchemy session.
        resolver: PermissionResolver bound to the same session.
        issuer: ShareTokenIssuer, used when a resource is created non-private.
        recorder: ActivityRecorder.
    """

    def __init__(self, session, resolver, issuer, recorder):
        self.session = session
        self.resolver = resolver
        self.issuer = issuer
        self.recorder = recorder

    # ═══════════════════════════════════════════════════════════════
    # Projects
    # ═══════════════════════════════════════════════════════════════
    def create_project(self, name, display_name, owner_id, description=None,
                       visibility="private", ip_address=None, user_agent=None):
        name = (name or "").strip()
        if not name or len(name) > PROJECT_NAME_MAX:
            raise ValidationError("Project name is required", details={"name": "required"})
        _check_visibility(visibility)
        existing = self.session.execute(
            select(Project.id).where(Project.name == name)
        ).first()
        if existing is not None:
            raise ConflictError("Project", "name", name)

        project = Project(
            name=name,
            display_name=(display_name or "").strip() or name,
            description=description,
            owner_id=owner_id,
            visibility=visibility,
        )
        self.issuer.issue_token_for(project)
        self.session.add(project)
        commit_or_conflict(self.session, "Project", "name", name)

        logger.info("Project created: id=%s name=%s owner=%s", project.id, name, owner_id)
        self.recorder.record(
            "create_project", "project", project.id, user_id=owner_id,
            metadata={"name": name, "visibility": visibility},
            ip_address=ip_address, user_agent=user_agent,
        )
        return project.to_dict(include_token=True)

    def delete_project(self, project_id, caller_id, ip_address=None, user_agent=None):
        """Delete a project and its sessions.

        Sessions owned by other users (contributors) are never swept away by
        the cascade: while any remain, the delete is refused with 409.
        """
        project = self.resolver.require_owner("project", project_id, caller_id, action="delete")
        pid, name = project.id, project.name
        foreign = self.session.execute(
            select(func.count(ChatSession.id)).where(
                ChatSession.project_id == pid,
                ChatSession.owner_id != caller_id,
            )
        ).scalar()
        if foreign:
            logger.warning(
                "Project delete refused: id=%s holds %d sessions of other users", pid, foreign,
                extra=log_context("project", pid, caller_id, event="delete_refused"),
            )
            raise ConflictError(
                "Project", "sessions", foreign,
                message="Project still holds sessions owned by other users",
            )
        self.session.delete(project)
        self.session.commit()
        logger.info("Project deleted: id=%s by user=%s", pid, caller_id)
        self.recorder.record(
            "delete_project", "project", pid, user_id=caller_id,
            metadata={"name": name}, ip_address=ip_address, user_agent=user_agent,
        )

    # ═══════════════════════════════════════════════════════════════
    # Sessions
    # ═══════════════════════════════════════════════════════════════
    def create_session(self, project_id, caller_id, session_id=None, title=None,
                       visibility="private", ip_address=None, user_agent=None):
        """Create a session inside a project. The caller becomes its owner."""
        project, _level = self.resolver.require_level(
            "project", project_id, caller_id, PROJECT_WRITE_LEVELS, action="add sessions to",
        )
        _check_visibility(visibility)
        if session_id is not None:
            session_id = str(session_id).strip()
            if not session_id or len(session_id) > 64:
                raise ValidationError("Invalid session id", details={"id": "1-64 characters"})
            if self.session.get(ChatSession, session_id) is not None:
                raise ConflictError("Session", "id", session_id)

        chat = ChatSession(
            project_id=project.id,
            owner_id=caller_id,
            title=(title or "").strip() or None,
            visibility=visibility,
        )
        if session_id:
            chat.id = session_id
        self.issuer.issue_token_for(chat)
        self.session.add(chat)
        project.updated_at = utcnow()
        commit_or_conflict(self.session, "Session", "id", session_id)

        self.recorder.record(
            "create_session", "session", chat.id, user_id=caller_id,
            metadata={"project_id": project.id, "visibility": visibility},
            ip_address=ip_address, user_agent=user_agent,
        )
        return chat.to_dict(include_token=True)

    def delete_session(self, session_id, caller_id, ip_address=None, user_agent=None):
        chat = self.resolver.require_owner("session", session_id, caller_id, action="delete")
        sid, project_id = chat.id, chat.project_id
        self.session.delete(chat)
        self.session.commit()
        logger.info("Session deleted: id=%s by user=%s", sid, caller_id)
        self.recorder.record(
            "delete_session", "session", sid, user_id=caller_id,
            metadata={"project_id": project_id}, ip_address=ip_address, user_agent=user_agent,
        )

    # ═══════════════════════════════════════════════════════════════
    # Messages
    # ═══════════════════════════════════════════════════════════════
    def append_message(self, session_id, caller_id, role, content, metadata=None):
        """Append a message; the row and the session counters commit together."""
        if role not in MESSAGE_ROLES:
            raise ValidationError(
                f"Invalid role: {role}",
                details={"role": f"must be one of {', '.join(MESSAGE_ROLES)}"},
            )
        if not isinstance(content, str) or not content:
            raise ValidationError("Message content is required", details={"content": "required"})
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Message metadata must be an object")

        for attempt in range(1, MAX_APPEND_ATTEMPTS + 1):
            chat, _level = self.resolver.require_level(
                "session", session_id, caller_id, SESSION_WRITE_LEVELS, action="add messages to",
            )
            next_index = self.session.execute(
                select(func.coalesce(func.max(Message.message_index), -1) + 1)
                .where(Message.session_id == chat.id)
            ).scalar()
            now = utcnow()
            message = Message(
                session_id=chat.id,
                role=role,
                content=content,
                meta=metadata or {},
                timestamp=now,
                message_index=next_index,
            )
            self.session.add(message)
            chat.message_count = (chat.message_count or 0) + 1
            chat.last_message_at = now
            chat.updated_at = now
            try:
                self.session.commit()
                return message.to_dict()
            except IntegrityError:
                self.session.rollback()
                if attempt == MAX_APPEND_ATTEMPTS:
                    raise
                logger.warning(
                    "Message index %s taken on session %s (attempt %d); retrying",
                    next_index, session_id, attempt,
                )

    def _message_page(self, chat_id, limit, offset):
        limit, offset = clamp_page(limit, offset, default=MESSAGE_PAGE_MAX, maximum=MESSAGE_PAGE_MAX)
        rows = self.session.execute(
            select(Message)
            .where(Message.session_id == chat_id)
            .order_by(Message.message_index.asc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return page([m.to_dict() for m in rows], limit, offset)

    def get_messages(self, session_id, caller_id, limit=None, offset=None, project_id=None,
                     ip_address=None, user_agent=None):
        """Messages of a session the caller can read.

        Non-owner reads are recorded as ``view_session``.
        """
        chat, level = self.resolver.require_readable("session", session_id, caller_id)
        if project_id is not None and str(chat.project_id) != str(project_id):
            raise NotFoundError("Session", session_id)
        result = self._message_page(chat.id, limit, offset)
        result["session"] = chat.to_dict(include_token=level == OWNER)
        result["permission"] = level
        if level != OWNER:
            self.recorder.record(
                "view_session", "session", chat.id, user_id=caller_id,
                metadata={"permission": level}, ip_address=ip_address, user_agent=user_agent,
            )
        return result

    def get_shared_session(self, token, limit=None, offset=None, ip_address=None, user_agent=None):
        """Bearer access by share token: "view" for anyone holding it."""
        chat = self.issuer.resolve_by_token(token)
        if chat is None:
            raise NotFoundError("Shared session")
        owner = self.session.get(User, chat.owner_id)
        project = self.session.get(Project, chat.project_id)
        result = self._message_page(chat.id, limit, offset)
        result["session"] = chat.to_dict(include_token=False)
        result["session"]["owner"] = owner.to_summary() if owner else None
        result["session"]["project"] = (
            {"id": project.id, "name": project.name, "display_name": project.display_name}
            if project else None
        )
        result["permission"] = "view"
        self.recorder.record(
            "view_shared_session", "session", chat.id, user_id=None,
            metadata={"access_type": chat.visibility},
            ip_address=ip_address, user_agent=user_agent,
        )
        return result

    # ═══════════════════════════════════════════════════════════════
    # Favorites
    # ═══════════════════════════════════════════════════════════════
    def favorite_session(self, session_id, caller_id):
        chat, _level = self.resolver.require_readable("session", session_id, caller_id)
        fav = self.session.execute(
            select(SessionFavorite).where(
                SessionFavorite.user_id == caller_id,
                SessionFavorite.session_id == chat.id,
            )
        ).scalar_one_or_none()
        if fav is None:
            self.session.add(SessionFavorite(user_id=caller_id, session_id=chat.id))
            commit_or_conflict(self.session, "SessionFavorite", "session_id", chat.id)
        return {"session_id": chat.id, "favorited": True}

    def unfavorite_session(self, session_id, caller_id):
        fav = self.session.execute(
            select(SessionFavorite).where(
                SessionFavorite.user_id == caller_id,
                SessionFavorite.session_id == str(session_id),
            )
        ).scalar_one_or_none()
        if fav is None:
            raise NotFoundError("Favorite", session_id)
        self.session.delete(fav)
        self.session.commit()
        return {"session_id": str(session_id), "favorited": False}
