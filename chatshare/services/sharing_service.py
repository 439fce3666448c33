"""
Sharing Service — explicit per-user grants on sessions and projects.

Every operation here is owner-only. Callers with a lesser level get
PermissionDeniedError; callers with no level at all get NotFoundError.
Granting twice to the same user overwrites the earlier grant.
"""

import logging

from sqlalchemy import select

from chatshare.core.exceptions import NotFoundError, ValidationError
from chatshare.models import PROJECT_ROLES, SESSION_PERMISSIONS, utcnow
from chatshare.models.auth import User
from chatshare.models.project import ProjectCollaborator
from chatshare.models.session import SessionShare
from chatshare.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)


class SharingService:
    """Grant issuance and revocation.

    Args:
        session: SQLAlchemy session.
        resolver: PermissionResolver bound to the same session.
        recorder: ActivityRecorder bound to the same session.
    """

    def __init__(self, session, resolver, recorder):
        self.session = session
        self.resolver = resolver
        self.recorder = recorder

    def _active_user(self, username):
        user = self.session.execute(
            select(User).where(User.username == (username or "").strip(), User.is_active.is_(True))
        ).scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", username)
        return user

    # ═══════════════════════════════════════════════════════════════
    # Session shares
    # ═══════════════════════════════════════════════════════════════
    def share_with_user(self, session_id, target_username, permission, caller_id,
                        ip_address=None, user_agent=None):
        """Grant ``permission`` (view | comment) on a session to another user."""
        chat = self.resolver.require_owner("session", session_id, caller_id, action="share")
        if permission not in SESSION_PERMISSIONS:
            raise ValidationError(
                f"Invalid permission: {permission}",
                details={"permission": f"must be one of {', '.join(SESSION_PERMISSIONS)}"},
            )
        target = self._active_user(target_username)
        if target.id == caller_id:
            raise ValidationError("Cannot share a session with yourself")

        share = self.session.execute(
            select(SessionShare).where(
                SessionShare.session_id == chat.id,
                SessionShare.shared_with_user_id == target.id,
            )
        ).scalar_one_or_none()
        if share is None:
            share = SessionShare(session_id=chat.id, shared_with_user_id=target.id)
            self.session.add(share)
        share.permission = permission
        share.shared_by_user_id = caller_id
        share.created_at = utcnow()
        commit_or_conflict(self.session, "SessionShare", "shared_with_user_id", target.id)

        logger.info("Session %s shared with user=%s (%s)", chat.id, target.id, permission)
        self.recorder.record(
            "share_session", "session", chat.id, user_id=caller_id,
            metadata={"shared_with": target.username, "permission": permission},
            ip_address=ip_address, user_agent=user_agent,
        )
        d = share.to_dict()
        d["user"] = target.to_summary()
        return d

    def revoke_share(self, session_id, target_user_id, caller_id,
                     ip_address=None, user_agent=None):
        """Remove a user's explicit grant. Public visibility, if any, still applies."""
        chat = self.resolver.require_owner("session", session_id, caller_id, action="revoke shares on")
        share = self.session.execute(
            select(SessionShare).where(
                SessionShare.session_id == chat.id,
                SessionShare.shared_with_user_id == target_user_id,
            )
        ).scalar_one_or_none()
        if share is None:
            raise NotFoundError("Share", target_user_id)
        self.session.delete(share)
        self.session.commit()

        logger.info("Share on session %s revoked for user=%s", chat.id, target_user_id)
        self.recorder.record(
            "remove_session_share", "session", chat.id, user_id=caller_id,
            metadata={"removed_user_id": target_user_id},
            ip_address=ip_address, user_agent=user_agent,
        )

    def get_sharing_info(self, session_id, caller_id):
        """Visibility, token and grant list for the owner's sharing dialog."""
        chat = self.resolver.require_owner("session", session_id, caller_id, action="view sharing of")
        rows = self.session.execute(
            select(SessionShare, User)
            .join(User, User.id == SessionShare.shared_with_user_id)
            .where(SessionShare.session_id == chat.id)
            .order_by(SessionShare.created_at.desc(), SessionShare.id.desc())
        ).all()
        return {
            "session_id": chat.id,
            "visibility": chat.visibility,
            "share_token": chat.share_token,
            "shared_with": [
                {**user.to_summary(), "permission": share.permission,
                 "shared_at": share.created_at.isoformat()}
                for share, user in rows
            ],
        }

    # ═══════════════════════════════════════════════════════════════
    # Project collaborators
    # ═══════════════════════════════════════════════════════════════
    def add_project_collaborator(self, project_id, username, role, caller_id,
                                 ip_address=None, user_agent=None):
        project = self.resolver.require_owner(
            "project", project_id, caller_id, action="manage collaborators of",
        )
        if role not in PROJECT_ROLES:
            raise ValidationError(
                f"Invalid role: {role}",
                details={"role": f"must be one of {', '.join(PROJECT_ROLES)}"},
            )
        target = self._active_user(username)
        if target.id == caller_id:
            raise ValidationError("Cannot add yourself as a collaborator")

        grant = self.session.execute(
            select(ProjectCollaborator).where(
                ProjectCollaborator.project_id == project.id,
                ProjectCollaborator.user_id == target.id,
            )
        ).scalar_one_or_none()
        if grant is None:
            grant = ProjectCollaborator(project_id=project.id, user_id=target.id)
            self.session.add(grant)
        grant.role = role
        grant.invited_by = caller_id
        grant.created_at = utcnow()
        commit_or_conflict(self.session, "ProjectCollaborator", "user_id", target.id)

        self.recorder.record(
            "add_project_collaborator", "project", project.id, user_id=caller_id,
            metadata={"user": target.username, "role": role},
            ip_address=ip_address, user_agent=user_agent,
        )
        d = grant.to_dict()
        d["user"] = target.to_summary()
        return d

    def remove_project_collaborator(self, project_id, user_id, caller_id,
                                    ip_address=None, user_agent=None):
        project = self.resolver.require_owner(
            "project", project_id, caller_id, action="manage collaborators of",
        )
        grant = self.session.execute(
            select(ProjectCollaborator).where(
                ProjectCollaborator.project_id == project.id,
                ProjectCollaborator.user_id == user_id,
            )
        ).scalar_one_or_none()
        if grant is None:
            raise NotFoundError("Collaborator", user_id)
        self.session.delete(grant)
        self.session.commit()
        self.recorder.record(
            "remove_project_collaborator", "project", project.id, user_id=caller_id,
            metadata={"removed_user_id": user_id},
            ip_address=ip_address, user_agent=user_agent,
        )

    def list_project_collaborators(self, project_id, caller_id):
        project = self.resolver.require_owner(
            "project", project_id, caller_id, action="view collaborators of",
        )
        rows = self.session.execute(
            select(ProjectCollaborator, User)
            .join(User, User.id == ProjectCollaborator.user_id)
            .where(ProjectCollaborator.project_id == project.id)
            .order_by(ProjectCollaborator.created_at.desc(), ProjectCollaborator.id.desc())
        ).all()
        return [
            {**user.to_summary(), "role": grant.role, "added_at": grant.created_at.isoformat()}
            for grant, user in rows
        ]
