"""
Share-Token Service — visibility transitions and the link tokens they imply.

Invariant (also a CHECK constraint on both tables):
    visibility != "private"  ⇔  share_token IS NOT NULL

Transitions:
    * → private            token cleared; old links stop resolving at commit
    private → shared|public  fresh token minted
    shared ↔ public          existing token kept
    same → same              no-op on the token

Tokens are 32 random bytes rendered as hex (256 bits). Visibility and token
are written in one commit. A uniqueness collision at commit time rolls the
whole change back and is retried with a new token; callers never see it.

Token holders get "view" on the session without authenticating. Lookup is
an exact match and only ever returns non-private resources.
"""

import logging
import re
import secrets

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from chatshare.core.exceptions import TokenGenerationError, ValidationError
from chatshare.middleware.logging_config import log_context
from chatshare.models import VISIBILITIES, utcnow
from chatshare.models.project import Project
from chatshare.models.session import ChatSession
from chatshare.services.permission_service import check_resource_type

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
MAX_TOKEN_ATTEMPTS = 5

# Lookup accepts any hex token of at least 128 bits; anything else cannot match.
_TOKEN_RE = re.compile(r"^[0-9a-f]{32,128}$")


class ShareTokenIssuer:
    """Mint, keep or clear share tokens as part of a visibility change.

    Args:
        session: SQLAlchemy session.
        resolver: PermissionResolver bound to the same session.
        recorder: ActivityRecorder bound to the same session.
        token_factory: Callable returning a fresh token string. Defaults to
            ``secrets.token_hex(TOKEN_BYTES)``.
    """

    def __init__(self, session, resolver, recorder, token_factory=None):
        self.session = session
        self.resolver = resolver
        self.recorder = recorder
        self.token_factory = token_factory or (lambda: secrets.token_hex(TOKEN_BYTES))

    # ═══════════════════════════════════════════════════════════════
    # Token minting
    # ═══════════════════════════════════════════════════════════════
    def _token_in_use(self, token):
        # A pending visibility change must not flush before its token is set.
        with self.session.no_autoflush:
            for model in (ChatSession, Project):
                hit = self.session.execute(
                    select(model.id).where(model.share_token == token)
                ).first()
                if hit is not None:
                    return True
        return False

    def generate_token(self):
        """Return a token not currently held by any session or project."""
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = self.token_factory()
            if not self._token_in_use(token):
                return token
        logger.error(
            "No unique share token after %d attempts", MAX_TOKEN_ATTEMPTS,
            extra=log_context(event="token_exhausted"),
        )
        raise TokenGenerationError("Could not generate a unique share token")

    def issue_token_for(self, resource):
        """Bring a new or changed resource in line with the token invariant (no commit)."""
        if resource.visibility == "private":
            resource.share_token = None
        elif not resource.share_token:
            resource.share_token = self.generate_token()
        return resource

    # ═══════════════════════════════════════════════════════════════
    # Visibility transitions
    # ═══════════════════════════════════════════════════════════════
    def set_visibility(self, resource_type, resource_id, new_visibility, caller_id,
                       ip_address=None, user_agent=None):
        """Change visibility (owner only) and rotate the token accordingly.

        Returns:
            {"visibility": str, "share_token": str | None}
        """
        check_resource_type(resource_type)
        if new_visibility not in VISIBILITIES:
            raise ValidationError(
                f"Invalid visibility: {new_visibility}",
                details={"visibility": f"must be one of {', '.join(VISIBILITIES)}"},
            )

        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            resource = self.resolver.require_owner(
                resource_type, resource_id, caller_id, action="change visibility",
            )
            old_visibility = resource.visibility
            resource.visibility = new_visibility
            try:
                self.issue_token_for(resource)
            except TokenGenerationError:
                self.session.rollback()
                raise
            resource.updated_at = utcnow()
            try:
                self.session.commit()
                break
            except IntegrityError:
                self.session.rollback()
                if attempt == MAX_TOKEN_ATTEMPTS:
                    raise
                logger.warning(
                    "Share token collision on %s %s (attempt %d); retrying",
                    resource_type, resource_id, attempt,
                )

        logger.info(
            "Visibility changed: %s %s %s -> %s by user=%s",
            resource_type, resource.id, old_visibility, new_visibility, caller_id,
            extra=log_context(resource_type, resource.id, caller_id, event="visibility_changed"),
        )
        self.recorder.record(
            f"update_{resource_type}_visibility", resource_type, resource.id,
            user_id=caller_id,
            metadata={"old_visibility": old_visibility, "new_visibility": new_visibility},
            ip_address=ip_address, user_agent=user_agent,
        )
        return {"visibility": resource.visibility, "share_token": resource.share_token}

    # ═══════════════════════════════════════════════════════════════
    # Token lookup (bearer access)
    # ═══════════════════════════════════════════════════════════════
    def _lookup(self, model, token):
        if not isinstance(token, str) or not _TOKEN_RE.match(token):
            return None
        return self.session.execute(
            select(model).where(
                model.share_token == token,
                model.visibility != "private",
            )
        ).scalar_one_or_none()

    def resolve_by_token(self, token):
        """Return the non-private ChatSession holding ``token``, or None."""
        return self._lookup(ChatSession, token)

    def resolve_project_by_token(self, token):
        """Return the non-private Project holding ``token``, or None."""
        return self._lookup(Project, token)
