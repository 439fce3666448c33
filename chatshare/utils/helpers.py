"""Shared utility functions for services and blueprints.

commit_or_conflict:  commit a unit of work, turning IntegrityError into ConflictError
clamp_page:          normalise limit/offset for directory listings
page:                wrap a list of items in the standard pagination envelope
client_meta:         caller IP + user agent for activity entries
"""
import logging

from flask import has_request_context, request
from sqlalchemy.exc import IntegrityError

from chatshare.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_conflict(session, resource, field, value=None):
    """Commit ``session``; on IntegrityError roll back and raise ConflictError.

    Usage::

        session.add(project)
        commit_or_conflict(session, "Project", "name", name)

    Other database errors propagate after a rollback.
    """
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Integrity error on commit (%s.%s): %s", resource, field, exc.orig)
        raise ConflictError(resource, field, value) from exc
    except Exception:
        session.rollback()
        raise


# ── Pagination ───────────────────────────────────────────────────────────────

def clamp_page(limit, offset, *, default=DEFAULT_LIMIT, maximum=MAX_LIMIT):
    """Coerce limit/offset into ``1 <= limit <= maximum`` and ``offset >= 0``.

    Non-numeric input falls back to the defaults.
    """
    try:
        limit = int(limit) if limit is not None else default
    except (TypeError, ValueError):
        limit = default
    try:
        offset = int(offset) if offset is not None else 0
    except (TypeError, ValueError):
        offset = 0
    return max(1, min(limit, maximum)), max(0, offset)


def page(items, limit, offset):
    """Standard listing envelope.

    ``hasMore`` is true whenever a full page came back, so a listing whose
    size is an exact multiple of ``limit`` reports one extra empty page.
    """
    return {
        "items": items,
        "pagination": {
            "limit": limit,
            "offset": offset,
            "hasMore": len(items) == limit,
        },
    }


# ── Request metadata ─────────────────────────────────────────────────────────

def client_meta():
    """Return ``(ip_address, user_agent)`` for the current request, if any."""
    if not has_request_context():
        return None, None
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "")
    ip = ip.split(",")[0].strip() or None
    return ip, (request.headers.get("User-Agent") or "")[:500] or None
