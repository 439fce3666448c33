"""
JWT Auth Middleware — parses the Bearer token and sets ``g.jwt_user_id``.

A missing, expired or invalid token leaves the request anonymous
(``g.jwt_user_id = None``). Whether anonymity is acceptable is the route's
decision: use ``@login_required`` where an identity is mandatory.
"""

import functools
import logging

import jwt as pyjwt
from flask import g, request

from chatshare.services.jwt_service import decode_access_token
from chatshare.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_username = None

        path = request.path
        if not path.startswith("/api/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired JWT on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.debug("Invalid JWT on %s", path)
            return

        from chatshare.services.user_service import get_user_by_id

        user = get_user_by_id(payload["sub"])
        if user is None or not user.is_active:
            return
        g.jwt_user_id = user.id
        g.jwt_username = user.username


def current_user_id():
    """Authenticated user id for this request, or None."""
    return getattr(g, "jwt_user_id", None)


def login_required(fn):
    """Reject anonymous callers with 401."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return fn(*args, **kwargs)

    return wrapper
