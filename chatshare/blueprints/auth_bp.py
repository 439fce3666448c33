"""
Auth Blueprint — JWT authentication and profile endpoints.

  POST /api/auth/register   — username + password → JWT
  POST /api/auth/login      — username + password → JWT
  GET  /api/auth/me         — current user
  GET  /api/auth/profile    — current user's profile
  PUT  /api/auth/profile    — update display name, bio, avatar, email, visibility
"""

from flask import Blueprint, jsonify

from chatshare.blueprints import json_body
from chatshare.middleware.jwt_auth import current_user_id, login_required
from chatshare.models import db
from chatshare.services.activity_service import ActivityRecorder
from chatshare.services.jwt_service import token_response
from chatshare.services.user_service import (
    PROFILE_FIELDS,
    UserServiceError,
    authenticate_user,
    create_user,
    get_user_by_id,
    update_profile,
)
from chatshare.utils.errors import E, api_error, register_error_handlers
from chatshare.utils.helpers import client_meta

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/auth")
register_error_handlers(auth_bp)


@auth_bp.errorhandler(UserServiceError)
def _handle_auth_failure(error: UserServiceError):
    code = E.UNAUTHENTICATED if error.status_code == 401 else E.FORBIDDEN
    return api_error(code, error.message, status=error.status_code)


def _record(action, user_id, metadata=None):
    ip, ua = client_meta()
    ActivityRecorder(db.session).record(
        action, "user", user_id, user_id=user_id, metadata=metadata,
        ip_address=ip, user_agent=ua,
    )


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create an account and return a JWT.

    Body: { "username": "...", "password": "...", "email": "...", "display_name": "..." }
    """
    data = json_body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return api_error(E.VALIDATION_REQUIRED, "Username and password are required")

    user = create_user(
        username, password,
        email=data.get("email"),
        display_name=data.get("display_name"),
    )
    _record("register", user.id)
    return jsonify(token_response(user)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with username + password, return a JWT.

    Body: { "username": "...", "password": "..." }
    """
    data = json_body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return api_error(E.VALIDATION_REQUIRED, "Username and password are required")

    user = authenticate_user(username, password)
    _record("login", user.id)
    return jsonify(token_response(user)), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/auth/me, GET/PUT /api/auth/profile
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    user = get_user_by_id(current_user_id())
    return jsonify({"user": user.to_dict(include_private=True)}), 200


@auth_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    user = get_user_by_id(current_user_id())
    return jsonify(user.to_dict(include_private=True)), 200


@auth_bp.route("/profile", methods=["PUT"])
@login_required
def put_profile():
    data = json_body()
    updates = {k: data[k] for k in PROFILE_FIELDS if k in data}
    if not updates:
        return api_error(E.VALIDATION_REQUIRED, "No profile fields supplied")
    user = update_profile(current_user_id(), updates)
    _record("update_profile", user.id, metadata={"fields": sorted(updates)})
    return jsonify(user.to_dict(include_private=True)), 200
