"""
Sharing Blueprint — visibility, grants, token access and the public directory.

  GET    /api/sharing/public/sessions                  — public sessions
  GET    /api/sharing/public/projects                  — public projects
  GET    /api/sharing/shared/<token>                   — token access (no auth)
  GET    /api/sharing/permission/<type>/<id>           — caller's effective level
  PUT    /api/sharing/sessions/<sid>/visibility        — set session visibility (owner)
  PUT    /api/sharing/projects/<pid>/visibility        — set project visibility (owner)
  POST   /api/sharing/sessions/<sid>/share             — share with a user (owner)
  DELETE /api/sharing/sessions/<sid>/share/<uid>       — revoke a share (owner)
  GET    /api/sharing/sessions/<sid>/sharing           — sharing dialog data (owner)
  GET    /api/sharing/projects/<pid>/collaborators     — list collaborators (owner)
  POST   /api/sharing/projects/<pid>/collaborators     — add collaborator (owner)
  DELETE /api/sharing/projects/<pid>/collaborators/<uid> — remove collaborator (owner)
  GET    /api/sharing/shared-with-me                   — grants to the caller
  GET    /api/sharing/users/search?q=                  — user lookup for the share dialog
  GET    /api/sharing/<type>/<id>/activity             — activity trail (owner)
"""

import logging

from flask import Blueprint, jsonify, request

from chatshare.blueprints import json_body, page_args, services
from chatshare.middleware.jwt_auth import current_user_id, login_required
from chatshare.services.user_service import search_users
from chatshare.utils.errors import E, api_error, register_error_handlers
from chatshare.utils.helpers import client_meta

logger = logging.getLogger(__name__)

sharing_bp = Blueprint("sharing_bp", __name__, url_prefix="/api/sharing")
register_error_handlers(sharing_bp)


def _share_url(token):
    if not token:
        return None
    return f"{request.host_url.rstrip('/')}/shared/{token}"


# ═══════════════════════════════════════════════════════════════
# Public directory & token access
# ═══════════════════════════════════════════════════════════════
@sharing_bp.route("/public/sessions", methods=["GET"])
def public_sessions():
    limit, offset = page_args()
    return jsonify(services().directory.list_public("session", limit, offset, current_user_id())), 200


@sharing_bp.route("/public/projects", methods=["GET"])
def public_projects():
    limit, offset = page_args()
    return jsonify(services().directory.list_public("project", limit, offset, current_user_id())), 200


@sharing_bp.route("/shared/<token>", methods=["GET"])
def shared_session(token):
    ip, ua = client_meta()
    result = services().sessions.get_shared_session(
        token,
        limit=request.args.get("limit"),
        offset=request.args.get("offset"),
        ip_address=ip, user_agent=ua,
    )
    return jsonify(result), 200


@sharing_bp.route("/permission/<resource_type>/<resource_id>", methods=["GET"])
def effective_permission(resource_type, resource_id):
    level = services().resolver.get_effective_permission(
        resource_type, resource_id, current_user_id(),
    )
    if level is None:
        return api_error(E.NOT_FOUND, f"{resource_type.capitalize()} not found")
    return jsonify({
        "resource_type": resource_type,
        "resource_id": resource_id,
        "permission": level,
    }), 200


# ═══════════════════════════════════════════════════════════════
# Visibility
# ═══════════════════════════════════════════════════════════════
def _set_visibility(resource_type, resource_id):
    data = json_body()
    visibility = data.get("visibility")
    if not visibility:
        return api_error(E.VALIDATION_REQUIRED, "visibility is required")
    ip, ua = client_meta()
    result = services().tokens.set_visibility(
        resource_type, resource_id, visibility, current_user_id(),
        ip_address=ip, user_agent=ua,
    )
    result["share_url"] = _share_url(result["share_token"])
    return jsonify(result), 200


@sharing_bp.route("/sessions/<session_id>/visibility", methods=["PUT"])
@login_required
def set_session_visibility(session_id):
    """Body: { "visibility": "private" | "shared" | "public" }"""
    return _set_visibility("session", session_id)


@sharing_bp.route("/projects/<int:project_id>/visibility", methods=["PUT"])
@login_required
def set_project_visibility(project_id):
    """Body: { "visibility": "private" | "shared" | "public" }"""
    return _set_visibility("project", project_id)


# ═══════════════════════════════════════════════════════════════
# Session shares
# ═══════════════════════════════════════════════════════════════
@sharing_bp.route("/sessions/<session_id>/share", methods=["POST"])
@login_required
def share_session(session_id):
    """Body: { "username": "...", "permission": "view" | "comment" }"""
    data = json_body()
    username = (data.get("username") or "").strip()
    if not username:
        return api_error(E.VALIDATION_REQUIRED, "username is required")
    ip, ua = client_meta()
    share = services().sharing.share_with_user(
        session_id, username, data.get("permission", "view"), current_user_id(),
        ip_address=ip, user_agent=ua,
    )
    return jsonify(share), 201


@sharing_bp.route("/sessions/<session_id>/share/<int:user_id>", methods=["DELETE"])
@login_required
def revoke_session_share(session_id, user_id):
    ip, ua = client_meta()
    services().sharing.revoke_share(session_id, user_id, current_user_id(), ip_address=ip, user_agent=ua)
    return jsonify({"revoked": True}), 200


@sharing_bp.route("/sessions/<session_id>/sharing", methods=["GET"])
@login_required
def sharing_info(session_id):
    info = services().sharing.get_sharing_info(session_id, current_user_id())
    info["share_url"] = _share_url(info["share_token"])
    return jsonify(info), 200


# ═══════════════════════════════════════════════════════════════
# Project collaborators
# ═══════════════════════════════════════════════════════════════
@sharing_bp.route("/projects/<int:project_id>/collaborators", methods=["GET"])
@login_required
def list_collaborators(project_id):
    items = services().sharing.list_project_collaborators(project_id, current_user_id())
    return jsonify({"collaborators": items}), 200


@sharing_bp.route("/projects/<int:project_id>/collaborators", methods=["POST"])
@login_required
def add_collaborator(project_id):
    """Body: { "username": "...", "role": "viewer" | "contributor" | "admin" }"""
    data = json_body()
    username = (data.get("username") or "").strip()
    if not username:
        return api_error(E.VALIDATION_REQUIRED, "username is required")
    ip, ua = client_meta()
    grant = services().sharing.add_project_collaborator(
        project_id, username, data.get("role", "viewer"), current_user_id(),
        ip_address=ip, user_agent=ua,
    )
    return jsonify(grant), 201


@sharing_bp.route("/projects/<int:project_id>/collaborators/<int:user_id>", methods=["DELETE"])
@login_required
def remove_collaborator(project_id, user_id):
    ip, ua = client_meta()
    services().sharing.remove_project_collaborator(
        project_id, user_id, current_user_id(), ip_address=ip, user_agent=ua,
    )
    return jsonify({"removed": True}), 200


# ═══════════════════════════════════════════════════════════════
# Caller-centric listings
# ═══════════════════════════════════════════════════════════════
@sharing_bp.route("/shared-with-me", methods=["GET"])
@login_required
def shared_with_me():
    limit, offset = page_args()
    resource_type = request.args.get("type") or None
    result = services().directory.list_shared_with_me(
        current_user_id(), limit, offset, resource_type=resource_type,
    )
    return jsonify(result), 200


@sharing_bp.route("/users/search", methods=["GET"])
@login_required
def user_search():
    users = search_users(
        request.args.get("q", ""),
        limit=request.args.get("limit", 10, type=int),
        exclude_user_id=current_user_id(),
    )
    return jsonify({"users": [u.to_summary() for u in users]}), 200


@sharing_bp.route("/<resource_type>/<resource_id>/activity", methods=["GET"])
@login_required
def resource_activity(resource_type, resource_id):
    svc = services()
    resource = svc.resolver.require_owner(
        resource_type, resource_id, current_user_id(), action="view activity of",
    )
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))
    items = svc.recorder.list_for_resource(resource_type, resource.id, limit=limit)
    return jsonify({"items": items}), 200
