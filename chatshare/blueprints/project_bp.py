"""
Project Blueprint — projects, sessions, messages and favorites.

  GET    /api/projects                                   — my projects + visible sessions
  POST   /api/projects/create                            — create project
  DELETE /api/projects/<project_id>                      — delete project (owner)
  GET    /api/projects/<project_id>/sessions             — visible sessions of a project
  POST   /api/projects/<project_id>/sessions             — create session
  GET    /api/projects/<project_id>/sessions/<sid>/messages — read a session
  POST   /api/sessions/<sid>/messages                    — append message
  DELETE /api/sessions/<sid>                             — delete session (owner)
  POST   /api/sessions/<sid>/favorite                    — bookmark
  DELETE /api/sessions/<sid>/favorite                    — remove bookmark
  GET    /api/favorites                                  — my bookmarks

Anonymous callers may read public projects and sessions; everything that
writes requires a JWT.
"""

import logging

from flask import Blueprint, jsonify, request

from chatshare.blueprints import json_body, page_args, services
from chatshare.middleware.jwt_auth import current_user_id, login_required
from chatshare.utils.errors import E, api_error, register_error_handlers
from chatshare.utils.helpers import client_meta

logger = logging.getLogger(__name__)

project_bp = Blueprint("project_bp", __name__, url_prefix="/api")
register_error_handlers(project_bp)


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/projects", methods=["GET"])
@login_required
def list_projects():
    projects = services().directory.list_user_projects(current_user_id())
    return jsonify({"projects": projects}), 200


@project_bp.route("/projects/create", methods=["POST"])
@login_required
def create_project():
    """
    Body: { "name": "...", "display_name": "...", "description": "...", "visibility": "private" }
    """
    data = json_body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "Project name is required")
    ip, ua = client_meta()
    project = services().sessions.create_project(
        data["name"],
        data.get("display_name"),
        current_user_id(),
        description=data.get("description"),
        visibility=data.get("visibility", "private"),
        ip_address=ip, user_agent=ua,
    )
    return jsonify(project), 201


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@login_required
def delete_project(project_id):
    ip, ua = client_meta()
    services().sessions.delete_project(project_id, current_user_id(), ip_address=ip, user_agent=ua)
    return jsonify({"deleted": True}), 200


# ═══════════════════════════════════════════════════════════════
# Sessions
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/projects/<int:project_id>/sessions", methods=["GET"])
def list_project_sessions(project_id):
    limit, offset = page_args()
    result = services().directory.list_project_sessions(
        project_id, current_user_id(), limit, offset,
    )
    return jsonify(result), 200


@project_bp.route("/projects/<int:project_id>/sessions", methods=["POST"])
@login_required
def create_session(project_id):
    """
    Body: { "id": "<optional client id>", "title": "...", "visibility": "private" }
    """
    data = json_body()
    ip, ua = client_meta()
    chat = services().sessions.create_session(
        project_id,
        current_user_id(),
        session_id=data.get("id"),
        title=data.get("title"),
        visibility=data.get("visibility", "private"),
        ip_address=ip, user_agent=ua,
    )
    return jsonify(chat), 201


@project_bp.route("/projects/<int:project_id>/sessions/<session_id>/messages", methods=["GET"])
def get_session_messages(project_id, session_id):
    ip, ua = client_meta()
    result = services().sessions.get_messages(
        session_id,
        current_user_id(),
        limit=request.args.get("limit"),
        offset=request.args.get("offset"),
        project_id=project_id,
        ip_address=ip, user_agent=ua,
    )
    return jsonify(result), 200


@project_bp.route("/sessions/<session_id>/messages", methods=["POST"])
@login_required
def append_message(session_id):
    """
    Body: { "role": "user" | "assistant", "content": "...", "metadata": {...} }
    """
    data = json_body()
    message = services().sessions.append_message(
        session_id,
        current_user_id(),
        data.get("role"),
        data.get("content"),
        metadata=data.get("metadata"),
    )
    return jsonify(message), 201


@project_bp.route("/sessions/<session_id>", methods=["DELETE"])
@login_required
def delete_session(session_id):
    ip, ua = client_meta()
    services().sessions.delete_session(session_id, current_user_id(), ip_address=ip, user_agent=ua)
    return jsonify({"deleted": True}), 200


# ═══════════════════════════════════════════════════════════════
# Favorites
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/sessions/<session_id>/favorite", methods=["POST"])
@login_required
def favorite_session(session_id):
    return jsonify(services().sessions.favorite_session(session_id, current_user_id())), 200


@project_bp.route("/sessions/<session_id>/favorite", methods=["DELETE"])
@login_required
def unfavorite_session(session_id):
    return jsonify(services().sessions.unfavorite_session(session_id, current_user_id())), 200


@project_bp.route("/favorites", methods=["GET"])
@login_required
def list_favorites():
    limit, offset = page_args()
    return jsonify(services().directory.list_favorites(current_user_id(), limit, offset)), 200
