"""
Permission resolver tests.

Covers the precedence owner > explicit grant > public floor > None for
sessions and projects, anonymous callers, and the owner-only guard.
"""

import pytest

from chatshare.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from chatshare.models import db
from chatshare.models.project import ProjectCollaborator
from chatshare.models.session import SessionShare


@pytest.fixture()
def project(alice, make_project):
    return make_project(alice)


def _share(chat, user, permission):
    db.session.add(SessionShare(
        session_id=chat.id, shared_with_user_id=user.id, permission=permission,
    ))
    db.session.commit()


def _collab(project, user, role):
    db.session.add(ProjectCollaborator(project_id=project.id, user_id=user.id, role=role))
    db.session.commit()


# ═══════════════════════════════════════════════════════════════
# Sessions
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("visibility", ["private", "shared", "public"])
def test_owner_always_resolves_to_owner(svc, alice, project, make_session, visibility):
    chat = make_session(alice, project, visibility=visibility)
    assert svc.resolver.get_effective_permission("session", chat.id, alice.id) == "owner"


def test_private_session_invisible_to_others(svc, alice, bob, project, make_session):
    chat = make_session(alice, project)
    assert svc.resolver.get_effective_permission("session", chat.id, bob.id) is None
    assert svc.resolver.get_effective_permission("session", chat.id, None) is None


def test_explicit_share_grants_only_the_target(svc, alice, bob, carol, project, make_session):
    chat = make_session(alice, project)
    _share(chat, bob, "view")

    assert svc.resolver.get_effective_permission("session", chat.id, bob.id) == "view"
    assert svc.resolver.get_effective_permission("session", chat.id, carol.id) is None


def test_comment_grant_beats_public_floor(svc, alice, bob, project, make_session):
    chat = make_session(alice, project, visibility="public")
    _share(chat, bob, "comment")
    assert svc.resolver.get_effective_permission("session", chat.id, bob.id) == "comment"


def test_public_session_floor_is_view_for_anyone(svc, alice, carol, project, make_session):
    chat = make_session(alice, project, visibility="public")
    assert svc.resolver.get_effective_permission("session", chat.id, carol.id) == "view"
    assert svc.resolver.get_effective_permission("session", chat.id, None) == "view"


def test_shared_visibility_grants_nothing_without_token(svc, alice, bob, project, make_session):
    chat = make_session(alice, project, visibility="shared")
    assert svc.resolver.get_effective_permission("session", chat.id, bob.id) is None


def test_revoked_share_on_public_session_falls_back_to_view(svc, alice, bob, project, make_session):
    chat = make_session(alice, project, visibility="public")
    _share(chat, bob, "comment")
    svc.sharing.revoke_share(chat.id, bob.id, alice.id)
    assert svc.resolver.get_effective_permission("session", chat.id, bob.id) == "view"


def test_missing_session_resolves_to_none(svc, alice):
    assert svc.resolver.get_effective_permission("session", "nope", alice.id) is None


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("role", ["viewer", "contributor", "admin"])
def test_project_collaborator_role_is_level(svc, alice, bob, project, role):
    _collab(project, bob, role)
    assert svc.resolver.get_effective_permission("project", project.id, bob.id) == role


def test_public_project_floor_is_viewer(svc, alice, carol, make_project):
    project = make_project(alice, visibility="public")
    assert svc.resolver.get_effective_permission("project", project.id, carol.id) == "viewer"
    assert svc.resolver.get_effective_permission("project", project.id, None) == "viewer"


def test_project_owner_resolves_to_owner(svc, alice, project):
    assert svc.resolver.get_effective_permission("project", project.id, alice.id) == "owner"


def test_non_numeric_project_id_resolves_to_none(svc, alice):
    assert svc.resolver.get_effective_permission("project", "abc", alice.id) is None


def test_unknown_resource_type_rejected(svc, alice):
    with pytest.raises(ValidationError):
        svc.resolver.get_effective_permission("folder", 1, alice.id)


# ═══════════════════════════════════════════════════════════════
# Guards
# ═══════════════════════════════════════════════════════════════

def test_require_owner_hides_private_resource_as_not_found(svc, alice, bob, project, make_session):
    chat = make_session(alice, project)
    with pytest.raises(NotFoundError):
        svc.resolver.require_owner("session", chat.id, bob.id)


def test_require_owner_denies_known_non_owner(svc, alice, bob, project, make_session):
    chat = make_session(alice, project)
    _share(chat, bob, "comment")
    with pytest.raises(PermissionDeniedError):
        svc.resolver.require_owner("session", chat.id, bob.id)


def test_require_owner_denies_public_viewer(svc, alice, carol, project, make_session):
    chat = make_session(alice, project, visibility="public")
    with pytest.raises(PermissionDeniedError):
        svc.resolver.require_owner("session", chat.id, carol.id)


def test_require_owner_returns_resource(svc, alice, project):
    assert svc.resolver.require_owner("project", project.id, alice.id).id == project.id
