"""
Directory listing tests — public directory, shared-with-me, project
session lists, my projects and favorites.
"""

from datetime import datetime, timedelta

import pytest

from chatshare.core.exceptions import NotFoundError
from chatshare.models import db


@pytest.fixture()
def project(alice, make_project):
    return make_project(alice, visibility="public")


def _touch(resource, minutes):
    resource.updated_at = datetime(2026, 1, 1) + timedelta(minutes=minutes)
    db.session.commit()


# ═══════════════════════════════════════════════════════════════
# list_public
# ═══════════════════════════════════════════════════════════════

def test_public_sessions_ordered_by_updated_desc(svc, alice, project, make_session):
    old = make_session(alice, project, visibility="public")
    new = make_session(alice, project, visibility="public")
    make_session(alice, project, visibility="shared")
    make_session(alice, project)
    _touch(old, 1)
    _touch(new, 2)

    result = svc.directory.list_public("session", limit=10, offset=0)
    assert [s["id"] for s in result["items"]] == [new.id, old.id]
    assert result["pagination"] == {"limit": 10, "offset": 0, "hasMore": False}


def test_public_listing_strips_tokens_for_non_owners(svc, alice, bob, project, make_session):
    make_session(alice, project, visibility="public")

    anonymous = svc.directory.list_public("session", 10, 0)
    as_bob = svc.directory.list_public("session", 10, 0, caller_id=bob.id)
    as_alice = svc.directory.list_public("session", 10, 0, caller_id=alice.id)

    assert anonymous["items"][0]["share_token"] is None
    assert as_bob["items"][0]["share_token"] is None
    assert as_alice["items"][0]["share_token"] is not None


def test_public_listing_pages_with_has_more_approximation(svc, alice, project, make_session):
    chats = [make_session(alice, project, visibility="public") for _ in range(4)]
    for i, chat in enumerate(chats):
        _touch(chat, i)

    first = svc.directory.list_public("session", limit=2, offset=0)
    second = svc.directory.list_public("session", limit=2, offset=2)
    third = svc.directory.list_public("session", limit=2, offset=4)

    assert [s["id"] for s in first["items"]] == [chats[3].id, chats[2].id]
    assert [s["id"] for s in second["items"]] == [chats[1].id, chats[0].id]
    # A full last page still reports hasMore; the next page comes back empty.
    assert second["pagination"]["hasMore"] is True
    assert third["items"] == []
    assert third["pagination"]["hasMore"] is False


def test_public_projects_carry_public_session_count(svc, alice, project, make_project, make_session):
    make_session(alice, project, visibility="public")
    make_session(alice, project, visibility="public")
    make_session(alice, project)
    make_project(alice)  # private, not listed

    result = svc.directory.list_public("project", 10, 0)
    assert len(result["items"]) == 1
    assert result["items"][0]["session_count"] == 2
    assert result["items"][0]["owner"]["username"] == "alice"


def test_limit_is_clamped(svc):
    result = svc.directory.list_public("session", limit=10_000, offset=-5)
    assert result["pagination"]["limit"] == 100
    assert result["pagination"]["offset"] == 0


# ═══════════════════════════════════════════════════════════════
# list_shared_with_me
# ═══════════════════════════════════════════════════════════════

def test_shared_with_me_merges_sessions_and_projects(svc, alice, bob, make_project, make_session):
    private_project = make_project(alice)
    chat = make_session(alice, private_project)
    svc.sharing.share_with_user(chat.id, "bob", "comment", alice.id)
    svc.sharing.add_project_collaborator(private_project.id, "bob", "viewer", alice.id)

    result = svc.directory.list_shared_with_me(bob.id, 10, 0)
    kinds = [item["resource_type"] for item in result["items"]]
    assert kinds == ["project", "session"]
    assert result["items"][1]["permission"] == "comment"
    assert result["items"][1]["resource"]["share_token"] is None


def test_shared_with_me_ordered_by_grant_time(svc, alice, bob, make_project, make_session):
    p = make_project(alice)
    first = make_session(alice, p)
    second = make_session(alice, p)
    svc.sharing.share_with_user(first.id, "bob", "view", alice.id)
    svc.sharing.share_with_user(second.id, "bob", "view", alice.id)
    # Re-sharing refreshes the grant time
    svc.sharing.share_with_user(first.id, "bob", "comment", alice.id)

    result = svc.directory.list_shared_with_me(bob.id, 10, 0, resource_type="session")
    assert [i["resource"]["id"] for i in result["items"]] == [first.id, second.id]

    paged = svc.directory.list_shared_with_me(bob.id, 1, 1, resource_type="session")
    assert [i["resource"]["id"] for i in paged["items"]] == [second.id]


# ═══════════════════════════════════════════════════════════════
# list_project_sessions
# ═══════════════════════════════════════════════════════════════

def test_project_sessions_filtered_by_resolver(svc, alice, bob, carol, project, make_session):
    private = make_session(alice, project)
    public = make_session(alice, project, visibility="public")
    shared_to_bob = make_session(alice, project, visibility="shared")
    svc.sharing.share_with_user(shared_to_bob.id, "bob", "view", alice.id)

    owner_view = {s["id"] for s in svc.directory.list_project_sessions(project.id, alice.id)["items"]}
    bob_view = {s["id"] for s in svc.directory.list_project_sessions(project.id, bob.id)["items"]}
    carol_view = {s["id"] for s in svc.directory.list_project_sessions(project.id, carol.id)["items"]}

    assert owner_view == {private.id, public.id, shared_to_bob.id}
    assert bob_view == {public.id, shared_to_bob.id}
    assert carol_view == {public.id}


def test_project_sessions_of_invisible_project_is_not_found(svc, alice, carol, make_project):
    hidden = make_project(alice)
    with pytest.raises(NotFoundError):
        svc.directory.list_project_sessions(hidden.id, carol.id)


# ═══════════════════════════════════════════════════════════════
# list_user_projects / favorites
# ═══════════════════════════════════════════════════════════════

def test_user_projects_include_owned_and_collaborated(svc, alice, bob, make_project, make_session):
    own = make_project(bob)
    theirs = make_project(alice)
    make_project(alice)  # not shared with bob
    make_session(alice, theirs)  # private, hidden from bob
    svc.sharing.add_project_collaborator(theirs.id, "bob", "contributor", alice.id)

    projects = svc.directory.list_user_projects(bob.id)
    roles = {p["id"]: p["user_role"] for p in projects}
    assert roles == {own.id: "owner", theirs.id: "contributor"}
    assert next(p for p in projects if p["id"] == theirs.id)["sessions"] == []


def test_favorites_drop_sessions_that_stop_resolving(svc, alice, bob, project, make_session):
    chat = make_session(alice, project, visibility="public")
    svc.sessions.favorite_session(chat.id, bob.id)
    assert [s["id"] for s in svc.directory.list_favorites(bob.id)["items"]] == [chat.id]

    svc.tokens.set_visibility("session", chat.id, "private", alice.id)
    assert svc.directory.list_favorites(bob.id)["items"] == []
