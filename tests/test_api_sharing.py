"""
Sharing API tests — visibility, grants, token access, permission lookup,
public directory and activity trail.
"""

import pytest

from chatshare.models.audit import ActivityLog


@pytest.fixture()
def project(alice, make_project):
    return make_project(alice)


@pytest.fixture()
def chat(alice, project, make_session):
    return make_session(alice, project)


def _permission(client, chat_id, headers=None):
    return client.get(f"/api/sharing/permission/session/{chat_id}", headers=headers or {})


# ═══════════════════════════════════════════════════════════════
# End-to-end scenarios
# ═══════════════════════════════════════════════════════════════

def test_share_and_revoke_on_shared_session(client, alice, bob, chat, auth_headers):
    owner, guest = auth_headers(alice), auth_headers(bob)

    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility",
                     json={"visibility": "shared"}, headers=owner)
    assert res.status_code == 200
    assert res.get_json()["share_url"].endswith(res.get_json()["share_token"])

    assert _permission(client, chat.id, guest).status_code == 404

    res = client.post(f"/api/sharing/sessions/{chat.id}/share",
                      json={"username": "bob", "permission": "view"}, headers=owner)
    assert res.status_code == 201
    assert _permission(client, chat.id, guest).get_json()["permission"] == "view"

    res = client.get(f"/api/projects/{chat.project_id}/sessions/{chat.id}/messages", headers=guest)
    assert res.status_code == 200
    assert res.get_json()["permission"] == "view"

    res = client.delete(f"/api/sharing/sessions/{chat.id}/share/{bob.id}", headers=owner)
    assert res.status_code == 200
    assert _permission(client, chat.id, guest).status_code == 404
    res = client.get(f"/api/projects/{chat.project_id}/sessions/{chat.id}/messages", headers=guest)
    assert res.status_code == 404


def test_public_then_private_kills_anonymous_link(client, alice, chat, auth_headers):
    owner = auth_headers(alice)
    client.post(f"/api/sessions/{chat.id}/messages",
                json={"role": "user", "content": "hello"}, headers=owner)

    token = client.put(f"/api/sharing/sessions/{chat.id}/visibility",
                       json={"visibility": "public"}, headers=owner).get_json()["share_token"]

    res = client.get(f"/api/sharing/shared/{token}")
    assert res.status_code == 200
    body = res.get_json()
    assert body["permission"] == "view"
    assert [m["content"] for m in body["items"]] == ["hello"]
    assert body["session"]["share_token"] is None
    assert res.headers["Cache-Control"] == "no-store"
    assert _permission(client, chat.id).get_json()["permission"] == "view"

    entry = ActivityLog.query.filter_by(action="view_shared_session").one()
    assert entry.user_id is None
    assert entry.meta == {"access_type": "public"}

    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility",
                     json={"visibility": "private"}, headers=owner)
    assert res.get_json() == {"visibility": "private", "share_token": None, "share_url": None}

    assert client.get(f"/api/sharing/shared/{token}").status_code == 404
    assert _permission(client, chat.id).status_code == 404


# ═══════════════════════════════════════════════════════════════
# Visibility endpoint
# ═══════════════════════════════════════════════════════════════

def test_visibility_requires_login(client, chat):
    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility", json={"visibility": "public"})
    assert res.status_code == 401


def test_visibility_non_owner_forbidden(client, alice, bob, chat, auth_headers):
    client.put(f"/api/sharing/sessions/{chat.id}/visibility",
               json={"visibility": "public"}, headers=auth_headers(alice))
    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility",
                     json={"visibility": "private"}, headers=auth_headers(bob))
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_FORBIDDEN"


def test_visibility_invalid_value(client, alice, chat, auth_headers):
    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility",
                     json={"visibility": "everyone"}, headers=auth_headers(alice))
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"


def test_visibility_missing_value(client, alice, chat, auth_headers):
    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility", json={},
                     headers=auth_headers(alice))
    assert res.status_code == 400


def test_project_visibility(client, alice, project, auth_headers):
    res = client.put(f"/api/sharing/projects/{project.id}/visibility",
                     json={"visibility": "public"}, headers=auth_headers(alice))
    assert res.status_code == 200
    assert res.get_json()["share_token"]

    listed = client.get("/api/sharing/public/projects").get_json()
    assert [p["id"] for p in listed["items"]] == [project.id]
    assert listed["items"][0]["share_token"] is None


# ═══════════════════════════════════════════════════════════════
# Grants
# ═══════════════════════════════════════════════════════════════

def test_share_unknown_user_404(client, alice, chat, auth_headers):
    res = client.post(f"/api/sharing/sessions/{chat.id}/share",
                      json={"username": "nobody"}, headers=auth_headers(alice))
    assert res.status_code == 404


def test_share_invisible_session_is_404_not_403(client, bob, chat, auth_headers):
    res = client.post(f"/api/sharing/sessions/{chat.id}/share",
                      json={"username": "alice"}, headers=auth_headers(bob))
    assert res.status_code == 404


def test_sharing_info_owner_only(client, alice, bob, chat, auth_headers):
    client.post(f"/api/sharing/sessions/{chat.id}/share",
                json={"username": "bob", "permission": "comment"}, headers=auth_headers(alice))

    info = client.get(f"/api/sharing/sessions/{chat.id}/sharing", headers=auth_headers(alice))
    assert info.status_code == 200
    assert [u["username"] for u in info.get_json()["shared_with"]] == ["bob"]

    res = client.get(f"/api/sharing/sessions/{chat.id}/sharing", headers=auth_headers(bob))
    assert res.status_code == 403


def test_collaborators_lifecycle(client, alice, bob, project, auth_headers):
    owner = auth_headers(alice)
    res = client.post(f"/api/sharing/projects/{project.id}/collaborators",
                      json={"username": "bob", "role": "contributor"}, headers=owner)
    assert res.status_code == 201

    listed = client.get(f"/api/sharing/projects/{project.id}/collaborators", headers=owner)
    assert [c["username"] for c in listed.get_json()["collaborators"]] == ["bob"]

    res = client.get(f"/api/sharing/permission/project/{project.id}", headers=auth_headers(bob))
    assert res.get_json()["permission"] == "contributor"

    res = client.delete(f"/api/sharing/projects/{project.id}/collaborators/{bob.id}", headers=owner)
    assert res.status_code == 200
    res = client.get(f"/api/sharing/permission/project/{project.id}", headers=auth_headers(bob))
    assert res.status_code == 404


def test_shared_with_me(client, alice, bob, chat, auth_headers):
    client.post(f"/api/sharing/sessions/{chat.id}/share",
                json={"username": "bob"}, headers=auth_headers(alice))

    res = client.get("/api/sharing/shared-with-me?type=session", headers=auth_headers(bob))
    assert res.status_code == 200
    items = res.get_json()["items"]
    assert [i["resource"]["id"] for i in items] == [chat.id]
    assert items[0]["permission"] == "view"


def test_shared_with_me_rejects_bad_type(client, bob, auth_headers):
    res = client.get("/api/sharing/shared-with-me?type=folder", headers=auth_headers(bob))
    assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════

def test_permission_unknown_type_is_400(client, chat):
    assert client.get(f"/api/sharing/permission/folder/{chat.id}").status_code == 400


def test_owner_permission(client, alice, chat, auth_headers):
    res = _permission(client, chat.id, auth_headers(alice))
    assert res.get_json() == {"resource_type": "session", "resource_id": chat.id, "permission": "owner"}


def test_malformed_token_is_404(client):
    assert client.get("/api/sharing/shared/not-a-token").status_code == 404


def test_public_sessions_anonymous(client, alice, project, make_session):
    public = make_session(alice, project, visibility="public")
    make_session(alice, project, visibility="shared")

    res = client.get("/api/sharing/public/sessions?limit=5")
    body = res.get_json()
    assert [s["id"] for s in body["items"]] == [public.id]
    assert body["items"][0]["share_token"] is None
    assert body["pagination"]["limit"] == 5


def test_user_search(client, alice, bob, carol, auth_headers):
    res = client.get("/api/sharing/users/search?q=bo", headers=auth_headers(alice))
    assert [u["username"] for u in res.get_json()["users"]] == ["bob"]


def test_activity_trail_owner_only(client, alice, bob, chat, auth_headers):
    client.put(f"/api/sharing/sessions/{chat.id}/visibility",
               json={"visibility": "public"}, headers=auth_headers(alice))

    res = client.get(f"/api/sharing/session/{chat.id}/activity", headers=auth_headers(alice))
    assert res.status_code == 200
    assert [e["action"] for e in res.get_json()["items"]] == ["update_session_visibility"]

    res = client.get(f"/api/sharing/session/{chat.id}/activity", headers=auth_headers(bob))
    assert res.status_code == 403


def test_visibility_change_when_no_token_can_be_minted_is_503(
    client, alice, project, chat, make_session, auth_headers, monkeypatch,
):
    taken_token = make_session(alice, project, visibility="public").share_token
    monkeypatch.setattr("chatshare.services.share_token_service.secrets.token_hex",
                        lambda nbytes: taken_token)

    res = client.put(f"/api/sharing/sessions/{chat.id}/visibility",
                     json={"visibility": "public"}, headers=auth_headers(alice))
    assert res.status_code == 503
    assert res.get_json()["code"] == "ERR_TOKEN_UNAVAILABLE"
