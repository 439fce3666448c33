"""
Auth API tests — register, login, identity and profile.
"""

from chatshare.models import db
from chatshare.models.audit import ActivityLog

PASSWORD = "correct-horse-battery"


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_register_returns_token(client):
    res = client.post("/api/auth/register", json={
        "username": "dana", "password": PASSWORD, "display_name": "Dana",
    })
    assert res.status_code == 201
    data = res.get_json()
    assert data["token_type"] == "Bearer"
    assert data["access_token"]
    assert data["user"]["username"] == "dana"
    assert "password_hash" not in data["user"]
    assert ActivityLog.query.filter_by(action="register").count() == 1


def test_register_missing_fields(client):
    res = client.post("/api/auth/register", json={"username": "dana"})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_register_duplicate_is_conflict(client, alice):
    res = client.post("/api/auth/register", json={"username": "alice", "password": PASSWORD})
    assert res.status_code == 409


def test_login_then_me(client, alice):
    res = client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})
    assert res.status_code == 200
    token = res.get_json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["user"]["id"] == alice.id


def test_login_bad_password(client, alice):
    res = client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"


def test_login_disabled_account(client, make_user):
    make_user("ghost", is_active=False)
    res = client.post("/api/auth/login", json={"username": "ghost", "password": PASSWORD})
    assert res.status_code == 403


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401


def test_garbage_token_is_anonymous(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert res.status_code == 401


def test_token_of_deactivated_user_is_anonymous(client, alice, auth_headers):
    headers = auth_headers(alice)
    alice.is_active = False
    db.session.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_profile_update(client, alice, auth_headers):
    res = client.put("/api/auth/profile", json={"bio": "Hi there", "profile_public": False},
                     headers=auth_headers(alice))
    assert res.status_code == 200
    body = res.get_json()
    assert body["bio"] == "Hi there"
    assert body["profile_public"] is False

    fetched = client.get("/api/auth/profile", headers=auth_headers(alice)).get_json()
    assert fetched["bio"] == "Hi there"


def test_profile_update_requires_fields(client, alice, auth_headers):
    res = client.put("/api/auth/profile", json={"username": "x"}, headers=auth_headers(alice))
    assert res.status_code == 400


def test_non_json_body_rejected(client, alice, auth_headers):
    res = client.post("/api/auth/login", data="username=alice", content_type="text/plain")
    assert res.status_code == 415
