"""
User service tests — registration, authentication, profile and search.
"""

import pytest

from chatshare.core.exceptions import ConflictError, NotFoundError, ValidationError
from chatshare.services import user_service
from chatshare.services.user_service import UserServiceError

PASSWORD = "correct-horse-battery"


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════

def test_create_user_hashes_password():
    user = user_service.create_user("dana", PASSWORD, email="Dana@Chatshare.dev")
    assert user.id is not None
    assert user.password_hash != PASSWORD
    assert user.password_hash.startswith("$2")
    assert user.display_name == "dana"
    assert user.email.endswith("@chatshare.dev")


@pytest.mark.parametrize("username", ["", "ab", "has space", "x" * 51])
def test_create_user_rejects_bad_username(username):
    with pytest.raises(ValidationError):
        user_service.create_user(username, PASSWORD)


def test_create_user_rejects_short_password():
    with pytest.raises(ValidationError):
        user_service.create_user("dana", "short")


def test_create_user_rejects_bad_email():
    with pytest.raises(ValidationError):
        user_service.create_user("dana", PASSWORD, email="not-an-email")


def test_duplicate_username_conflicts(alice):
    with pytest.raises(ConflictError):
        user_service.create_user("alice", PASSWORD)


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════

def test_authenticate_success_sets_last_login(alice):
    user = user_service.authenticate_user("alice", PASSWORD)
    assert user.id == alice.id
    assert user.last_login_at is not None


def test_authenticate_wrong_password(alice):
    with pytest.raises(UserServiceError) as exc:
        user_service.authenticate_user("alice", "wrong-password")
    assert exc.value.status_code == 401


def test_authenticate_unknown_user():
    with pytest.raises(UserServiceError) as exc:
        user_service.authenticate_user("nobody", PASSWORD)
    assert exc.value.status_code == 401


def test_authenticate_disabled_account(make_user):
    make_user("ghost", is_active=False)
    with pytest.raises(UserServiceError) as exc:
        user_service.authenticate_user("ghost", PASSWORD)
    assert exc.value.status_code == 403


def test_get_user_by_username_skips_inactive(make_user):
    make_user("ghost", is_active=False)
    assert user_service.get_user_by_username("ghost") is None


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════

def test_update_profile_whitelists_fields(alice):
    user = user_service.update_profile(alice.id, {
        "display_name": "  Alice A.  ",
        "bio": "",
        "username": "hijack",
        "profile_public": 0,
    })
    assert user.display_name == "Alice A."
    assert user.bio is None
    assert user.username == "alice"
    assert user.profile_public is False


def test_update_profile_email_conflict(alice, make_user):
    make_user("erin", email="erin@chatshare.dev")
    with pytest.raises(ConflictError):
        user_service.update_profile(alice.id, {"email": "erin@chatshare.dev"})


def test_update_profile_unknown_user():
    with pytest.raises(NotFoundError):
        user_service.update_profile(999, {"bio": "x"})


# ═══════════════════════════════════════════════════════════════
# Search / lifecycle
# ═══════════════════════════════════════════════════════════════

def test_search_users_matches_public_active_only(alice, bob, make_user):
    make_user("bobby", profile_public=False)
    make_user("bobcat", is_active=False)
    make_user("rob", display_name="Bob Robertson")

    names = [u.username for u in user_service.search_users("bob")]
    assert names == ["bob", "rob"]


def test_search_users_excludes_caller(alice, bob):
    assert user_service.search_users("bo", exclude_user_id=bob.id) == []


def test_search_users_escapes_wildcards(alice, bob):
    assert user_service.search_users("%%") == []


def test_search_users_requires_two_chars():
    with pytest.raises(ValidationError):
        user_service.search_users("a")


def test_deactivate_user(alice):
    user_service.deactivate_user(alice.id)
    assert user_service.get_user_by_username("alice") is None
    assert user_service.get_user_by_id(alice.id) is not None


def test_ensure_default_admin_is_idempotent():
    first, created = user_service.ensure_default_admin("admin", PASSWORD)
    again, created_again = user_service.ensure_default_admin("admin", PASSWORD)
    assert created is True
    assert created_again is False
    assert first.id == again.id
    assert user_service.has_users()
