"""
Shared pytest fixtures for the Shared Session Hub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - svc: core services bound to db.session
    - alice / bob / carol: pre-created users
    - make_user / make_project / make_session: seeding factories
    - auth_headers: Bearer header for a user
"""

import secrets

import pytest

from chatshare import create_app
from chatshare.models import db as _db
from chatshare.models.auth import User
from chatshare.models.project import Project
from chatshare.models.session import ChatSession
from chatshare.services.container import ServiceContainer
from chatshare.services.jwt_service import generate_access_token
from chatshare.utils.crypto import hash_password

TEST_PASSWORD = "correct-horse-battery"
_PASSWORD_HASH = hash_password(TEST_PASSWORD, rounds=4)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def svc():
    """Core services wired to the test DB session."""
    return ServiceContainer(_db.session)


# ── Seeding factories ────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    def _make(username, display_name=None, is_active=True, profile_public=True, email=None):
        user = User(
            username=username,
            email=email,
            password_hash=_PASSWORD_HASH,
            display_name=display_name or username.capitalize(),
            is_active=is_active,
            profile_public=profile_public,
        )
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_project():
    counter = {"n": 0}

    def _make(owner, name=None, visibility="private"):
        counter["n"] += 1
        project = Project(
            name=name or f"project-{counter['n']}",
            display_name=(name or f"Project {counter['n']}"),
            owner_id=owner.id,
            visibility=visibility,
            share_token=None if visibility == "private" else secrets.token_hex(32),
        )
        _db.session.add(project)
        _db.session.commit()
        return project
    return _make


@pytest.fixture()
def make_session():
    counter = {"n": 0}

    def _make(owner, project, visibility="private", session_id=None, title=None):
        counter["n"] += 1
        chat = ChatSession(
            id=session_id or f"sess-{counter['n']}",
            project_id=project.id,
            owner_id=owner.id,
            title=title or f"Session {counter['n']}",
            visibility=visibility,
            share_token=None if visibility == "private" else secrets.token_hex(32),
        )
        _db.session.add(chat)
        _db.session.commit()
        return chat
    return _make


@pytest.fixture()
def alice(make_user):
    return make_user("alice")


@pytest.fixture()
def bob(make_user):
    return make_user("bob")


@pytest.fixture()
def carol(make_user):
    return make_user("carol")


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id, user.username)}"}
    return _headers
