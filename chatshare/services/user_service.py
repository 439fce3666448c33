"""
User Service — account CRUD, credential checks and user search.
"""

import logging
import re

from email_validator import EmailNotValidError, validate_email
from flask import current_app, has_app_context
from sqlalchemy import or_

from chatshare.core.exceptions import ConflictError, NotFoundError, ValidationError
from chatshare.models import db, utcnow
from chatshare.models.auth import User
from chatshare.utils.crypto import BCRYPT_ROUNDS, hash_password, verify_password

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,50}$")
MIN_PASSWORD_LENGTH = 8
MIN_SEARCH_LENGTH = 2
PROFILE_FIELDS = ("display_name", "bio", "avatar_url", "email", "profile_public")


class UserServiceError(Exception):
    """Authentication failures (bad credentials, disabled account)."""
    def __init__(self, message, status_code=401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _bcrypt_rounds():
    if has_app_context():
        return current_app.config.get("BCRYPT_ROUNDS", BCRYPT_ROUNDS)
    return BCRYPT_ROUNDS


def _normalize_email(email):
    if not email:
        return None
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(
    username: str,
    password: str,
    email: str = None,
    display_name: str = None,
) -> User:
    """Register a new user."""
    username = (username or "").strip()
    if not USERNAME_RE.match(username):
        raise ValidationError(
            "Username must be 3-50 characters of letters, digits, '.', '_' or '-'",
            details={"username": "invalid"},
        )
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    email = _normalize_email(email)

    if User.query.filter_by(username=username).first():
        raise ConflictError("User", "username", username)
    if email and User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=_bcrypt_rounds()),
        display_name=(display_name or "").strip() or username,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User registered: id=%s username=%s", user.id, user.username)
    return user


def get_user_by_id(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def get_user_by_username(username: str) -> User | None:
    """Active user with this exact username, or None."""
    return User.query.filter_by(username=username, is_active=True).first()


def has_users() -> bool:
    return db.session.query(User.id).first() is not None


def update_last_login(user_id: int):
    user = db.session.get(User, user_id)
    if user:
        user.last_login_at = utcnow()
        db.session.commit()


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════
def authenticate_user(username: str, password: str) -> User:
    """Check credentials. Raises UserServiceError on failure."""
    user = User.query.filter_by(username=(username or "").strip()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for username=%r", username)
        raise UserServiceError("Invalid username or password", 401)
    if not user.is_active:
        raise UserServiceError("Account is disabled", 403)
    update_last_login(user.id)
    return user


# ═══════════════════════════════════════════════════════════════
# Profile & search
# ═══════════════════════════════════════════════════════════════
def update_profile(user_id: int, updates: dict) -> User:
    """Apply whitelisted profile fields. Unknown keys are ignored."""
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise NotFoundError("User", user_id)

    for field in PROFILE_FIELDS:
        if field not in updates:
            continue
        value = updates[field]
        if field == "email":
            value = _normalize_email(value)
            if value and User.query.filter(User.email == value, User.id != user.id).first():
                raise ConflictError("User", "email", value)
        elif field == "profile_public":
            value = bool(value)
        elif isinstance(value, str):
            value = value.strip() or None
        setattr(user, field, value)

    db.session.commit()
    return user


def search_users(query: str, limit: int = 10, exclude_user_id: int = None) -> list[User]:
    """Active users with public profiles whose username or display name matches."""
    query = (query or "").strip()
    if len(query) < MIN_SEARCH_LENGTH:
        raise ValidationError(
            f"Search query must be at least {MIN_SEARCH_LENGTH} characters",
            details={"q": "too short"},
        )
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    q = User.query.filter(
        User.is_active.is_(True),
        User.profile_public.is_(True),
        or_(
            User.username.ilike(pattern, escape="\\"),
            User.display_name.ilike(pattern, escape="\\"),
        ),
    )
    if exclude_user_id is not None:
        q = q.filter(User.id != exclude_user_id)
    return q.order_by(User.username).limit(max(1, min(int(limit), 50))).all()


def deactivate_user(user_id: int) -> User:
    """Soft-disable an account; its records and grants are kept."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    user.is_active = False
    db.session.commit()
    logger.info("User deactivated: id=%s", user_id)
    return user


def ensure_default_admin(username: str, password: str) -> tuple[User, bool]:
    """Create the bootstrap account if no user with ``username`` exists.

    Returns (user, created).
    """
    existing = User.query.filter_by(username=username).first()
    if existing:
        return existing, False
    return create_user(username, password, display_name="Administrator"), True
