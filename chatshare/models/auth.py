"""
Auth Models — user accounts (the identity store).

Users are created once (registration or the seeded admin) and are
soft-disabled via ``is_active``; rows are never hard-deleted while
sessions, shares or activity entries still reference them.
"""

from chatshare.models import db, iso, utcnow


# ═══════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)
    display_name = db.Column(db.String(200))
    avatar_url = db.Column(db.String(500))
    bio = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    profile_public = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_users_display_name", "display_name"),
    )

    # Relationships
    projects = db.relationship(
        "Project", back_populates="owner", lazy="dynamic",
        foreign_keys="Project.owner_id",
    )
    chat_sessions = db.relationship(
        "ChatSession", back_populates="owner", lazy="dynamic",
        foreign_keys="ChatSession.owner_id",
    )

    def to_dict(self, include_private=False):
        d = {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "bio": self.bio,
            "profile_public": self.profile_public,
            "created_at": iso(self.created_at),
        }
        if include_private:
            d["email"] = self.email
            d["is_active"] = self.is_active
            d["last_login_at"] = iso(self.last_login_at)
        return d

    def to_summary(self):
        """Compact form embedded in listings and grant payloads."""
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
        }

    def __repr__(self):
        return f"<User {self.id} {self.username!r}>"
