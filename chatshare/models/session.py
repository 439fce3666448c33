"""
Conversation models.

Models:
    - ChatSession: a recorded conversation owned by a user inside a project.
    - SessionShare: explicit per-user grant (view | comment) on a session.
    - Message: one turn of a conversation, ordered by ``message_index``.
    - SessionFavorite: per-user bookmark of a session.
"""

import uuid

from chatshare.models import db, iso, utcnow


# ═══════════════════════════════════════════════════════════════
# 1. SESSIONS
# ═══════════════════════════════════════════════════════════════
class ChatSession(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300))
    visibility = db.Column(
        db.String(10), nullable=False, default="private",
        comment="private | shared | public",
    )
    share_token = db.Column(db.String(128), unique=True, nullable=True)
    message_count = db.Column(db.Integer, nullable=False, default=0)
    last_message_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "visibility IN ('private', 'shared', 'public')",
            name="ck_sessions_visibility",
        ),
        db.CheckConstraint(
            "(visibility = 'private' AND share_token IS NULL) "
            "OR (visibility <> 'private' AND share_token IS NOT NULL)",
            name="ck_sessions_share_token",
        ),
        db.Index("ix_sessions_visibility_updated", "visibility", "updated_at"),
    )

    project = db.relationship("Project", back_populates="sessions")
    owner = db.relationship("User", back_populates="chat_sessions", foreign_keys=[owner_id])
    messages = db.relationship(
        "Message", back_populates="session", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="Message.message_index",
    )
    shares = db.relationship(
        "SessionShare", back_populates="session", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    favorites = db.relationship(
        "SessionFavorite", back_populates="session", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_token=False):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "visibility": self.visibility,
            "share_token": self.share_token if include_token else None,
            "message_count": self.message_count,
            "last_message_at": iso(self.last_message_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ChatSession {self.id} {self.visibility}>"


# ═══════════════════════════════════════════════════════════════
# 2. SESSION SHARES
# ═══════════════════════════════════════════════════════════════
class SessionShare(db.Model):
    __tablename__ = "session_shares"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.String(64),
        db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shared_with_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shared_by_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    permission = db.Column(
        db.String(10), nullable=False, default="view", comment="view | comment",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("session_id", "shared_with_user_id", name="uq_session_share"),
        db.CheckConstraint(
            "permission IN ('view', 'comment')", name="ck_session_shares_permission",
        ),
    )

    session = db.relationship("ChatSession", back_populates="shares")
    shared_with = db.relationship("User", foreign_keys=[shared_with_user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "shared_with_user_id": self.shared_with_user_id,
            "shared_by_user_id": self.shared_by_user_id,
            "permission": self.permission,
            "created_at": iso(self.created_at),
        }


# ═══════════════════════════════════════════════════════════════
# 3. MESSAGES
# ═══════════════════════════════════════════════════════════════
class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.String(64),
        db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = db.Column(db.String(20), nullable=False, comment="user | assistant")
    content = db.Column(db.Text, nullable=False)
    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, default=dict)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)
    message_index = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("session_id", "message_index", name="uq_message_index"),
        db.CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
    )

    session = db.relationship("ChatSession", back_populates="messages")

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role,
            "content": self.content,
            "metadata": self.meta or {},
            "timestamp": iso(self.timestamp),
            "message_index": self.message_index,
        }


# ═══════════════════════════════════════════════════════════════
# 4. FAVORITES
# ═══════════════════════════════════════════════════════════════
class SessionFavorite(db.Model):
    __tablename__ = "session_favorites"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id = db.Column(
        db.String(64),
        db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "session_id", name="uq_session_favorite"),
    )

    session = db.relationship("ChatSession", back_populates="favorites")
