"""initial_sharing_schema

Creates the identity, conversation and sharing tables:
  - users                  — accounts (soft-disabled via is_active)
  - projects               — session containers with visibility + share token
  - project_collaborators  — per-user project roles
  - sessions               — chat sessions with visibility + share token
  - session_shares         — per-user session grants (view | comment)
  - messages               — ordered conversation turns
  - session_favorites      — per-user bookmarks
  - activity_log           — append-only audit trail

Tables are created conditionally (IF NOT EXISTS semantics) so the revision
can be stamped onto databases that already received them via db.create_all().

Revision ID: 5e1b7c3a9d20
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1b7c3a9d20'
down_revision = None
branch_labels = None
depends_on = None

_TOKEN_CHECK = (
    "(visibility = 'private' AND share_token IS NULL) "
    "OR (visibility <> 'private' AND share_token IS NOT NULL)"
)
_VISIBILITY_CHECK = "visibility IN ('private', 'shared', 'public')"


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Users ────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=True),
            sa.Column("avatar_url", sa.String(length=500), nullable=True),
            sa.Column("bio", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("profile_public", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_display_name", "users", ["display_name"])

    # ── Projects ─────────────────────────────────────────────────────────
    if "projects" not in existing:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("visibility", sa.String(length=10), nullable=False,
                      server_default="private", comment="private | shared | public"),
            sa.Column("share_token", sa.String(length=128), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
            sa.UniqueConstraint("share_token"),
            sa.CheckConstraint(_VISIBILITY_CHECK, name="ck_projects_visibility"),
            sa.CheckConstraint(_TOKEN_CHECK, name="ck_projects_share_token"),
        )
        op.create_index("ix_projects_owner_id", "projects", ["owner_id"])
        op.create_index("ix_projects_visibility_updated", "projects", ["visibility", "updated_at"])

    if "project_collaborators" not in existing:
        op.create_table(
            "project_collaborators",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="viewer",
                      comment="viewer | contributor | admin"),
            sa.Column("invited_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "user_id", name="uq_project_collaborator"),
            sa.CheckConstraint(
                "role IN ('viewer', 'contributor', 'admin')",
                name="ck_project_collaborators_role",
            ),
        )
        op.create_index("ix_project_collaborators_project_id", "project_collaborators", ["project_id"])
        op.create_index("ix_project_collaborators_user_id", "project_collaborators", ["user_id"])

    # ── Sessions ─────────────────────────────────────────────────────────
    if "sessions" not in existing:
        op.create_table(
            "sessions",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=True),
            sa.Column("visibility", sa.String(length=10), nullable=False,
                      server_default="private", comment="private | shared | public"),
            sa.Column("share_token", sa.String(length=128), nullable=True),
            sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_message_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("share_token"),
            sa.CheckConstraint(_VISIBILITY_CHECK, name="ck_sessions_visibility"),
            sa.CheckConstraint(_TOKEN_CHECK, name="ck_sessions_share_token"),
        )
        op.create_index("ix_sessions_project_id", "sessions", ["project_id"])
        op.create_index("ix_sessions_owner_id", "sessions", ["owner_id"])
        op.create_index("ix_sessions_visibility_updated", "sessions", ["visibility", "updated_at"])

    if "session_shares" not in existing:
        op.create_table(
            "session_shares",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.String(length=64), nullable=False),
            sa.Column("shared_with_user_id", sa.Integer(), nullable=False),
            sa.Column("shared_by_user_id", sa.Integer(), nullable=True),
            sa.Column("permission", sa.String(length=10), nullable=False,
                      server_default="view", comment="view | comment"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["shared_with_user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["shared_by_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("session_id", "shared_with_user_id", name="uq_session_share"),
            sa.CheckConstraint("permission IN ('view', 'comment')",
                               name="ck_session_shares_permission"),
        )
        op.create_index("ix_session_shares_session_id", "session_shares", ["session_id"])
        op.create_index("ix_session_shares_shared_with_user_id", "session_shares",
                        ["shared_with_user_id"])

    if "messages" not in existing:
        op.create_table(
            "messages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, comment="user | assistant"),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(), nullable=False),
            sa.Column("message_index", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("session_id", "message_index", name="uq_message_index"),
            sa.CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
        )
        op.create_index("ix_messages_session_id", "messages", ["session_id"])

    if "session_favorites" not in existing:
        op.create_table(
            "session_favorites",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "session_id", name="uq_session_favorite"),
        )
        op.create_index("ix_session_favorites_user_id", "session_favorites", ["user_id"])

    # ── Activity log ─────────────────────────────────────────────────────
    if "activity_log" not in existing:
        op.create_table(
            "activity_log",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("resource_type", sa.String(length=20), nullable=False,
                      comment="session | project | user"),
            sa.Column("resource_id", sa.String(length=64), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_activity_resource", "activity_log",
                        ["resource_type", "resource_id", "created_at"])
        op.create_index("idx_activity_user", "activity_log", ["user_id"])
        op.create_index("idx_activity_action", "activity_log", ["action"])


def downgrade():
    for table in (
        "activity_log",
        "session_favorites",
        "messages",
        "session_shares",
        "sessions",
        "project_collaborators",
        "projects",
        "users",
    ):
        op.drop_table(table)
