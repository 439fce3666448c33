"""Project domain model: a named container of chat sessions with its own grants."""

from chatshare.models import db, iso, utcnow


class Project(db.Model):
    """Top-level grouping of sessions. ``name`` is globally unique."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    display_name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    visibility = db.Column(
        db.String(10), nullable=False, default="private",
        comment="private | shared | public",
    )
    share_token = db.Column(db.String(128), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "visibility IN ('private', 'shared', 'public')",
            name="ck_projects_visibility",
        ),
        db.CheckConstraint(
            "(visibility = 'private' AND share_token IS NULL) "
            "OR (visibility <> 'private' AND share_token IS NOT NULL)",
            name="ck_projects_share_token",
        ),
        db.Index("ix_projects_visibility_updated", "visibility", "updated_at"),
    )

    owner = db.relationship("User", back_populates="projects", foreign_keys=[owner_id])
    sessions = db.relationship(
        "ChatSession", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    collaborators = db.relationship(
        "ProjectCollaborator", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_token=False):
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "owner_id": self.owner_id,
            "visibility": self.visibility,
            "share_token": self.share_token if include_token else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Project {self.id} {self.name!r} {self.visibility}>"


class ProjectCollaborator(db.Model):
    """Explicit role grant on a project; one row per (project, user)."""

    __tablename__ = "project_collaborators"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = db.Column(
        db.String(20), nullable=False, default="viewer",
        comment="viewer | contributor | admin",
    )
    invited_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_collaborator"),
        db.CheckConstraint(
            "role IN ('viewer', 'contributor', 'admin')",
            name="ck_project_collaborators_role",
        ),
    )

    project = db.relationship("Project", back_populates="collaborators")
    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role,
            "invited_by": self.invited_by,
            "created_at": iso(self.created_at),
        }
