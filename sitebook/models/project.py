"""Project domain model and project membership."""

from datetime import datetime, timezone

from sitebook.models import db
from sitebook.models.base import OrgScopedModel

PROJECT_STATUSES = {"ACTIVE", "COMPLETED", "ON_HOLD"}
MEMBERSHIP_STATUSES = {"active", "inactive"}


class Project(OrgScopedModel):
    """A construction site / job.  Most approvable entities hang off one."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(300), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    members = db.relationship(
        "ProjectUser", back_populates="project", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "location": self.location,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


class ProjectUser(db.Model):
    """Assignment of a non-admin user to a project.

    Only ``status == "active"`` memberships grant access.
    """

    __tablename__ = "project_users"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status = db.Column(db.String(20), nullable=False, default="active")
    can_view_finances = db.Column(db.Boolean, nullable=False, default=True)
    can_create_entries = db.Column(db.Boolean, nullable=False, default=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_user"),
        db.Index("ix_project_users_project", "project_id"),
        db.Index("ix_project_users_user", "user_id"),
    )

    project = db.relationship("Project", back_populates="members")
    user = db.relationship("User", back_populates="project_memberships", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "status": self.status,
            "can_view_finances": self.can_view_finances,
            "can_create_entries": self.can_create_entries,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
