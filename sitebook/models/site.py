"""
SiteBook
Site operations models.

Models:
    - Task: to-do item on a project
    - Photo / Document: uploaded evidence (URL only, storage is external)
    - Labor: worker roster entry with a daily rate (not moderated)
    - Hajari: one attendance / advance / settlement line for a labourer
"""

from datetime import datetime, timezone

from sitebook.models import db
from sitebook.models.base import ApprovableMixin, OrgScopedModel

TASK_STATUSES = {"todo", "in-progress", "done"}
LABOR_TYPES = {"laborer", "foreman"}
ATTENDANCE_STATUSES = {"present", "absent", "half-day", "settlement", "pending-settlement"}


def _date(value):
    return value.isoformat() if value else None


class Task(ApprovableMixin, OrgScopedModel):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="todo")
    due_date = db.Column(db.Date, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "due_date": _date(self.due_date),
            **self.approval_dict(),
        }


class Photo(ApprovableMixin, OrgScopedModel):
    __tablename__ = "photos"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    image_url = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "image_url": self.image_url,
            "description": self.description,
            **self.approval_dict(),
        }


class Document(ApprovableMixin, OrgScopedModel):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    document_name = db.Column(db.String(300), nullable=False)
    document_url = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "document_name": self.document_name,
            "document_url": self.document_url,
            "description": self.description,
            **self.approval_dict(),
        }


class Labor(OrgScopedModel):
    """Worker roster.  Rate is the daily wage."""

    __tablename__ = "labors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default="laborer")
    rate = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "type": self.type,
            "rate": self.rate,
        }


class Hajari(ApprovableMixin, OrgScopedModel):
    """Daily attendance line.  ``upad`` holds advances or settlement amount."""

    __tablename__ = "hajari_records"
    __table_args__ = (
        db.Index("ix_hajari_labor_date", "labor_id", "date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    labor_id = db.Column(
        db.Integer, db.ForeignKey("labors.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(30), nullable=False, default="present")
    overtime_hours = db.Column(db.Float, nullable=False, default=0)
    upad = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "labor_id": self.labor_id,
            "project_id": self.project_id,
            "date": _date(self.date),
            "status": self.status,
            "overtime_hours": self.overtime_hours,
            "upad": self.upad,
            **self.approval_dict(),
        }
