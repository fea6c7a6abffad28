"""
OrgScopedModel — abstract base class for organization-scoped models.
ApprovableMixin — moderation columns shared by every approvable entity.

All models that need tenant isolation inherit from OrgScopedModel instead
of db.Model directly. This adds:
  - organization_id FK column with index
  - query_for_org(organization_id) classmethod
  - Composite index macro helper

Approvable entities additionally mix in ApprovableMixin, which carries the
approval lifecycle state (approval_status, pending_data, rejection_count…).
The state machine itself lives in services/approval_gate.py.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr

from sitebook.models import db

# ── Approval lifecycle constants ─────────────────────────────────────────────

STATUS_APPROVED = "approved"
STATUS_PENDING_CREATE = "pending-create"
STATUS_PENDING_EDIT = "pending-edit"
STATUS_PENDING_DELETE = "pending-delete"
STATUS_REJECTED = "rejected"

PENDING_STATUSES = frozenset({
    STATUS_PENDING_CREATE,
    STATUS_PENDING_EDIT,
    STATUS_PENDING_DELETE,
})

APPROVAL_STATUSES = PENDING_STATUSES | {STATUS_APPROVED, STATUS_REJECTED}


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value is not None else None


class OrgScopedModel(db.Model):
    """Abstract base for organization-scoped tables."""
    __abstract__ = True

    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    @classmethod
    def query_for_org(cls, organization_id):
        """Return a query filtered by organization_id."""
        return cls.query.filter_by(organization_id=organization_id)

    @classmethod
    def org_composite_index(cls, *extra_cols):
        """Helper to build (organization_id, ...) composite index name+tuple."""
        name = f"ix_{cls.__tablename__}_org_{'_'.join(extra_cols)}"
        cols = ("organization_id",) + extra_cols
        return db.Index(name, *cols)


class ApprovableMixin:
    """Moderation state for entities that pass through the approval gate.

    ``pending_data`` is a JSON overlay of proposed field values and is only
    populated while ``approval_status == "pending-edit"``.
    """

    approval_status = db.Column(
        db.String(20), nullable=False, default=STATUS_APPROVED, index=True,
        comment="approved | pending-create | pending-edit | pending-delete | rejected",
    )
    pending_data = db.Column(db.JSON, nullable=True)
    request_message = db.Column(db.Text, nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    rejection_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @declared_attr
    def created_by(cls):
        return db.Column(
            db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        )

    @declared_attr
    def submitted_by(cls):
        return db.Column(
            db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        )

    @property
    def is_pending(self) -> bool:
        return self.approval_status in PENDING_STATUSES

    def approval_dict(self) -> dict:
        return {
            "approval_status": self.approval_status,
            "pending_data": self.pending_data,
            "submitted_by": self.submitted_by,
            "request_message": self.request_message,
            "remarks": self.remarks,
            "rejection_count": self.rejection_count or 0,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
