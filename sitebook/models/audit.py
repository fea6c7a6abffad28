"""
SiteBook
Audit domain model.

Models:
    - AuditLog: append-only trail of who did what to which entity.
"""

import json
from datetime import UTC, datetime

from sitebook.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {"CREATE", "UPDATE", "DELETE", "SUBMIT", "APPROVE", "REJECT"}

AUDIT_ENTITIES = {
    "LEDGER", "TRANSACTION", "RECORD", "TASK", "PHOTO", "DOCUMENT",
    "HAJARI", "MATERIAL", "MATERIAL_LEDGER", "JOURNAL",
    "PROJECT", "USER", "INVITATION", "SETTLEMENT", "FINANCIAL_ACCOUNT",
}


class AuditLog(db.Model):
    """
    Immutable audit trail.

    One row per action.  ``metadata_json`` carries structured context such
    as the pending overlay or the admin's remarks.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity", "entity_id"),
        db.Index("idx_audit_org_ts", "organization_id", "timestamp"),
        db.Index("idx_audit_action", "action"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action = db.Column(db.String(20), nullable=False, comment="CREATE | UPDATE | DELETE | SUBMIT | APPROVE | REJECT")
    entity = db.Column(db.String(30), nullable=False, comment="TRANSACTION | TASK | …")
    entity_id = db.Column(db.String(36), nullable=False)
    details = db.Column(db.Text, nullable=False, default="")
    metadata_json = db.Column(db.Text, default="{}")

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    @property
    def meta(self) -> dict:
        """Deserialise *metadata_json* to a Python dict."""
        try:
            return json.loads(self.metadata_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "details": self.details,
            "metadata": self.meta,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    action: str,
    entity: str,
    entity_id,
    organization_id: int,
    user_id: int | None = None,
    details: str = "",
    metadata: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.
    """
    log = AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        details=details,
        metadata_json=json.dumps(metadata or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
