"""
Audit Service — best-effort action logging and organization-scoped listing.

``log_action`` runs after the business commit and in its own commit.  A
failure there is logged and swallowed: the mutation the user asked for has
already happened and must not be reported as failed.
"""

import logging

from sitebook.models import db
from sitebook.models.audit import AUDIT_ACTIONS, AuditLog, write_audit

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 200


def log_action(
    *,
    organization_id: int,
    user_id: int | None,
    action: str,
    entity: str,
    entity_id,
    details: str = "",
    metadata: dict | None = None,
) -> AuditLog | None:
    """Append one audit row and commit it.  Returns None on failure."""
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action '{action}'")
    try:
        log = write_audit(
            action=action,
            entity=entity,
            entity_id=entity_id,
            organization_id=organization_id,
            user_id=user_id,
            details=details,
            metadata=metadata,
        )
        db.session.commit()
        return log
    except Exception:
        db.session.rollback()
        logger.warning(
            "Audit log failed, main flow unaffected",
            exc_info=True,
            extra={"organization_id": organization_id, "entity_type": entity, "entity_id": entity_id},
        )
        return None


def list_audit_logs(
    organization_id: int,
    *,
    entity: str | None = None,
    action: str | None = None,
    user_id: int | None = None,
    entity_id: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> dict:
    """Paginated audit trail of one organization, newest first."""
    q = AuditLog.query.filter(AuditLog.organization_id == organization_id)

    if entity:
        q = q.filter(AuditLog.entity == entity.upper())
    if action:
        q = q.filter(AuditLog.action == action.upper())
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if entity_id:
        q = q.filter(AuditLog.entity_id == str(entity_id))

    q = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    page = max(1, page)
    per_page = min(MAX_PER_PAGE, max(1, per_page))
    paginated = q.paginate(page=page, per_page=per_page, error_out=False)

    return {
        "audit_logs": [log.to_dict() for log in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }
