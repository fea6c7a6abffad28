"""
Audit blueprint (admin only).

Endpoints:
    GET  /api/v1/audit               — list / filter the organization's audit log
    GET  /api/v1/audit/<int:log_id>  — single audit entry
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_admin
from sitebook.models.audit import AuditLog
from sitebook.services import audit_service
from sitebook.services.helpers.scoped_queries import get_scoped

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")


@audit_bp.route("/audit", methods=["GET"])
@require_admin
def list_audit_logs():
    """
    Return paginated audit logs with optional filters.

    Query params:
        entity     — TRANSACTION, TASK, …
        action     — CREATE, UPDATE, DELETE, SUBMIT, APPROVE, REJECT
        user_id    — acting user
        entity_id  — entity PK
        page       — page number (default 1)
        per_page   — items per page (default 50, max 200)
    """
    return jsonify(audit_service.list_audit_logs(
        g.actor.organization_id,
        entity=request.args.get("entity"),
        action=request.args.get("action"),
        user_id=request.args.get("user_id", type=int),
        entity_id=request.args.get("entity_id"),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 50, type=int),
    ))


@audit_bp.route("/audit/<int:log_id>", methods=["GET"])
@require_admin
def get_audit_log(log_id):
    log = get_scoped(AuditLog, log_id, organization_id=g.actor.organization_id, label="Audit log")
    return jsonify(log.to_dict())
