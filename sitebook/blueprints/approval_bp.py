"""
Approvals Blueprint — the admin moderation queue.

Routes:
  GET    /approvals     – every pending item of the organization, grouped by kind
  POST   /approvals     – approve / reject one item

POST body:
    { "id": 12, "module": "transaction", "status": "approved" | "rejected", "remarks": "..." }

``module`` accepts a kind tag or alias, case-insensitively
(e.g. ``Recordable``, ``materialLedgerEntry``).
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_admin
from sitebook.models.base import PENDING_STATUSES
from sitebook.services.approval_gate import ApprovalGate
from sitebook.services.approval_policy import merge_pending
from sitebook.services.entity_registry import all_kinds, get_kind
from sitebook.services.helpers.scoped_queries import get_scoped
from sitebook.utils.errors import E, api_error
from sitebook.utils.helpers import to_int

approval_bp = Blueprint("approvals", __name__, url_prefix="/api/v1")


def _queue_item(kind, entity, role):
    item = kind.serialize(entity, role)
    if entity.pending_data:
        item["proposed"] = merge_pending(kind.canonical(entity), entity.pending_data)
    return item


@approval_bp.route("/approvals", methods=["GET"])
@require_admin
def list_pending():
    """Pending requests, oldest first within each kind."""
    grouped = {}
    total = 0
    for kind in all_kinds():
        model = kind.model
        rows = (
            model.query_for_org(g.actor.organization_id)
            .filter(model.approval_status.in_(PENDING_STATUSES))
            .order_by(model.updated_at.asc(), model.id.asc())
            .all()
        )
        grouped[kind.tag] = [_queue_item(kind, e, g.actor.role) for e in rows]
        total += len(rows)
    return jsonify({"items": grouped, "total": total})


@approval_bp.route("/approvals", methods=["POST"])
@require_admin
def decide():
    """Approve or reject a pending request."""
    data = request.get_json(silent=True) or {}
    entity_id = data.get("id")
    module = data.get("module")
    decision = data.get("status")

    missing = [k for k, v in (("id", entity_id), ("module", module), ("status", decision)) if not v]
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"Missing required fields: {', '.join(missing)}",
            details={k: "required" for k in missing},
        )

    if to_int(entity_id) is None:
        return api_error(
            E.VALIDATION_INVALID,
            f"Invalid id '{entity_id}'",
            details={"id": "must be an integer"},
        )

    kind = get_kind(module)
    entity = get_scoped(kind.model, entity_id, organization_id=g.actor.organization_id, label=kind.label)
    result = ApprovalGate(kind).resolve(entity, decision, g.actor, remarks=data.get("remarks"))

    return jsonify({
        "id": result.entity_id,
        "module": kind.tag,
        "operation": result.operation,
        "decision": result.decision,
        "status": result.status,
        "item": kind.serialize(result.entity, g.actor.role) if result.entity is not None else None,
    })
