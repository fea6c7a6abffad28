"""
Approvable Entities Blueprint — one set of routes for every kind.

Endpoints (``<kind>`` is a URL slug: ledgers, transactions, records, tasks,
photos, documents, hajari, materials, material-ledger, journal):
    GET    /api/v1/<kind>                 — list (users: only their projects)
    POST   /api/v1/<kind>                 — create through the approval gate
    GET    /api/v1/<kind>/<id>            — fetch one
    PUT    /api/v1/<kind>/<id>            — edit through the approval gate
    DELETE /api/v1/<kind>/<id>?message=   — delete through the approval gate

Optional list filters: ``project_id``, ``approval_status``.
Create and edit bodies may carry ``request_message`` alongside the fields.
"""

from flask import Blueprint, g, jsonify, request

from sitebook.core.exceptions import ValidationError
from sitebook.middleware.auth import require_auth
from sitebook.models.base import APPROVAL_STATUSES
from sitebook.services.approval_gate import ApprovalGate
from sitebook.services.entity_registry import get_kind_by_slug
from sitebook.services.helpers.scoped_queries import get_scoped
from sitebook.services.permission_service import FINANCIAL_KINDS, accessible_project_ids, require_project_access

entities_bp = Blueprint("entities", __name__, url_prefix="/api/v1")


# ── helpers ──────────────────────────────────────────────────────────────


def _is_financial(kind):
    return kind.tag in FINANCIAL_KINDS


def _load(kind, entity_id, *, for_change=False):
    """Entity of the caller's organization that the caller may see.

    With ``for_change`` the caller must also be allowed to change it.
    """
    entity = get_scoped(kind.model, entity_id, organization_id=g.actor.organization_id, label=kind.label)
    if kind.is_project_scoped:
        require_project_access(
            kind.project_id_of(entity),
            g.actor,
            finances=_is_financial(kind),
            create_entries=for_change and _is_financial(kind),
        )
    return entity


def _check_target_project(kind, data, *, partial):
    """Access check on the project named in a create/edit body."""
    if not kind.is_project_scoped:
        return
    values = kind.parse(data, partial=partial)
    project_id = kind.project_id_of(values)
    if project_id is not None:
        financial = _is_financial(kind)
        require_project_access(project_id, g.actor, finances=financial, create_entries=financial)


def _mutation_response(kind, result, http_status=200):
    body = {
        "id": result.entity_id,
        "kind": kind.tag,
        "status": result.status,
        "pending": result.gated,
        "item": kind.serialize(result.entity, g.actor.role) if result.entity is not None else None,
    }
    if result.gated:
        body["message"] = f"{result.operation.capitalize()} request submitted for approval"
    return jsonify(body), http_status


# ═════════════════════════════════════════════════════════════════════════════
# LIST / GET
# ═════════════════════════════════════════════════════════════════════════════


@entities_bp.route("/<string:kind_slug>", methods=["GET"])
@require_auth
def list_entities(kind_slug):
    kind = get_kind_by_slug(kind_slug)
    model = kind.model
    q = model.query_for_org(g.actor.organization_id)

    if kind.is_project_scoped:
        scope_col = getattr(model, kind.project_field)
        if not g.actor.is_admin:
            allowed = accessible_project_ids(g.actor, finances=_is_financial(kind))
            if not allowed:
                return jsonify({"items": [], "total": 0})
            q = q.filter(scope_col.in_(allowed))
        project_id = request.args.get("project_id", type=int)
        if project_id is not None:
            q = q.filter(scope_col == project_id)

    approval_status = request.args.get("approval_status")
    if approval_status:
        if approval_status not in APPROVAL_STATUSES:
            raise ValidationError(
                f"Invalid approval_status '{approval_status}'",
                details={"approval_status": f"must be one of {sorted(APPROVAL_STATUSES)}"},
            )
        q = q.filter(model.approval_status == approval_status)

    items = q.order_by(model.created_at.desc(), model.id.desc()).all()
    return jsonify({
        "items": [kind.serialize(e, g.actor.role) for e in items],
        "total": len(items),
    })


@entities_bp.route("/<string:kind_slug>/<int:entity_id>", methods=["GET"])
@require_auth
def get_entity(kind_slug, entity_id):
    kind = get_kind_by_slug(kind_slug)
    entity = _load(kind, entity_id)
    return jsonify(kind.serialize(entity, g.actor.role))


# ═════════════════════════════════════════════════════════════════════════════
# MUTATIONS (through the approval gate)
# ═════════════════════════════════════════════════════════════════════════════


@entities_bp.route("/<string:kind_slug>", methods=["POST"])
@require_auth
def create_entity(kind_slug):
    kind = get_kind_by_slug(kind_slug)
    data = request.get_json(silent=True) or {}
    _check_target_project(kind, data, partial=False)

    result = ApprovalGate(kind).create(g.actor, data, request_message=data.get("request_message"))
    return _mutation_response(kind, result, 201)


@entities_bp.route("/<string:kind_slug>/<int:entity_id>", methods=["PUT"])
@require_auth
def update_entity(kind_slug, entity_id):
    kind = get_kind_by_slug(kind_slug)
    entity = _load(kind, entity_id, for_change=True)
    data = request.get_json(silent=True) or {}
    _check_target_project(kind, data, partial=True)

    result = ApprovalGate(kind).edit(g.actor, entity, data, request_message=data.get("request_message"))
    return _mutation_response(kind, result)


@entities_bp.route("/<string:kind_slug>/<int:entity_id>", methods=["DELETE"])
@require_auth
def delete_entity(kind_slug, entity_id):
    kind = get_kind_by_slug(kind_slug)
    entity = _load(kind, entity_id, for_change=True)

    result = ApprovalGate(kind).delete(g.actor, entity, request_message=request.args.get("message"))
    if result.deleted:
        return jsonify({"id": result.entity_id, "kind": kind.tag, "status": result.status, "deleted": True})
    return _mutation_response(kind, result)
