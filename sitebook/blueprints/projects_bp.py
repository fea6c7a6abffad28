"""
Projects & Labour Blueprint.

Endpoints:
    GET  /api/v1/projects                      — projects visible to the caller
    POST /api/v1/projects                      — create (admin)
    GET  /api/v1/projects/<id>                 — one project (members only)
    PUT  /api/v1/projects/<id>                 — update (admin)
    GET  /api/v1/projects/<id>/members         — memberships (admin)
    POST /api/v1/projects/<id>/members         — assign / deactivate a user (admin)
    GET  /api/v1/labors                        — labour roster
    POST /api/v1/labors                        — add a labourer (admin)
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_admin, require_auth
from sitebook.services import project_service
from sitebook.services.permission_service import require_project_access

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1")


# ── Projects ─────────────────────────────────────────────────────────────────

@projects_bp.route("/projects", methods=["GET"])
@require_auth
def list_projects():
    projects = project_service.list_projects(g.actor)
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


@projects_bp.route("/projects", methods=["POST"])
@require_admin
def create_project():
    project = project_service.create_project(g.actor, request.get_json(silent=True) or {})
    return jsonify(project.to_dict()), 201


@projects_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_auth
def get_project(project_id):
    project = require_project_access(project_id, g.actor)
    return jsonify(project.to_dict())


@projects_bp.route("/projects/<int:project_id>", methods=["PUT"])
@require_admin
def update_project(project_id):
    project = project_service.update_project(g.actor, project_id, request.get_json(silent=True) or {})
    return jsonify(project.to_dict())


# ── Membership ───────────────────────────────────────────────────────────────

@projects_bp.route("/projects/<int:project_id>/members", methods=["GET"])
@require_admin
def list_members(project_id):
    members = project_service.list_members(g.actor, project_id)
    return jsonify({"items": [m.to_dict() for m in members], "total": len(members)})


@projects_bp.route("/projects/<int:project_id>/members", methods=["POST"])
@require_admin
def set_member(project_id):
    """Body: { "user_id": 3, "status": "active|inactive",
               "can_view_finances": bool, "can_create_entries": bool }"""
    membership = project_service.set_membership(g.actor, project_id, request.get_json(silent=True) or {})
    return jsonify(membership.to_dict()), 200


# ── Labour roster ────────────────────────────────────────────────────────────

@projects_bp.route("/labors", methods=["GET"])
@require_auth
def list_labors():
    labors = project_service.list_labors(g.actor.organization_id)
    return jsonify({"items": [lab.to_dict() for lab in labors], "total": len(labors)})


@projects_bp.route("/labors", methods=["POST"])
@require_admin
def create_labor():
    labor = project_service.create_labor(g.actor, request.get_json(silent=True) or {})
    return jsonify(labor.to_dict()), 201
