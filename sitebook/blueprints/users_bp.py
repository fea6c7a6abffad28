"""
Users & Invitations Blueprint (admin only).

Endpoints:
    GET   /api/v1/users            — list organization users
    PATCH /api/v1/users/<id>       — change role / active flag / name
    POST  /api/v1/invites          — invite a user by email
    GET   /api/v1/invites          — open (unaccepted, unexpired) invitations
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_admin
from sitebook.services import user_service
from sitebook.utils.errors import E, api_error

users_bp = Blueprint("users", __name__, url_prefix="/api/v1")


@users_bp.route("/users", methods=["GET"])
@require_admin
def list_users():
    active = request.args.get("active")
    is_active = None if active is None else active.lower() in ("1", "true", "yes")
    users = user_service.list_users(g.actor.organization_id, is_active=is_active)
    return jsonify({"items": [u.to_dict() for u in users], "total": len(users)})


@users_bp.route("/users/<int:user_id>", methods=["PATCH"])
@require_admin
def update_user(user_id):
    """Body: { "role": "admin|user", "is_active": bool, "name": "..." } (any subset)"""
    data = request.get_json(silent=True) or {}
    user = user_service.update_user(
        g.actor,
        user_id,
        role=data.get("role"),
        is_active=data.get("is_active"),
        name=data.get("name"),
    )
    return jsonify(user.to_dict())


@users_bp.route("/invites", methods=["POST"])
@require_admin
def create_invite():
    """Body: { "email": "...", "role": "user" }.  The token is returned once."""
    data = request.get_json(silent=True) or {}
    if not data.get("email"):
        return api_error(E.VALIDATION_REQUIRED, "email is required")
    invitation = user_service.invite_user(g.actor, data["email"], data.get("role") or "user")
    return jsonify(invitation.to_dict(include_token=True)), 201


@users_bp.route("/invites", methods=["GET"])
@require_admin
def list_invites():
    invitations = user_service.list_open_invitations(g.actor.organization_id)
    return jsonify({"items": [inv.to_dict() for inv in invitations], "total": len(invitations)})
