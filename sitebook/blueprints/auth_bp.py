"""
Auth Blueprint — registration, login, profile, invite acceptance.

Endpoints:
    POST /api/v1/auth/register         — new organization + first admin
    POST /api/v1/auth/login            — email/password → access token
    GET  /api/v1/auth/me               — current user
    POST /api/v1/auth/change-password  — change own password
    POST /api/v1/invites/accept        — accept an invitation (public)
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_auth
from sitebook.services import user_service
from sitebook.services.jwt_service import token_response
from sitebook.utils.errors import E, api_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/register", methods=["POST"])
def register():
    """
    Create an organization and its first admin, return a token.

    Body: { "organization_name": "...", "email": "...", "password": "...", "name": "..." }
    """
    data = request.get_json(silent=True) or {}
    user = user_service.register_organization(
        data.get("organization_name"),
        data.get("email"),
        data.get("password"),
        data.get("name"),
    )
    return jsonify(token_response(user)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return an access token.

    Body: { "email": "...", "password": "...", "organization_id": 1 (optional) }
    """
    data = request.get_json(silent=True) or {}
    email = str(data.get("email", "") or "").strip()
    password = data.get("password", "")
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = user_service.authenticate_user(email, password, data.get("organization_id"))
    return jsonify(token_response(user)), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/me", methods=["GET"])
@require_auth
def me():
    """Current user profile with organization."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "organization": user.organization.to_dict() if user.organization else None,
    }), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/change-password
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/change-password", methods=["POST"])
@require_auth
def change_password():
    """
    Change current user's password.

    Body: { "current_password": "...", "new_password": "..." }
    """
    data = request.get_json(silent=True) or {}
    current_pw = data.get("current_password", "")
    new_pw = data.get("new_password", "")
    if not current_pw or not new_pw:
        return api_error(E.VALIDATION_REQUIRED, "Both current and new password are required")

    user_service.change_password(g.current_user, current_pw, new_pw)
    return jsonify({"message": "Password changed successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/invites/accept
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/invites/accept", methods=["POST"])
def accept_invite():
    """
    Accept an invitation and log the new user in.

    Body: { "token": "...", "password": "...", "name": "..." }
    """
    data = request.get_json(silent=True) or {}
    token = str(data.get("token", "") or "").strip()
    if not token:
        return api_error(E.VALIDATION_REQUIRED, "token is required")

    user = user_service.accept_invite(token, data.get("password"), data.get("name"))
    return jsonify(token_response(user)), 201
