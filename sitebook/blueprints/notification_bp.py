"""
Notification Blueprint — the caller's own in-app notifications.

Endpoints:
    GET    /api/v1/notifications              — list (``unread=true``, ``limit``, ``offset``)
    PATCH  /api/v1/notifications/<id>         — mark read / unread
    DELETE /api/v1/notifications/<id>         — delete
    POST   /api/v1/notifications/read-all     — mark everything read
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_auth
from sitebook.services.notification_service import NotificationService

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    limit = min(200, max(1, request.args.get("limit", 50, type=int)))
    offset = max(0, request.args.get("offset", 0, type=int))
    return jsonify(NotificationService.list_for_user(
        g.actor.id, g.actor.organization_id, unread_only=unread_only, limit=limit, offset=offset,
    ))


@notification_bp.route("/notifications/<int:nid>", methods=["PATCH"])
@require_auth
def mark_notification(nid):
    """Body: { "is_read": true|false } (defaults to true)"""
    data = request.get_json(silent=True) or {}
    notif = NotificationService.mark_read(
        nid, g.actor.id, g.actor.organization_id, is_read=bool(data.get("is_read", True)),
    )
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/<int:nid>", methods=["DELETE"])
@require_auth
def delete_notification(nid):
    NotificationService.delete(nid, g.actor.id, g.actor.organization_id)
    return jsonify({"deleted": True, "id": nid})


@notification_bp.route("/notifications/read-all", methods=["POST"])
@require_auth
def mark_all_read():
    count = NotificationService.mark_all_read(g.actor.id, g.actor.organization_id)
    return jsonify({"marked_read": count})
