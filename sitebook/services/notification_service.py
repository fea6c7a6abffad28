"""
SiteBook
Notification Service.

In-app notifications for the approval workflow:
    - ``submitted`` → every active admin of the organization
    - ``approved`` / ``rejected`` → the user who submitted the request

The gate calls the ``notify_*`` helpers after its own commit; they are
best-effort and never raise.  Delivery beyond the database (push, email)
is out of scope.
"""

import logging
from datetime import datetime, timezone

from sitebook.core.exceptions import NotFoundError
from sitebook.models import db
from sitebook.models.auth import ROLE_ADMIN, User
from sitebook.models.notification import NOTIFICATION_TYPES, Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def broadcast(*, organization_id, recipient_ids, message, type="info",
                  item_type="", item_id=None):
        """
        Create one notification per recipient and commit.

        Returns:
            List of created Notification instances.
        """
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type '{type}'")
        notifications = []
        for user_id in recipient_ids:
            notif = Notification(
                organization_id=organization_id,
                user_id=user_id,
                message=message,
                type=type,
                item_type=item_type,
                item_id=item_id,
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.commit()
        return notifications

    @staticmethod
    def notify_admins(*, organization_id, message, item_type, item_id, exclude_user_id=None):
        """Tell every active admin about a new pending request.  Best-effort."""
        try:
            q = User.query.filter_by(
                organization_id=organization_id, role=ROLE_ADMIN, is_active=True,
            )
            admin_ids = [u.id for u in q.all() if u.id != exclude_user_id]
            return NotificationService.broadcast(
                organization_id=organization_id,
                recipient_ids=admin_ids,
                message=message,
                type="submitted",
                item_type=item_type,
                item_id=item_id,
            )
        except Exception:
            db.session.rollback()
            logger.warning(
                "Admin notification failed, main flow unaffected",
                exc_info=True,
                extra={"organization_id": organization_id, "entity_type": item_type, "entity_id": item_id},
            )
            return []

    @staticmethod
    def notify_user(*, organization_id, user_id, message, type, item_type, item_id):
        """Tell one user about a decision on their request.  Best-effort."""
        if user_id is None:
            return []
        try:
            return NotificationService.broadcast(
                organization_id=organization_id,
                recipient_ids=[user_id],
                message=message,
                type=type,
                item_type=item_type,
                item_id=item_id,
            )
        except Exception:
            db.session.rollback()
            logger.warning(
                "User notification failed, main flow unaffected",
                exc_info=True,
                extra={"organization_id": organization_id, "entity_type": item_type, "entity_id": item_id},
            )
            return []

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, organization_id, unread_only=False, limit=50, offset=0):
        """
        Retrieve a user's notifications, newest first.

        Returns:
            dict with items, total and unread_count.
        """
        q = Notification.query.filter_by(user_id=user_id, organization_id=organization_id)
        unread_count = q.filter_by(is_read=False).count()
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "items": [n.to_dict() for n in items],
            "total": total,
            "unread_count": unread_count,
        }

    @staticmethod
    def get_own(notification_id, user_id, organization_id):
        """A notification that belongs to the caller, else NotFoundError."""
        notif = Notification.query.filter_by(
            id=notification_id, user_id=user_id, organization_id=organization_id,
        ).first()
        if notif is None:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        return notif

    # ── Update / delete ───────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id, organization_id, is_read=True):
        notif = NotificationService.get_own(notification_id, user_id, organization_id)
        notif.mark_read(is_read)
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(user_id, organization_id):
        """Mark every unread notification of the user as read.  Returns count."""
        now = datetime.now(timezone.utc)
        count = Notification.query.filter_by(
            user_id=user_id, organization_id=organization_id, is_read=False,
        ).update({"is_read": True, "read_at": now})
        db.session.commit()
        return count

    @staticmethod
    def delete(notification_id, user_id, organization_id):
        notif = NotificationService.get_own(notification_id, user_id, organization_id)
        db.session.delete(notif)
        db.session.commit()
