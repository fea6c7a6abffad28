"""
Route protection decorators.

    @bp.route("/tasks", methods=["POST"])
    @require_auth
    def create_task():
        actor = g.actor
        ...

    @bp.route("/approvals", methods=["POST"])
    @require_admin
    def decide():
        ...

``require_auth`` reloads the user behind the JWT on every request so that
deactivation and role changes apply immediately, not at token expiry.
"""

import functools
import logging

from flask import g

from sitebook.core.exceptions import AuthenticationError, ForbiddenError
from sitebook.models import db
from sitebook.models.auth import User
from sitebook.services.permission_service import Actor

logger = logging.getLogger(__name__)


def _load_actor():
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        raise AuthenticationError("Authentication required")

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        logger.info("Rejected token for missing or inactive user %s", user_id)
        raise AuthenticationError("User is inactive or no longer exists")
    if user.organization_id != getattr(g, "jwt_organization_id", None):
        raise AuthenticationError("Token does not match the user's organization")

    g.current_user = user
    g.actor = Actor.from_user(user)
    return g.actor


def require_auth(f):
    """Decorator: require a valid JWT for an active user."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _load_actor()
        return f(*args, **kwargs)

    return decorated


def require_admin(f):
    """Decorator: require a valid JWT for an active admin."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        actor = _load_actor()
        if not actor.is_admin:
            logger.warning("User %d denied admin route %s", actor.id, f.__name__)
            raise ForbiddenError("Admin access required")
        return f(*args, **kwargs)

    return decorated
