"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

The hook never blocks a request on its own: an absent, expired or invalid
token simply leaves the context empty.  Protected views use the
``require_auth`` / ``require_admin`` decorators in ``sitebook.middleware.auth``
which turn an empty context into a 401.

    Authorization: Bearer <token>  →  g.jwt_user_id, g.jwt_organization_id, g.jwt_role
"""

import logging

import jwt as pyjwt
from flask import g, request

from sitebook.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/invites/accept",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        # Clear JWT context
        g.jwt_user_id = None
        g.jwt_organization_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired JWT on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.debug("Invalid JWT on %s", path)
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_organization_id = payload.get("org")
        g.jwt_role = payload.get("role")
