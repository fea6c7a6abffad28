"""
User Service — registration, login, invitations, user management.
"""

import logging
from datetime import datetime, timedelta, timezone

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from sitebook.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from sitebook.models import db
from sitebook.models.auth import ROLE_ADMIN, ROLE_USER, ROLES, Invitation, Organization, User
from sitebook.services import audit_service
from sitebook.services.helpers.scoped_queries import get_scoped
from sitebook.utils.crypto import generate_invite_token, hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
DEFAULT_INVITE_EXPIRES_HOURS = 72


def _normalise_email(email) -> str:
    try:
        valid = validate_email(str(email or ""), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"}) from None
    return valid.normalized.lower()


def _check_password(password) -> str:
    if not password or len(str(password)) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    return str(password)


def _check_role(role) -> str:
    if role not in ROLES:
        raise ValidationError(
            f"Invalid role '{role}'",
            details={"role": f"must be one of {sorted(ROLES)}"},
        )
    return role


def _email_taken(organization_id: int, email: str) -> bool:
    return User.query.filter_by(organization_id=organization_id, email=email).first() is not None


# ═══════════════════════════════════════════════════════════════
# Registration & login
# ═══════════════════════════════════════════════════════════════
def register_organization(organization_name: str, email: str, password: str, name: str = None) -> User:
    """Create a new organization and its first admin."""
    organization_name = (organization_name or "").strip()
    if not organization_name:
        raise ValidationError("organization_name is required", details={"organization_name": "required"})
    email = _normalise_email(email)
    password = _check_password(password)

    org = Organization(name=organization_name)
    db.session.add(org)
    db.session.flush()

    user = User(
        organization_id=org.id,
        email=email,
        name=(name or "").strip() or None,
        password_hash=hash_password(password),
        role=ROLE_ADMIN,
    )
    db.session.add(user)
    db.session.commit()

    logger.info("Organization registered", extra={"organization_id": org.id, "user_id": user.id})
    audit_service.log_action(
        organization_id=org.id,
        user_id=user.id,
        action="CREATE",
        entity="USER",
        entity_id=user.id,
        details=f"Registered organization {organization_name}",
    )
    return user


def authenticate_user(email: str, password: str, organization_id: int = None) -> User:
    """Authenticate with email + password.  Returns the User on success.

    The same email may exist in several organizations; pass
    ``organization_id`` to pick one, otherwise the first account whose
    password matches wins.
    """
    try:
        email = _normalise_email(email)
    except ValidationError:
        raise AuthenticationError("Invalid email or password") from None

    q = User.query.filter_by(email=email)
    if organization_id is not None:
        q = q.filter_by(organization_id=organization_id)

    for user in q.order_by(User.id).all():
        if not verify_password(password, user.password_hash):
            continue
        if not user.is_active:
            raise ForbiddenError("Account is deactivated")
        user.last_login_at = datetime.now(timezone.utc)
        db.session.commit()
        return user

    logger.info("Failed login attempt for %s", email)
    raise AuthenticationError("Invalid email or password")


def change_password(user: User, current_password: str, new_password: str) -> User:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", details={"current_password": "incorrect"})
    user.password_hash = hash_password(_check_password(new_password))
    user.must_change_password = False
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# User management
# ═══════════════════════════════════════════════════════════════
def list_users(organization_id: int, is_active: bool = None) -> list[User]:
    q = User.query.filter_by(organization_id=organization_id)
    if is_active is not None:
        q = q.filter_by(is_active=is_active)
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def update_user(actor, user_id: int, *, role: str = None, is_active: bool = None, name: str = None) -> User:
    """Change another user's role, active flag or display name."""
    user = get_scoped(User, user_id, organization_id=actor.organization_id)
    if user.id == actor.id and (role is not None or is_active is not None):
        raise ForbiddenError("You cannot change your own role or status")

    changes = {}
    if role is not None:
        user.role = _check_role(role)
        changes["role"] = role
    if is_active is not None:
        user.is_active = bool(is_active)
        changes["is_active"] = bool(is_active)
    if name is not None:
        user.name = str(name).strip() or None
        changes["name"] = user.name
    if not changes:
        raise ValidationError("Nothing to update", details={"fields": ["role", "is_active", "name"]})

    db.session.commit()
    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="UPDATE",
        entity="USER",
        entity_id=user.id,
        details=f"Updated user {user.email}",
        metadata=changes,
    )
    return user


# ═══════════════════════════════════════════════════════════════
# Invite flow
# ═══════════════════════════════════════════════════════════════
def _invite_expiry() -> datetime:
    hours = current_app.config.get("INVITE_EXPIRES_HOURS", DEFAULT_INVITE_EXPIRES_HOURS)
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def invite_user(actor, email: str, role: str = ROLE_USER) -> Invitation:
    """Create (or refresh) an invitation for *email* in the actor's organization."""
    email = _normalise_email(email)
    role = _check_role(role or ROLE_USER)
    if _email_taken(actor.organization_id, email):
        raise ConflictError(resource="User", field="email", value=email)

    invitation = Invitation.query.filter_by(
        organization_id=actor.organization_id, email=email, accepted_at=None,
    ).first()
    if invitation is None:
        invitation = Invitation(organization_id=actor.organization_id, email=email)
        db.session.add(invitation)
    invitation.role = role
    invitation.token = generate_invite_token()
    invitation.invited_by = actor.id
    invitation.expires_at = _invite_expiry()
    db.session.commit()

    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="CREATE",
        entity="INVITATION",
        entity_id=invitation.id,
        details=f"Invited {email} as {role}",
    )
    return invitation


def list_open_invitations(organization_id: int) -> list[Invitation]:
    invitations = (
        Invitation.query.filter_by(organization_id=organization_id, accepted_at=None)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        .all()
    )
    return [inv for inv in invitations if not inv.is_expired()]


def accept_invite(token: str, password: str, name: str = None) -> User:
    """Accept an invitation: create the user in the inviting organization."""
    invitation = Invitation.query.filter_by(token=token or "").first()
    if invitation is None or invitation.accepted_at is not None:
        raise NotFoundError(resource="Invitation")
    if invitation.is_expired():
        raise ValidationError("Invitation has expired", details={"token": "expired"})
    password = _check_password(password)
    if _email_taken(invitation.organization_id, invitation.email):
        raise ConflictError(resource="User", field="email", value=invitation.email)

    user = User(
        organization_id=invitation.organization_id,
        email=invitation.email,
        name=(name or "").strip() or None,
        password_hash=hash_password(password),
        role=invitation.role,
    )
    db.session.add(user)
    invitation.accepted_at = datetime.now(timezone.utc)
    db.session.commit()

    logger.info(
        "Invitation accepted",
        extra={"organization_id": invitation.organization_id, "user_id": user.id},
    )
    audit_service.log_action(
        organization_id=invitation.organization_id,
        user_id=user.id,
        action="CREATE",
        entity="USER",
        entity_id=user.id,
        details=f"Accepted invitation for {user.email}",
    )
    return user
