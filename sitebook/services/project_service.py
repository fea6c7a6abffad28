"""Project, membership and labour roster service with strict organization ownership checks."""

from __future__ import annotations

import logging

from sitebook.core.exceptions import ValidationError
from sitebook.models import db
from sitebook.models.auth import User
from sitebook.models.project import MEMBERSHIP_STATUSES, PROJECT_STATUSES, Project, ProjectUser
from sitebook.models.site import LABOR_TYPES, Labor
from sitebook.services import audit_service
from sitebook.services.helpers.scoped_queries import get_scoped
from sitebook.services.permission_service import accessible_project_ids

logger = logging.getLogger(__name__)


def list_projects(actor) -> list[Project]:
    """Projects visible to the actor: all for admins, memberships for users."""
    query = Project.query.filter(Project.organization_id == actor.organization_id)
    if not actor.is_admin:
        allowed = accessible_project_ids(actor)
        if not allowed:
            return []
        query = query.filter(Project.id.in_(allowed))
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def _project_fields(data: dict, *, partial: bool) -> dict:
    values = {}
    if "name" in data or not partial:
        name = str(data.get("name", "") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        values["name"] = name[:200]
    if "location" in data:
        values["location"] = str(data.get("location") or "").strip() or None
    if "status" in data:
        status = str(data.get("status") or "").strip().upper()
        if status not in PROJECT_STATUSES:
            raise ValidationError(
                f"Invalid status '{data.get('status')}'",
                details={"status": f"must be one of {sorted(PROJECT_STATUSES)}"},
            )
        values["status"] = status
    return values


def create_project(actor, data: dict) -> Project:
    values = _project_fields(data or {}, partial=False)
    project = Project(organization_id=actor.organization_id, created_by=actor.id, **values)
    db.session.add(project)
    db.session.commit()

    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="CREATE",
        entity="PROJECT",
        entity_id=project.id,
        details=f"Created project {project.name}",
    )
    return project


def update_project(actor, project_id: int, data: dict) -> Project:
    project = get_scoped(Project, project_id, organization_id=actor.organization_id)
    values = _project_fields(data or {}, partial=True)
    if not values:
        raise ValidationError("Nothing to update", details={"fields": ["name", "location", "status"]})
    for key, val in values.items():
        setattr(project, key, val)
    db.session.commit()

    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="UPDATE",
        entity="PROJECT",
        entity_id=project.id,
        details=f"Updated project {project.name}",
        metadata=values,
    )
    return project


def set_membership(actor, project_id: int, data: dict) -> ProjectUser:
    """Assign a user to a project, or change an existing membership."""
    data = data or {}
    project = get_scoped(Project, project_id, organization_id=actor.organization_id)
    if data.get("user_id") is None:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    user = get_scoped(User, data["user_id"], organization_id=actor.organization_id)

    status = data.get("status", "active")
    if status not in MEMBERSHIP_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'",
            details={"status": f"must be one of {sorted(MEMBERSHIP_STATUSES)}"},
        )

    flags = {flag: data[flag] for flag in ("can_view_finances", "can_create_entries") if flag in data}
    bad = [flag for flag, value in flags.items() if not isinstance(value, bool)]
    if bad:
        raise ValidationError(
            f"{bad[0]} must be a boolean",
            details={flag: "must be true or false" for flag in bad},
        )

    membership = ProjectUser.query.filter_by(project_id=project.id, user_id=user.id).first()
    if membership is None:
        membership = ProjectUser(project_id=project.id, user_id=user.id, assigned_by=actor.id)
        db.session.add(membership)
    membership.status = status
    for flag, value in flags.items():
        setattr(membership, flag, value)
    db.session.commit()

    logger.info(
        "Membership %s set to %s",
        membership.id,
        status,
        extra={"organization_id": actor.organization_id, "project_id": project.id, "user_id": user.id},
    )
    return membership


def list_members(actor, project_id: int) -> list[ProjectUser]:
    project = get_scoped(Project, project_id, organization_id=actor.organization_id)
    return project.members.order_by(ProjectUser.id).all()


# ── Labour roster ────────────────────────────────────────────────────────────

def list_labors(organization_id: int) -> list[Labor]:
    return Labor.query_for_org(organization_id).order_by(Labor.name.asc(), Labor.id.asc()).all()


def create_labor(actor, data: dict) -> Labor:
    data = data or {}
    name = str(data.get("name", "") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    labor_type = data.get("type") or "laborer"
    if labor_type not in LABOR_TYPES:
        raise ValidationError(
            f"Invalid type '{labor_type}'",
            details={"type": f"must be one of {sorted(LABOR_TYPES)}"},
        )
    try:
        rate = float(data.get("rate", 0) or 0)
    except (TypeError, ValueError):
        raise ValidationError("rate must be a number", details={"rate": "invalid"}) from None
    if rate < 0:
        raise ValidationError("rate must not be negative", details={"rate": "negative"})

    labor = Labor(organization_id=actor.organization_id, name=name[:200], type=labor_type, rate=rate)
    db.session.add(labor)
    db.session.commit()
    return labor
