"""
Permission Service — project-level access for the two flat roles.

Rules:
  - admin  → every project of its own organization
  - user   → only projects with an ``active`` ProjectUser membership

Org-level kinds (ledger, material) have no project and skip this check;
organization isolation is still enforced by ``get_scoped``.

Financial kinds (transaction, record, journal) additionally honour the
membership flags:
  - can_view_finances  → needed to list or read them
  - can_create_entries → needed to create, edit or delete them
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select

from sitebook.core.exceptions import ForbiddenError
from sitebook.models import db
from sitebook.models.auth import ROLE_ADMIN
from sitebook.models.project import Project, ProjectUser
from sitebook.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)

FINANCIAL_KINDS = frozenset({"transaction", "record", "journal"})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as seen by services."""

    id: int
    organization_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, organization_id=user.organization_id, role=user.role)


def _membership(project_id, actor: Actor):
    """Active membership of *actor* on the project, or None."""
    return db.session.execute(
        select(ProjectUser).where(
            ProjectUser.project_id == project_id,
            ProjectUser.user_id == actor.id,
            ProjectUser.status == "active",
        )
    ).scalar_one_or_none()


def can_access_project(project_id, actor: Actor, *, finances: bool = False) -> bool:
    """True when *actor* may read or mutate data of the given project.

    With ``finances=True`` a user's membership must also carry
    ``can_view_finances``.
    """
    if project_id is None:
        return False
    project = db.session.execute(
        select(Project.id).where(
            Project.id == project_id,
            Project.organization_id == actor.organization_id,
        )
    ).scalar_one_or_none()
    if project is None:
        return False
    if actor.is_admin:
        return True
    membership = _membership(project_id, actor)
    if membership is None:
        return False
    return membership.can_view_finances or not finances


def accessible_project_ids(actor: Actor, *, finances: bool = False) -> list[int]:
    """IDs of every project the actor can see, in id order."""
    stmt = select(Project.id).where(Project.organization_id == actor.organization_id)
    if not actor.is_admin:
        stmt = stmt.join(ProjectUser, ProjectUser.project_id == Project.id).where(
            ProjectUser.user_id == actor.id,
            ProjectUser.status == "active",
        )
        if finances:
            stmt = stmt.where(ProjectUser.can_view_finances.is_(True))
    return list(db.session.execute(stmt.order_by(Project.id)).scalars())


def require_project_access(
    project_id,
    actor: Actor,
    *,
    finances: bool = False,
    create_entries: bool = False,
) -> Project:
    """Load the project in the actor's organization or raise.

    ``finances`` additionally requires ``can_view_finances`` and
    ``create_entries`` requires ``can_create_entries`` on the membership.
    Admins pass every check.

    Raises:
        NotFoundError: project missing or in another organization.
        ForbiddenError: project exists but the actor is not a member, or
            lacks the requested finance permission.
    """
    project = get_scoped(Project, project_id, organization_id=actor.organization_id)
    if actor.is_admin:
        return project

    membership = _membership(project.id, actor)
    reason = None
    if membership is None:
        reason = "You do not have access to this project"
    elif finances and not membership.can_view_finances:
        reason = "You do not have access to the finances of this project"
    elif create_entries and not membership.can_create_entries:
        reason = "You do not have permission to create financial entries for this project"

    if reason is not None:
        logger.info(
            "Project access denied: %s",
            reason,
            extra={"user_id": actor.id, "project_id": project.id},
        )
        raise ForbiddenError(reason)
    return project
