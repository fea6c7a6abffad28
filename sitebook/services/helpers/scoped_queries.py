"""
Organization-scoped query helpers.

Every get-by-id in the application goes through these helpers instead of
``db.session.get(Model, pk)``.  A bare ``.get()`` ignores organization_id
and would hand one tenant's rows to another.

Usage:
    task = get_scoped(Task, task_id, organization_id=actor.organization_id)
    ledger = get_scoped_or_none(Ledger, ledger_id, organization_id=org_id)

Each keyword argument maps directly to a column name on the model.  A scope
kwarg naming a column the model does not have is a programming error and
raises ValueError rather than silently running an unscoped lookup.
"""

import logging

from sqlalchemy import select

from sitebook.core.exceptions import NotFoundError
from sitebook.models import db
from sitebook.utils.helpers import to_int

logger = logging.getLogger(__name__)


def get_scoped(
    model,
    pk,
    *,
    organization_id: int | None = None,
    project_id: int | None = None,
    label: str | None = None,
):
    """Fetch a single entity by PK with mandatory scope filter.

    Cross-organization access is indistinguishable from a missing record:
    both raise NotFoundError → HTTP 404.

    Raises:
        ValueError: no scope given, or a scope column missing on the model.
        NotFoundError: entity missing OR outside the given scope.
    """
    provided_scopes = {
        "organization_id": organization_id,
        "project_id": project_id,
    }
    provided_scopes = {k: v for k, v in provided_scopes.items() if v is not None}

    if not provided_scopes:
        raise ValueError(
            f"{model.__name__} id={pk} requires at least one scope filter "
            "(organization_id or project_id). Unscoped lookups are forbidden."
        )

    missing_fields = [field for field in provided_scopes if not hasattr(model, field)]
    if missing_fields:
        raise ValueError(
            f"{model.__name__} has no scope column(s) {sorted(missing_fields)}; "
            "refusing to perform an unscoped lookup."
        )

    resource = label or model.__name__
    key = to_int(pk)
    if key is None:
        raise NotFoundError(resource=resource, resource_id=pk)
    pk = key

    stmt = select(model).where(model.id == pk)
    for field, value in provided_scopes.items():
        stmt = stmt.where(getattr(model, field) == value)

    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug(
            "get_scoped: %s id=%s not found in scope %s",
            model.__name__,
            pk,
            provided_scopes,
        )
        raise NotFoundError(resource=resource, resource_id=pk)

    return result


def get_scoped_or_none(model, pk, *, organization_id=None, project_id=None):
    """Same as get_scoped but returns None instead of raising NotFoundError.

    Still enforces the scope requirement.
    """
    try:
        return get_scoped(model, pk, organization_id=organization_id, project_id=project_id)
    except NotFoundError:
        return None
