"""
Platform-wide exception hierarchy.

Services raise these; ``sitebook.utils.errors.register_error_handlers``
maps each one to a single JSON error shape and HTTP status, so blueprints
never translate exceptions by hand.

Usage:
    from sitebook.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Task", resource_id=42)
    raise ValidationError("title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND cross-organization access
    attempts, so a 404 never confirms that another tenant's row exists.

    Args:
        resource: Human-readable model/entity name (e.g. "Task").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        organization_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (organization={organization_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidStateError(Exception):
    """Raised when an operation is not allowed in the entity's current state.

    Example: deciding on an entity that is not pending.  Maps to HTTP 409.
    """

    def __init__(self, resource: str, resource_id, current: str, action: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} {resource} id={resource_id} (status={current})")


class ForbiddenError(Exception):
    """Raised when the actor is authenticated but not allowed to act.  HTTP 403."""


class AuthenticationError(Exception):
    """Raised when no valid credentials accompany the request.  HTTP 401."""


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")
