"""
Approval Gate — the moderation state machine for approvable entities.

    gate = ApprovalGate(get_kind("task"))
    result = gate.create(actor, {"project_id": 1, "title": "Pour slab"})
    gate.resolve(result.entity, "approved", admin)

Mutation Router (``submit``):
    not gated  → write canonical fields, status ``approved``, overlay cleared;
                 delete removes the row
    gated      → create: row with ``pending-create``
                 edit:   canonical untouched, ``pending_data`` = proposal,
                         ``pending-edit``
                 delete: canonical untouched, ``pending-delete``

Decision Processor (``resolve``):
    approve    → pending-create: ``approved``
                 pending-edit:   merge overlay into canonical, ``approved``
                 pending-delete: row removed
    reject     → overlay discarded, ``rejected``, ``rejection_count`` + 1

The caller checks project access before calling in.  Audit rows and
notifications are written after the entity commit and never undo it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sitebook.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from sitebook.models import db
from sitebook.models.base import (
    STATUS_APPROVED,
    STATUS_PENDING_CREATE,
    STATUS_PENDING_DELETE,
    STATUS_PENDING_EDIT,
    STATUS_REJECTED,
)
from sitebook.services import audit_service
from sitebook.services.approval_policy import (
    OP_CREATE,
    OP_DELETE,
    OP_EDIT,
    OPERATIONS,
    ApprovalPolicy,
    is_locked,
    merge_pending,
    requires_approval,
)
from sitebook.services.entity_registry import EntityKind
from sitebook.services.notification_service import NotificationService
from sitebook.services.permission_service import Actor

logger = logging.getLogger(__name__)

DECISION_APPROVE = "approved"
DECISION_REJECT = "rejected"
DECISIONS = (DECISION_APPROVE, DECISION_REJECT)

STATUS_DELETED = "deleted"

_PENDING_STATUS_FOR = {
    OP_CREATE: STATUS_PENDING_CREATE,
    OP_EDIT: STATUS_PENDING_EDIT,
    OP_DELETE: STATUS_PENDING_DELETE,
}
_OPERATION_FOR = {status: op for op, status in _PENDING_STATUS_FOR.items()}
_DIRECT_AUDIT_ACTION = {OP_CREATE: "CREATE", OP_EDIT: "UPDATE", OP_DELETE: "DELETE"}


@dataclass
class MutationResult:
    """Outcome of ``ApprovalGate.submit``."""

    entity: Any
    entity_id: int
    operation: str
    status: str
    gated: bool

    @property
    def deleted(self) -> bool:
        return self.status == STATUS_DELETED


@dataclass
class DecisionResult:
    """Outcome of ``ApprovalGate.resolve``."""

    entity: Any
    entity_id: int
    operation: str
    decision: str
    status: str

    @property
    def deleted(self) -> bool:
        return self.status == STATUS_DELETED


class ApprovalGate:
    """Generic approval workflow for one ``EntityKind``."""

    def __init__(self, kind: EntityKind, policy: ApprovalPolicy | None = None):
        self.kind = kind
        self.policy = policy

    # ── Mutation Router ──────────────────────────────────────────────────

    def create(self, actor: Actor, fields: dict, request_message: str | None = None) -> MutationResult:
        return self.submit(OP_CREATE, actor, fields=fields, request_message=request_message)

    def edit(self, actor: Actor, entity, fields: dict, request_message: str | None = None) -> MutationResult:
        return self.submit(OP_EDIT, actor, fields=fields, entity=entity, request_message=request_message)

    def delete(self, actor: Actor, entity, request_message: str | None = None) -> MutationResult:
        return self.submit(OP_DELETE, actor, entity=entity, request_message=request_message)

    def submit(
        self,
        operation: str,
        actor: Actor,
        *,
        fields: dict | None = None,
        entity=None,
        request_message: str | None = None,
    ) -> MutationResult:
        """Apply a mutation now or park it as a pending request.

        Raises:
            ValidationError: bad operation or field data.
            NotFoundError: *entity* belongs to another organization.
            ForbiddenError: non-admin edit/delete on a locked entity.
        """
        if operation not in OPERATIONS:
            raise ValidationError(f"Unknown operation '{operation}'")
        gated = requires_approval(self.kind.tag, operation, actor.role, self.policy)
        request_message = (request_message or "").strip() or None

        if operation == OP_CREATE:
            values = self.kind.parse(fields, partial=False)
            self.kind.check_references(values, organization_id=actor.organization_id)
            entity = self.kind.model(
                organization_id=actor.organization_id,
                created_by=actor.id,
                **values,
            )
            db.session.add(entity)
            overlay = None
        else:
            self._check_target(entity, actor, operation)
            if operation == OP_EDIT:
                values = self.kind.parse(fields, partial=True)
                if not values:
                    raise ValidationError(
                        "No editable fields supplied",
                        details={"fields": list(self.kind.field_names)},
                    )
                self.kind.check_references(values, organization_id=actor.organization_id)
                overlay = self.kind.to_overlay(values)
            else:
                values, overlay = {}, None

        if gated:
            entity.approval_status = _PENDING_STATUS_FOR[operation]
            entity.pending_data = overlay if operation == OP_EDIT else None
            entity.submitted_by = actor.id
            entity.request_message = request_message
        elif operation == OP_DELETE:
            entity_id = entity.id
            db.session.delete(entity)
        else:
            if operation == OP_EDIT:
                self.kind.apply(entity, values)
            entity.approval_status = STATUS_APPROVED
            entity.pending_data = None

        db.session.commit()

        if not gated and operation == OP_DELETE:
            status = STATUS_DELETED
            result_entity = None
        else:
            entity_id = entity.id
            status = entity.approval_status
            result_entity = entity

        logger.info(
            "%s %s %s (%s)",
            "Submitted" if gated else "Applied",
            operation,
            self.kind.tag,
            status,
            extra={
                "organization_id": actor.organization_id,
                "user_id": actor.id,
                "entity_type": self.kind.tag,
                "entity_id": entity_id,
            },
        )

        self._after_submit(actor, operation, entity_id, gated, overlay, request_message)
        return MutationResult(
            entity=result_entity,
            entity_id=entity_id,
            operation=operation,
            status=status,
            gated=gated,
        )

    # ── Decision Processor ───────────────────────────────────────────────

    def resolve(self, entity, decision: str, admin: Actor, remarks: str | None = None) -> DecisionResult:
        """Approve or reject the pending request carried by *entity*.

        Raises:
            ValidationError: unknown decision, or a proposed edit whose
                values or references are no longer valid.
            ForbiddenError: *admin* is not an admin.
            NotFoundError: *entity* belongs to another organization.
            InvalidStateError: *entity* has no pending request.
        """
        if decision not in DECISIONS:
            raise ValidationError(
                f"Invalid status '{decision}'",
                details={"status": f"must be one of {list(DECISIONS)}"},
            )
        if not admin.is_admin:
            raise ForbiddenError("Only admins can approve or reject requests")
        if entity is None or entity.organization_id != admin.organization_id:
            raise NotFoundError(resource=self.kind.label, resource_id=getattr(entity, "id", None))
        if not entity.is_pending:
            raise InvalidStateError(
                resource=self.kind.label,
                resource_id=entity.id,
                current=entity.approval_status,
                action="approve" if decision == DECISION_APPROVE else "reject",
            )

        entity_id = entity.id
        operation = _OPERATION_FOR[entity.approval_status]
        submitter_id = entity.submitted_by
        remarks = (remarks or "").strip() or None
        overlay = entity.pending_data

        if decision == DECISION_APPROVE:
            if operation == OP_DELETE:
                db.session.delete(entity)
            else:
                if operation == OP_EDIT:
                    # references may have been deleted since submission
                    self.kind.parse(overlay or {}, partial=True)
                    merged = merge_pending(self.kind.canonical(entity), overlay)
                    self.kind.check_references(merged, organization_id=admin.organization_id)
                    self.kind.apply(entity, merged)
                entity.pending_data = None
                entity.approval_status = STATUS_APPROVED
                entity.remarks = remarks
        else:
            entity.pending_data = None
            entity.approval_status = STATUS_REJECTED
            entity.remarks = remarks
            entity.rejection_count = (entity.rejection_count or 0) + 1

        db.session.commit()

        deleted = decision == DECISION_APPROVE and operation == OP_DELETE
        status = STATUS_DELETED if deleted else entity.approval_status

        logger.info(
            "Resolved %s request on %s: %s",
            operation,
            self.kind.tag,
            decision,
            extra={
                "organization_id": admin.organization_id,
                "user_id": admin.id,
                "entity_type": self.kind.tag,
                "entity_id": entity_id,
            },
        )

        self._after_resolve(admin, operation, entity_id, decision, submitter_id, remarks, overlay)
        return DecisionResult(
            entity=None if deleted else entity,
            entity_id=entity_id,
            operation=operation,
            decision=decision,
            status=status,
        )

    # ── Internals ────────────────────────────────────────────────────────

    def _check_target(self, entity, actor: Actor, operation: str) -> None:
        if entity is None:
            raise ValidationError(f"{operation} requires an existing {self.kind.label.lower()}")
        if not isinstance(entity, self.kind.model):
            raise ValidationError(f"Expected a {self.kind.label}, got {type(entity).__name__}")
        if entity.organization_id != actor.organization_id:
            raise NotFoundError(resource=self.kind.label, resource_id=entity.id)
        if is_locked(entity, actor.role):
            logger.info(
                "Locked %s rejected %s attempt",
                self.kind.tag,
                operation,
                extra={"user_id": actor.id, "entity_type": self.kind.tag, "entity_id": entity.id},
            )
            raise ForbiddenError(
                f"This {self.kind.label.lower()} has been rejected too many times "
                "and can only be changed by an admin"
            )

    def _after_submit(self, actor, operation, entity_id, gated, overlay, request_message):
        label = self.kind.label.lower()
        if gated:
            action = "SUBMIT"
            details = f"Requested {operation} of {label} {entity_id}"
        else:
            action = _DIRECT_AUDIT_ACTION[operation]
            past = {OP_CREATE: "Created", OP_EDIT: "Updated", OP_DELETE: "Deleted"}[operation]
            details = f"{past} {label} {entity_id}"

        metadata = {"operation": operation, "gated": gated}
        if overlay:
            metadata["pending_data"] = overlay
        if request_message:
            metadata["request_message"] = request_message

        audit_service.log_action(
            organization_id=actor.organization_id,
            user_id=actor.id,
            action=action,
            entity=self.kind.audit_entity,
            entity_id=entity_id,
            details=details,
            metadata=metadata,
        )
        if gated:
            NotificationService.notify_admins(
                organization_id=actor.organization_id,
                message=f"New {operation} request for {label} #{entity_id}",
                item_type=self.kind.tag,
                item_id=entity_id,
                exclude_user_id=actor.id,
            )

    def _after_resolve(self, admin, operation, entity_id, decision, submitter_id, remarks, overlay):
        label = self.kind.label.lower()
        verb = "Approved" if decision == DECISION_APPROVE else "Rejected"
        metadata = {"operation": operation, "decision": decision}
        if remarks:
            metadata["remarks"] = remarks
        if overlay:
            metadata["pending_data"] = overlay

        audit_service.log_action(
            organization_id=admin.organization_id,
            user_id=admin.id,
            action="APPROVE" if decision == DECISION_APPROVE else "REJECT",
            entity=self.kind.audit_entity,
            entity_id=entity_id,
            details=f"{verb} {operation} of {label} {entity_id}",
            metadata=metadata,
        )
        if submitter_id is not None and submitter_id != admin.id:
            message = f"Your {operation} request for {label} #{entity_id} was {decision}"
            if remarks:
                message += f": {remarks}"
            NotificationService.notify_user(
                organization_id=admin.organization_id,
                user_id=submitter_id,
                message=message,
                type=decision,
                item_type=self.kind.tag,
                item_id=entity_id,
            )
