"""
Approval policy — who needs a moderator for what.

Pure functions, no DB access:

    requires_approval(entity_type, operation, actor_role)  Policy Resolver
    is_locked(entity, actor_role)                          Lock Evaluator
    merge_pending(canonical, pending)                      overlay merge law

The policy is a lookup table ``entity_type → operation → bool`` that only
applies to the ``user`` role; admins are never gated.  The table is chosen
from a named preset and may be overridden cell by cell from app config:

    APPROVAL_POLICY_PRESET = "strict"          # every user mutation is moderated
    APPROVAL_POLICY = {"ledger": {"create": False}}

``strict`` is the default.  ``relaxed`` lets users create immediately and
only moderates edits and deletes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sitebook.core.exceptions import ValidationError
from sitebook.models.auth import ROLE_ADMIN, ROLES

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

ENTITY_TYPES = (
    "ledger",
    "transaction",
    "record",
    "task",
    "photo",
    "document",
    "hajari",
    "material",
    "materialledger",
    "journal",
)

OP_CREATE = "create"
OP_EDIT = "edit"
OP_DELETE = "delete"
OPERATIONS = (OP_CREATE, OP_EDIT, OP_DELETE)

# Rejections after which a non-admin may no longer propose edits/deletes.
LOCK_THRESHOLD = 3

POLICY_PRESETS: dict[str, dict[str, dict[str, bool]]] = {
    "strict": {
        entity_type: {op: True for op in OPERATIONS} for entity_type in ENTITY_TYPES
    },
    "relaxed": {
        entity_type: {OP_CREATE: False, OP_EDIT: True, OP_DELETE: True}
        for entity_type in ENTITY_TYPES
    },
}
DEFAULT_PRESET = "strict"


class _Unset:
    """Marker for "no change requested for this field" in a pending overlay."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()


# ── Policy table ─────────────────────────────────────────────────────────────

def _check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise ValidationError(
            f"Unknown entity type '{entity_type}'",
            details={"entity_type": f"must be one of {list(ENTITY_TYPES)}"},
        )


def _check_operation(operation: str) -> None:
    if operation not in OPERATIONS:
        raise ValidationError(
            f"Unknown operation '{operation}'",
            details={"operation": f"must be one of {list(OPERATIONS)}"},
        )


def _check_role(actor_role: str) -> None:
    if actor_role not in ROLES:
        raise ValidationError(
            f"Unknown role '{actor_role}'",
            details={"role": f"must be one of {sorted(ROLES)}"},
        )


class ApprovalPolicy:
    """Immutable ``entity_type × operation → bool`` table for the user role."""

    def __init__(self, table: Mapping[str, Mapping[str, bool]]):
        normalised: dict[str, dict[str, bool]] = {}
        for entity_type in ENTITY_TYPES:
            row = table.get(entity_type)
            if row is None:
                raise ValueError(f"Approval policy is missing entity type '{entity_type}'")
            normalised[entity_type] = {}
            for op in OPERATIONS:
                if op not in row:
                    raise ValueError(f"Approval policy for '{entity_type}' is missing '{op}'")
                normalised[entity_type][op] = bool(row[op])
        unknown = set(table) - set(ENTITY_TYPES)
        if unknown:
            raise ValueError(f"Approval policy names unknown entity types: {sorted(unknown)}")
        self._table = normalised

    @classmethod
    def preset(cls, name: str = DEFAULT_PRESET) -> "ApprovalPolicy":
        if name not in POLICY_PRESETS:
            raise ValueError(
                f"Unknown approval policy preset '{name}'. "
                f"Choose one of: {', '.join(sorted(POLICY_PRESETS))}"
            )
        return cls(POLICY_PRESETS[name])

    @classmethod
    def from_config(cls, config: Mapping) -> "ApprovalPolicy":
        """Build the policy from app config (preset + per-cell overrides)."""
        preset_name = config.get("APPROVAL_POLICY_PRESET") or DEFAULT_PRESET
        if preset_name not in POLICY_PRESETS:
            raise ValueError(f"Unknown APPROVAL_POLICY_PRESET '{preset_name}'")
        table = {k: dict(v) for k, v in POLICY_PRESETS[preset_name].items()}
        for entity_type, ops in (config.get("APPROVAL_POLICY") or {}).items():
            if entity_type not in table:
                raise ValueError(f"APPROVAL_POLICY names unknown entity type '{entity_type}'")
            for op, gated in ops.items():
                if op not in OPERATIONS:
                    raise ValueError(f"APPROVAL_POLICY names unknown operation '{op}'")
                table[entity_type][op] = bool(gated)
        logger.debug("Approval policy loaded: preset=%s", preset_name)
        return cls(table)

    def requires_approval(self, entity_type: str, operation: str, actor_role: str) -> bool:
        _check_entity_type(entity_type)
        _check_operation(operation)
        _check_role(actor_role)
        if actor_role == ROLE_ADMIN:
            return False
        return self._table[entity_type][operation]

    def as_dict(self) -> dict[str, dict[str, bool]]:
        return {k: dict(v) for k, v in self._table.items()}


_DEFAULT_POLICY = ApprovalPolicy.preset(DEFAULT_PRESET)


def current_policy() -> ApprovalPolicy:
    """Policy bound to the running app, or the strict default outside one."""
    from flask import current_app, has_app_context

    if has_app_context():
        policy = current_app.extensions.get("approval_policy")
        if policy is not None:
            return policy
    return _DEFAULT_POLICY


def init_approval_policy(app) -> ApprovalPolicy:
    """Build the policy from app config and register it on the app."""
    policy = ApprovalPolicy.from_config(app.config)
    app.extensions["approval_policy"] = policy
    return policy


# ── Policy Resolver ──────────────────────────────────────────────────────────

def requires_approval(
    entity_type: str,
    operation: str,
    actor_role: str,
    policy: ApprovalPolicy | None = None,
) -> bool:
    """True when the operation must go through the pending branch."""
    return (policy or current_policy()).requires_approval(entity_type, operation, actor_role)


# ── Lock Evaluator ───────────────────────────────────────────────────────────

def is_locked(entity, actor_role: str) -> bool:
    """Whether a non-admin is barred from proposing edits/deletes on *entity*."""
    if actor_role == ROLE_ADMIN:
        return False
    return (getattr(entity, "rejection_count", 0) or 0) >= LOCK_THRESHOLD


# ── Overlay merge ────────────────────────────────────────────────────────────

def merge_pending(canonical: Mapping, pending: Mapping | None) -> dict:
    """Return ``{**canonical, **pending}`` with UNSET proposals skipped."""
    merged = dict(canonical)
    for key, value in (pending or {}).items():
        if value is UNSET:
            continue
        merged[key] = value
    return merged
