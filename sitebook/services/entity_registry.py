"""
Entity registry — one descriptor per approvable kind.

The approval gate, the generic entity blueprint and the approvals queue
are all written once against ``EntityKind``.  A kind knows its model, its
editable fields (with coercion), its URL slug, its audit entity name and
which column ties a row to a project.

    kind = get_kind_by_slug("transactions")
    values = kind.parse(request.get_json(), partial=False)
    kind.check_references(values, organization_id=org_id)

Field values travel in two forms:
    python  — what goes on the model (``date`` objects, floats, ints)
    json    — what goes into ``pending_data`` (ISO date strings)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from sitebook.core.exceptions import NotFoundError, ValidationError
from sitebook.models.finance import (
    JOURNAL_MODES,
    PAYMENT_MODES,
    RECORD_STATUSES,
    RECORD_TYPES,
    TRANSACTION_TYPES,
    JournalEntry,
    Ledger,
    Record,
    Transaction,
)
from sitebook.models.materials import MOVEMENT_TYPES, Material, MaterialLedgerEntry
from sitebook.models.project import Project
from sitebook.models.site import ATTENDANCE_STATUSES, TASK_STATUSES, Document, Hajari, Labor, Photo, Task
from sitebook.services.approval_policy import UNSET, is_locked
from sitebook.services.helpers.scoped_queries import get_scoped_or_none
from sitebook.utils.helpers import parse_date_input, to_int

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class FieldSpec:
    """One editable column of an approvable kind.

    ``kind`` is one of: str, text, int, float, money, date, bool, choice, ref.
    ``ref`` fields point at another org-scoped model and are checked by
    ``EntityKind.check_references``.
    """

    name: str
    kind: str = "str"
    required: bool = False
    choices: frozenset | None = None
    ref: type | None = None
    max_length: int | None = None
    positive: bool = False

    def coerce(self, raw):
        """Convert an incoming value to its python form.

        Raises ValueError with a field-level message on bad input.
        """
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            if self.required:
                raise ValueError("is required")
            return None

        if self.kind in ("str", "text"):
            value = str(raw).strip() if self.kind == "str" else str(raw)
            if self.max_length and len(value) > self.max_length:
                raise ValueError(f"must be at most {self.max_length} characters")
            return value

        if self.kind in ("int", "ref"):
            value = to_int(raw)
            if value is None:
                raise ValueError("must be an integer")
            return value

        if self.kind in ("float", "money"):
            if isinstance(raw, bool):
                raise ValueError("must be a number")
            try:
                value = float(raw)
            except (TypeError, ValueError, OverflowError):
                raise ValueError("must be a number") from None
            if not math.isfinite(value):
                raise ValueError("must be a finite number")
            if self.positive and value <= 0:
                raise ValueError("must be greater than zero")
            if value < 0:
                raise ValueError("must not be negative")
            return round(value, 2) if self.kind == "money" else value

        if self.kind == "date":
            return parse_date_input(raw)

        if self.kind == "bool":
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            raise ValueError("must be a boolean")

        if self.kind == "choice":
            value = str(raw).strip()
            if value not in self.choices:
                raise ValueError(f"must be one of {sorted(self.choices)}")
            return value

        raise ValueError(f"unsupported field kind '{self.kind}'")

    def to_json(self, value):
        if isinstance(value, date):
            return value.isoformat()
        return value


def parse_fields(specs, data, *, model, label: str, partial: bool = False) -> dict:
    """Validate and coerce request data against *specs*.

    Unknown keys are ignored.  With ``partial=True`` only the keys present
    in *data* are returned and required-ness is only enforced for keys that
    are present.  A None value for a NOT NULL column of *model* is dropped
    on create (the column default applies) and refused on edit.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    values: dict = {}
    errors: dict = {}
    for spec in specs:
        if spec.name not in data:
            if not partial and spec.required:
                errors[spec.name] = "is required"
            continue
        raw = data[spec.name]
        if raw is UNSET:
            continue
        try:
            value = spec.coerce(raw)
        except ValueError as exc:
            errors[spec.name] = str(exc)
            continue
        if value is None and not model.__table__.c[spec.name].nullable:
            if partial:
                errors[spec.name] = "may not be empty"
            continue
        values[spec.name] = value

    if errors:
        raise ValidationError(f"Invalid {label.lower()} data", details=errors)
    return values


@dataclass(frozen=True)
class EntityKind:
    """Descriptor binding a kind tag to its model and editable fields.

    ``after_apply`` runs after field values are written onto an existing
    row, for kinds with derived columns.
    """

    tag: str
    slug: str
    model: type
    label: str
    audit_entity: str
    fields: tuple[FieldSpec, ...]
    project_field: str | None = None
    aliases: tuple[str, ...] = field(default_factory=tuple)
    after_apply: Callable | None = None

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def is_project_scoped(self) -> bool:
        return self.project_field is not None

    def field_spec(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    # ── Input ────────────────────────────────────────────────────────────

    def parse(self, data: dict | None, *, partial: bool = False) -> dict:
        """Validate and coerce request data into python field values."""
        return parse_fields(self.fields, data, model=self.model, label=self.label, partial=partial)

    def check_references(self, values: dict, *, organization_id: int) -> None:
        """Every referenced row must exist inside the actor's organization."""
        errors = {}
        for spec in self.fields:
            if spec.kind != "ref" or values.get(spec.name) is None:
                continue
            target = get_scoped_or_none(spec.ref, values[spec.name], organization_id=organization_id)
            if target is None:
                errors[spec.name] = f"{spec.ref.__name__} {values[spec.name]} not found"
        if errors:
            raise ValidationError(f"Invalid {self.label.lower()} references", details=errors)

    # ── Canonical data ───────────────────────────────────────────────────

    def to_overlay(self, values: dict) -> dict:
        """JSON form of a partial field set, ready for ``pending_data``."""
        return {
            name: self.field_spec(name).to_json(value)
            for name, value in values.items()
            if value is not UNSET
        }

    def canonical(self, entity) -> dict:
        """Current canonical field values of *entity* in JSON form."""
        return {spec.name: spec.to_json(getattr(entity, spec.name)) for spec in self.fields}

    def apply(self, entity, values: dict) -> None:
        """Write field values (python or JSON form) onto *entity*."""
        for name, value in values.items():
            if value is UNSET or name not in self.field_names:
                continue
            spec = self.field_spec(name)
            if spec.kind == "date" and value is not None:
                value = parse_date_input(value)
            setattr(entity, name, value)
        if self.after_apply is not None:
            self.after_apply(entity)

    # ── Scope ────────────────────────────────────────────────────────────

    def project_id_of(self, entity_or_values) -> int | None:
        if self.project_field is None:
            return None
        if isinstance(entity_or_values, dict):
            return entity_or_values.get(self.project_field)
        return getattr(entity_or_values, self.project_field)

    def serialize(self, entity, actor_role: str) -> dict:
        data = entity.to_dict()
        data["kind"] = self.tag
        data["is_locked"] = is_locked(entity, actor_role)
        return data


# ── Kind table ───────────────────────────────────────────────────────────────


def _choices(values) -> frozenset:
    return frozenset(values)


KINDS: tuple[EntityKind, ...] = (
    EntityKind(
        tag="ledger",
        slug="ledgers",
        model=Ledger,
        label="Ledger",
        audit_entity="LEDGER",
        fields=(
            FieldSpec("name", "str", required=True, max_length=200),
            FieldSpec("type", "choice", choices=_choices(TRANSACTION_TYPES)),
            FieldSpec("gst_number", "str", max_length=20),
            FieldSpec("is_gst_registered", "bool"),
            FieldSpec("billing_address", "text"),
            FieldSpec("state", "str", max_length=100),
        ),
    ),
    EntityKind(
        tag="transaction",
        slug="transactions",
        model=Transaction,
        label="Transaction",
        audit_entity="TRANSACTION",
        project_field="project_id",
        fields=(
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("ledger_id", "ref", ref=Ledger),
            FieldSpec("type", "choice", required=True, choices=_choices(TRANSACTION_TYPES)),
            FieldSpec("amount", "money", required=True, positive=True),
            FieldSpec("description", "text", required=True),
            FieldSpec("date", "date", required=True),
            FieldSpec("payment_mode", "choice", choices=_choices(PAYMENT_MODES)),
            FieldSpec("bill_url", "str", max_length=500),
        ),
    ),
    EntityKind(
        tag="record",
        slug="records",
        model=Record,
        label="Record",
        audit_entity="RECORD",
        project_field="project_id",
        aliases=("recordable",),
        after_apply=Record.refresh_status,
        fields=(
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("ledger_id", "ref", ref=Ledger),
            FieldSpec("type", "choice", required=True, choices=_choices(RECORD_TYPES)),
            FieldSpec("amount", "money", required=True, positive=True),
            FieldSpec("description", "text", required=True),
            FieldSpec("due_date", "date", required=True),
            FieldSpec("status", "choice", choices=_choices(RECORD_STATUSES)),
            FieldSpec("payment_mode", "choice", choices=_choices(PAYMENT_MODES)),
            FieldSpec("bill_url", "str", max_length=500),
        ),
    ),
    EntityKind(
        tag="task",
        slug="tasks",
        model=Task,
        label="Task",
        audit_entity="TASK",
        project_field="project_id",
        fields=(
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("title", "str", required=True, max_length=300),
            FieldSpec("description", "text"),
            FieldSpec("status", "choice", choices=_choices(TASK_STATUSES)),
            FieldSpec("due_date", "date"),
        ),
    ),
    EntityKind(
        tag="photo",
        slug="photos",
        model=Photo,
        label="Photo",
        audit_entity="PHOTO",
        project_field="project_id",
        fields=(
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("image_url", "str", required=True, max_length=500),
            FieldSpec("description", "text"),
        ),
    ),
    EntityKind(
        tag="document",
        slug="documents",
        model=Document,
        label="Document",
        audit_entity="DOCUMENT",
        project_field="project_id",
        fields=(
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("document_name", "str", required=True, max_length=300),
            FieldSpec("document_url", "str", required=True, max_length=500),
            FieldSpec("description", "text"),
        ),
    ),
    EntityKind(
        tag="hajari",
        slug="hajari",
        model=Hajari,
        label="Hajari",
        audit_entity="HAJARI",
        project_field="project_id",
        fields=(
            FieldSpec("labor_id", "ref", required=True, ref=Labor),
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("date", "date", required=True),
            FieldSpec("status", "choice", choices=_choices(ATTENDANCE_STATUSES)),
            FieldSpec("overtime_hours", "float"),
            FieldSpec("upad", "money"),
        ),
    ),
    EntityKind(
        tag="material",
        slug="materials",
        model=Material,
        label="Material",
        audit_entity="MATERIAL",
        fields=(
            FieldSpec("name", "str", required=True, max_length=200),
            FieldSpec("unit", "str", required=True, max_length=30),
        ),
    ),
    EntityKind(
        tag="materialledger",
        slug="material-ledger",
        model=MaterialLedgerEntry,
        label="Material ledger entry",
        audit_entity="MATERIAL_LEDGER",
        project_field="project_id",
        aliases=("materialledgerentry",),
        fields=(
            FieldSpec("material_id", "ref", required=True, ref=Material),
            FieldSpec("project_id", "ref", required=True, ref=Project),
            FieldSpec("date", "date", required=True),
            FieldSpec("type", "choice", required=True, choices=_choices(MOVEMENT_TYPES)),
            FieldSpec("quantity", "float", required=True, positive=True),
            FieldSpec("description", "text"),
            FieldSpec("challan_url", "str", max_length=500),
        ),
    ),
    EntityKind(
        tag="journal",
        slug="journal",
        model=JournalEntry,
        label="Journal entry",
        audit_entity="JOURNAL",
        project_field="debit_project_id",
        fields=(
            FieldSpec("date", "date", required=True),
            FieldSpec("amount", "money", required=True, positive=True),
            FieldSpec("description", "text", required=True),
            FieldSpec("debit_mode", "choice", required=True, choices=_choices(JOURNAL_MODES)),
            FieldSpec("debit_ledger_id", "ref", ref=Ledger),
            FieldSpec("debit_project_id", "ref", required=True, ref=Project),
            FieldSpec("credit_mode", "choice", required=True, choices=_choices(JOURNAL_MODES)),
            FieldSpec("credit_ledger_id", "ref", ref=Ledger),
            FieldSpec("credit_project_id", "ref", required=True, ref=Project),
        ),
    ),
)


_BY_TAG = {kind.tag: kind for kind in KINDS}
_BY_SLUG = {kind.slug: kind for kind in KINDS}
_BY_NAME = {
    **_BY_TAG,
    **{alias: kind for kind in KINDS for alias in kind.aliases},
}


def _normalise(name: str) -> str:
    return str(name or "").strip().lower().replace("-", "").replace("_", "")


def get_kind(name: str) -> EntityKind:
    """Look up a kind by tag or alias, case-insensitively.

    Raises ValidationError for unknown names (used for request bodies).
    """
    kind = _BY_NAME.get(_normalise(name))
    if kind is None:
        raise ValidationError(
            f"Unknown module '{name}'",
            details={"module": f"must be one of {sorted(_BY_NAME)}"},
        )
    return kind


def get_kind_by_slug(slug: str) -> EntityKind:
    """Look up a kind by URL slug.  Unknown slugs are a 404."""
    kind = _BY_SLUG.get(slug)
    if kind is None:
        raise NotFoundError(resource="Entity kind", resource_id=slug)
    return kind


def all_kinds() -> tuple[EntityKind, ...]:
    return KINDS
