"""Financial account service — cash boxes and bank accounts of an organization.

Accounts are plain org-level master data: admins create and update them,
every member of the organization can list them to pick one when recording
a settlement.  Names are unique per organization.
"""

from __future__ import annotations

import logging

from sitebook.core.exceptions import ConflictError, ValidationError
from sitebook.models import db
from sitebook.models.finance import ACCOUNT_TYPES, FinancialAccount
from sitebook.services import audit_service
from sitebook.services.entity_registry import FieldSpec, parse_fields
from sitebook.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = (
    FieldSpec("name", "str", required=True, max_length=200),
    FieldSpec("type", "choice", required=True, choices=frozenset(ACCOUNT_TYPES)),
    FieldSpec("account_number", "str", max_length=50),
    FieldSpec("bank_name", "str", max_length=200),
    FieldSpec("ifsc_code", "str", max_length=20),
    FieldSpec("opening_balance", "money"),
)


def _parse(data, *, partial: bool) -> dict:
    data = dict(data or {})
    if isinstance(data.get("type"), str):
        data["type"] = data["type"].strip().lower()
    values = parse_fields(ACCOUNT_FIELDS, data, model=FinancialAccount, label="Financial account", partial=partial)
    if "name" in values and len(values["name"]) < 2:
        raise ValidationError(
            "Invalid financial account data",
            details={"name": "must be at least 2 characters"},
        )
    return values


def _ensure_unique_name(organization_id: int, name: str, *, exclude_id: int | None = None) -> None:
    query = FinancialAccount.query_for_org(organization_id).filter(FinancialAccount.name == name)
    if exclude_id is not None:
        query = query.filter(FinancialAccount.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(resource="Financial account", field="name", value=name)


def list_accounts(organization_id: int) -> list[FinancialAccount]:
    return (
        FinancialAccount.query_for_org(organization_id)
        .order_by(FinancialAccount.created_at.asc(), FinancialAccount.id.asc())
        .all()
    )


def create_account(actor, data: dict) -> FinancialAccount:
    values = _parse(data, partial=False)
    _ensure_unique_name(actor.organization_id, values["name"])

    account = FinancialAccount(organization_id=actor.organization_id, **values)
    db.session.add(account)
    db.session.commit()

    logger.info(
        "Financial account %s created",
        account.id,
        extra={"organization_id": actor.organization_id, "user_id": actor.id},
    )
    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="CREATE",
        entity="FINANCIAL_ACCOUNT",
        entity_id=account.id,
        details=f"Created {account.type} account {account.name}",
    )
    return account


def update_account(actor, account_id: int, data: dict) -> FinancialAccount:
    account = get_scoped(
        FinancialAccount, account_id, organization_id=actor.organization_id, label="Financial account",
    )
    values = _parse(data, partial=True)
    if not values:
        raise ValidationError(
            "Nothing to update",
            details={"fields": [spec.name for spec in ACCOUNT_FIELDS]},
        )
    if "name" in values:
        _ensure_unique_name(actor.organization_id, values["name"], exclude_id=account.id)

    for key, val in values.items():
        setattr(account, key, val)
    db.session.commit()

    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="UPDATE",
        entity="FINANCIAL_ACCOUNT",
        entity_id=account.id,
        details=f"Updated account {account.name}",
        metadata=values,
    )
    return account
