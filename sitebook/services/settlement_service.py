"""
Settlement service — partial and full payments against a Record.

    settlement, record = record_settlement(actor, record_id, {
        "settlement_date": "2024-07-01",
        "amount_paid": 25000,
        "payment_mode": "bank",
        "financial_account_id": 3,
        "convert_to_transaction": True,
    })

Each settlement adds to ``Record.paid_amount``; the balance is
``amount - paid_amount`` and ``status`` moves pending → partial → paid.
A settlement may not exceed the outstanding balance.

``convert_to_transaction`` books the payment as a Transaction on the
record's project and ledger.  It goes through the approval gate like any
other transaction, so a user's conversion waits for an admin.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from sitebook.core.exceptions import InvalidStateError, ValidationError
from sitebook.models import db
from sitebook.models.base import STATUS_PENDING_CREATE, STATUS_PENDING_DELETE, STATUS_REJECTED
from sitebook.models.finance import PAYMENT_MODES, FinancialAccount, Record, RecordSettlement
from sitebook.services import audit_service
from sitebook.services.approval_gate import ApprovalGate
from sitebook.services.entity_registry import FieldSpec, get_kind, parse_fields
from sitebook.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from sitebook.services.permission_service import require_project_access

logger = logging.getLogger(__name__)

SETTLEMENT_FIELDS = (
    FieldSpec("settlement_date", "date", required=True),
    FieldSpec("amount_paid", "money", required=True, positive=True),
    FieldSpec("payment_mode", "choice", required=True, choices=frozenset(PAYMENT_MODES)),
    FieldSpec("financial_account_id", "ref", ref=FinancialAccount),
    FieldSpec("remarks", "text"),
)

_CONVERT_FLAG = FieldSpec("convert_to_transaction", "bool")

# Records whose canonical row is not live yet (or any more) take no payments.
_UNSETTLEABLE = frozenset({STATUS_PENDING_CREATE, STATUS_PENDING_DELETE, STATUS_REJECTED})

_TRANSACTION_TYPE_FOR = {"asset": "income", "liability": "expense"}


def _load_record(actor, record_id, *, for_change: bool) -> Record:
    record = get_scoped(Record, record_id, organization_id=actor.organization_id, label="Record")
    require_project_access(record.project_id, actor, finances=True, create_entries=for_change)
    return record


def list_settlements(actor, record_id) -> list[RecordSettlement]:
    """Settlements of one record, newest first."""
    record = _load_record(actor, record_id, for_change=False)
    return (
        RecordSettlement.query_for_org(actor.organization_id)
        .filter(RecordSettlement.record_id == record.id)
        .order_by(RecordSettlement.settlement_date.desc(), RecordSettlement.id.desc())
        .all()
    )


def recalculate(record: Record) -> Record:
    """Recompute ``paid_amount`` and ``status`` from the stored settlements."""
    total = db.session.execute(
        select(func.coalesce(func.sum(RecordSettlement.amount_paid), 0)).where(
            RecordSettlement.record_id == record.id,
        )
    ).scalar_one()
    record.paid_amount = round(float(total), 2)
    if record.paid_amount <= 0:
        record.status = "pending"
    else:
        record.refresh_status()
    return record


def record_settlement(actor, record_id, data: dict) -> tuple[RecordSettlement, Record]:
    """Store one settlement against a record and refresh its totals.

    Raises:
        NotFoundError: record or financial account outside the organization.
        ForbiddenError: no finance access to the record's project.
        InvalidStateError: the record is awaiting creation/deletion or was rejected.
        ValidationError: bad fields, or more than the outstanding balance.
    """
    data = data or {}
    record = _load_record(actor, record_id, for_change=True)
    if record.approval_status in _UNSETTLEABLE:
        raise InvalidStateError(
            resource="Record",
            resource_id=record.id,
            current=record.approval_status,
            action="settle",
        )

    values = parse_fields(SETTLEMENT_FIELDS, data, model=RecordSettlement, label="Settlement")
    try:
        convert = bool(_CONVERT_FLAG.coerce(data.get("convert_to_transaction")))
    except ValueError as exc:
        raise ValidationError("Invalid settlement data", details={"convert_to_transaction": str(exc)}) from None

    account_id = values.get("financial_account_id")
    if account_id is not None and get_scoped_or_none(
        FinancialAccount, account_id, organization_id=actor.organization_id,
    ) is None:
        raise ValidationError(
            "Invalid settlement references",
            details={"financial_account_id": f"FinancialAccount {account_id} not found"},
        )

    outstanding = record.balance_amount
    if values["amount_paid"] > outstanding:
        raise ValidationError(
            "Settlement exceeds the outstanding balance",
            details={"amount_paid": f"must not exceed {outstanding:.2f}"},
        )

    transaction_id = None
    if convert:
        description = f"Settlement of record #{record.id}: {record.description}"
        if values.get("remarks"):
            description += f" ({values['remarks']})"
        result = ApprovalGate(get_kind("transaction")).create(
            actor,
            {
                "project_id": record.project_id,
                "ledger_id": record.ledger_id,
                "type": _TRANSACTION_TYPE_FOR[record.type],
                "amount": values["amount_paid"],
                "description": description,
                "date": values["settlement_date"],
                "payment_mode": values["payment_mode"],
            },
        )
        transaction_id = result.entity_id

    settlement = RecordSettlement(
        organization_id=actor.organization_id,
        record_id=record.id,
        transaction_id=transaction_id,
        created_by=actor.id,
        **values,
    )
    db.session.add(settlement)
    db.session.flush()
    recalculate(record)
    db.session.commit()

    logger.info(
        "Settlement %s on record %s: paid %.2f of %.2f (%s)",
        settlement.id,
        record.id,
        record.paid_amount,
        record.amount,
        record.status,
        extra={
            "organization_id": actor.organization_id,
            "project_id": record.project_id,
            "user_id": actor.id,
            "entity_type": "record",
            "entity_id": record.id,
        },
    )
    audit_service.log_action(
        organization_id=actor.organization_id,
        user_id=actor.id,
        action="CREATE",
        entity="SETTLEMENT",
        entity_id=settlement.id,
        details=f"Settled {settlement.amount_paid:.2f} against record {record.id}",
        metadata={
            "record_id": record.id,
            "paid_amount": record.paid_amount,
            "balance_amount": record.balance_amount,
            "status": record.status,
            "transaction_id": transaction_id,
        },
    )
    return settlement, record
