"""
SiteBook
Finance domain models.

Models:
    - Ledger: party / account head (org-level)
    - Transaction: income or expense actually paid
    - Record: outstanding receivable (asset) or payable (liability)
    - JournalEntry: double-entry transfer between two modes/ledgers
    - FinancialAccount: named cash box or bank account (not moderated)
    - RecordSettlement: one partial or full payment against a Record
"""

from datetime import datetime, timezone

from sitebook.models import db
from sitebook.models.base import ApprovableMixin, OrgScopedModel

# ── Constants ────────────────────────────────────────────────────────────────

TRANSACTION_TYPES = {"income", "expense"}
PAYMENT_MODES = {"cash", "bank"}
RECORD_TYPES = {"asset", "liability"}
RECORD_STATUSES = {"pending", "partial", "paid"}
JOURNAL_MODES = {"cash", "bank", "ledger"}
ACCOUNT_TYPES = {"cash", "bank"}

Money = db.Numeric(14, 2, asdecimal=False)


def _date(value):
    return value.isoformat() if value else None


class Ledger(ApprovableMixin, OrgScopedModel):
    __tablename__ = "ledgers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=True, comment="income | expense")
    gst_number = db.Column(db.String(20), nullable=True)
    is_gst_registered = db.Column(db.Boolean, nullable=False, default=False)
    billing_address = db.Column(db.Text, nullable=True)
    state = db.Column(db.String(100), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "type": self.type,
            "gst_number": self.gst_number,
            "is_gst_registered": self.is_gst_registered,
            "billing_address": self.billing_address,
            "state": self.state,
            **self.approval_dict(),
        }

    def __repr__(self):
        return f"<Ledger {self.id}: {self.name}>"


class Transaction(ApprovableMixin, OrgScopedModel):
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_org_project", "organization_id", "project_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    ledger_id = db.Column(
        db.Integer, db.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True,
    )
    type = db.Column(db.String(20), nullable=False, comment="income | expense")
    amount = db.Column(Money, nullable=False)
    description = db.Column(db.Text, nullable=False)
    date = db.Column(db.Date, nullable=False)
    payment_mode = db.Column(db.String(10), nullable=False, default="cash")
    bill_url = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "ledger_id": self.ledger_id,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "date": _date(self.date),
            "payment_mode": self.payment_mode,
            "bill_url": self.bill_url,
            **self.approval_dict(),
        }

    def __repr__(self):
        return f"<Transaction {self.id}: {self.type} {self.amount}>"


class Record(ApprovableMixin, OrgScopedModel):
    """Outstanding amount: receivable (asset) or payable (liability)."""

    __tablename__ = "records"
    __table_args__ = (
        db.Index("ix_records_org_project", "organization_id", "project_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    ledger_id = db.Column(
        db.Integer, db.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True,
    )
    type = db.Column(db.String(20), nullable=False, comment="asset | liability")
    amount = db.Column(Money, nullable=False)
    description = db.Column(db.Text, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    paid_amount = db.Column(Money, nullable=False, default=0)
    payment_mode = db.Column(db.String(10), nullable=False, default="cash")
    bill_url = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "ledger_id": self.ledger_id,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "due_date": _date(self.due_date),
            "status": self.status,
            "paid_amount": self.paid_amount or 0,
            "balance_amount": self.balance_amount,
            "payment_mode": self.payment_mode,
            "bill_url": self.bill_url,
            **self.approval_dict(),
        }

    @property
    def balance_amount(self) -> float:
        return round((self.amount or 0) - (self.paid_amount or 0), 2)

    def refresh_status(self) -> None:
        """Derive ``status`` from the amount settled so far.

        A record nothing has been paid against keeps the status it was
        given.
        """
        paid = self.paid_amount or 0
        if paid <= 0:
            return
        self.status = "paid" if paid >= (self.amount or 0) else "partial"

    def __repr__(self):
        return f"<Record {self.id}: {self.type} {self.amount}>"


class JournalEntry(ApprovableMixin, OrgScopedModel):
    __tablename__ = "journal_entries"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    amount = db.Column(Money, nullable=False)
    description = db.Column(db.Text, nullable=False)

    debit_mode = db.Column(db.String(10), nullable=False, comment="cash | bank | ledger")
    debit_ledger_id = db.Column(
        db.Integer, db.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True,
    )
    debit_project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    credit_mode = db.Column(db.String(10), nullable=False, comment="cash | bank | ledger")
    credit_ledger_id = db.Column(
        db.Integer, db.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True,
    )
    credit_project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "date": _date(self.date),
            "amount": self.amount,
            "description": self.description,
            "debit_mode": self.debit_mode,
            "debit_ledger_id": self.debit_ledger_id,
            "debit_project_id": self.debit_project_id,
            "credit_mode": self.credit_mode,
            "credit_ledger_id": self.credit_ledger_id,
            "credit_project_id": self.credit_project_id,
            **self.approval_dict(),
        }

    def __repr__(self):
        return f"<JournalEntry {self.id}: {self.amount}>"


class FinancialAccount(OrgScopedModel):
    """Cash box or bank account that settlements are paid from or into."""

    __tablename__ = "financial_accounts"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_financial_account_org_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(10), nullable=False, comment="cash | bank")
    account_number = db.Column(db.String(50), nullable=True)
    bank_name = db.Column(db.String(200), nullable=True)
    ifsc_code = db.Column(db.String(20), nullable=True)
    opening_balance = db.Column(Money, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "type": self.type,
            "account_number": self.account_number,
            "bank_name": self.bank_name,
            "ifsc_code": self.ifsc_code,
            "opening_balance": self.opening_balance or 0,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<FinancialAccount {self.id}: {self.name}>"


class RecordSettlement(OrgScopedModel):
    __tablename__ = "record_settlements"

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(
        db.Integer, db.ForeignKey("records.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    settlement_date = db.Column(db.Date, nullable=False)
    amount_paid = db.Column(Money, nullable=False)
    payment_mode = db.Column(db.String(10), nullable=False, default="cash")
    financial_account_id = db.Column(
        db.Integer, db.ForeignKey("financial_accounts.id", ondelete="SET NULL"), nullable=True,
    )
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True,
    )
    remarks = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "record_id": self.record_id,
            "settlement_date": _date(self.settlement_date),
            "amount_paid": self.amount_paid,
            "payment_mode": self.payment_mode,
            "financial_account_id": self.financial_account_id,
            "transaction_id": self.transaction_id,
            "remarks": self.remarks,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<RecordSettlement {self.id}: record {self.record_id} {self.amount_paid}>"
