"""record settlements and financial accounts

Adds records.paid_amount, the financial_accounts master table and the
record_settlements payment lines.

Revision ID: 9a4d7e2f1b63
Revises: 5c1e2a9b7d40
Create Date: 2026-10-20 10:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "9a4d7e2f1b63"
down_revision = "5c1e2a9b7d40"
branch_labels = None
depends_on = None


MONEY = sa.Numeric(precision=14, scale=2)


def upgrade():
    inspector = sa_inspect(op.get_bind())
    existing_tables = set(inspector.get_table_names())
    record_columns = {c["name"] for c in inspector.get_columns("records")}

    if "paid_amount" not in record_columns:
        with op.batch_alter_table("records", schema=None) as batch_op:
            batch_op.add_column(sa.Column("paid_amount", MONEY, nullable=False, server_default="0"))

    if "financial_accounts" not in existing_tables:
        op.create_table(
            "financial_accounts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(),
                sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("type", sa.String(length=10), nullable=False, comment="cash | bank"),
            sa.Column("account_number", sa.String(length=50), nullable=True),
            sa.Column("bank_name", sa.String(length=200), nullable=True),
            sa.Column("ifsc_code", sa.String(length=20), nullable=True),
            sa.Column("opening_balance", MONEY, nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("organization_id", "name", name="uq_financial_account_org_name"),
        )
        op.create_index("ix_financial_accounts_organization_id", "financial_accounts", ["organization_id"])

    if "record_settlements" not in existing_tables:
        op.create_table(
            "record_settlements",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(),
                sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column(
                "record_id", sa.Integer(),
                sa.ForeignKey("records.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("settlement_date", sa.Date(), nullable=False),
            sa.Column("amount_paid", MONEY, nullable=False),
            sa.Column("payment_mode", sa.String(length=10), nullable=False, server_default="cash"),
            sa.Column(
                "financial_account_id", sa.Integer(),
                sa.ForeignKey("financial_accounts.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column(
                "transaction_id", sa.Integer(),
                sa.ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_record_settlements_organization_id", "record_settlements", ["organization_id"])
        op.create_index("ix_record_settlements_record_id", "record_settlements", ["record_id"])


def downgrade():
    op.drop_table("record_settlements")
    op.drop_table("financial_accounts")
    with op.batch_alter_table("records", schema=None) as batch_op:
        batch_op.drop_column("paid_amount")
