"""initial_schema

Organizations, users, invitations, projects and memberships, the ten
approvable entity tables, labour roster, audit log and notifications.

Revision ID: 5c1e2a9b7d40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5c1e2a9b7d40"
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(precision=14, scale=2)

APPROVABLE_TABLES = (
    "ledgers",
    "materials",
    "transactions",
    "records",
    "tasks",
    "photos",
    "documents",
    "hajari_records",
    "material_ledger_entries",
    "journal_entries",
)


def _org_column():
    return sa.Column(
        "organization_id", sa.Integer(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
    )


def _project_column(name="project_id"):
    return sa.Column(name, sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)


def _approval_columns():
    """Moderation columns shared by every approvable table."""
    return [
        sa.Column("approval_status", sa.String(length=20), nullable=False, server_default="approved"),
        sa.Column("pending_data", sa.JSON(), nullable=True),
        sa.Column("request_message", sa.Text(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("rejection_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("submitted_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())
    if "organizations" in existing_tables:
        # Schema already created by db.create_all()
        return

    # ── Tenancy & auth ───────────────────────────────────────────────────
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("password_hash", sa.String(length=256), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("must_change_password", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("organization_id", "email", name="uq_user_org_email"),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("token", sa.String(length=128), nullable=False, unique=True),
        sa.Column("invited_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_invitations_organization_id", "invitations", ["organization_id"])

    # ── Projects ─────────────────────────────────────────────────────────
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("location", sa.String(length=300), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "project_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        _project_column(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("can_view_finances", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_create_entries", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("assigned_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("joined_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_user"),
    )
    op.create_index("ix_project_users_project", "project_users", ["project_id"])
    op.create_index("ix_project_users_user", "project_users", ["user_id"])

    op.create_table(
        "labors",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="laborer"),
        sa.Column("rate", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_labors_organization_id", "labors", ["organization_id"])

    # ── Approvable entities ──────────────────────────────────────────────
    op.create_table(
        "ledgers",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=True),
        sa.Column("gst_number", sa.String(length=20), nullable=True),
        sa.Column("is_gst_registered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("billing_address", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        *_approval_columns(),
    )

    op.create_table(
        "materials",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("unit", sa.String(length=30), nullable=False),
        *_approval_columns(),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        _project_column(),
        sa.Column("ledger_id", sa.Integer(), sa.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("payment_mode", sa.String(length=10), nullable=False, server_default="cash"),
        sa.Column("bill_url", sa.String(length=500), nullable=True),
        *_approval_columns(),
    )
    op.create_index("ix_transactions_org_project", "transactions", ["organization_id", "project_id"])
    op.create_index("ix_transactions_project_id", "transactions", ["project_id"])

    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        _project_column(),
        sa.Column("ledger_id", sa.Integer(), sa.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_mode", sa.String(length=10), nullable=False, server_default="cash"),
        sa.Column("bill_url", sa.String(length=500), nullable=True),
        *_approval_columns(),
    )
    op.create_index("ix_records_org_project", "records", ["organization_id", "project_id"])
    op.create_index("ix_records_project_id", "records", ["project_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        _project_column(),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="todo"),
        sa.Column("due_date", sa.Date(), nullable=True),
        *_approval_columns(),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])

    op.create_table(
        "photos",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        _project_column(),
        sa.Column("image_url", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_approval_columns(),
    )
    op.create_index("ix_photos_project_id", "photos", ["project_id"])

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        _project_column(),
        sa.Column("document_name", sa.String(length=300), nullable=False),
        sa.Column("document_url", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_approval_columns(),
    )
    op.create_index("ix_documents_project_id", "documents", ["project_id"])

    op.create_table(
        "hajari_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("labor_id", sa.Integer(), sa.ForeignKey("labors.id", ondelete="CASCADE"), nullable=False),
        _project_column(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="present"),
        sa.Column("overtime_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("upad", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        *_approval_columns(),
    )
    op.create_index("ix_hajari_labor_date", "hajari_records", ["labor_id", "date"])
    op.create_index("ix_hajari_records_labor_id", "hajari_records", ["labor_id"])
    op.create_index("ix_hajari_records_project_id", "hajari_records", ["project_id"])

    op.create_table(
        "material_ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="CASCADE"), nullable=False),
        _project_column(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=5), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("challan_url", sa.String(length=500), nullable=True),
        *_approval_columns(),
    )
    op.create_index("ix_material_ledger_entries_material_id", "material_ledger_entries", ["material_id"])
    op.create_index("ix_material_ledger_entries_project_id", "material_ledger_entries", ["project_id"])

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("debit_mode", sa.String(length=10), nullable=False),
        sa.Column("debit_ledger_id", sa.Integer(), sa.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True),
        _project_column("debit_project_id"),
        sa.Column("credit_mode", sa.String(length=10), nullable=False),
        sa.Column("credit_ledger_id", sa.Integer(), sa.ForeignKey("ledgers.id", ondelete="SET NULL"), nullable=True),
        _project_column("credit_project_id"),
        *_approval_columns(),
    )
    op.create_index("ix_journal_entries_debit_project_id", "journal_entries", ["debit_project_id"])
    op.create_index("ix_journal_entries_credit_project_id", "journal_entries", ["credit_project_id"])

    for table in APPROVABLE_TABLES:
        op.create_index(f"ix_{table}_organization_id", table, ["organization_id"])
        op.create_index(f"ix_{table}_approval_status", table, ["approval_status"])

    # ── Audit & notifications ────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("entity", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details", sa.Text(), nullable=False, server_default=""),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_audit_entity", "audit_logs", ["entity", "entity_id"])
    op.create_index("idx_audit_org_ts", "audit_logs", ["organization_id", "timestamp"])
    op.create_index("idx_audit_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        _org_column(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="info"),
        sa.Column("item_type", sa.String(length=30), nullable=True),
        sa.Column("item_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_organization_id", "notifications", ["organization_id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade():
    for table in (
        "notifications",
        "audit_logs",
        "journal_entries",
        "material_ledger_entries",
        "hajari_records",
        "documents",
        "photos",
        "tasks",
        "records",
        "transactions",
        "materials",
        "ledgers",
        "labors",
        "project_users",
        "projects",
        "invitations",
        "users",
        "organizations",
    ):
        op.drop_table(table)
