"""create clinic ledger tables

Revision ID: 5d1e8a3c2b90
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "5d1e8a3c2b90"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("(CURRENT_TIMESTAMP)"),
        nullable=True,
    )


def upgrade() -> None:
    op.create_table(
        "treatment_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("patient_id", sa.String(length=100), nullable=True),
        sa.Column("procedure_id", sa.String(length=50), nullable=False),
        sa.Column("teeth", sa.JSON(), nullable=False),
        sa.Column("teeth_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billed", sa.Boolean(), nullable=False),
        sa.Column("invoice_line_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("clinic_id", "patient_id", "status", "billed"):
        op.create_index(
            op.f(f"ix_treatment_records_{column}"), "treatment_records", [column], unique=False
        )

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("treatment_id", sa.String(length=36), nullable=True),
        sa.Column("compensates_line_id", sa.String(length=64), nullable=True),
        sa.Column("procedure_id", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("unit_cost", sa.Integer(), nullable=False),
        sa.Column("tax_rate", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["treatment_id"], ["treatment_records.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["compensates_line_id"], ["invoice_lines.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("treatment_id"),
        sa.UniqueConstraint("compensates_line_id"),
    )
    op.create_index(op.f("ix_invoice_lines_clinic_id"), "invoice_lines", ["clinic_id"], unique=False)

    op.create_table(
        "invoice_drafts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("line_ids", sa.JSON(), nullable=False),
        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column("tax", sa.Integer(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=50), nullable=True),
        sa.Column("numbered_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("clinic_id", "invoice_number", name="uq_invoice_drafts_clinic_number"),
    )
    op.create_index(op.f("ix_invoice_drafts_clinic_id"), "invoice_drafts", ["clinic_id"], unique=False)
    op.create_index(
        op.f("ix_invoice_drafts_invoice_number"), "invoice_drafts", ["invoice_number"], unique=False
    )

    op.create_table(
        "invoice_number_series",
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("prefix", sa.String(length=20), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("padding", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("clinic_id"),
    )

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("channel", sa.String(length=10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("recorded_by", sa.String(length=255), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("verified_by", sa.String(length=255), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_ledger_transactions_clinic_date",
        "ledger_transactions",
        ["clinic_id", "business_date"],
        unique=False,
    )

    op.create_table(
        "settlement_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False),
        sa.Column("total_cash", sa.Integer(), nullable=True),
        sa.Column("total_upi", sa.Integer(), nullable=True),
        sa.Column("total_card", sa.Integer(), nullable=True),
        sa.Column("total_revenue", sa.Integer(), nullable=True),
        sa.Column("closed_by", sa.String(length=255), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("clinic_id", "business_date", name="uq_settlement_clinic_date"),
    )
    op.create_index(
        op.f("ix_settlement_records_clinic_id"), "settlement_records", ["clinic_id"], unique=False
    )

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("clinic_id", sa.String(length=100), nullable=False),
        sa.Column("resource_type", sa.String(length=50), nullable=False),
        sa.Column("resource_id", sa.String(length=150), nullable=False),
        sa.Column("event", sa.String(length=50), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("before_state", sa.String(length=20), nullable=True),
        sa.Column("after_state", sa.String(length=20), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("clinic_id", "resource_type", "resource_id", "event", "created_at"):
        op.create_index(op.f(f"ix_audit_entries_{column}"), "audit_entries", [column], unique=False)


def downgrade() -> None:
    for column in ("clinic_id", "resource_type", "resource_id", "event", "created_at"):
        op.drop_index(op.f(f"ix_audit_entries_{column}"), table_name="audit_entries")
    op.drop_table("audit_entries")
    op.drop_index(op.f("ix_settlement_records_clinic_id"), table_name="settlement_records")
    op.drop_table("settlement_records")
    op.drop_index("ix_ledger_transactions_clinic_date", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_table("invoice_number_series")
    op.drop_index(op.f("ix_invoice_drafts_invoice_number"), table_name="invoice_drafts")
    op.drop_index(op.f("ix_invoice_drafts_clinic_id"), table_name="invoice_drafts")
    op.drop_table("invoice_drafts")
    op.drop_index(op.f("ix_invoice_lines_clinic_id"), table_name="invoice_lines")
    op.drop_table("invoice_lines")
    for column in ("clinic_id", "patient_id", "status", "billed"):
        op.drop_index(op.f(f"ix_treatment_records_{column}"), table_name="treatment_records")
    op.drop_table("treatment_records")
