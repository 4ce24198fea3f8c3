"""create ledger and voucher tables

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ledger_ledger",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("group_code", sa.String(length=64), nullable=True),
        sa.Column("nature", sa.String(length=16), nullable=False),
        sa.Column("allows_contra_balance", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("opening_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("opening_balance_type", sa.String(length=8), nullable=False, server_default="debit"),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("balance_type", sa.String(length=8), nullable=False, server_default="debit"),
        sa.Column("system_code", sa.String(length=32), nullable=True),
        sa.Column("is_system_generated", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_tds_applicable", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("tds_rate", sa.Numeric(9, 4), nullable=False, server_default="0"),
        sa.Column("is_tcs_applicable", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("tcs_rate", sa.Numeric(9, 4), nullable=False, server_default="0"),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "company_code", "code", name="uq_ledger_code"),
        sa.UniqueConstraint("tenant_id", "company_code", "system_code", name="uq_ledger_system_code"),
        sa.CheckConstraint("opening_balance >= 0", name="ck_ledger_opening_nonnegative"),
        sa.CheckConstraint("current_balance >= 0", name="ck_ledger_balance_nonnegative"),
        sa.CheckConstraint("opening_balance_type IN ('debit', 'credit')", name="ck_ledger_opening_type"),
        sa.CheckConstraint("balance_type IN ('debit', 'credit')", name="ck_ledger_balance_type"),
    )
    op.create_index("ix_ledger_scope", "ledger_ledger", ["tenant_id", "company_code"])

    op.create_table(
        "vouchers_voucher",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("branch_id", sa.String(length=64), nullable=True),
        sa.Column("voucher_number", sa.String(length=64), nullable=False),
        sa.Column("voucher_type", sa.String(length=16), nullable=False),
        sa.Column("voucher_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("party_ledger_id", sa.Uuid(), nullable=True),
        sa.Column("place_of_supply", sa.String(length=64), nullable=True),
        sa.Column("is_reverse_charge", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("subtotal", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("cgst_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("sgst_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("igst_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("cess_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("tds_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("tcs_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("round_off", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("payload_json", sa.JSON(), nullable=True),
        sa.Column("reversal_of_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["party_ledger_id"], ["ledger_ledger.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["reversal_of_id"], ["vouchers_voucher.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "company_code", "voucher_number", name="uq_vouchers_voucher_number"),
    )
    op.create_index(
        "ix_vouchers_voucher_scope_date",
        "vouchers_voucher",
        ["tenant_id", "company_code", "voucher_date"],
    )
    op.create_index("ix_vouchers_voucher_party", "vouchers_voucher", ["party_ledger_id"])

    op.create_table(
        "ledger_voucher_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("voucher_id", sa.Uuid(), nullable=False),
        sa.Column("ledger_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("debit_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("credit_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["voucher_id"], ["vouchers_voucher.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["ledger_id"], ["ledger_ledger.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("debit_amount >= 0", name="ck_voucher_entry_debit_nonnegative"),
        sa.CheckConstraint("credit_amount >= 0", name="ck_voucher_entry_credit_nonnegative"),
        sa.CheckConstraint(
            "((debit_amount > 0 AND credit_amount = 0) OR (credit_amount > 0 AND debit_amount = 0))",
            name="ck_voucher_entry_single_sided",
        ),
    )
    op.create_index("ix_voucher_entry_voucher", "ledger_voucher_entry", ["voucher_id"])
    op.create_index("ix_voucher_entry_ledger", "ledger_voucher_entry", ["ledger_id"])


def downgrade() -> None:
    op.drop_index("ix_voucher_entry_ledger", table_name="ledger_voucher_entry")
    op.drop_index("ix_voucher_entry_voucher", table_name="ledger_voucher_entry")
    op.drop_table("ledger_voucher_entry")
    op.drop_index("ix_vouchers_voucher_party", table_name="vouchers_voucher")
    op.drop_index("ix_vouchers_voucher_scope_date", table_name="vouchers_voucher")
    op.drop_table("vouchers_voucher")
    op.drop_index("ix_ledger_scope", table_name="ledger_ledger")
    op.drop_table("ledger_ledger")
