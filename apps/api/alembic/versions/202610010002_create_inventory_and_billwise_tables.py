"""create inventory and bill-wise tables

Revision ID: 202610010002
Revises: 202610010001
Create Date: 2026-10-01 09:30:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010002"
down_revision: str | None = "202610010001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "inventory_warehouse",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "company_code", "code", name="uq_inventory_warehouse_code"),
    )

    op.create_table(
        "inventory_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=True),
        sa.Column("barcode", sa.String(length=64), nullable=True),
        sa.Column("item_key", sa.String(length=512), nullable=False),
        sa.Column("variant_attributes", sa.JSON(), nullable=True),
        sa.Column("hsn_sac_code", sa.String(length=16), nullable=True),
        sa.Column("unit", sa.String(length=16), nullable=True),
        sa.Column("quantity_on_hand", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("avg_cost", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "company_code", "item_key", name="uq_inventory_item_key"),
        sa.CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_item_quantity_nonnegative"),
        sa.CheckConstraint("avg_cost >= 0", name="ck_inventory_item_avg_cost_nonnegative"),
    )
    op.create_index("ix_inventory_item_barcode", "inventory_item", ["tenant_id", "company_code", "barcode"])
    op.create_index("ix_inventory_item_code", "inventory_item", ["tenant_id", "company_code", "item_code"])

    op.create_table(
        "inventory_warehouse_stock",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("inventory_item_id", sa.Uuid(), nullable=False),
        sa.Column("warehouse_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("avg_cost", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_item.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["warehouse_id"], ["inventory_warehouse.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inventory_item_id", "warehouse_id", name="uq_inventory_warehouse_stock_item"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_warehouse_stock_quantity_nonnegative"),
        sa.CheckConstraint("avg_cost >= 0", name="ck_inventory_warehouse_stock_avg_cost_nonnegative"),
    )

    op.create_table(
        "inventory_stock_movement",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("inventory_item_id", sa.Uuid(), nullable=False),
        sa.Column("warehouse_id", sa.Uuid(), nullable=True),
        sa.Column("voucher_id", sa.Uuid(), nullable=True),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("rate", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("moved_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_item.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["warehouse_id"], ["inventory_warehouse.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("movement_type IN ('IN', 'OUT', 'ADJ', 'TRANSFER')", name="ck_inventory_movement_type"),
        sa.CheckConstraint("quantity <> 0", name="ck_inventory_movement_quantity_nonzero"),
    )
    op.create_index("ix_inventory_movement_item", "inventory_stock_movement", ["inventory_item_id", "warehouse_id"])
    op.create_index("ix_inventory_movement_voucher", "inventory_stock_movement", ["voucher_id"])

    op.create_table(
        "billwise_bill",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("voucher_id", sa.Uuid(), nullable=False),
        sa.Column("ledger_id", sa.Uuid(), nullable=False),
        sa.Column("bill_type", sa.String(length=16), nullable=False),
        sa.Column("bill_number", sa.String(length=64), nullable=False),
        sa.Column("bill_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("pending_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_fully_paid", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["voucher_id"], ["vouchers_voucher.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["ledger_id"], ["ledger_ledger.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("bill_type IN ('RECEIVABLE', 'PAYABLE')", name="ck_billwise_bill_type"),
        sa.CheckConstraint("pending_amount >= 0", name="ck_billwise_bill_pending_nonnegative"),
        sa.CheckConstraint("pending_amount <= total_amount", name="ck_billwise_bill_pending_le_total"),
    )
    op.create_index(
        "ix_billwise_bill_party_open",
        "billwise_bill",
        ["tenant_id", "company_code", "ledger_id", "is_open"],
    )
    op.create_index("ix_billwise_bill_voucher", "billwise_bill", ["voucher_id"])

    op.create_table(
        "billwise_allocation",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("company_code", sa.String(length=64), nullable=False),
        sa.Column("bill_id", sa.Uuid(), nullable=False),
        sa.Column("voucher_id", sa.Uuid(), nullable=False),
        sa.Column("allocated_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["billwise_bill.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["voucher_id"], ["vouchers_voucher.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("allocated_amount <> 0", name="ck_billwise_allocation_nonzero"),
    )
    op.create_index("ix_billwise_allocation_voucher", "billwise_allocation", ["voucher_id"])


def downgrade() -> None:
    op.drop_index("ix_billwise_allocation_voucher", table_name="billwise_allocation")
    op.drop_table("billwise_allocation")
    op.drop_index("ix_billwise_bill_voucher", table_name="billwise_bill")
    op.drop_index("ix_billwise_bill_party_open", table_name="billwise_bill")
    op.drop_table("billwise_bill")
    op.drop_index("ix_inventory_movement_voucher", table_name="inventory_stock_movement")
    op.drop_index("ix_inventory_movement_item", table_name="inventory_stock_movement")
    op.drop_table("inventory_stock_movement")
    op.drop_table("inventory_warehouse_stock")
    op.drop_index("ix_inventory_item_code", table_name="inventory_item")
    op.drop_index("ix_inventory_item_barcode", table_name="inventory_item")
    op.drop_table("inventory_item")
    op.drop_table("inventory_warehouse")
