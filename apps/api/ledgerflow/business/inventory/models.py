from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerflow.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Warehouse(Base):
    __tablename__ = "inventory_warehouse"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_code", "code", name="uq_inventory_warehouse_code"),
    )


class InventoryItem(Base):
    __tablename__ = "inventory_item"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(64), nullable=True)
    item_key: Mapped[str] = mapped_column(String(512), nullable=False)
    variant_attributes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    hsn_sac_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(16), nullable=True)
    quantity_on_hand: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=Decimal("0"), server_default="0")
    avg_cost: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    warehouse_stock: Mapped[list[WarehouseStock]] = relationship("WarehouseStock", back_populates="item")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_code", "item_key", name="uq_inventory_item_key"),
        Index("ix_inventory_item_barcode", "tenant_id", "company_code", "barcode"),
        Index("ix_inventory_item_code", "tenant_id", "company_code", "item_code"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_item_quantity_nonnegative"),
        CheckConstraint("avg_cost >= 0", name="ck_inventory_item_avg_cost_nonnegative"),
    )


class WarehouseStock(Base):
    __tablename__ = "inventory_warehouse_stock"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    inventory_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_item.id", ondelete="RESTRICT"),
        nullable=False,
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_warehouse.id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=Decimal("0"), server_default="0")
    avg_cost: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    item: Mapped[InventoryItem] = relationship("InventoryItem", back_populates="warehouse_stock")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("inventory_item_id", "warehouse_id", name="uq_inventory_warehouse_stock_item"),
        CheckConstraint("quantity >= 0", name="ck_inventory_warehouse_stock_quantity_nonnegative"),
        CheckConstraint("avg_cost >= 0", name="ck_inventory_warehouse_stock_avg_cost_nonnegative"),
    )


class StockMovement(Base):
    __tablename__ = "inventory_stock_movement"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    inventory_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_item.id", ondelete="RESTRICT"),
        nullable=False,
    )
    warehouse_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_warehouse.id", ondelete="RESTRICT"),
        nullable=True,
    )
    voucher_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    movement_type: Mapped[str] = mapped_column(String(16), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    moved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("movement_type IN ('IN', 'OUT', 'ADJ', 'TRANSFER')", name="ck_inventory_movement_type"),
        CheckConstraint("quantity <> 0", name="ck_inventory_movement_quantity_nonzero"),
        Index("ix_inventory_movement_item", "inventory_item_id", "warehouse_id"),
        Index("ix_inventory_movement_voucher", "voucher_id"),
    )
