from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerflow.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BillWiseDetail(Base):
    __tablename__ = "billwise_bill"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    voucher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vouchers_voucher.id", ondelete="RESTRICT"),
        nullable=False,
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_ledger.id", ondelete="RESTRICT"),
        nullable=False,
    )
    bill_type: Mapped[str] = mapped_column(String(16), nullable=False)
    bill_number: Mapped[str] = mapped_column(String(64), nullable=False)
    bill_date: Mapped[date] = mapped_column(Date(), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date(), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    pending_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_fully_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    allocations: Mapped[list[BillAllocation]] = relationship(
        "BillAllocation",
        back_populates="bill",
        order_by="BillAllocation.created_at",
    )

    __table_args__ = (
        CheckConstraint("bill_type IN ('RECEIVABLE', 'PAYABLE')", name="ck_billwise_bill_type"),
        CheckConstraint("pending_amount >= 0", name="ck_billwise_bill_pending_nonnegative"),
        CheckConstraint("pending_amount <= total_amount", name="ck_billwise_bill_pending_le_total"),
        Index("ix_billwise_bill_party_open", "tenant_id", "company_code", "ledger_id", "is_open"),
        Index("ix_billwise_bill_voucher", "voucher_id"),
    )


class BillAllocation(Base):
    __tablename__ = "billwise_allocation"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    bill_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("billwise_bill.id", ondelete="RESTRICT"),
        nullable=False,
    )
    voucher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vouchers_voucher.id", ondelete="RESTRICT"),
        nullable=False,
    )
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    bill: Mapped[BillWiseDetail] = relationship("BillWiseDetail", back_populates="allocations")

    __table_args__ = (
        CheckConstraint("allocated_amount <> 0", name="ck_billwise_allocation_nonzero"),
        Index("ix_billwise_allocation_voucher", "voucher_id"),
    )
