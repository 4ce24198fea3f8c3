from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerflow.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SystemLedgerCode(str, enum.Enum):
    """Statutory and control ledgers resolved by code, never by display name."""

    SALES = "SALES"
    PURCHASES = "PURCHASES"
    STOCK_IN_HAND = "STOCK_IN_HAND"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT"
    CGST_INPUT = "CGST_INPUT"
    SGST_INPUT = "SGST_INPUT"
    IGST_INPUT = "IGST_INPUT"
    CESS_INPUT = "CESS_INPUT"
    CGST_OUTPUT = "CGST_OUTPUT"
    SGST_OUTPUT = "SGST_OUTPUT"
    IGST_OUTPUT = "IGST_OUTPUT"
    CESS_OUTPUT = "CESS_OUTPUT"
    CGST_RCM_OUTPUT = "CGST_RCM_OUTPUT"
    SGST_RCM_OUTPUT = "SGST_RCM_OUTPUT"
    IGST_RCM_OUTPUT = "IGST_RCM_OUTPUT"
    TDS_PAYABLE = "TDS_PAYABLE"
    TCS_PAYABLE = "TCS_PAYABLE"
    ROUND_OFF = "ROUND_OFF"


class Ledger(Base):
    __tablename__ = "ledger_ledger"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    group_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    nature: Mapped[str] = mapped_column(String(16), nullable=False)
    allows_contra_balance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    opening_balance_type: Mapped[str] = mapped_column(String(8), nullable=False, default="debit", server_default="debit")
    current_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    balance_type: Mapped[str] = mapped_column(String(8), nullable=False, default="debit", server_default="debit")
    system_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_system_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_tds_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    tds_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False, default=Decimal("0"), server_default="0")
    is_tcs_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    tcs_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False, default=Decimal("0"), server_default="0")
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    entries: Mapped[list[VoucherLedgerEntry]] = relationship("VoucherLedgerEntry", back_populates="ledger")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_code", "code", name="uq_ledger_code"),
        UniqueConstraint("tenant_id", "company_code", "system_code", name="uq_ledger_system_code"),
        Index("ix_ledger_scope", "tenant_id", "company_code"),
        CheckConstraint("opening_balance >= 0", name="ck_ledger_opening_nonnegative"),
        CheckConstraint("current_balance >= 0", name="ck_ledger_balance_nonnegative"),
        CheckConstraint("opening_balance_type IN ('debit', 'credit')", name="ck_ledger_opening_type"),
        CheckConstraint("balance_type IN ('debit', 'credit')", name="ck_ledger_balance_type"),
    )


class VoucherLedgerEntry(Base):
    __tablename__ = "ledger_voucher_entry"

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
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    debit_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    credit_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    ledger: Mapped[Ledger] = relationship("Ledger", back_populates="entries")

    __table_args__ = (
        CheckConstraint("debit_amount >= 0", name="ck_voucher_entry_debit_nonnegative"),
        CheckConstraint("credit_amount >= 0", name="ck_voucher_entry_credit_nonnegative"),
        CheckConstraint(
            "((debit_amount > 0 AND credit_amount = 0) OR (credit_amount > 0 AND debit_amount = 0))",
            name="ck_voucher_entry_single_sided",
        ),
        Index("ix_voucher_entry_voucher", "voucher_id"),
        Index("ix_voucher_entry_ledger", "ledger_id"),
    )
