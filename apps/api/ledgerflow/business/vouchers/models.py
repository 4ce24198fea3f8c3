from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerflow.core.database import Base
from ledgerflow.platform.ledger.models import VoucherLedgerEntry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Voucher(Base):
    __tablename__ = "vouchers_voucher"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    branch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    voucher_number: Mapped[str] = mapped_column(String(64), nullable=False)
    voucher_type: Mapped[str] = mapped_column(String(16), nullable=False)
    voucher_date: Mapped[date] = mapped_column(Date(), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="DRAFT", server_default="DRAFT")
    party_ledger_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_ledger.id", ondelete="RESTRICT"),
        nullable=True,
    )
    place_of_supply: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_reverse_charge: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    cgst_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    sgst_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    igst_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    cess_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    tds_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    tcs_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    round_off: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    due_date: Mapped[date | None] = mapped_column(Date(), nullable=True)
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    reversal_of_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vouchers_voucher.id", ondelete="RESTRICT"),
        nullable=True,
    )
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    entries: Mapped[list[VoucherLedgerEntry]] = relationship(
        VoucherLedgerEntry,
        primaryjoin="Voucher.id == VoucherLedgerEntry.voucher_id",
        order_by=VoucherLedgerEntry.line_no,
        viewonly=True,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_code", "voucher_number", name="uq_vouchers_voucher_number"),
        Index("ix_vouchers_voucher_scope_date", "tenant_id", "company_code", "voucher_date"),
        Index("ix_vouchers_voucher_party", "party_ledger_id"),
    )


class VoucherNumberSeries(Base):
    """Last number issued per prefix; locked while a voucher takes the next one."""

    __tablename__ = "vouchers_number_series"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    company_code: Mapped[str] = mapped_column(String(64), nullable=False)
    prefix: Mapped[str] = mapped_column(String(8), nullable=False)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_code", "prefix", name="uq_vouchers_number_series_prefix"),
    )
    __mapper_args__ = {"version_id_col": version_id}


VOUCHER_NUMBER_PREFIXES = {
    "SALES": "SAL",
    "PURCHASE": "PUR",
    "PAYMENT": "PAY",
    "RECEIPT": "RCT",
    "JOURNAL": "JRN",
    "CONTRA": "CON",
    "ADJUSTMENT": "ADJ",
    "TRANSFER": "TRF",
}
