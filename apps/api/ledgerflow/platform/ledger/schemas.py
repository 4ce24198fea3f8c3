from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


LedgerNature = Literal["ASSET", "LIABILITY", "EQUITY", "INCOME", "EXPENSE"]
BalanceType = Literal["debit", "credit"]


class LedgerCreate(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    nature: LedgerNature
    group_code: str | None = None
    allows_contra_balance: bool = False
    opening_balance: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    opening_balance_type: BalanceType = "debit"
    system_code: str | None = None
    is_system_generated: bool = False
    is_tds_applicable: bool = False
    tds_rate: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    is_tcs_applicable: bool = False
    tcs_rate: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    state: str | None = None


class LedgerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    company_code: str
    name: str
    code: str
    group_code: str | None
    nature: str
    opening_balance: Decimal
    opening_balance_type: str
    current_balance: Decimal
    balance_type: str
    system_code: str | None
    is_system_generated: bool
    is_tds_applicable: bool
    tds_rate: Decimal
    is_tcs_applicable: bool
    tcs_rate: Decimal
    state: str | None
    is_active: bool
    created_at: datetime


class LedgerEntryInput(BaseModel):
    """One proposed posting line; exactly one side is positive."""

    ledger_id: UUID
    debit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    credit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    narration: str | None = None

    @model_validator(mode="after")
    def _single_sided(self) -> LedgerEntryInput:
        if (self.debit_amount > 0) == (self.credit_amount > 0):
            raise ValueError("entry must have exactly one of debit_amount or credit_amount")
        return self

    @property
    def signed_amount(self) -> Decimal:
        return self.debit_amount - self.credit_amount


class VoucherLedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    voucher_id: UUID
    ledger_id: UUID
    line_no: int
    debit_amount: Decimal
    credit_amount: Decimal
    narration: str | None
    created_at: datetime


class LedgerBalanceChange(BaseModel):
    ledger_id: UUID
    code: str
    before_balance: Decimal
    before_type: BalanceType
    after_balance: Decimal
    after_type: BalanceType


class ReconciliationReport(BaseModel):
    tenant_id: str
    company_code: str
    applied: bool
    ledgers_checked: int = 0
    ledgers_corrected: int = 0
    corrections: list[LedgerBalanceChange] = Field(default_factory=list)
    nature_mismatches: list[UUID] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime | None = None


class ReconcileRequest(BaseModel):
    apply: bool = True
