from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


BillType = Literal["RECEIVABLE", "PAYABLE"]


class BillAllocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bill_id: UUID
    voucher_id: UUID
    allocated_amount: Decimal
    created_at: datetime


class BillRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    voucher_id: UUID
    ledger_id: UUID
    bill_type: str
    bill_number: str
    bill_date: date
    due_date: date | None
    total_amount: Decimal
    pending_amount: Decimal
    is_open: bool
    is_fully_paid: bool
    created_at: datetime
    allocations: list[BillAllocationRead] = Field(default_factory=list)


class AllocationOutcome(BaseModel):
    bills_affected: list[UUID] = Field(default_factory=list)
    allocated_amount: Decimal = Decimal("0")
    on_account_amount: Decimal = Decimal("0")
