from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from ledgerflow.business.inventory.schemas import StockMovementRead
from ledgerflow.platform.ledger.schemas import VoucherLedgerEntryRead


VoucherType = Literal["SALES", "PURCHASE", "PAYMENT", "RECEIPT", "JOURNAL", "CONTRA", "ADJUSTMENT", "TRANSFER"]
VoucherStatus = Literal["DRAFT", "POSTED", "REVERSED"]


class InvoiceLineInput(BaseModel):
    inventory_item_id: UUID | None = None
    barcode: str | None = None
    item_code: str | None = None
    item_name: str | None = None
    variant_attributes: dict[str, Any] | None = None
    description: str | None = None
    hsn_sac_code: str | None = None
    quantity: Decimal = Field(gt=Decimal("0"))
    rate: Decimal = Field(ge=Decimal("0"))
    discount_percent: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    gst_rate: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    cess_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    warehouse_id: UUID | None = None
    affects_stock: bool = True


class _VoucherBase(BaseModel):
    voucher_date: date
    narration: str | None = None


class _InvoiceVoucherBase(_VoucherBase):
    party_ledger_id: UUID
    place_of_supply: str | None = None
    due_date: date | None = None
    lines: list[InvoiceLineInput] = Field(min_length=1)


class SalesVoucherCreate(_InvoiceVoucherBase):
    voucher_type: Literal["SALES"] = "SALES"


class PurchaseVoucherCreate(_InvoiceVoucherBase):
    voucher_type: Literal["PURCHASE"] = "PURCHASE"
    is_reverse_charge: bool = False
    supplier_invoice_number: str | None = None


class BillAllocationInput(BaseModel):
    bill_id: UUID
    amount: Decimal = Field(gt=Decimal("0"))


class _SettlementVoucherBase(_VoucherBase):
    party_ledger_id: UUID
    bank_ledger_id: UUID
    amount: Decimal = Field(gt=Decimal("0"))
    mode: str | None = None
    reference: str | None = None
    bill_allocations: list[BillAllocationInput] = Field(default_factory=list)


class PaymentVoucherCreate(_SettlementVoucherBase):
    voucher_type: Literal["PAYMENT"] = "PAYMENT"


class ReceiptVoucherCreate(_SettlementVoucherBase):
    voucher_type: Literal["RECEIPT"] = "RECEIPT"


class JournalLineInput(BaseModel):
    ledger_id: UUID
    debit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    credit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    narration: str | None = None

    @model_validator(mode="after")
    def _single_sided(self) -> JournalLineInput:
        if (self.debit_amount > 0) == (self.credit_amount > 0):
            raise ValueError("journal line must have exactly one of debit_amount or credit_amount")
        return self


class JournalVoucherCreate(_VoucherBase):
    voucher_type: Literal["JOURNAL"] = "JOURNAL"
    entries: list[JournalLineInput] = Field(min_length=2)


class ContraVoucherCreate(_VoucherBase):
    voucher_type: Literal["CONTRA"] = "CONTRA"
    from_ledger_id: UUID
    to_ledger_id: UUID
    amount: Decimal = Field(gt=Decimal("0"))

    @model_validator(mode="after")
    def _distinct_ledgers(self) -> ContraVoucherCreate:
        if self.from_ledger_id == self.to_ledger_id:
            raise ValueError("from_ledger_id and to_ledger_id must differ")
        return self


class StockAdjustmentLineInput(BaseModel):
    inventory_item_id: UUID
    warehouse_id: UUID | None = None
    quantity: Decimal
    rate: Decimal | None = Field(default=None, ge=Decimal("0"))
    reason: str | None = None

    @model_validator(mode="after")
    def _non_zero(self) -> StockAdjustmentLineInput:
        if self.quantity == 0:
            raise ValueError("adjustment quantity must not be zero")
        return self


class StockAdjustmentVoucherCreate(_VoucherBase):
    voucher_type: Literal["ADJUSTMENT"] = "ADJUSTMENT"
    lines: list[StockAdjustmentLineInput] = Field(min_length=1)


class StockTransferLineInput(BaseModel):
    inventory_item_id: UUID
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))

    @model_validator(mode="after")
    def _distinct_warehouses(self) -> StockTransferLineInput:
        if self.from_warehouse_id == self.to_warehouse_id:
            raise ValueError("source and destination warehouses must differ")
        return self


class StockTransferVoucherCreate(_VoucherBase):
    voucher_type: Literal["TRANSFER"] = "TRANSFER"
    lines: list[StockTransferLineInput] = Field(min_length=1)


VoucherCreate = Annotated[
    Union[
        SalesVoucherCreate,
        PurchaseVoucherCreate,
        PaymentVoucherCreate,
        ReceiptVoucherCreate,
        JournalVoucherCreate,
        ContraVoucherCreate,
        StockAdjustmentVoucherCreate,
        StockTransferVoucherCreate,
    ],
    Field(discriminator="voucher_type"),
]

voucher_create_adapter: TypeAdapter[VoucherCreate] = TypeAdapter(VoucherCreate)


def parse_voucher(payload: dict[str, Any]) -> VoucherCreate:
    return voucher_create_adapter.validate_python(payload)


class VoucherReverseRequest(BaseModel):
    reason: str = Field(min_length=1)
    voucher_date: date | None = None


class VoucherRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    company_code: str
    voucher_number: str
    voucher_type: str
    voucher_date: date
    status: str
    party_ledger_id: UUID | None
    place_of_supply: str | None
    is_reverse_charge: bool
    subtotal: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    tds_amount: Decimal
    tcs_amount: Decimal
    round_off: Decimal
    total_amount: Decimal
    narration: str | None
    reversal_of_id: UUID | None
    created_by: str
    created_at: datetime
    posted_at: datetime | None
    entries: list[VoucherLedgerEntryRead] = Field(default_factory=list)


class PostVoucherResult(BaseModel):
    voucher_id: UUID
    voucher_number: str
    voucher_type: str
    status: str
    total_amount: Decimal
    ledger_entries: list[VoucherLedgerEntryRead]
    stock_movements: list[StockMovementRead]
    bills_affected: list[UUID]
    on_account_amount: Decimal = Decimal("0")
