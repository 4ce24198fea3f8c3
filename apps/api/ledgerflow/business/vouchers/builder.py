from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ledgerflow.business.inventory.resolver import InventoryItemResolver, ItemReference
from ledgerflow.business.inventory.schemas import MovementRequest, PendingItem, StockPlan
from ledgerflow.business.inventory.service import q6
from ledgerflow.business.vouchers.gst import InvoiceTotals, compute_invoice_totals, compute_line_tax, is_intra_state, q2
from ledgerflow.business.vouchers.schemas import (
    BillAllocationInput,
    ContraVoucherCreate,
    JournalVoucherCreate,
    PaymentVoucherCreate,
    PurchaseVoucherCreate,
    ReceiptVoucherCreate,
    SalesVoucherCreate,
    StockAdjustmentVoucherCreate,
    StockTransferVoucherCreate,
    VoucherCreate,
)
from ledgerflow.core.config import get_settings
from ledgerflow.platform.errors import InvalidReference
from ledgerflow.platform.ledger.models import Ledger, SystemLedgerCode
from ledgerflow.platform.ledger.schemas import LedgerEntryInput
from ledgerflow.platform.ledger.service import ledger_service
from ledgerflow.tenancy import TenantContext

_ZERO = Decimal("0")


class _EntryAccumulator:
    """Collects debit and credit amounts per ledger, preserving first-seen order."""

    def __init__(self) -> None:
        self._amounts: dict[tuple[uuid.UUID, str], Decimal] = {}
        self._narrations: dict[tuple[uuid.UUID, str], str | None] = {}

    def debit(self, ledger_id: uuid.UUID | None, amount: Decimal, narration: str | None = None) -> None:
        self._add(ledger_id, "debit", amount, narration)

    def credit(self, ledger_id: uuid.UUID | None, amount: Decimal, narration: str | None = None) -> None:
        self._add(ledger_id, "credit", amount, narration)

    def signed(self, ledger_id: uuid.UUID | None, amount: Decimal, narration: str | None = None) -> None:
        if amount > 0:
            self.debit(ledger_id, amount, narration)
        elif amount < 0:
            self.credit(ledger_id, -amount, narration)

    def _add(self, ledger_id: uuid.UUID | None, side: str, amount: Decimal, narration: str | None) -> None:
        amount = q2(amount)
        if amount == 0:
            return
        if ledger_id is None:
            raise InvalidReference("ledger reference is missing")
        key = (ledger_id, side)
        self._amounts[key] = self._amounts.get(key, _ZERO) + amount
        self._narrations.setdefault(key, narration)

    def entries(self) -> list[LedgerEntryInput]:
        rows: list[LedgerEntryInput] = []
        for (ledger_id, side), amount in self._amounts.items():
            if amount == 0:
                continue
            rows.append(
                LedgerEntryInput(
                    ledger_id=ledger_id,
                    debit_amount=amount if side == "debit" else _ZERO,
                    credit_amount=amount if side == "credit" else _ZERO,
                    narration=self._narrations.get((ledger_id, side)),
                )
            )
        return rows


@dataclass(slots=True)
class VoucherPayload:
    """Normalized result of building a voucher: header, entries and stock intents."""

    voucher_type: str
    voucher_date: date
    narration: str | None = None
    party_ledger_id: uuid.UUID | None = None
    place_of_supply: str | None = None
    is_reverse_charge: bool = False
    due_date: date | None = None
    totals: InvoiceTotals = field(default_factory=InvoiceTotals)
    tds_amount: Decimal = _ZERO
    tcs_amount: Decimal = _ZERO
    total_amount: Decimal = _ZERO
    bill_amount: Decimal = _ZERO
    bill_type: str | None = None
    settlement_bill_type: str | None = None
    bill_allocations: list[BillAllocationInput] = field(default_factory=list)
    entries: list[LedgerEntryInput] = field(default_factory=list)
    movements: list[MovementRequest] = field(default_factory=list)
    pending_items: list[PendingItem] = field(default_factory=list)
    valuation: str | None = None


@dataclass(slots=True)
class VoucherBuilder:
    """Turns a validated voucher request into entries and stock movements. Reads only."""

    def build(self, ctx: TenantContext, voucher: VoucherCreate) -> VoucherPayload:
        if isinstance(voucher, PurchaseVoucherCreate):
            return self._build_purchase(ctx, voucher)
        if isinstance(voucher, SalesVoucherCreate):
            return self._build_sales(ctx, voucher)
        if isinstance(voucher, (PaymentVoucherCreate, ReceiptVoucherCreate)):
            return self._build_settlement(ctx, voucher)
        if isinstance(voucher, JournalVoucherCreate):
            return self._build_journal(ctx, voucher)
        if isinstance(voucher, ContraVoucherCreate):
            return self._build_contra(ctx, voucher)
        if isinstance(voucher, StockAdjustmentVoucherCreate):
            return self._build_adjustment(ctx, voucher)
        if isinstance(voucher, StockTransferVoucherCreate):
            return self._build_transfer(voucher)
        raise InvalidReference("unsupported voucher type", voucher_type=getattr(voucher, "voucher_type", None))

    def add_valuation_entries(self, ctx: TenantContext, payload: VoucherPayload, plan: StockPlan) -> None:
        """Cost entries that depend on the valuation engine's resolved rates."""
        if payload.valuation == "cogs":
            value = sum((item.amount for item in plan.movements if item.quantity < 0), _ZERO)
            if value == 0:
                return
            accumulator = _EntryAccumulator()
            accumulator.debit(self._system_ledger_id(ctx, SystemLedgerCode.COST_OF_GOODS_SOLD, value), value, "Cost of goods sold")
            accumulator.credit(self._system_ledger_id(ctx, SystemLedgerCode.STOCK_IN_HAND, value), value, "Cost of goods sold")
            payload.entries.extend(accumulator.entries())
        elif payload.valuation == "adjustment":
            net = sum((item.amount if item.quantity > 0 else -item.amount for item in plan.movements), _ZERO)
            if net == 0:
                return
            accumulator = _EntryAccumulator()
            stock_ledger_id = self._system_ledger_id(ctx, SystemLedgerCode.STOCK_IN_HAND, net)
            adjustment_ledger_id = self._system_ledger_id(ctx, SystemLedgerCode.STOCK_ADJUSTMENT, net)
            accumulator.signed(stock_ledger_id, net, "Stock adjustment")
            accumulator.signed(adjustment_ledger_id, -net, "Stock adjustment")
            payload.entries.extend(accumulator.entries())
            payload.total_amount = abs(net)

    def _build_purchase(self, ctx: TenantContext, voucher: PurchaseVoucherCreate) -> VoucherPayload:
        party = ledger_service.get_active_ledger(ctx, voucher.party_ledger_id, allow_system=False)
        payload, stock_taxable, expense_taxable = self._invoice_lines(ctx, voucher, party, direction="IN")
        payload.is_reverse_charge = voucher.is_reverse_charge
        totals = payload.totals
        gst_total = totals.cgst + totals.sgst + totals.igst

        if party.is_tds_applicable and Decimal(party.tds_rate) > 0:
            payload.tds_amount = q2(totals.subtotal * Decimal(party.tds_rate) / 100)

        supplier_amount = totals.total - payload.tds_amount
        if voucher.is_reverse_charge:
            supplier_amount -= gst_total

        entries = _EntryAccumulator()
        entries.debit(self._system_ledger_id(ctx, SystemLedgerCode.STOCK_IN_HAND, stock_taxable), stock_taxable, "Purchase of stock")
        entries.debit(self._system_ledger_id(ctx, SystemLedgerCode.PURCHASES, expense_taxable), expense_taxable, "Purchases")
        entries.debit(self._system_ledger_id(ctx, SystemLedgerCode.CGST_INPUT, totals.cgst), totals.cgst, "Input CGST")
        entries.debit(self._system_ledger_id(ctx, SystemLedgerCode.SGST_INPUT, totals.sgst), totals.sgst, "Input SGST")
        entries.debit(self._system_ledger_id(ctx, SystemLedgerCode.IGST_INPUT, totals.igst), totals.igst, "Input IGST")
        entries.debit(self._system_ledger_id(ctx, SystemLedgerCode.CESS_INPUT, totals.cess), totals.cess, "Input cess")
        entries.signed(self._system_ledger_id(ctx, SystemLedgerCode.ROUND_OFF, totals.round_off), totals.round_off, "Round off")
        entries.credit(party.id, supplier_amount, voucher.narration)
        if voucher.is_reverse_charge:
            entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.CGST_RCM_OUTPUT, totals.cgst), totals.cgst, "CGST payable under reverse charge")
            entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.SGST_RCM_OUTPUT, totals.sgst), totals.sgst, "SGST payable under reverse charge")
            entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.IGST_RCM_OUTPUT, totals.igst), totals.igst, "IGST payable under reverse charge")
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.TDS_PAYABLE, payload.tds_amount), payload.tds_amount, "TDS deducted")

        payload.entries = entries.entries()
        payload.bill_type = "PAYABLE"
        payload.bill_amount = supplier_amount
        return payload

    def _build_sales(self, ctx: TenantContext, voucher: SalesVoucherCreate) -> VoucherPayload:
        party = ledger_service.get_active_ledger(ctx, voucher.party_ledger_id, allow_system=False)
        payload, stock_taxable, service_taxable = self._invoice_lines(ctx, voucher, party, direction="OUT")
        totals = payload.totals

        if party.is_tcs_applicable and Decimal(party.tcs_rate) > 0:
            payload.tcs_amount = q2(totals.total * Decimal(party.tcs_rate) / 100)

        customer_amount = totals.total + payload.tcs_amount
        sales_amount = stock_taxable + service_taxable

        entries = _EntryAccumulator()
        entries.debit(party.id, customer_amount, voucher.narration)
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.SALES, sales_amount), sales_amount, "Sales")
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.CGST_OUTPUT, totals.cgst), totals.cgst, "Output CGST")
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.SGST_OUTPUT, totals.sgst), totals.sgst, "Output SGST")
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.IGST_OUTPUT, totals.igst), totals.igst, "Output IGST")
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.CESS_OUTPUT, totals.cess), totals.cess, "Output cess")
        entries.signed(self._system_ledger_id(ctx, SystemLedgerCode.ROUND_OFF, totals.round_off), -totals.round_off, "Round off")
        entries.credit(self._system_ledger_id(ctx, SystemLedgerCode.TCS_PAYABLE, payload.tcs_amount), payload.tcs_amount, "TCS collected")

        payload.entries = entries.entries()
        payload.bill_type = "RECEIVABLE"
        payload.bill_amount = customer_amount
        if payload.movements and get_settings().post_cost_of_goods_sold:
            payload.valuation = "cogs"
        return payload

    def _invoice_lines(
        self,
        ctx: TenantContext,
        voucher: SalesVoucherCreate | PurchaseVoucherCreate,
        party: Ledger,
        *,
        direction: str,
    ) -> tuple[VoucherPayload, Decimal, Decimal]:
        settings = get_settings()
        company_state = ctx.company_state or settings.default_company_state
        place_of_supply = voucher.place_of_supply or party.state or company_state
        intra_state = is_intra_state(place_of_supply, company_state)

        resolver = InventoryItemResolver(ctx)
        line_taxes = []
        movements: list[MovementRequest] = []
        stock_taxable = _ZERO
        other_taxable = _ZERO

        for index, line in enumerate(voucher.lines):
            line_tax = compute_line_tax(
                line.quantity,
                line.rate,
                gst_rate=line.gst_rate,
                intra_state=intra_state,
                discount_percent=line.discount_percent,
                cess_amount=line.cess_amount,
            )
            line_taxes.append(line_tax)

            if not line.affects_stock:
                other_taxable += line_tax.taxable
                continue

            stock_taxable += line_tax.taxable
            item_id = resolver.resolve(
                ItemReference(
                    inventory_item_id=line.inventory_item_id,
                    barcode=line.barcode,
                    item_code=line.item_code,
                    item_name=line.item_name or line.description,
                    variant_attributes=line.variant_attributes,
                    hsn_sac_code=line.hsn_sac_code,
                )
            )
            if line.warehouse_id is not None and ctx.warehouses.get(line.warehouse_id) is None:
                raise InvalidReference("warehouse not found", warehouse_id=line.warehouse_id)

            if direction == "IN":
                movements.append(
                    MovementRequest(
                        inventory_item_id=item_id,
                        warehouse_id=line.warehouse_id,
                        movement_type="IN",
                        quantity=line.quantity,
                        rate=q6(line_tax.taxable / line.quantity),
                        narration=line.description,
                        line_ref=index,
                    )
                )
            else:
                movements.append(
                    MovementRequest(
                        inventory_item_id=item_id,
                        warehouse_id=line.warehouse_id,
                        movement_type="OUT",
                        quantity=-line.quantity,
                        narration=line.description,
                        line_ref=index,
                    )
                )

        totals = compute_invoice_totals(line_taxes, round_to_rupee=settings.round_total_to_rupee)
        payload = VoucherPayload(
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            party_ledger_id=party.id,
            place_of_supply=place_of_supply,
            due_date=voucher.due_date,
            totals=totals,
            total_amount=totals.total,
            movements=movements,
            pending_items=list(resolver.pending.values()),
        )
        return payload, stock_taxable, other_taxable

    def _build_settlement(self, ctx: TenantContext, voucher: PaymentVoucherCreate | ReceiptVoucherCreate) -> VoucherPayload:
        party = ledger_service.get_active_ledger(ctx, voucher.party_ledger_id, allow_system=False)
        bank = ledger_service.get_active_ledger(ctx, voucher.bank_ledger_id, allow_system=False)
        narration = voucher.narration or voucher.reference

        entries = _EntryAccumulator()
        if voucher.voucher_type == "PAYMENT":
            entries.debit(party.id, voucher.amount, narration)
            entries.credit(bank.id, voucher.amount, narration)
            settlement_bill_type = "PAYABLE"
        else:
            entries.debit(bank.id, voucher.amount, narration)
            entries.credit(party.id, voucher.amount, narration)
            settlement_bill_type = "RECEIVABLE"

        return VoucherPayload(
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            party_ledger_id=party.id,
            total_amount=q2(voucher.amount),
            settlement_bill_type=settlement_bill_type,
            bill_allocations=list(voucher.bill_allocations),
            entries=entries.entries(),
        )

    def _build_journal(self, ctx: TenantContext, voucher: JournalVoucherCreate) -> VoucherPayload:
        entries: list[LedgerEntryInput] = []
        for line in voucher.entries:
            ledger_service.get_active_ledger(ctx, line.ledger_id, allow_system=False)
            entries.append(
                LedgerEntryInput(
                    ledger_id=line.ledger_id,
                    debit_amount=q2(line.debit_amount),
                    credit_amount=q2(line.credit_amount),
                    narration=line.narration or voucher.narration,
                )
            )
        return VoucherPayload(
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            total_amount=sum((entry.debit_amount for entry in entries), _ZERO),
            entries=entries,
        )

    def _build_contra(self, ctx: TenantContext, voucher: ContraVoucherCreate) -> VoucherPayload:
        source = ledger_service.get_active_ledger(ctx, voucher.from_ledger_id, allow_system=False)
        target = ledger_service.get_active_ledger(ctx, voucher.to_ledger_id, allow_system=False)
        entries = _EntryAccumulator()
        entries.debit(target.id, voucher.amount, voucher.narration)
        entries.credit(source.id, voucher.amount, voucher.narration)
        return VoucherPayload(
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            total_amount=q2(voucher.amount),
            entries=entries.entries(),
        )

    def _build_adjustment(self, ctx: TenantContext, voucher: StockAdjustmentVoucherCreate) -> VoucherPayload:
        movements: list[MovementRequest] = []
        for index, line in enumerate(voucher.lines):
            if ctx.items.get(line.inventory_item_id) is None:
                raise InvalidReference("inventory item not found", inventory_item_id=line.inventory_item_id)
            movements.append(
                MovementRequest(
                    inventory_item_id=line.inventory_item_id,
                    warehouse_id=line.warehouse_id,
                    movement_type="ADJ",
                    quantity=line.quantity,
                    rate=line.rate if line.quantity > 0 else None,
                    narration=line.reason or voucher.narration,
                    line_ref=index,
                )
            )
        return VoucherPayload(
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            movements=movements,
            valuation="adjustment",
        )

    def _build_transfer(self, voucher: StockTransferVoucherCreate) -> VoucherPayload:
        movements: list[MovementRequest] = []
        for index, line in enumerate(voucher.lines):
            movements.append(
                MovementRequest(
                    inventory_item_id=line.inventory_item_id,
                    warehouse_id=line.from_warehouse_id,
                    movement_type="TRANSFER",
                    quantity=-line.quantity,
                    narration=voucher.narration,
                    pair_key=index,
                    line_ref=index,
                )
            )
            movements.append(
                MovementRequest(
                    inventory_item_id=line.inventory_item_id,
                    warehouse_id=line.to_warehouse_id,
                    movement_type="TRANSFER",
                    quantity=line.quantity,
                    narration=voucher.narration,
                    pair_key=index,
                    line_ref=index,
                )
            )
        return VoucherPayload(
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            movements=movements,
        )

    @staticmethod
    def _system_ledger_id(ctx: TenantContext, system_code: SystemLedgerCode, amount: Decimal) -> uuid.UUID | None:
        """Statutory ledger id, looked up only when the amount it would carry is non-zero."""
        if q2(amount) == 0:
            return None
        return ledger_service.get_by_system_code(ctx, system_code).id


voucher_builder = VoucherBuilder()
