from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ledgerflow.tenancy.repositories import (
    BillAllocationRepository,
    BillRepository,
    InventoryItemRepository,
    LedgerRepository,
    StockMovementRepository,
    VoucherLedgerEntryRepository,
    VoucherNumberSeriesRepository,
    VoucherRepository,
    WarehouseRepository,
    WarehouseStockRepository,
)


@dataclass(slots=True)
class TenantContext:
    """Explicit tenant scope handed to every posting operation.

    The session is owned by the caller (one per request or job); the
    repositories filter every query by ``tenant_id`` and ``company_code``.
    """

    session: Session
    tenant_id: str
    company_code: str
    actor_user_id: str = "system"
    branch_id: str | None = None
    company_state: str | None = None
    correlation_id: str | None = None
    ledgers: LedgerRepository = field(init=False, repr=False)
    ledger_entries: VoucherLedgerEntryRepository = field(init=False, repr=False)
    items: InventoryItemRepository = field(init=False, repr=False)
    warehouses: WarehouseRepository = field(init=False, repr=False)
    warehouse_stock: WarehouseStockRepository = field(init=False, repr=False)
    movements: StockMovementRepository = field(init=False, repr=False)
    vouchers: VoucherRepository = field(init=False, repr=False)
    number_series: VoucherNumberSeriesRepository = field(init=False, repr=False)
    bills: BillRepository = field(init=False, repr=False)
    allocations: BillAllocationRepository = field(init=False, repr=False)

    def __post_init__(self) -> None:
        scope = (self.session, self.tenant_id, self.company_code)
        self.ledgers = LedgerRepository(*scope)
        self.ledger_entries = VoucherLedgerEntryRepository(*scope)
        self.items = InventoryItemRepository(*scope)
        self.warehouses = WarehouseRepository(*scope)
        self.warehouse_stock = WarehouseStockRepository(*scope)
        self.movements = StockMovementRepository(*scope)
        self.vouchers = VoucherRepository(*scope)
        self.number_series = VoucherNumberSeriesRepository(*scope)
        self.bills = BillRepository(*scope)
        self.allocations = BillAllocationRepository(*scope)
