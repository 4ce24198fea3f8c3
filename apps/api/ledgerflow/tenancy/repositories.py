from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledgerflow.models import (
    BillAllocation,
    BillWiseDetail,
    InventoryItem,
    Ledger,
    StockMovement,
    Voucher,
    VoucherLedgerEntry,
    VoucherNumberSeries,
    Warehouse,
    WarehouseStock,
)

ModelT = TypeVar("ModelT")


class TenantRepository(Generic[ModelT]):
    """Query helper that scopes every statement to one tenant and company."""

    model: type[Any]
    resource = ""

    def __init__(self, session: Session, tenant_id: str, company_code: str) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.company_code = company_code

    def apply_scope_query(self, query: Select[Any]) -> Select[Any]:
        return query.where(
            self.model.tenant_id == self.tenant_id,
            self.model.company_code == self.company_code,
        )

    def select(self) -> Select[Any]:
        return self.apply_scope_query(select(self.model))

    def get(self, record_id: uuid.UUID, *, for_update: bool = False) -> ModelT | None:
        stmt = self.select().where(self.model.id == record_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalar(stmt)

    def lock_many(self, record_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, ModelT]:
        ids = sorted(set(record_ids), key=str)
        if not ids:
            return {}
        stmt = self.select().where(self.model.id.in_(ids)).order_by(self.model.id).with_for_update()
        return {row.id: row for row in self.session.scalars(stmt).all()}

    def find(self, *clauses: Any) -> Sequence[ModelT]:
        return self.session.scalars(self.select().where(*clauses)).all()

    def add(self, record: ModelT) -> ModelT:
        record.tenant_id = self.tenant_id  # type: ignore[attr-defined]
        record.company_code = self.company_code  # type: ignore[attr-defined]
        self.session.add(record)
        return record


class LedgerRepository(TenantRepository[Ledger]):
    model = Ledger
    resource = "ledger.ledger"

    def by_system_code(self, system_code: str) -> Ledger | None:
        return self.session.scalar(self.select().where(Ledger.system_code == system_code))

    def by_code(self, code: str) -> Ledger | None:
        return self.session.scalar(self.select().where(Ledger.code == code))

    def all_ordered(self, *, for_update: bool = False) -> Sequence[Ledger]:
        stmt = self.select().order_by(Ledger.id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).all()


class VoucherLedgerEntryRepository(TenantRepository[VoucherLedgerEntry]):
    model = VoucherLedgerEntry
    resource = "ledger.voucher_entry"

    def for_voucher(self, voucher_id: uuid.UUID) -> Sequence[VoucherLedgerEntry]:
        return self.session.scalars(
            self.select().where(VoucherLedgerEntry.voucher_id == voucher_id).order_by(VoucherLedgerEntry.line_no)
        ).all()

    def references_ledger(self, ledger_id: uuid.UUID) -> bool:
        count = self.session.scalar(
            self.apply_scope_query(select(func.count()).select_from(VoucherLedgerEntry)).where(
                VoucherLedgerEntry.ledger_id == ledger_id
            )
        )
        return bool(count)

    def net_movement_by_ledger(self) -> dict[uuid.UUID, Decimal]:
        stmt = self.apply_scope_query(
            select(
                VoucherLedgerEntry.ledger_id,
                func.coalesce(func.sum(VoucherLedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(VoucherLedgerEntry.credit_amount), 0),
            )
        ).group_by(VoucherLedgerEntry.ledger_id)
        return {
            ledger_id: Decimal(str(debit)) - Decimal(str(credit))
            for ledger_id, debit, credit in self.session.execute(stmt).all()
        }


class InventoryItemRepository(TenantRepository[InventoryItem]):
    model = InventoryItem
    resource = "inventory.item"

    def by_barcode(self, barcode: str) -> InventoryItem | None:
        return self.session.scalar(self.select().where(InventoryItem.barcode == barcode).order_by(InventoryItem.created_at))

    def by_item_code(self, item_code: str) -> InventoryItem | None:
        return self.session.scalar(
            self.select().where(func.lower(InventoryItem.item_code) == item_code.strip().lower()).order_by(InventoryItem.created_at)
        )

    def by_name(self, name: str) -> Sequence[InventoryItem]:
        return self.session.scalars(
            self.select().where(func.lower(InventoryItem.name) == name.strip().lower()).order_by(InventoryItem.created_at)
        ).all()

    def by_item_key(self, item_key: str) -> InventoryItem | None:
        return self.session.scalar(self.select().where(InventoryItem.item_key == item_key))


class WarehouseRepository(TenantRepository[Warehouse]):
    model = Warehouse
    resource = "inventory.warehouse"


class WarehouseStockRepository(TenantRepository[WarehouseStock]):
    model = WarehouseStock
    resource = "inventory.warehouse_stock"

    def get_for(
        self,
        item_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> WarehouseStock | None:
        stmt = self.select().where(
            WarehouseStock.inventory_item_id == item_id,
            WarehouseStock.warehouse_id == warehouse_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalar(stmt)

    def for_item(self, item_id: uuid.UUID) -> Sequence[WarehouseStock]:
        return self.session.scalars(
            self.select().where(WarehouseStock.inventory_item_id == item_id).order_by(WarehouseStock.warehouse_id)
        ).all()

    def lock_pairs(self, pairs: Iterable[tuple[uuid.UUID, uuid.UUID]]) -> None:
        for item_id, warehouse_id in sorted(set(pairs), key=lambda pair: (str(pair[0]), str(pair[1]))):
            self.get_for(item_id, warehouse_id, for_update=True)


class StockMovementRepository(TenantRepository[StockMovement]):
    model = StockMovement
    resource = "inventory.stock_movement"

    def for_voucher(self, voucher_id: uuid.UUID) -> Sequence[StockMovement]:
        return self.session.scalars(
            self.select().where(StockMovement.voucher_id == voucher_id).order_by(StockMovement.moved_at, StockMovement.id)
        ).all()

    def quantity_totals(self) -> dict[tuple[uuid.UUID, uuid.UUID | None], Decimal]:
        stmt = self.apply_scope_query(
            select(StockMovement.inventory_item_id, StockMovement.warehouse_id, func.sum(StockMovement.quantity))
        ).group_by(StockMovement.inventory_item_id, StockMovement.warehouse_id)
        return {
            (item_id, warehouse_id): Decimal(str(total or 0))
            for item_id, warehouse_id, total in self.session.execute(stmt).all()
        }


class VoucherRepository(TenantRepository[Voucher]):
    model = Voucher
    resource = "vouchers.voucher"

    def next_number(self, prefix: str) -> str:
        series = VoucherNumberSeriesRepository(self.session, self.tenant_id, self.company_code)
        value = series.next_value(prefix, seed=lambda: self.issued_count(prefix))
        return f"{prefix}-{self.company_code}-{value:05d}"

    def issued_count(self, prefix: str) -> int:
        return self.session.scalar(
            self.apply_scope_query(select(func.count()).select_from(Voucher)).where(
                Voucher.voucher_number.like(f"{prefix}-%")
            )
        ) or 0


class VoucherNumberSeriesRepository(TenantRepository[VoucherNumberSeries]):
    model = VoucherNumberSeries
    resource = "vouchers.number_series"

    def locked(self, prefix: str) -> VoucherNumberSeries | None:
        stmt = (
            self.select()
            .where(VoucherNumberSeries.prefix == prefix)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.scalar(stmt)

    def next_value(self, prefix: str, seed: Callable[[], int]) -> int:
        """Take the next number of a prefix under its row lock.

        A missing row is created inside a savepoint, starting from ``seed()``
        so books numbered before the series existed carry on where they were.
        """
        series = self.locked(prefix)
        if series is None:
            savepoint = self.session.begin_nested()
            try:
                series = self.add(VoucherNumberSeries(prefix=prefix, current_value=seed()))
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                # created by a concurrent transaction first
                savepoint.rollback()
                series = self.locked(prefix)
                if series is None:
                    raise
        series.current_value += 1
        self.session.flush()
        return series.current_value


class BillRepository(TenantRepository[BillWiseDetail]):
    model = BillWiseDetail
    resource = "billwise.bill"

    def open_bills(
        self,
        ledger_id: uuid.UUID,
        bill_type: str | None = None,
        *,
        for_update: bool = False,
    ) -> Sequence[BillWiseDetail]:
        stmt = self.select().where(BillWiseDetail.ledger_id == ledger_id, BillWiseDetail.is_open.is_(True))
        if bill_type is not None:
            stmt = stmt.where(BillWiseDetail.bill_type == bill_type)
        stmt = stmt.order_by(BillWiseDetail.bill_date, BillWiseDetail.created_at, BillWiseDetail.id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).all()

    def for_voucher(self, voucher_id: uuid.UUID) -> Sequence[BillWiseDetail]:
        return self.session.scalars(self.select().where(BillWiseDetail.voucher_id == voucher_id)).all()


class BillAllocationRepository(TenantRepository[BillAllocation]):
    model = BillAllocation
    resource = "billwise.allocation"

    def for_voucher(self, voucher_id: uuid.UUID) -> Sequence[BillAllocation]:
        return self.session.scalars(
            self.select().where(BillAllocation.voucher_id == voucher_id).order_by(BillAllocation.created_at, BillAllocation.id)
        ).all()

    def for_bill(self, bill_id: uuid.UUID) -> Sequence[BillAllocation]:
        return self.session.scalars(self.select().where(BillAllocation.bill_id == bill_id)).all()
