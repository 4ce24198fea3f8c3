from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import IntegrityError

from ledgerflow import audit
from ledgerflow.business.inventory.models import InventoryItem, StockMovement, Warehouse, WarehouseStock
from ledgerflow.business.inventory.resolver import normalize_item_key
from ledgerflow.business.inventory.schemas import (
    InventoryItemCreate,
    MovementRequest,
    PendingItem,
    PlannedMovement,
    Position,
    StockDriftRow,
    StockPlan,
    WarehouseCreate,
)
from ledgerflow.metrics import observe_stock_movement
from ledgerflow.platform.errors import InsufficientStock, InvalidReference
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.inventory")

_ZERO = Decimal("0")


def q2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def q4(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def q6(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP)


def apply_weighted_average(position: Position, quantity: Decimal, rate: Decimal) -> Position:
    """Position after one signed movement; outbound never changes the average."""
    new_quantity = position.quantity + quantity
    if quantity > 0:
        if new_quantity == 0:
            return Position(quantity=_ZERO, avg_cost=_ZERO)
        value = position.quantity * position.avg_cost + quantity * rate
        return Position(quantity=new_quantity, avg_cost=q6(value / new_quantity))
    return Position(quantity=new_quantity, avg_cost=position.avg_cost)


def _record_master(ctx: TenantContext, entity_type: str, entity_id: str, after: dict[str, str]) -> None:
    audit.record(
        actor_user_id=ctx.actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=f"{entity_type}.created",
        before=None,
        after=after,
        correlation_id=ctx.correlation_id,
        tenant_id=ctx.tenant_id,
        company_code=ctx.company_code,
    )


@dataclass(slots=True)
class InventoryValuationEngine:
    def create_warehouse(self, ctx: TenantContext, dto: WarehouseCreate) -> Warehouse:
        warehouse = Warehouse(**dto.model_dump(mode="python"))
        ctx.warehouses.add(warehouse)
        try:
            ctx.session.commit()
        except IntegrityError:
            ctx.session.rollback()
            raise InvalidReference("warehouse code already exists", code=dto.code)
        _record_master(ctx, "inventory.warehouse", str(warehouse.id), {"code": warehouse.code, "name": warehouse.name})
        return warehouse

    def create_item(self, ctx: TenantContext, dto: InventoryItemCreate) -> InventoryItem:
        payload = dto.model_dump(mode="python")
        payload["item_key"] = normalize_item_key(dto.item_code or dto.name, dto.variant_attributes)
        item = InventoryItem(**payload, quantity_on_hand=_ZERO, avg_cost=_ZERO)
        ctx.items.add(item)
        try:
            ctx.session.commit()
        except IntegrityError:
            ctx.session.rollback()
            raise InvalidReference("inventory item key already exists", item_key=payload["item_key"])
        _record_master(ctx, "inventory.item", str(item.id), {"item_key": item.item_key, "name": item.name})
        return item

    def plan(
        self,
        ctx: TenantContext,
        requests: Sequence[MovementRequest],
        pending_items: Sequence[PendingItem] = (),
    ) -> StockPlan:
        """Validate and price movements in order without writing anything.

        Affected rows are locked here so the positions simulated stay valid
        until ``apply`` runs in the same transaction.
        """
        plan = StockPlan(moved_at=datetime.now(timezone.utc))
        if not requests:
            return plan

        pending_ids = {item.id for item in pending_items}
        items = ctx.items.lock_many(
            request.inventory_item_id for request in requests if request.inventory_item_id not in pending_ids
        )
        ctx.warehouse_stock.lock_pairs(
            (request.inventory_item_id, request.warehouse_id)
            for request in requests
            if request.warehouse_id is not None and request.inventory_item_id not in pending_ids
        )

        warehouses: dict[uuid.UUID, Warehouse] = {}
        tracked_items: set[uuid.UUID] = set()
        pair_rates: dict[int, Decimal] = {}

        for request in requests:
            item_id = request.inventory_item_id
            item = items.get(item_id)
            if item is None and item_id not in pending_ids:
                raise InvalidReference("inventory item not found", inventory_item_id=item_id)

            quantity = q4(request.quantity)
            if quantity == 0:
                continue

            if request.warehouse_id is not None:
                warehouse = warehouses.get(request.warehouse_id) or ctx.warehouses.get(request.warehouse_id)
                if warehouse is None or not warehouse.is_active:
                    raise InvalidReference("warehouse not found", warehouse_id=request.warehouse_id)
                if item_id not in tracked_items and self._holds_unlocated_stock(ctx, item, item_id, plan):
                    raise InvalidReference(
                        "item is stocked without a warehouse; a warehouse cannot be used for it",
                        inventory_item_id=item_id,
                        quantity_on_hand=item.quantity_on_hand if item is not None else _ZERO,
                    )
                warehouses[warehouse.id] = warehouse
                key = (item_id, warehouse.id)
                position = plan.warehouse_positions.get(key)
                if position is None:
                    row = ctx.warehouse_stock.get_for(item_id, warehouse.id) if item is not None else None
                    position = Position(
                        quantity=Decimal(row.quantity) if row is not None else _ZERO,
                        avg_cost=Decimal(row.avg_cost) if row is not None else _ZERO,
                    )
                tracked_items.add(item_id)
            else:
                if item_id in tracked_items or (item is not None and ctx.warehouse_stock.for_item(item_id)):
                    raise InvalidReference(
                        "item is stocked per warehouse; a warehouse is required",
                        inventory_item_id=item_id,
                    )
                position = plan.aggregate_positions.get(item_id)
                if position is None:
                    position = Position(
                        quantity=Decimal(item.quantity_on_hand) if item is not None else _ZERO,
                        avg_cost=Decimal(item.avg_cost) if item is not None else _ZERO,
                    )

            if quantity < 0:
                rate = Decimal(request.rate) if request.rate is not None else position.avg_cost
                if request.pair_key is not None:
                    pair_rates[request.pair_key] = rate
            elif request.pair_key is not None and request.pair_key in pair_rates:
                rate = pair_rates[request.pair_key]
            elif request.rate is not None:
                rate = Decimal(request.rate)
            else:
                rate = position.avg_cost
            rate = q6(rate)

            if position.quantity + quantity < 0:
                raise InsufficientStock(
                    item_id=item_id,
                    warehouse_id=request.warehouse_id,
                    available=position.quantity,
                    requested=-quantity,
                )

            updated = apply_weighted_average(position, quantity, rate)
            if request.warehouse_id is not None:
                plan.warehouse_positions[(item_id, request.warehouse_id)] = updated
            else:
                plan.aggregate_positions[item_id] = updated

            plan.movements.append(
                PlannedMovement(
                    inventory_item_id=item_id,
                    warehouse_id=request.warehouse_id,
                    movement_type=request.movement_type,
                    quantity=quantity,
                    rate=rate,
                    amount=q2(abs(quantity) * rate),
                    narration=request.narration,
                    line_ref=request.line_ref,
                )
            )

        return plan

    @staticmethod
    def _holds_unlocated_stock(
        ctx: TenantContext,
        item: InventoryItem | None,
        item_id: uuid.UUID,
        plan: StockPlan,
    ) -> bool:
        if item_id in plan.aggregate_positions:
            return True
        if item is None or Decimal(item.quantity_on_hand) == 0:
            return False
        return not ctx.warehouse_stock.for_item(item_id)

    def apply(self, ctx: TenantContext, plan: StockPlan, voucher_id: uuid.UUID | None) -> list[StockMovement]:
        rows: list[StockMovement] = []
        moved_at = plan.moved_at or datetime.now(timezone.utc)
        counts: dict[str, int] = defaultdict(int)

        for planned in plan.movements:
            row = StockMovement(
                inventory_item_id=planned.inventory_item_id,
                warehouse_id=planned.warehouse_id,
                voucher_id=voucher_id,
                movement_type=planned.movement_type,
                quantity=planned.quantity,
                rate=planned.rate,
                amount=planned.amount,
                narration=planned.narration,
                moved_at=moved_at,
            )
            ctx.movements.add(row)
            rows.append(row)
            counts[planned.movement_type] += 1

        for (item_id, warehouse_id), position in plan.warehouse_positions.items():
            stock = ctx.warehouse_stock.get_for(item_id, warehouse_id)
            if stock is None:
                stock = WarehouseStock(inventory_item_id=item_id, warehouse_id=warehouse_id)
                ctx.warehouse_stock.add(stock)
            stock.quantity = position.quantity
            stock.avg_cost = position.avg_cost
        ctx.session.flush()

        for item_id in sorted({item_id for item_id, _ in plan.warehouse_positions}, key=str):
            self.recompute_aggregate(ctx, item_id)

        for item_id, position in plan.aggregate_positions.items():
            item = ctx.items.get(item_id)
            if item is None:
                raise InvalidReference("inventory item not found", inventory_item_id=item_id)
            item.quantity_on_hand = position.quantity
            item.avg_cost = position.avg_cost

        ctx.session.flush()
        for movement_type, count in counts.items():
            observe_stock_movement(movement_type, count)
        return rows

    def recompute_aggregate(self, ctx: TenantContext, item_id: uuid.UUID) -> InventoryItem:
        """Aggregate quantity is the warehouse sum; cost is quantity weighted."""
        item = ctx.items.get(item_id)
        if item is None:
            raise InvalidReference("inventory item not found", inventory_item_id=item_id)
        total_quantity = _ZERO
        total_value = _ZERO
        for stock in ctx.warehouse_stock.for_item(item_id):
            quantity = Decimal(stock.quantity)
            total_quantity += quantity
            total_value += quantity * Decimal(stock.avg_cost)
        item.quantity_on_hand = total_quantity
        item.avg_cost = q6(total_value / total_quantity) if total_quantity > 0 else _ZERO
        return item

    def reversal_requests(self, movements: Sequence[StockMovement]) -> list[MovementRequest]:
        """Equal and opposite movements at the original rates, outbound legs first."""
        requests = [
            MovementRequest(
                inventory_item_id=movement.inventory_item_id,
                warehouse_id=movement.warehouse_id,
                movement_type=movement.movement_type,
                quantity=-Decimal(movement.quantity),
                rate=Decimal(movement.rate),
                narration="reversal",
            )
            for movement in movements
        ]
        return sorted(requests, key=lambda request: request.quantity > 0)

    def detect_stock_drift(self, ctx: TenantContext) -> list[StockDriftRow]:
        """Rows whose stored quantity disagrees with the movement log. Read only."""
        totals = ctx.movements.quantity_totals()
        drift: list[StockDriftRow] = []

        located: dict[uuid.UUID, Decimal] = defaultdict(Decimal)
        for stock in ctx.warehouse_stock.find():
            located[stock.inventory_item_id] += Decimal(stock.quantity)
            replayed = totals.get((stock.inventory_item_id, stock.warehouse_id), _ZERO)
            if q4(replayed) != q4(Decimal(stock.quantity)):
                drift.append(
                    StockDriftRow(
                        inventory_item_id=stock.inventory_item_id,
                        warehouse_id=stock.warehouse_id,
                        stored_quantity=Decimal(stock.quantity),
                        movement_quantity=replayed,
                    )
                )

        # Stock held without a warehouse is whatever the aggregate carries beyond
        # the warehouse rows.
        for item in ctx.items.find():
            unlocated = Decimal(item.quantity_on_hand) - located.get(item.id, _ZERO)
            replayed = totals.get((item.id, None), _ZERO)
            if q4(replayed) != q4(unlocated):
                drift.append(
                    StockDriftRow(
                        inventory_item_id=item.id,
                        warehouse_id=None,
                        stored_quantity=unlocated,
                        movement_quantity=replayed,
                    )
                )

        if drift:
            logger.warning("inventory.stock_drift_detected", extra={"tenant_id": ctx.tenant_id, "drift_rows": len(drift)})
        return drift


inventory_engine = InventoryValuationEngine()
