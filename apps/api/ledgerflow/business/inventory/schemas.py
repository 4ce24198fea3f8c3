from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


MovementType = Literal["IN", "OUT", "ADJ", "TRANSFER"]


class WarehouseCreate(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    is_active: bool = True


class WarehouseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    code: str
    is_active: bool


class InventoryItemCreate(BaseModel):
    name: str = Field(min_length=1)
    item_code: str | None = None
    barcode: str | None = None
    variant_attributes: dict[str, Any] | None = None
    hsn_sac_code: str | None = None
    unit: str | None = None


class InventoryItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    item_code: str | None
    barcode: str | None
    item_key: str
    variant_attributes: dict[str, Any] | None
    quantity_on_hand: Decimal
    avg_cost: Decimal
    is_active: bool


class StockMovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    inventory_item_id: UUID
    warehouse_id: UUID | None
    voucher_id: UUID | None
    movement_type: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    moved_at: datetime


class StockDriftRow(BaseModel):
    inventory_item_id: UUID
    warehouse_id: UUID | None
    stored_quantity: Decimal
    movement_quantity: Decimal


@dataclass(slots=True)
class PendingItem:
    """An item proposed by the resolver; written only when the voucher posts."""

    name: str
    item_key: str
    item_code: str | None = None
    barcode: str | None = None
    variant_attributes: dict[str, Any] | None = None
    hsn_sac_code: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(slots=True)
class MovementRequest:
    inventory_item_id: uuid.UUID
    warehouse_id: uuid.UUID | None
    movement_type: str
    quantity: Decimal
    rate: Decimal | None = None
    narration: str | None = None
    pair_key: int | None = None
    line_ref: int | None = None


@dataclass(slots=True)
class PlannedMovement:
    inventory_item_id: uuid.UUID
    warehouse_id: uuid.UUID | None
    movement_type: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    narration: str | None = None
    line_ref: int | None = None


@dataclass(slots=True)
class Position:
    quantity: Decimal
    avg_cost: Decimal


@dataclass(slots=True)
class StockPlan:
    """Validated, priced movements plus the positions they lead to."""

    movements: list[PlannedMovement] = field(default_factory=list)
    warehouse_positions: dict[tuple[uuid.UUID, uuid.UUID], Position] = field(default_factory=dict)
    aggregate_positions: dict[uuid.UUID, Position] = field(default_factory=dict)
    moved_at: datetime | None = None

    def value_for_line(self, line_ref: int) -> Decimal:
        return sum((item.amount for item in self.movements if item.line_ref == line_ref), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.movements
