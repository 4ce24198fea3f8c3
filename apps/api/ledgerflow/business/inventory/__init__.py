from ledgerflow.business.inventory.models import InventoryItem, StockMovement, Warehouse, WarehouseStock
from ledgerflow.business.inventory.schemas import (
    InventoryItemCreate,
    InventoryItemRead,
    MovementRequest,
    StockMovementRead,
    StockPlan,
    WarehouseCreate,
    WarehouseRead,
)

__all__ = [
    "InventoryItem",
    "StockMovement",
    "Warehouse",
    "WarehouseStock",
    "InventoryItemCreate",
    "InventoryItemRead",
    "MovementRequest",
    "StockMovementRead",
    "StockPlan",
    "WarehouseCreate",
    "WarehouseRead",
]
