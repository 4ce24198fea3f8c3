from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ledgerflow.api.dependencies import get_tenant_context
from ledgerflow.business.inventory.schemas import (
    InventoryItemCreate,
    InventoryItemRead,
    StockDriftRow,
    WarehouseCreate,
    WarehouseRead,
)
from ledgerflow.business.inventory.service import inventory_engine
from ledgerflow.tenancy import TenantContext


router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/warehouses", response_model=WarehouseRead, status_code=status.HTTP_201_CREATED)
def create_warehouse(payload: WarehouseCreate, ctx: TenantContext = Depends(get_tenant_context)) -> WarehouseRead:
    return WarehouseRead.model_validate(inventory_engine.create_warehouse(ctx, payload))


@router.post("/items", response_model=InventoryItemRead, status_code=status.HTTP_201_CREATED)
def create_item(payload: InventoryItemCreate, ctx: TenantContext = Depends(get_tenant_context)) -> InventoryItemRead:
    return InventoryItemRead.model_validate(inventory_engine.create_item(ctx, payload))


@router.get("/stock-drift", response_model=list[StockDriftRow])
def stock_drift(ctx: TenantContext = Depends(get_tenant_context)) -> list[StockDriftRow]:
    return inventory_engine.detect_stock_drift(ctx)
