from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ledgerflow.api.dependencies import get_tenant_context
from ledgerflow.platform.ledger.reconciliation import reconciliation_job
from ledgerflow.platform.ledger.schemas import LedgerCreate, LedgerRead, ReconcileRequest, ReconciliationReport
from ledgerflow.platform.ledger.seed import seed_system_ledgers
from ledgerflow.platform.ledger.service import ledger_service
from ledgerflow.tenancy import TenantContext


router = APIRouter(prefix="/ledgers", tags=["ledgers"])


class LedgerRenameRequest(BaseModel):
    name: str = Field(min_length=1)


@router.post("", response_model=LedgerRead, status_code=status.HTTP_201_CREATED)
def create_ledger(payload: LedgerCreate, ctx: TenantContext = Depends(get_tenant_context)) -> LedgerRead:
    return LedgerRead.model_validate(ledger_service.create_ledger(ctx, payload))


@router.get("/{ledger_id}", response_model=LedgerRead)
def get_ledger(ledger_id: uuid.UUID, ctx: TenantContext = Depends(get_tenant_context)) -> LedgerRead:
    return LedgerRead.model_validate(ledger_service.get_ledger(ctx, ledger_id))


@router.patch("/{ledger_id}", response_model=LedgerRead)
def rename_ledger(
    ledger_id: uuid.UUID,
    payload: LedgerRenameRequest,
    ctx: TenantContext = Depends(get_tenant_context),
) -> LedgerRead:
    return LedgerRead.model_validate(ledger_service.rename_ledger(ctx, ledger_id, payload.name))


@router.delete("/{ledger_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ledger(ledger_id: uuid.UUID, ctx: TenantContext = Depends(get_tenant_context)) -> None:
    ledger_service.delete_ledger(ctx, ledger_id)


@router.post("/reconcile", response_model=ReconciliationReport)
def reconcile_ledgers(
    payload: ReconcileRequest | None = None,
    ctx: TenantContext = Depends(get_tenant_context),
) -> ReconciliationReport:
    apply = payload.apply if payload is not None else True
    return reconciliation_job.reconcile(ctx, apply=apply)


@router.post("/system-ledgers", response_model=list[LedgerRead], status_code=status.HTTP_201_CREATED)
def seed_ledgers(ctx: TenantContext = Depends(get_tenant_context)) -> list[LedgerRead]:
    return [LedgerRead.model_validate(item) for item in seed_system_ledgers(ctx)]
