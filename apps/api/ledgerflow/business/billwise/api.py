from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from ledgerflow.api.dependencies import get_tenant_context
from ledgerflow.business.billwise.schemas import BillRead, BillType
from ledgerflow.business.billwise.service import billwise_tracker
from ledgerflow.tenancy import TenantContext


router = APIRouter(prefix="/bills", tags=["bills"])


@router.get("/open", response_model=list[BillRead])
def list_open_bills(
    party_ledger_id: uuid.UUID = Query(...),
    bill_type: BillType | None = Query(default=None),
    ctx: TenantContext = Depends(get_tenant_context),
) -> list[BillRead]:
    rows = billwise_tracker.list_open_bills(ctx, party_ledger_id, bill_type)
    return [BillRead.model_validate(item) for item in rows]
