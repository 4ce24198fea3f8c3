from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError

from ledgerflow.api.dependencies import get_tenant_context
from ledgerflow.business.vouchers.schemas import (
    PostVoucherResult,
    VoucherCreate,
    VoucherRead,
    VoucherReverseRequest,
    parse_voucher,
)
from ledgerflow.business.vouchers.service import voucher_posting_service
from ledgerflow.tenancy import TenantContext


router = APIRouter(prefix="/vouchers", tags=["vouchers"])


def _parse_body(payload: dict[str, Any]) -> VoucherCreate:
    try:
        return parse_voucher(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        )


@router.post("", response_model=PostVoucherResult, status_code=status.HTTP_201_CREATED)
def post_voucher(
    payload: dict[str, Any] = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
) -> PostVoucherResult:
    return voucher_posting_service.post_voucher(ctx, _parse_body(payload))


@router.post("/drafts", response_model=VoucherRead, status_code=status.HTTP_201_CREATED)
def save_draft(
    payload: dict[str, Any] = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
) -> VoucherRead:
    return voucher_posting_service.save_draft(ctx, _parse_body(payload))


@router.post("/{voucher_id}/post", response_model=PostVoucherResult)
def post_draft(voucher_id: uuid.UUID, ctx: TenantContext = Depends(get_tenant_context)) -> PostVoucherResult:
    return voucher_posting_service.post_draft(ctx, voucher_id)


@router.post("/{voucher_id}/reverse", response_model=PostVoucherResult, status_code=status.HTTP_201_CREATED)
def reverse_voucher(
    voucher_id: uuid.UUID,
    payload: VoucherReverseRequest,
    ctx: TenantContext = Depends(get_tenant_context),
) -> PostVoucherResult:
    return voucher_posting_service.reverse_voucher(ctx, voucher_id, payload.reason, payload.voucher_date)


@router.get("/{voucher_id}", response_model=VoucherRead)
def get_voucher(voucher_id: uuid.UUID, ctx: TenantContext = Depends(get_tenant_context)) -> VoucherRead:
    return voucher_posting_service.get_voucher(ctx, voucher_id)
