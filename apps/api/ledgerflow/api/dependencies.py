from __future__ import annotations

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from ledgerflow.context import get_correlation_id
from ledgerflow.core.auth import AuthUser, get_current_user
from ledgerflow.core.database import get_db
from ledgerflow.tenancy import TenantContext


def get_tenant_context(
    request: Request,
    db: Session = Depends(get_db),
    auth_user: AuthUser = Depends(get_current_user),
    tenant_id: str = Header(alias="x-tenant-id", min_length=1),
    company_code: str = Header(alias="x-company-code", min_length=1),
    company_state: str | None = Header(default=None, alias="x-company-state"),
    branch_id: str | None = Header(default=None, alias="x-branch-id"),
) -> TenantContext:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return TenantContext(
        session=db,
        tenant_id=tenant_id,
        company_code=company_code,
        actor_user_id=auth_user.sub,
        branch_id=branch_id,
        company_state=company_state,
        correlation_id=correlation_id,
    )
