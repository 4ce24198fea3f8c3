from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
tenant_id_var: ContextVar[str | None] = ContextVar("tenant_id", default=None)
company_code_var: ContextVar[str | None] = ContextVar("company_code", default=None)


@dataclass(frozen=True, slots=True)
class ScopeTokens:
    tenant: Token[str | None]
    company: Token[str | None]


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def bind_scope(tenant_id: str | None, company_code: str | None) -> ScopeTokens:
    """Bind the books being worked on so logs and events can pick them up."""
    return ScopeTokens(tenant=tenant_id_var.set(tenant_id), company=company_code_var.set(company_code))


def reset_scope(tokens: ScopeTokens) -> None:
    company_code_var.reset(tokens.company)
    tenant_id_var.reset(tokens.tenant)


def get_tenant_id() -> str | None:
    return tenant_id_var.get()


def get_company_code() -> str | None:
    return company_code_var.get()


def get_log_context() -> dict[str, str | None]:
    return {
        "correlation_id": get_correlation_id(),
        "tenant_id": get_tenant_id(),
        "company_code": get_company_code(),
    }
