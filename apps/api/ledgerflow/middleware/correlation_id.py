from __future__ import annotations

import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ledgerflow.context import bind_scope, reset_correlation_id, reset_scope, set_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the correlation id and the tenant/company books of a request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        tenant_id = request.headers.get("x-tenant-id")
        company_code = request.headers.get("x-company-code")
        request.state.correlation_id = correlation_id

        correlation_token = set_correlation_id(correlation_id)
        scope_tokens = bind_scope(tenant_id, company_code)
        span = trace.get_current_span()
        if span is not None and span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
            for key, value in (("tenant_id", tenant_id), ("company_code", company_code)):
                if value:
                    span.set_attribute(key, value)
        try:
            response = await call_next(request)
        finally:
            reset_scope(scope_tokens)
            reset_correlation_id(correlation_token)

        response.headers["x-correlation-id"] = correlation_id
        return response
