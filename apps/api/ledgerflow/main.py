from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from ledgerflow.api.errors import posting_error_handler
from ledgerflow.api.routes import router as api_router
from ledgerflow.core.config import get_settings
from ledgerflow.core.events import InternalEvent, event_bus
from ledgerflow.logging import configure_logging
from ledgerflow.middleware.correlation_id import CorrelationIdMiddleware
from ledgerflow.middleware.request_logging import RequestLoggingMiddleware
from ledgerflow.otel import get_fastapi_server_request_hook, setup_otel
from ledgerflow.platform.errors import PostingError


configure_logging()
logger = logging.getLogger("ledgerflow.lifecycle")
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"status": event.name})


def _on_voucher_reversed(event: InternalEvent) -> None:
    logger.info(
        "voucher.reversal_observed",
        extra={
            "voucher_id": event.payload.get("voucher_id"),
            "voucher_type": event.payload.get("voucher_type"),
            "tenant_id": event.payload.get("tenant_id"),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        event_bus.subscribe("voucher.reversal_posted", _on_voucher_reversed)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "ledgerflow"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(PostingError, posting_error_handler)  # type: ignore[arg-type]
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("ledgerflow", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
