from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

vouchers_posted_count = Counter(
    "vouchers_posted_count",
    "Total posted vouchers by type",
    ["voucher_type"],
)

voucher_post_duration_seconds = Histogram(
    "voucher_post_duration_seconds",
    "Voucher posting duration in seconds",
    ["voucher_type"],
)

voucher_post_failures_count = Counter(
    "voucher_post_failures_count",
    "Total voucher post failures by error kind",
    ["kind"],
)

voucher_post_retries_count = Counter(
    "voucher_post_retries_count",
    "Total voucher post retries after concurrency conflicts",
)

ledger_entries_posted_count = Counter(
    "ledger_entries_posted_count",
    "Total posted voucher ledger entries",
)

stock_movements_posted_count = Counter(
    "stock_movements_posted_count",
    "Total stock movements written by type",
    ["movement_type"],
)

ledger_reconciliation_corrections_count = Counter(
    "ledger_reconciliation_corrections_count",
    "Total ledger balances corrected by reconciliation",
)

ledger_reconciliation_runs_count = Counter(
    "ledger_reconciliation_runs_count",
    "Total reconciliation runs by mode",
    ["mode"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_voucher_posted(voucher_type: str, duration: float) -> None:
    vouchers_posted_count.labels(voucher_type=voucher_type).inc()
    voucher_post_duration_seconds.labels(voucher_type=voucher_type).observe(duration)


def observe_voucher_post_failure(kind: str) -> None:
    voucher_post_failures_count.labels(kind=kind).inc()


def observe_voucher_post_retry() -> None:
    voucher_post_retries_count.inc()


def observe_ledger_entries_posted(count: int = 1) -> None:
    if count > 0:
        ledger_entries_posted_count.inc(count)


def observe_stock_movement(movement_type: str, count: int = 1) -> None:
    if count > 0:
        stock_movements_posted_count.labels(movement_type=movement_type).inc(count)


def observe_reconciliation(mode: str, corrected: int) -> None:
    ledger_reconciliation_runs_count.labels(mode=mode).inc()
    if corrected > 0:
        ledger_reconciliation_corrections_count.inc(corrected)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
