from celery import Celery

from ledgerflow.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "ledgerflow",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["ledgerflow.tasks"],
)


def _reconciliation_scopes(raw: str) -> list[tuple[str, str]]:
    scopes: list[tuple[str, str]] = []
    for item in raw.split(","):
        tenant_id, _, company_code = item.strip().partition(":")
        if tenant_id and company_code:
            scopes.append((tenant_id, company_code))
    return scopes


def build_beat_schedule(minutes: int, raw_scopes: str) -> dict[str, dict[str, object]]:
    if minutes <= 0:
        return {}
    return {
        f"reconcile-{tenant_id}-{company_code}": {
            "task": "ledgerflow.tasks.reconcile_ledger_balances",
            "schedule": float(minutes * 60),
            "args": (tenant_id, company_code),
        }
        for tenant_id, company_code in _reconciliation_scopes(raw_scopes)
    }


celery_app.conf.beat_schedule = build_beat_schedule(
    settings.reconciliation_schedule_minutes,
    settings.reconciliation_scopes,
)

