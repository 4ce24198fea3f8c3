from __future__ import annotations

import logging
import time
from typing import Any

from ledgerflow.context import bind_scope, reset_scope
from ledgerflow.core.celery_app import celery_app
from ledgerflow.core.database import SessionLocal
from ledgerflow.platform.ledger.reconciliation import reconciliation_job
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.tasks")


def run_reconciliation(session_factory: Any, tenant_id: str, company_code: str, apply: bool = True) -> dict[str, Any]:
    tokens = bind_scope(tenant_id, company_code)
    started = time.perf_counter()
    session = session_factory()
    try:
        ctx = TenantContext(session=session, tenant_id=tenant_id, company_code=company_code, actor_user_id="system.reconciliation")
        report = reconciliation_job.reconcile(ctx, apply=apply)
    except Exception as exc:
        session.rollback()
        logger.exception(
            "reconciliation.failed",
            extra={"tenant_id": tenant_id, "company_code": company_code, "error": str(exc)},
        )
        raise
    finally:
        session.close()
        reset_scope(tokens)

    logger.info(
        "reconciliation.finished",
        extra={
            "tenant_id": tenant_id,
            "company_code": company_code,
            "corrected": report.ledgers_corrected,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return report.model_dump(mode="json")


@celery_app.task(name="ledgerflow.tasks.reconcile_ledger_balances")
def reconcile_ledger_balances(tenant_id: str, company_code: str, apply: bool = True) -> dict[str, Any]:
    return run_reconciliation(SessionLocal, tenant_id, company_code, apply)
