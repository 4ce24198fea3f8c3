from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from ledgerflow import audit
from ledgerflow.metrics import observe_reconciliation
from ledgerflow.platform.ledger.schemas import LedgerBalanceChange, ReconciliationReport
from ledgerflow.platform.ledger.service import expected_balance_type, from_signed, to_signed
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.reconciliation")


@dataclass(slots=True)
class BalanceReconciliationJob:
    """Rebuilds ledger running balances from the opening balance and posted entries.

    The stored running balance is never an input, so the job repairs drift left
    by partial failures or direct writes and running it twice changes nothing.
    """

    def reconcile(self, ctx: TenantContext, *, apply: bool = True) -> ReconciliationReport:
        started_at = datetime.now(timezone.utc)
        report = ReconciliationReport(
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
            applied=apply,
            started_at=started_at,
        )

        ledgers = ctx.ledgers.all_ordered(for_update=apply)
        net_by_ledger = ctx.ledger_entries.net_movement_by_ledger()

        for ledger in ledgers:
            report.ledgers_checked += 1
            expected = to_signed(ledger.opening_balance, ledger.opening_balance_type) + net_by_ledger.get(ledger.id, Decimal("0"))
            magnitude, balance_type = from_signed(expected)
            stored = Decimal(ledger.current_balance)

            if stored != magnitude or ledger.balance_type != balance_type:
                report.corrections.append(
                    LedgerBalanceChange(
                        ledger_id=ledger.id,
                        code=ledger.code,
                        before_balance=stored,
                        before_type=ledger.balance_type,
                        after_balance=magnitude,
                        after_type=balance_type,
                    )
                )
                if apply:
                    ledger.current_balance = magnitude
                    ledger.balance_type = balance_type

            if magnitude != 0 and not ledger.allows_contra_balance and balance_type != expected_balance_type(ledger.nature):
                report.nature_mismatches.append(ledger.id)

        report.ledgers_corrected = len(report.corrections)

        if apply:
            ctx.session.flush()
            if report.corrections:
                audit.record(
                    actor_user_id=ctx.actor_user_id,
                    entity_type="ledger.reconciliation",
                    entity_id=f"{ctx.tenant_id}:{ctx.company_code}",
                    action="ledger.reconciled",
                    before=None,
                    after={"corrected": report.ledgers_corrected, "checked": report.ledgers_checked},
                    correlation_id=ctx.correlation_id,
                    tenant_id=ctx.tenant_id,
                    company_code=ctx.company_code,
                )
            ctx.session.commit()

        report.finished_at = datetime.now(timezone.utc)
        observe_reconciliation("apply" if apply else "dry_run", report.ledgers_corrected if apply else 0)
        logger.info(
            "ledger.reconciled",
            extra={
                "tenant_id": ctx.tenant_id,
                "company_code": ctx.company_code,
                "checked": report.ledgers_checked,
                "corrected": report.ledgers_corrected,
                "status": "applied" if apply else "dry_run",
            },
        )
        return report


reconciliation_job = BalanceReconciliationJob()
