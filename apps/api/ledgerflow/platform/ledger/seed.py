from __future__ import annotations

import logging

from ledgerflow.platform.ledger.models import Ledger, SystemLedgerCode
from ledgerflow.platform.ledger.schemas import LedgerCreate
from ledgerflow.platform.ledger.service import ledger_service
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.ledger")

# code -> (display name, nature, group, allows contra balance)
SYSTEM_LEDGER_CHART: dict[SystemLedgerCode, tuple[str, str, str, bool]] = {
    SystemLedgerCode.SALES: ("Sales", "INCOME", "SALES_ACCOUNTS", False),
    SystemLedgerCode.PURCHASES: ("Purchases", "EXPENSE", "PURCHASE_ACCOUNTS", False),
    SystemLedgerCode.STOCK_IN_HAND: ("Stock-in-Hand", "ASSET", "CURRENT_ASSETS", False),
    SystemLedgerCode.COST_OF_GOODS_SOLD: ("Cost of Goods Sold", "EXPENSE", "DIRECT_EXPENSES", False),
    SystemLedgerCode.STOCK_ADJUSTMENT: ("Stock Adjustment", "EXPENSE", "DIRECT_EXPENSES", True),
    SystemLedgerCode.CGST_INPUT: ("CGST Input", "ASSET", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.SGST_INPUT: ("SGST Input", "ASSET", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.IGST_INPUT: ("IGST Input", "ASSET", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.CESS_INPUT: ("Cess Input", "ASSET", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.CGST_OUTPUT: ("CGST Output", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.SGST_OUTPUT: ("SGST Output", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.IGST_OUTPUT: ("IGST Output", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.CESS_OUTPUT: ("Cess Output", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.CGST_RCM_OUTPUT: ("CGST Payable (RCM)", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.SGST_RCM_OUTPUT: ("SGST Payable (RCM)", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.IGST_RCM_OUTPUT: ("IGST Payable (RCM)", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.TDS_PAYABLE: ("TDS Payable", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.TCS_PAYABLE: ("TCS Payable", "LIABILITY", "DUTIES_AND_TAXES", False),
    SystemLedgerCode.ROUND_OFF: ("Round Off", "EXPENSE", "INDIRECT_EXPENSES", True),
}


def seed_system_ledgers(ctx: TenantContext) -> list[Ledger]:
    """Create the statutory ledgers a company is missing. Existing ones are left alone."""
    created: list[Ledger] = []
    for system_code, (name, nature, group_code, allows_contra) in SYSTEM_LEDGER_CHART.items():
        if ctx.ledgers.by_system_code(system_code.value) is not None:
            continue
        ledger = ledger_service.create_ledger(
            ctx,
            LedgerCreate(
                name=name,
                code=system_code.value,
                nature=nature,
                group_code=group_code,
                allows_contra_balance=allows_contra,
                system_code=system_code.value,
                is_system_generated=True,
            ),
            commit=False,
        )
        created.append(ledger)

    ctx.session.commit()
    if created:
        logger.info(
            "ledger.system_ledgers_seeded",
            extra={"tenant_id": ctx.tenant_id, "company_code": ctx.company_code, "created": len(created)},
        )
    return created
