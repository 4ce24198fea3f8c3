from ledgerflow.platform.ledger.models import Ledger, SystemLedgerCode, VoucherLedgerEntry
from ledgerflow.platform.ledger.schemas import (
    LedgerCreate,
    LedgerEntryInput,
    LedgerRead,
    ReconciliationReport,
    VoucherLedgerEntryRead,
)

__all__ = [
    "Ledger",
    "SystemLedgerCode",
    "VoucherLedgerEntry",
    "LedgerCreate",
    "LedgerEntryInput",
    "LedgerRead",
    "ReconciliationReport",
    "VoucherLedgerEntryRead",
]
