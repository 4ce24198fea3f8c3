from ledgerflow.business.billwise.models import BillAllocation, BillWiseDetail
from ledgerflow.business.billwise.schemas import AllocationOutcome, BillAllocationRead, BillRead

__all__ = [
    "BillAllocation",
    "BillWiseDetail",
    "AllocationOutcome",
    "BillAllocationRead",
    "BillRead",
]
