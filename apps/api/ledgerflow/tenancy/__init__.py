from ledgerflow.tenancy.context import TenantContext
from ledgerflow.tenancy.repositories import TenantRepository

__all__ = [
    "TenantContext",
    "TenantRepository",
]
