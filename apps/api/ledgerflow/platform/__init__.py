from ledgerflow.platform.errors import (
    ConcurrencyConflict,
    ConfigurationError,
    InsufficientStock,
    InvalidAllocation,
    InvalidReference,
    InvalidVoucherState,
    PostingError,
    UnbalancedEntry,
)

__all__ = [
    "ConcurrencyConflict",
    "ConfigurationError",
    "InsufficientStock",
    "InvalidAllocation",
    "InvalidReference",
    "InvalidVoucherState",
    "PostingError",
    "UnbalancedEntry",
]
