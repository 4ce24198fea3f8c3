from ledgerflow.business.vouchers.models import VOUCHER_NUMBER_PREFIXES, Voucher
from ledgerflow.business.vouchers.schemas import (
    PostVoucherResult,
    VoucherCreate,
    VoucherRead,
    parse_voucher,
)

__all__ = [
    "VOUCHER_NUMBER_PREFIXES",
    "Voucher",
    "PostVoucherResult",
    "VoucherCreate",
    "VoucherRead",
    "parse_voucher",
]
