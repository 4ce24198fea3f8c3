from ledgerflow.business.billwise.models import BillAllocation, BillWiseDetail
from ledgerflow.business.inventory.models import InventoryItem, StockMovement, Warehouse, WarehouseStock
from ledgerflow.business.vouchers.models import Voucher, VoucherNumberSeries
from ledgerflow.platform.ledger.models import Ledger, SystemLedgerCode, VoucherLedgerEntry

__all__ = [
	"BillAllocation",
	"BillWiseDetail",
	"InventoryItem",
	"Ledger",
	"StockMovement",
	"SystemLedgerCode",
	"Voucher",
	"VoucherLedgerEntry",
	"Warehouse",
	"WarehouseStock",
]
