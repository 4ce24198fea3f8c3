from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ledgerflow.business.billwise.models import BillAllocation, BillWiseDetail
from ledgerflow.business.billwise.schemas import AllocationOutcome, BillType
from ledgerflow.business.vouchers.models import Voucher
from ledgerflow.business.vouchers.schemas import BillAllocationInput
from ledgerflow.core.config import get_settings
from ledgerflow.platform.errors import InvalidAllocation, InvalidReference, InvalidVoucherState
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.billwise")

_ZERO = Decimal("0")


@dataclass(slots=True)
class BillWiseTracker:
    """Outstanding receivable and payable bills and the payments settled against them."""

    def open_bill(
        self,
        ctx: TenantContext,
        voucher: Voucher,
        bill_type: BillType,
        amount: Decimal,
    ) -> BillWiseDetail | None:
        amount = self._q(amount)
        if amount <= 0 or voucher.party_ledger_id is None:
            return None
        bill = BillWiseDetail(
            voucher_id=voucher.id,
            ledger_id=voucher.party_ledger_id,
            bill_type=bill_type,
            bill_number=voucher.voucher_number,
            bill_date=voucher.voucher_date,
            due_date=voucher.due_date,
            total_amount=amount,
            pending_amount=amount,
            is_open=True,
            is_fully_paid=False,
        )
        ctx.bills.add(bill)
        ctx.session.flush()
        return bill

    def allocate(
        self,
        ctx: TenantContext,
        voucher: Voucher,
        bill_type: BillType,
        amount: Decimal,
        explicit: Sequence[BillAllocationInput] = (),
    ) -> AllocationOutcome:
        """Settle ``amount`` against the party's open bills; the excess stays on account."""
        if voucher.party_ledger_id is None:
            raise InvalidReference("settlement voucher has no party ledger", voucher_id=voucher.id)

        remaining = self._q(amount)
        outcome = AllocationOutcome()

        if explicit:
            requested_total = sum((self._q(item.amount) for item in explicit), _ZERO)
            if requested_total > remaining:
                raise InvalidAllocation(
                    "explicit allocations exceed the voucher amount",
                    requested=requested_total,
                    amount=remaining,
                )
            for item in explicit:
                bill = ctx.bills.get(item.bill_id, for_update=True)
                if bill is None:
                    raise InvalidReference("bill not found", bill_id=item.bill_id)
                if bill.ledger_id != voucher.party_ledger_id or bill.bill_type != bill_type:
                    raise InvalidAllocation("bill does not belong to this party", bill_id=bill.id)
                if not bill.is_open:
                    raise InvalidAllocation("bill is already settled", bill_id=bill.id)
                allocation_amount = self._q(item.amount)
                if allocation_amount > Decimal(bill.pending_amount):
                    raise InvalidAllocation(
                        "allocation exceeds bill pending amount",
                        bill_id=bill.id,
                        pending=bill.pending_amount,
                        requested=allocation_amount,
                    )
                self._apply(ctx, bill, voucher, allocation_amount)
                remaining -= allocation_amount
                outcome.allocated_amount += allocation_amount
                if bill.id not in outcome.bills_affected:
                    outcome.bills_affected.append(bill.id)
        else:
            for bill in ctx.bills.open_bills(voucher.party_ledger_id, bill_type, for_update=True):
                if remaining <= 0:
                    break
                allocation_amount = min(remaining, Decimal(bill.pending_amount))
                if allocation_amount <= 0:
                    continue
                self._apply(ctx, bill, voucher, allocation_amount)
                remaining -= allocation_amount
                outcome.allocated_amount += allocation_amount
                outcome.bills_affected.append(bill.id)

        outcome.on_account_amount = remaining
        if remaining > 0:
            logger.info(
                "billwise.on_account",
                extra={
                    "voucher_id": str(voucher.id),
                    "ledger_id": str(voucher.party_ledger_id),
                    "tenant_id": ctx.tenant_id,
                    "amount": str(remaining),
                },
            )
        ctx.session.flush()
        return outcome

    def reverse_allocations(self, ctx: TenantContext, original: Voucher, reversal: Voucher) -> list[uuid.UUID]:
        affected: list[uuid.UUID] = []
        if original.voucher_type in {"PAYMENT", "RECEIPT"}:
            for allocation in ctx.allocations.for_voucher(original.id):
                bill = ctx.bills.get(allocation.bill_id, for_update=True)
                if bill is None:
                    raise InvalidReference("bill not found", bill_id=allocation.bill_id)
                self._apply(ctx, bill, reversal, -Decimal(allocation.allocated_amount))
                if bill.id not in affected:
                    affected.append(bill.id)
        elif original.voucher_type in {"SALES", "PURCHASE"}:
            for bill in ctx.bills.for_voucher(original.id):
                settled = sum((Decimal(item.allocated_amount) for item in ctx.allocations.for_bill(bill.id)), _ZERO)
                if settled != 0:
                    raise InvalidVoucherState(
                        "bill has settlements; reverse the payments first",
                        bill_id=bill.id,
                        settled=settled,
                    )
                allocation = BillAllocation(bill_id=bill.id, voucher_id=reversal.id, allocated_amount=Decimal(bill.pending_amount))
                ctx.allocations.add(allocation)
                bill.pending_amount = _ZERO
                bill.is_open = False
                bill.is_fully_paid = False
                affected.append(bill.id)
        ctx.session.flush()
        return affected

    def list_open_bills(
        self,
        ctx: TenantContext,
        party_ledger_id: uuid.UUID,
        bill_type: BillType | None = None,
    ) -> Sequence[BillWiseDetail]:
        return ctx.bills.open_bills(party_ledger_id, bill_type)

    def _apply(self, ctx: TenantContext, bill: BillWiseDetail, voucher: Voucher, amount: Decimal) -> None:
        """Record one allocation and derive pending from every allocation on the bill.

        A bill closed within the posting tolerance keeps its residual in
        ``total - settled``, so reversing the closing payment restores it.
        """
        allocation = BillAllocation(bill_id=bill.id, voucher_id=voucher.id, allocated_amount=amount)
        ctx.allocations.add(allocation)
        ctx.session.flush()

        settled = sum((Decimal(item.allocated_amount) for item in ctx.allocations.for_bill(bill.id)), _ZERO)
        pending = self._q(Decimal(bill.total_amount) - settled)
        if pending <= get_settings().posting_epsilon:
            bill.pending_amount = _ZERO
            bill.is_open = False
            bill.is_fully_paid = True
        else:
            bill.pending_amount = pending
            bill.is_open = True
            bill.is_fully_paid = False

    @staticmethod
    def _q(value: Decimal) -> Decimal:
        return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


billwise_tracker = BillWiseTracker()
