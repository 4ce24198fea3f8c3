from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ledgerflow import audit, events
from ledgerflow.business.billwise.service import billwise_tracker
from ledgerflow.business.inventory.models import StockMovement
from ledgerflow.business.inventory.resolver import materialize_pending_items
from ledgerflow.business.inventory.schemas import StockMovementRead
from ledgerflow.business.inventory.service import inventory_engine
from ledgerflow.business.vouchers.builder import VoucherPayload, voucher_builder
from ledgerflow.business.vouchers.models import VOUCHER_NUMBER_PREFIXES, Voucher
from ledgerflow.business.vouchers.schemas import (
    PostVoucherResult,
    VoucherCreate,
    VoucherRead,
    parse_voucher,
)
from ledgerflow.core.config import get_settings
from ledgerflow.metrics import observe_voucher_post_failure, observe_voucher_post_retry, observe_voucher_posted
from ledgerflow.otel import get_tracer
from ledgerflow.platform.errors import (
    ConcurrencyConflict,
    InvalidReference,
    InvalidVoucherState,
    PostingError,
    UnbalancedEntry,
)
from ledgerflow.platform.ledger.models import VoucherLedgerEntry
from ledgerflow.platform.ledger.schemas import LedgerEntryInput, VoucherLedgerEntryRead
from ledgerflow.platform.ledger.service import ledger_service
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.vouchers")
tracer = get_tracer("ledgerflow.vouchers")

ResultT = TypeVar("ResultT")

_STOCK_ONLY_TYPES = {"ADJUSTMENT", "TRANSFER"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class VoucherPostingService:
    """PostVoucher: builder, valuation, ledger posting and bill tracking in one transaction."""

    def post_voucher(self, ctx: TenantContext, voucher: VoucherCreate | dict[str, Any]) -> PostVoucherResult:
        request = parse_voucher(voucher) if isinstance(voucher, dict) else voucher
        return self._run(ctx, request.voucher_type, lambda: self._post_once(ctx, request, draft_id=None))

    def save_draft(self, ctx: TenantContext, voucher: VoucherCreate | dict[str, Any]) -> VoucherRead:
        request = parse_voucher(voucher) if isinstance(voucher, dict) else voucher
        row = Voucher(
            voucher_number=ctx.vouchers.next_number(VOUCHER_NUMBER_PREFIXES[request.voucher_type]),
            voucher_type=request.voucher_type,
            voucher_date=request.voucher_date,
            status="DRAFT",
            party_ledger_id=getattr(request, "party_ledger_id", None),
            branch_id=ctx.branch_id,
            narration=request.narration,
            payload_json=request.model_dump(mode="json"),
            created_by=ctx.actor_user_id,
        )
        ctx.vouchers.add(row)
        ctx.session.commit()
        audit.record(
            actor_user_id=ctx.actor_user_id,
            entity_type="vouchers.voucher",
            entity_id=str(row.id),
            action="voucher.draft_saved",
            before=None,
            after={"voucher_number": row.voucher_number, "voucher_type": row.voucher_type},
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
        )
        return VoucherRead.model_validate(row)

    def post_draft(self, ctx: TenantContext, voucher_id: uuid.UUID) -> PostVoucherResult:
        draft = ctx.vouchers.get(voucher_id)
        if draft is None:
            raise InvalidReference("voucher not found", voucher_id=voucher_id)
        if draft.status != "DRAFT" or draft.payload_json is None:
            raise InvalidVoucherState("only draft vouchers can be posted", voucher_id=voucher_id, status=draft.status)
        request = parse_voucher(draft.payload_json)
        return self._run(ctx, request.voucher_type, lambda: self._post_once(ctx, request, draft_id=voucher_id))

    def reverse_voucher(
        self,
        ctx: TenantContext,
        voucher_id: uuid.UUID,
        reason: str,
        voucher_date: date | None = None,
    ) -> PostVoucherResult:
        original = ctx.vouchers.get(voucher_id)
        if original is None:
            raise InvalidReference("voucher not found", voucher_id=voucher_id)
        return self._run(
            ctx,
            original.voucher_type,
            lambda: self._reverse_once(ctx, voucher_id, reason, voucher_date),
        )

    def get_voucher(self, ctx: TenantContext, voucher_id: uuid.UUID) -> VoucherRead:
        row = ctx.vouchers.get(voucher_id)
        if row is None:
            raise InvalidReference("voucher not found", voucher_id=voucher_id)
        return VoucherRead.model_validate(row)

    def _run(self, ctx: TenantContext, voucher_type: str, operation: Callable[[], ResultT]) -> ResultT:
        max_attempts = max(1, get_settings().posting_max_retries)
        attempt = 0
        while True:
            attempt += 1
            started = time.perf_counter()
            try:
                with tracer.start_as_current_span("voucher.post") as span:
                    span.set_attribute("tenant_id", ctx.tenant_id)
                    span.set_attribute("company_code", ctx.company_code)
                    span.set_attribute("voucher_type", voucher_type)
                    span.set_attribute("attempt", attempt)
                    if ctx.correlation_id:
                        span.set_attribute("correlation_id", ctx.correlation_id)
                    result = operation()
            except (StaleDataError, OperationalError) as exc:
                ctx.session.rollback()
                if attempt >= max_attempts:
                    observe_voucher_post_failure(ConcurrencyConflict.kind)
                    logger.warning(
                        "voucher.post_failed",
                        extra={
                            "tenant_id": ctx.tenant_id,
                            "voucher_type": voucher_type,
                            "error_kind": ConcurrencyConflict.kind,
                            "attempt": attempt,
                            "error": str(exc),
                        },
                    )
                    raise ConcurrencyConflict("concurrent update detected; retry the voucher", attempts=attempt) from exc
                observe_voucher_post_retry()
                logger.info(
                    "voucher.post_retry",
                    extra={"tenant_id": ctx.tenant_id, "voucher_type": voucher_type, "attempt": attempt},
                )
                continue
            except PostingError as exc:
                ctx.session.rollback()
                observe_voucher_post_failure(exc.kind)
                logger.warning(
                    "voucher.post_failed",
                    extra={
                        "tenant_id": ctx.tenant_id,
                        "voucher_type": voucher_type,
                        "error_kind": exc.kind,
                        "error": exc.message,
                    },
                )
                raise
            except Exception:
                ctx.session.rollback()
                observe_voucher_post_failure("internal")
                raise

            observe_voucher_posted(voucher_type, time.perf_counter() - started)
            return result

    def _post_once(
        self,
        ctx: TenantContext,
        request: VoucherCreate,
        *,
        draft_id: uuid.UUID | None,
    ) -> PostVoucherResult:
        started = time.perf_counter()
        payload = voucher_builder.build(ctx, request)
        plan = inventory_engine.plan(ctx, payload.movements, payload.pending_items)
        voucher_builder.add_valuation_entries(ctx, payload, plan)
        self._validate_entries(payload)

        if draft_id is not None:
            row = ctx.vouchers.get(draft_id, for_update=True)
            if row is None:
                raise InvalidReference("voucher not found", voucher_id=draft_id)
            if row.status != "DRAFT":
                raise InvalidVoucherState("only draft vouchers can be posted", voucher_id=draft_id, status=row.status)
        else:
            row = Voucher(
                voucher_number=ctx.vouchers.next_number(VOUCHER_NUMBER_PREFIXES[payload.voucher_type]),
                voucher_type=payload.voucher_type,
                created_by=ctx.actor_user_id,
                branch_id=ctx.branch_id,
            )
            ctx.vouchers.add(row)

        self._fill_header(row, payload)
        row.payload_json = request.model_dump(mode="json")
        row.status = "POSTED"
        row.posted_at = utcnow()
        ctx.session.flush()

        materialize_pending_items(ctx, payload.pending_items)
        movements = inventory_engine.apply(ctx, plan, row.id)
        entries = ledger_service.post(ctx, row.id, payload.entries) if payload.entries else []

        bills_affected: list[uuid.UUID] = []
        on_account = Decimal("0")
        if payload.bill_type is not None:
            bill = billwise_tracker.open_bill(ctx, row, payload.bill_type, payload.bill_amount)
            if bill is not None:
                bills_affected.append(bill.id)
        if payload.settlement_bill_type is not None:
            outcome = billwise_tracker.allocate(
                ctx,
                row,
                payload.settlement_bill_type,
                payload.total_amount,
                payload.bill_allocations,
            )
            bills_affected.extend(outcome.bills_affected)
            on_account = outcome.on_account_amount

        result = self._to_result(row, entries, movements, bills_affected, on_account)
        ctx.session.commit()
        self._after_commit(ctx, row, "voucher.posted", started, len(entries), len(movements))
        return result

    def _reverse_once(
        self,
        ctx: TenantContext,
        voucher_id: uuid.UUID,
        reason: str,
        voucher_date: date | None,
    ) -> PostVoucherResult:
        started = time.perf_counter()
        original = ctx.vouchers.get(voucher_id, for_update=True)
        if original is None:
            raise InvalidReference("voucher not found", voucher_id=voucher_id)
        if original.status != "POSTED":
            raise InvalidVoucherState("only posted vouchers can be reversed", voucher_id=voucher_id, status=original.status)
        if original.reversal_of_id is not None:
            raise InvalidVoucherState("a reversal voucher cannot itself be reversed", voucher_id=voucher_id)

        swapped = [
            LedgerEntryInput(
                ledger_id=entry.ledger_id,
                debit_amount=entry.credit_amount,
                credit_amount=entry.debit_amount,
                narration=f"Reversal of {original.voucher_number}",
            )
            for entry in ctx.ledger_entries.for_voucher(original.id)
        ]
        if swapped:
            ledger_service.validate(swapped)
        plan = inventory_engine.plan(ctx, inventory_engine.reversal_requests(ctx.movements.for_voucher(original.id)))

        reversal = Voucher(
            voucher_number=ctx.vouchers.next_number(VOUCHER_NUMBER_PREFIXES[original.voucher_type]),
            voucher_type=original.voucher_type,
            voucher_date=voucher_date or original.voucher_date,
            status="POSTED",
            party_ledger_id=original.party_ledger_id,
            place_of_supply=original.place_of_supply,
            is_reverse_charge=original.is_reverse_charge,
            subtotal=original.subtotal,
            cgst_amount=original.cgst_amount,
            sgst_amount=original.sgst_amount,
            igst_amount=original.igst_amount,
            cess_amount=original.cess_amount,
            tds_amount=original.tds_amount,
            tcs_amount=original.tcs_amount,
            round_off=original.round_off,
            total_amount=original.total_amount,
            narration=reason,
            payload_json={"reason": reason, "reversal_of": str(original.id)},
            reversal_of_id=original.id,
            branch_id=ctx.branch_id,
            created_by=ctx.actor_user_id,
            posted_at=utcnow(),
        )
        ctx.vouchers.add(reversal)
        ctx.session.flush()

        bills_affected = billwise_tracker.reverse_allocations(ctx, original, reversal)
        movements = inventory_engine.apply(ctx, plan, reversal.id)
        entries = ledger_service.post(ctx, reversal.id, swapped) if swapped else []
        original.status = "REVERSED"
        ctx.session.flush()

        result = self._to_result(reversal, entries, movements, bills_affected, Decimal("0"))
        ctx.session.commit()
        audit.record(
            actor_user_id=ctx.actor_user_id,
            entity_type="vouchers.voucher",
            entity_id=str(original.id),
            action="voucher.reversed",
            before={"status": "POSTED"},
            after={"status": "REVERSED", "reversal_voucher_id": str(reversal.id)},
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
        )
        self._after_commit(ctx, reversal, "voucher.reversal_posted", started, len(entries), len(movements))
        return result

    @staticmethod
    def _validate_entries(payload: VoucherPayload) -> None:
        if payload.entries:
            ledger_service.validate(payload.entries)
        elif payload.voucher_type not in _STOCK_ONLY_TYPES:
            raise UnbalancedEntry(Decimal("0"), Decimal("0"), "voucher produced no ledger entries")

    @staticmethod
    def _fill_header(row: Voucher, payload: VoucherPayload) -> None:
        totals = payload.totals
        row.voucher_date = payload.voucher_date
        row.party_ledger_id = payload.party_ledger_id
        row.place_of_supply = payload.place_of_supply
        row.is_reverse_charge = payload.is_reverse_charge
        row.due_date = payload.due_date
        row.narration = payload.narration
        row.subtotal = totals.subtotal
        row.cgst_amount = totals.cgst
        row.sgst_amount = totals.sgst
        row.igst_amount = totals.igst
        row.cess_amount = totals.cess
        row.round_off = totals.round_off
        row.tds_amount = payload.tds_amount
        row.tcs_amount = payload.tcs_amount
        row.total_amount = payload.total_amount

    @staticmethod
    def _to_result(
        row: Voucher,
        entries: list[VoucherLedgerEntry],
        movements: list[StockMovement],
        bills_affected: list[uuid.UUID],
        on_account: Decimal,
    ) -> PostVoucherResult:
        return PostVoucherResult(
            voucher_id=row.id,
            voucher_number=row.voucher_number,
            voucher_type=row.voucher_type,
            status=row.status,
            total_amount=row.total_amount,
            ledger_entries=[VoucherLedgerEntryRead.model_validate(item) for item in entries],
            stock_movements=[StockMovementRead.model_validate(item) for item in movements],
            bills_affected=bills_affected,
            on_account_amount=on_account,
        )

    @staticmethod
    def _after_commit(
        ctx: TenantContext,
        row: Voucher,
        event_type: str,
        started: float,
        entry_count: int,
        movement_count: int,
    ) -> None:
        audit.record(
            actor_user_id=ctx.actor_user_id,
            entity_type="vouchers.voucher",
            entity_id=str(row.id),
            action=event_type,
            before=None,
            after={
                "voucher_number": row.voucher_number,
                "voucher_type": row.voucher_type,
                "total_amount": str(row.total_amount),
                "entry_count": entry_count,
                "movement_count": movement_count,
            },
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
        )
        events.publish(
            {
                "event_type": event_type,
                "voucher_id": str(row.id),
                "voucher_number": row.voucher_number,
                "voucher_type": row.voucher_type,
                "tenant_id": ctx.tenant_id,
                "company_code": ctx.company_code,
                "total_amount": str(row.total_amount),
                "correlation_id": ctx.correlation_id,
            }
        )
        logger.info(
            event_type,
            extra={
                "voucher_id": str(row.id),
                "voucher_number": row.voucher_number,
                "voucher_type": row.voucher_type,
                "tenant_id": ctx.tenant_id,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )


voucher_posting_service = VoucherPostingService()
