from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import IntegrityError

from ledgerflow import audit
from ledgerflow.core.config import get_settings
from ledgerflow.metrics import observe_ledger_entries_posted
from ledgerflow.platform.errors import ConfigurationError, InvalidReference, InvalidVoucherState, UnbalancedEntry
from ledgerflow.platform.ledger.models import Ledger, SystemLedgerCode, VoucherLedgerEntry
from ledgerflow.platform.ledger.schemas import LedgerCreate, LedgerEntryInput
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.ledger")

_CENT = Decimal("0.01")
_DEBIT_NATURES = {"ASSET", "EXPENSE"}


def q2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_signed(amount: Decimal, balance_type: str) -> Decimal:
    """Debit-positive signed balance from a magnitude and its side."""
    magnitude = Decimal(amount or 0)
    return -magnitude if balance_type == "credit" else magnitude


def from_signed(value: Decimal) -> tuple[Decimal, str]:
    """Magnitude and side for a debit-positive value; zero is stored as debit."""
    value = q2(value)
    if value < 0:
        return -value, "credit"
    return value, "debit"


def expected_balance_type(nature: str) -> str:
    return "debit" if nature in _DEBIT_NATURES else "credit"


def has_nature_mismatch(ledger: Ledger) -> bool:
    if ledger.allows_contra_balance or Decimal(ledger.current_balance) == 0:
        return False
    return ledger.balance_type != expected_balance_type(ledger.nature)


@dataclass(slots=True)
class LedgerService:
    """Ledger master maintenance and the double-entry posting engine."""

    def create_ledger(self, ctx: TenantContext, dto: LedgerCreate, *, commit: bool = True) -> Ledger:
        payload = dto.model_dump(mode="python")
        if payload["system_code"] is not None:
            try:
                payload["system_code"] = SystemLedgerCode(payload["system_code"]).value
            except ValueError:
                raise InvalidReference(f"unknown system ledger code {payload['system_code']}", system_code=payload["system_code"])

        ledger = Ledger(**payload)
        ledger.current_balance = q2(dto.opening_balance)
        ledger.balance_type = dto.opening_balance_type
        ctx.ledgers.add(ledger)
        try:
            ctx.session.flush()
        except IntegrityError:
            ctx.session.rollback()
            raise InvalidReference("ledger code or system code already exists", code=dto.code, system_code=dto.system_code)

        audit.record(
            actor_user_id=ctx.actor_user_id,
            entity_type="ledger.ledger",
            entity_id=str(ledger.id),
            action="ledger.created",
            before=None,
            after={"code": ledger.code, "system_code": ledger.system_code, "nature": ledger.nature},
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
        )
        if commit:
            ctx.session.commit()
        return ledger

    def get_ledger(self, ctx: TenantContext, ledger_id: uuid.UUID) -> Ledger:
        ledger = ctx.ledgers.get(ledger_id)
        if ledger is None:
            raise InvalidReference("ledger not found", ledger_id=ledger_id)
        return ledger

    def get_active_ledger(self, ctx: TenantContext, ledger_id: uuid.UUID, *, allow_system: bool = True) -> Ledger:
        ledger = self.get_ledger(ctx, ledger_id)
        if not ledger.is_active:
            raise InvalidReference("ledger is inactive", ledger_id=ledger_id)
        if not allow_system and ledger.is_system_generated:
            raise InvalidReference(
                "manual postings to system-generated ledgers are not allowed",
                ledger_id=ledger_id,
                system_code=ledger.system_code,
            )
        return ledger

    def get_by_system_code(self, ctx: TenantContext, system_code: SystemLedgerCode) -> Ledger:
        ledger = ctx.ledgers.by_system_code(system_code.value)
        if ledger is None or not ledger.is_active:
            raise ConfigurationError(
                f"system ledger {system_code.value} is not configured",
                system_code=system_code.value,
            )
        return ledger

    def rename_ledger(self, ctx: TenantContext, ledger_id: uuid.UUID, name: str) -> Ledger:
        ledger = self.get_ledger(ctx, ledger_id)
        self._ensure_unreferenced_system_ledger(ctx, ledger, "rename")
        before = {"name": ledger.name}
        ledger.name = name
        ctx.session.flush()
        audit.record(
            actor_user_id=ctx.actor_user_id,
            entity_type="ledger.ledger",
            entity_id=str(ledger.id),
            action="ledger.renamed",
            before=before,
            after={"name": name},
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
        )
        ctx.session.commit()
        return ledger

    def delete_ledger(self, ctx: TenantContext, ledger_id: uuid.UUID) -> None:
        ledger = self.get_ledger(ctx, ledger_id)
        self._ensure_unreferenced_system_ledger(ctx, ledger, "delete")
        if ctx.ledger_entries.references_ledger(ledger.id):
            raise InvalidVoucherState("ledger has posted entries and cannot be deleted", ledger_id=ledger_id)
        ctx.session.delete(ledger)
        audit.record(
            actor_user_id=ctx.actor_user_id,
            entity_type="ledger.ledger",
            entity_id=str(ledger_id),
            action="ledger.deleted",
            before={"code": ledger.code},
            after=None,
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            company_code=ctx.company_code,
        )
        ctx.session.commit()

    def validate(self, entries: Sequence[LedgerEntryInput]) -> tuple[Decimal, Decimal]:
        """Check double-entry balance without touching the database."""
        epsilon = get_settings().posting_epsilon
        debit_total = sum((q2(entry.debit_amount) for entry in entries), Decimal("0"))
        credit_total = sum((q2(entry.credit_amount) for entry in entries), Decimal("0"))
        if len(entries) < 2:
            raise UnbalancedEntry(debit_total, credit_total, "a voucher needs at least two ledger entries")
        if abs(debit_total - credit_total) > epsilon:
            raise UnbalancedEntry(debit_total, credit_total)
        return debit_total, credit_total

    def post(
        self,
        ctx: TenantContext,
        voucher_id: uuid.UUID,
        entries: Sequence[LedgerEntryInput],
    ) -> list[VoucherLedgerEntry]:
        """Insert entries and move running balances inside the caller's transaction."""
        self.validate(entries)

        locked = ctx.ledgers.lock_many(entry.ledger_id for entry in entries)
        missing = {entry.ledger_id for entry in entries} - set(locked)
        if missing:
            raise InvalidReference("one or more ledgers not found", ledger_ids=sorted(str(item) for item in missing))

        net_by_ledger: dict[uuid.UUID, Decimal] = defaultdict(lambda: Decimal("0"))
        rows: list[VoucherLedgerEntry] = []
        for line_no, entry in enumerate(entries, start=1):
            row = VoucherLedgerEntry(
                voucher_id=voucher_id,
                ledger_id=entry.ledger_id,
                line_no=line_no,
                debit_amount=q2(entry.debit_amount),
                credit_amount=q2(entry.credit_amount),
                narration=entry.narration,
            )
            ctx.ledger_entries.add(row)
            rows.append(row)
            net_by_ledger[entry.ledger_id] += q2(entry.debit_amount) - q2(entry.credit_amount)

        for ledger_id in sorted(net_by_ledger, key=str):
            ledger = locked[ledger_id]
            prior = to_signed(ledger.current_balance, ledger.balance_type)
            ledger.current_balance, ledger.balance_type = from_signed(prior + net_by_ledger[ledger_id])
            if has_nature_mismatch(ledger):
                logger.warning(
                    "ledger.balance_nature_mismatch",
                    extra={
                        "ledger_id": str(ledger.id),
                        "voucher_id": str(voucher_id),
                        "tenant_id": ctx.tenant_id,
                        "balance_type": ledger.balance_type,
                    },
                )

        ctx.session.flush()
        observe_ledger_entries_posted(len(rows))
        return rows

    @staticmethod
    def _ensure_unreferenced_system_ledger(ctx: TenantContext, ledger: Ledger, action: str) -> None:
        if ledger.is_system_generated and ctx.ledger_entries.references_ledger(ledger.id):
            raise InvalidVoucherState(
                f"cannot {action} a system-generated ledger that has posted entries",
                ledger_id=ledger.id,
                system_code=ledger.system_code,
            )


ledger_service = LedgerService()
