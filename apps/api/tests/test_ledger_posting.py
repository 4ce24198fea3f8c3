from __future__ import annotations

import logging
import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow import audit
from ledgerflow.business.vouchers.models import Voucher
from ledgerflow.core.config import get_settings
from ledgerflow.core.database import Base
from ledgerflow.platform.errors import InvalidReference, InvalidVoucherState, UnbalancedEntry
from ledgerflow.platform.ledger.models import Ledger, SystemLedgerCode, VoucherLedgerEntry
from ledgerflow.platform.ledger.schemas import LedgerCreate, LedgerEntryInput
from ledgerflow.platform.ledger.seed import SYSTEM_LEDGER_CHART, seed_system_ledgers
from ledgerflow.platform.ledger.service import from_signed, ledger_service, to_signed
from ledgerflow.tenancy import TenantContext


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    get_settings.cache_clear()


@pytest.fixture()
def ctx(db_session: Session) -> TenantContext:
    return TenantContext(session=db_session, tenant_id="tenant-a", company_code="C1", actor_user_id="user-1")


def _ledger(ctx: TenantContext, code: str, nature: str, **kwargs: object) -> Ledger:
    return ledger_service.create_ledger(ctx, LedgerCreate(name=code, code=code, nature=nature, **kwargs))


def _voucher(ctx: TenantContext, number: str) -> Voucher:
    voucher = Voucher(
        voucher_number=number,
        voucher_type="JOURNAL",
        voucher_date=date(2026, 4, 1),
        status="POSTED",
        created_by="user-1",
    )
    ctx.vouchers.add(voucher)
    ctx.session.flush()
    return voucher


def _entry(ledger: Ledger, debit: str = "0", credit: str = "0") -> LedgerEntryInput:
    return LedgerEntryInput(ledger_id=ledger.id, debit_amount=Decimal(debit), credit_amount=Decimal(credit))


def test_signed_balance_helpers_store_zero_as_debit() -> None:
    assert to_signed(Decimal("150"), "credit") == Decimal("-150")
    assert to_signed(Decimal("150"), "debit") == Decimal("150")
    assert from_signed(Decimal("-20.005")) == (Decimal("20.01"), "credit")
    assert from_signed(Decimal("0")) == (Decimal("0.00"), "debit")


def test_entry_input_must_be_single_sided() -> None:
    with pytest.raises(ValueError):
        LedgerEntryInput(ledger_id=uuid.uuid4(), debit_amount=Decimal("10"), credit_amount=Decimal("10"))
    with pytest.raises(ValueError):
        LedgerEntryInput(ledger_id=uuid.uuid4())


def test_validate_rejects_single_entry_and_imbalance(ctx: TenantContext) -> None:
    cash = _ledger(ctx, "CASH", "ASSET")
    capital = _ledger(ctx, "CAPITAL", "EQUITY")

    with pytest.raises(UnbalancedEntry):
        ledger_service.validate([_entry(cash, debit="100")])

    with pytest.raises(UnbalancedEntry) as exc_info:
        ledger_service.validate([_entry(cash, debit="10000"), _entry(capital, credit="9999.50")])
    assert exc_info.value.debit_total == Decimal("10000.00")
    assert exc_info.value.credit_total == Decimal("9999.50")


def test_validate_accepts_difference_within_epsilon(ctx: TenantContext) -> None:
    cash = _ledger(ctx, "CASH", "ASSET")
    capital = _ledger(ctx, "CAPITAL", "EQUITY")

    debit_total, credit_total = ledger_service.validate([_entry(cash, debit="100.00"), _entry(capital, credit="99.99")])
    assert debit_total - credit_total == Decimal("0.01")


def test_post_moves_running_balances_by_signed_amount(ctx: TenantContext) -> None:
    cash = _ledger(ctx, "CASH", "ASSET", opening_balance=Decimal("1000"), opening_balance_type="debit")
    capital = _ledger(ctx, "CAPITAL", "EQUITY", opening_balance=Decimal("1000"), opening_balance_type="credit")
    voucher = _voucher(ctx, "JRN-C1-00001")

    rows = ledger_service.post(ctx, voucher.id, [_entry(cash, debit="500"), _entry(capital, credit="500")])
    ctx.session.commit()

    assert [row.line_no for row in rows] == [1, 2]
    assert cash.current_balance == Decimal("1500.00")
    assert cash.balance_type == "debit"
    assert capital.current_balance == Decimal("1500.00")
    assert capital.balance_type == "credit"

    stored = ctx.session.scalars(select(VoucherLedgerEntry).where(VoucherLedgerEntry.voucher_id == voucher.id)).all()
    assert len(stored) == 2
    assert all(row.tenant_id == "tenant-a" and row.company_code == "C1" for row in stored)


def test_post_flips_side_and_logs_nature_mismatch(ctx: TenantContext, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    cash = _ledger(ctx, "CASH", "ASSET", opening_balance=Decimal("100"))
    expense = _ledger(ctx, "RENT", "EXPENSE")
    voucher = _voucher(ctx, "JRN-C1-00001")

    ledger_service.post(ctx, voucher.id, [_entry(expense, debit="250"), _entry(cash, credit="250")])

    assert cash.current_balance == Decimal("150.00")
    assert cash.balance_type == "credit"
    records = [record for record in caplog.records if record.getMessage() == "ledger.balance_nature_mismatch"]
    assert records
    assert getattr(records[-1], "ledger_id", None) == str(cash.id)


def test_post_rejects_ledger_from_another_company(ctx: TenantContext, db_session: Session) -> None:
    cash = _ledger(ctx, "CASH", "ASSET")
    other_ctx = TenantContext(session=db_session, tenant_id="tenant-a", company_code="C2")
    foreign = _ledger(other_ctx, "CASH", "ASSET")
    voucher = _voucher(ctx, "JRN-C1-00001")

    with pytest.raises(InvalidReference):
        ledger_service.post(ctx, voucher.id, [_entry(cash, debit="10"), _entry(foreign, credit="10")])


def test_create_ledger_rejects_unknown_and_duplicate_system_codes(ctx: TenantContext) -> None:
    with pytest.raises(InvalidReference):
        _ledger(ctx, "X", "ASSET", system_code="NOT_A_CODE")

    _ledger(ctx, "ROUND", "EXPENSE", system_code="ROUND_OFF", is_system_generated=True)
    with pytest.raises(InvalidReference):
        _ledger(ctx, "ROUND-2", "EXPENSE", system_code="ROUND_OFF", is_system_generated=True)

    created = [item for item in audit.audit_entries if item["action"] == "ledger.created"]
    assert len(created) == 1


def test_seed_system_ledgers_is_idempotent(ctx: TenantContext) -> None:
    first = seed_system_ledgers(ctx)
    second = seed_system_ledgers(ctx)

    assert len(first) == len(SYSTEM_LEDGER_CHART) == len(SystemLedgerCode)
    assert second == []
    stock = ledger_service.get_by_system_code(ctx, SystemLedgerCode.STOCK_IN_HAND)
    assert stock.nature == "ASSET"
    assert stock.is_system_generated


def test_system_ledger_with_entries_cannot_be_renamed_or_deleted(ctx: TenantContext) -> None:
    seed_system_ledgers(ctx)
    round_off = ledger_service.get_by_system_code(ctx, SystemLedgerCode.ROUND_OFF)
    cash = _ledger(ctx, "CASH", "ASSET")

    renamed = ledger_service.rename_ledger(ctx, round_off.id, "Rounding")
    assert renamed.name == "Rounding"

    voucher = _voucher(ctx, "JRN-C1-00001")
    ledger_service.post(ctx, voucher.id, [_entry(round_off, debit="0.40"), _entry(cash, credit="0.40")])
    ctx.session.commit()

    with pytest.raises(InvalidVoucherState):
        ledger_service.rename_ledger(ctx, round_off.id, "Something else")
    with pytest.raises(InvalidVoucherState):
        ledger_service.delete_ledger(ctx, round_off.id)
    with pytest.raises(InvalidVoucherState):
        ledger_service.delete_ledger(ctx, cash.id)


def test_unused_ledger_can_be_deleted(ctx: TenantContext) -> None:
    ledger = _ledger(ctx, "TEMP", "EXPENSE")

    ledger_service.delete_ledger(ctx, ledger.id)

    assert ctx.ledgers.get(ledger.id) is None
    with pytest.raises(InvalidReference):
        ledger_service.get_ledger(ctx, ledger.id)
