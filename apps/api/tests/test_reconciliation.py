from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow import audit
from ledgerflow.business.vouchers.service import voucher_posting_service
from ledgerflow.core.celery_app import build_beat_schedule
from ledgerflow.core.config import get_settings
from ledgerflow.core.database import Base
from ledgerflow.platform.ledger.models import Ledger
from ledgerflow.platform.ledger.reconciliation import reconciliation_job
from ledgerflow.platform.ledger.schemas import LedgerCreate
from ledgerflow.platform.ledger.service import ledger_service
from ledgerflow.tasks import run_reconciliation
from ledgerflow.tenancy import TenantContext


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


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


def _journal(ctx: TenantContext, debit: Ledger, credit: Ledger, amount: str) -> None:
    voucher_posting_service.post_voucher(
        ctx,
        {
            "voucher_type": "JOURNAL",
            "voucher_date": "2026-04-01",
            "entries": [
                {"ledger_id": str(debit.id), "debit_amount": amount},
                {"ledger_id": str(credit.id), "credit_amount": amount},
            ],
        },
    )


def _tamper(ctx: TenantContext, ledger: Ledger, balance: str, balance_type: str) -> None:
    ledger.current_balance = Decimal(balance)
    ledger.balance_type = balance_type
    ctx.session.commit()


def test_consistent_books_need_no_correction(ctx: TenantContext) -> None:
    bank = _ledger(ctx, "BANK", "ASSET", opening_balance=Decimal("1000"))
    capital = _ledger(ctx, "CAPITAL", "EQUITY", opening_balance=Decimal("1000"), opening_balance_type="credit")
    _journal(ctx, bank, capital, "500")

    report = reconciliation_job.reconcile(ctx)

    assert report.ledgers_checked == 2
    assert report.ledgers_corrected == 0
    assert report.corrections == []
    assert report.nature_mismatches == []
    assert report.finished_at is not None
    assert audit.audit_entries[-1]["action"] != "ledger.reconciled"


def test_dry_run_reports_drift_without_writing(ctx: TenantContext) -> None:
    bank = _ledger(ctx, "BANK", "ASSET", opening_balance=Decimal("1000"))
    capital = _ledger(ctx, "CAPITAL", "EQUITY", opening_balance=Decimal("1000"), opening_balance_type="credit")
    _journal(ctx, bank, capital, "500")
    _tamper(ctx, bank, "999", "debit")

    report = reconciliation_job.reconcile(ctx, apply=False)

    assert report.applied is False
    assert report.ledgers_corrected == 1
    change = report.corrections[0]
    assert change.ledger_id == bank.id
    assert change.before_balance == Decimal("999")
    assert change.after_balance == Decimal("1500.00")
    assert change.after_type == "debit"
    assert ledger_service.get_ledger(ctx, bank.id).current_balance == Decimal("999")


def test_apply_repairs_drift_and_is_idempotent(ctx: TenantContext) -> None:
    bank = _ledger(ctx, "BANK", "ASSET", opening_balance=Decimal("1000"))
    capital = _ledger(ctx, "CAPITAL", "EQUITY", opening_balance=Decimal("1000"), opening_balance_type="credit")
    _journal(ctx, bank, capital, "500")
    _tamper(ctx, bank, "999", "debit")
    _tamper(ctx, capital, "1500", "debit")

    first = reconciliation_job.reconcile(ctx)
    second = reconciliation_job.reconcile(ctx)

    assert first.ledgers_corrected == 2
    assert {change.code for change in first.corrections} == {"BANK", "CAPITAL"}
    assert second.ledgers_corrected == 0

    repaired_bank = ledger_service.get_ledger(ctx, bank.id)
    repaired_capital = ledger_service.get_ledger(ctx, capital.id)
    assert (repaired_bank.current_balance, repaired_bank.balance_type) == (Decimal("1500.00"), "debit")
    assert (repaired_capital.current_balance, repaired_capital.balance_type) == (Decimal("1500.00"), "credit")
    reconciled = [item for item in audit.audit_entries if item["action"] == "ledger.reconciled"]
    assert len(reconciled) == 1
    assert reconciled[0]["after"] == {"corrected": 2, "checked": 2}


def test_ledgers_on_the_wrong_side_are_reported(ctx: TenantContext) -> None:
    bank = _ledger(ctx, "BANK", "ASSET")
    capital = _ledger(ctx, "CAPITAL", "EQUITY")
    suspense = _ledger(ctx, "SUSPENSE", "ASSET", allows_contra_balance=True)
    _journal(ctx, capital, bank, "500")
    _journal(ctx, capital, suspense, "200")

    report = reconciliation_job.reconcile(ctx)

    assert report.ledgers_corrected == 0
    assert set(report.nature_mismatches) == {bank.id, capital.id}


def test_other_companies_are_not_touched(ctx: TenantContext, db_session: Session) -> None:
    _ledger(ctx, "BANK", "ASSET")
    other_ctx = TenantContext(session=db_session, tenant_id="tenant-a", company_code="C2")
    foreign = _ledger(other_ctx, "BANK", "ASSET", opening_balance=Decimal("10"))
    _tamper(other_ctx, foreign, "99", "debit")

    report = reconciliation_job.reconcile(ctx)

    assert report.ledgers_checked == 1
    assert report.ledgers_corrected == 0
    assert ledger_service.get_ledger(other_ctx, foreign.id).current_balance == Decimal("99")


def test_run_reconciliation_uses_its_own_session(ctx: TenantContext, session_factory: sessionmaker[Session]) -> None:
    bank = _ledger(ctx, "BANK", "ASSET", opening_balance=Decimal("250"))
    _tamper(ctx, bank, "0", "debit")

    result = run_reconciliation(session_factory, "tenant-a", "C1")

    assert result["tenant_id"] == "tenant-a"
    assert result["ledgers_corrected"] == 1
    assert result["corrections"][0]["after_balance"] == "250.00"

    ctx.session.expire_all()
    assert ledger_service.get_ledger(ctx, bank.id).current_balance == Decimal("250.00")


def test_beat_schedule_has_one_entry_per_scope() -> None:
    schedule = build_beat_schedule(15, "tenant-a:C1, tenant-b:HQ, broken")

    assert schedule == {
        "reconcile-tenant-a-C1": {
            "task": "ledgerflow.tasks.reconcile_ledger_balances",
            "schedule": 900.0,
            "args": ("tenant-a", "C1"),
        },
        "reconcile-tenant-b-HQ": {
            "task": "ledgerflow.tasks.reconcile_ledger_balances",
            "schedule": 900.0,
            "args": ("tenant-b", "HQ"),
        },
    }
    assert build_beat_schedule(0, "tenant-a:C1") == {}
