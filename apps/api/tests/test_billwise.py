from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow.business.billwise.service import billwise_tracker
from ledgerflow.business.vouchers.service import voucher_posting_service
from ledgerflow.core.config import get_settings
from ledgerflow.core.database import Base
from ledgerflow.platform.errors import InvalidAllocation, InvalidReference
from ledgerflow.platform.ledger.models import Ledger
from ledgerflow.platform.ledger.schemas import LedgerCreate
from ledgerflow.platform.ledger.seed import seed_system_ledgers
from ledgerflow.platform.ledger.service import ledger_service
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
def clear_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def ctx(db_session: Session) -> TenantContext:
    context = TenantContext(
        session=db_session,
        tenant_id="tenant-a",
        company_code="C1",
        actor_user_id="user-1",
        company_state="Maharashtra",
    )
    seed_system_ledgers(context)
    return context


def _ledger(ctx: TenantContext, code: str, nature: str) -> Ledger:
    return ledger_service.create_ledger(ctx, LedgerCreate(name=code, code=code, nature=nature))


def _sale(ctx: TenantContext, customer: Ledger, amount: str, voucher_date: str) -> uuid.UUID:
    result = voucher_posting_service.post_voucher(
        ctx,
        {
            "voucher_type": "SALES",
            "voucher_date": voucher_date,
            "party_ledger_id": str(customer.id),
            "lines": [{"description": "Service", "quantity": "1", "rate": amount, "affects_stock": False}],
        },
    )
    return result.bills_affected[0]


def _settle(
    ctx: TenantContext,
    voucher_type: str,
    party: Ledger,
    bank: Ledger,
    amount: str,
    allocations: list[dict[str, str]] | None = None,
):
    return voucher_posting_service.post_voucher(
        ctx,
        {
            "voucher_type": voucher_type,
            "voucher_date": "2026-04-20",
            "party_ledger_id": str(party.id),
            "bank_ledger_id": str(bank.id),
            "amount": amount,
            "bill_allocations": allocations or [],
        },
    )


def _pending(ctx: TenantContext, bill_id: uuid.UUID) -> Decimal:
    bill = ctx.bills.get(bill_id)
    assert bill is not None
    return Decimal(bill.pending_amount)


def test_receipt_settles_oldest_bill_date_first(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    later = _sale(ctx, customer, "3000", "2026-04-05")
    earlier = _sale(ctx, customer, "5000", "2026-04-01")

    result = _settle(ctx, "RECEIPT", customer, bank, "6000")

    assert result.bills_affected == [earlier, later]
    assert result.on_account_amount == Decimal("0")
    earlier_bill = ctx.bills.get(earlier)
    assert earlier_bill is not None
    assert earlier_bill.is_open is False
    assert earlier_bill.is_fully_paid is True
    assert _pending(ctx, later) == Decimal("2000.00")
    assert [bill.id for bill in billwise_tracker.list_open_bills(ctx, customer.id)] == [later]


def test_excess_receipt_stays_on_account(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    bill_id = _sale(ctx, customer, "3000", "2026-04-01")

    result = _settle(ctx, "RECEIPT", customer, bank, "10000")

    assert result.bills_affected == [bill_id]
    assert result.on_account_amount == Decimal("7000.00")
    assert _pending(ctx, bill_id) == Decimal("0")
    customer_row = ledger_service.get_ledger(ctx, customer.id)
    assert customer_row.current_balance == Decimal("7000.00")
    assert customer_row.balance_type == "credit"


def test_receipt_without_open_bills_is_fully_on_account(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")

    result = _settle(ctx, "RECEIPT", customer, bank, "2500")

    assert result.bills_affected == []
    assert result.on_account_amount == Decimal("2500.00")


def test_explicit_allocation_targets_only_the_named_bill(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    older = _sale(ctx, customer, "5000", "2026-04-01")
    newer = _sale(ctx, customer, "3000", "2026-04-05")

    result = _settle(ctx, "RECEIPT", customer, bank, "1500", [{"bill_id": str(newer), "amount": "1000"}])

    assert result.bills_affected == [newer]
    assert result.on_account_amount == Decimal("500.00")
    assert _pending(ctx, newer) == Decimal("2000.00")
    assert _pending(ctx, older) == Decimal("5000.00")


def test_payment_settles_purchase_bill(ctx: TenantContext) -> None:
    supplier = _ledger(ctx, "SUP-1", "LIABILITY")
    bank = _ledger(ctx, "BANK", "ASSET")
    purchase = voucher_posting_service.post_voucher(
        ctx,
        {
            "voucher_type": "PURCHASE",
            "voucher_date": "2026-04-01",
            "party_ledger_id": str(supplier.id),
            "lines": [{"description": "Freight", "quantity": "1", "rate": "4000", "affects_stock": False}],
        },
    )
    bill_id = purchase.bills_affected[0]

    payment = _settle(ctx, "PAYMENT", supplier, bank, "4000")

    assert payment.bills_affected == [bill_id]
    bill = ctx.bills.get(bill_id)
    assert bill is not None
    assert bill.bill_type == "PAYABLE"
    assert bill.is_fully_paid is True
    assert ledger_service.get_ledger(ctx, supplier.id).current_balance == Decimal("0.00")


def test_explicit_allocations_over_voucher_amount_are_rejected(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    first = _sale(ctx, customer, "5000", "2026-04-01")
    second = _sale(ctx, customer, "3000", "2026-04-02")

    with pytest.raises(InvalidAllocation):
        _settle(
            ctx,
            "RECEIPT",
            customer,
            bank,
            "1000",
            [{"bill_id": str(first), "amount": "800"}, {"bill_id": str(second), "amount": "800"}],
        )

    assert _pending(ctx, first) == Decimal("5000.00")
    assert ledger_service.get_ledger(ctx, bank.id).current_balance == Decimal("0.00")


def test_explicit_allocation_over_bill_pending_is_rejected(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    bill_id = _sale(ctx, customer, "500", "2026-04-01")

    with pytest.raises(InvalidAllocation) as exc_info:
        _settle(ctx, "RECEIPT", customer, bank, "1000", [{"bill_id": str(bill_id), "amount": "600"}])

    assert exc_info.value.context["bill_id"] == bill_id
    assert _pending(ctx, bill_id) == Decimal("500.00")


def test_explicit_allocation_rejects_foreign_and_unknown_bills(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    other = _ledger(ctx, "CUST-2", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    others_bill = _sale(ctx, other, "500", "2026-04-01")

    with pytest.raises(InvalidAllocation):
        _settle(ctx, "RECEIPT", customer, bank, "100", [{"bill_id": str(others_bill), "amount": "100"}])
    with pytest.raises(InvalidReference):
        _settle(ctx, "RECEIPT", customer, bank, "100", [{"bill_id": str(uuid.uuid4()), "amount": "100"}])


def test_settled_bill_cannot_be_allocated_again(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    bill_id = _sale(ctx, customer, "500", "2026-04-01")
    _settle(ctx, "RECEIPT", customer, bank, "500")

    with pytest.raises(InvalidAllocation):
        _settle(ctx, "RECEIPT", customer, bank, "100", [{"bill_id": str(bill_id), "amount": "100"}])


def test_reversing_payment_that_closed_bill_within_tolerance_restores_full_pending(ctx: TenantContext) -> None:
    customer = _ledger(ctx, "CUST-1", "ASSET")
    bank = _ledger(ctx, "BANK", "ASSET")
    bill_id = _sale(ctx, customer, "10000", "2026-04-01")

    receipt = _settle(ctx, "RECEIPT", customer, bank, "9999.99")

    bill = ctx.bills.get(bill_id)
    assert bill is not None
    assert bill.is_open is False
    assert _pending(ctx, bill_id) == Decimal("0")

    voucher_posting_service.reverse_voucher(ctx, receipt.voucher_id, "cheque bounced")

    bill = ctx.bills.get(bill_id)
    assert bill is not None
    assert bill.is_open is True
    assert bill.is_fully_paid is False
    assert _pending(ctx, bill_id) == Decimal("10000.00")
    settled = sum((Decimal(item.allocated_amount) for item in ctx.allocations.for_bill(bill_id)), Decimal("0"))
    assert settled == Decimal("0")
