from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow import audit, events
from ledgerflow.core.auth import AuthUser, get_current_user
from ledgerflow.core.config import get_settings
from ledgerflow.core.database import Base, get_db
from ledgerflow.main import app

HEADERS = {"x-tenant-id": "tenant-a", "x-company-code": "C1", "x-company-state": "Maharashtra"}


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
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="accountant-1", roles=["user"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _setup_books(client: TestClient) -> dict[str, str]:
    seeded = client.post("/ledgers/system-ledgers", headers=HEADERS)
    assert seeded.status_code == 201

    ids: dict[str, str] = {}
    for code, nature, extra in (
        ("SUP-1", "LIABILITY", {"state": "Maharashtra"}),
        ("CUST-1", "ASSET", {"state": "Maharashtra"}),
        ("BANK", "ASSET", {"opening_balance": "50000"}),
    ):
        created = client.post("/ledgers", json={"name": code, "code": code, "nature": nature, **extra}, headers=HEADERS)
        assert created.status_code == 201
        ids[code] = created.json()["id"]

    for code in ("W1", "W2"):
        warehouse = client.post("/inventory/warehouses", json={"name": code, "code": code}, headers=HEADERS)
        assert warehouse.status_code == 201
        ids[code] = warehouse.json()["id"]
    return ids


def _purchase_payload(ids: dict[str, str], quantity: str, rate: str, gst_rate: str) -> dict[str, object]:
    return {
        "voucher_type": "PURCHASE",
        "voucher_date": "2026-04-01",
        "party_ledger_id": ids["SUP-1"],
        "lines": [
            {"item_name": "Rice", "quantity": quantity, "rate": rate, "gst_rate": gst_rate, "warehouse_id": ids["W1"]}
        ],
    }


def test_purchase_voucher_is_posted(client: TestClient) -> None:
    ids = _setup_books(client)

    response = client.post("/vouchers", json=_purchase_payload(ids, "25670", "55.50", "5"), headers=HEADERS)

    assert response.status_code == 201
    body = response.json()
    assert body["voucher_number"] == "PUR-C1-00001"
    assert body["status"] == "POSTED"
    assert Decimal(body["total_amount"]) == Decimal("1495919.25")
    assert len(body["ledger_entries"]) == 4
    assert len(body["stock_movements"]) == 1
    assert len(body["bills_affected"]) == 1

    supplier = client.get(f"/ledgers/{ids['SUP-1']}", headers=HEADERS)
    assert supplier.status_code == 200
    assert Decimal(supplier.json()["current_balance"]) == Decimal("1495919.25")
    assert supplier.json()["balance_type"] == "credit"

    bills = client.get("/bills/open", params={"party_ledger_id": ids["SUP-1"], "bill_type": "PAYABLE"}, headers=HEADERS)
    assert bills.status_code == 200
    assert [Decimal(item["pending_amount"]) for item in bills.json()] == [Decimal("1495919.25")]

    fetched = client.get(f"/vouchers/{body['voucher_id']}", headers=HEADERS)
    assert fetched.status_code == 200
    assert fetched.json()["created_by"] == "accountant-1"
    assert len(fetched.json()["entries"]) == 4


def test_insufficient_stock_maps_to_conflict(client: TestClient) -> None:
    ids = _setup_books(client)
    purchase = client.post("/vouchers", json=_purchase_payload(ids, "50", "10", "0"), headers=HEADERS)
    assert purchase.status_code == 201
    item_id = purchase.json()["stock_movements"][0]["inventory_item_id"]

    response = client.post(
        "/vouchers",
        json={
            "voucher_type": "TRANSFER",
            "voucher_date": "2026-04-02",
            "lines": [
                {"inventory_item_id": item_id, "from_warehouse_id": ids["W1"], "to_warehouse_id": ids["W2"], "quantity": "100"}
            ],
        },
        headers=HEADERS,
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["kind"] == "InsufficientStock"
    assert Decimal(detail["context"]["available"]) == Decimal("50")
    assert Decimal(detail["context"]["requested"]) == Decimal("100")


def test_unbalanced_journal_maps_to_unprocessable(client: TestClient) -> None:
    ids = _setup_books(client)

    response = client.post(
        "/vouchers",
        json={
            "voucher_type": "JOURNAL",
            "voucher_date": "2026-04-02",
            "entries": [
                {"ledger_id": ids["BANK"], "debit_amount": "10000"},
                {"ledger_id": ids["CUST-1"], "credit_amount": "9999.50"},
            ],
        },
        headers=HEADERS,
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["kind"] == "UnbalancedEntry"
    assert Decimal(detail["context"]["debit_total"]) == Decimal("10000")
    assert Decimal(detail["context"]["credit_total"]) == Decimal("9999.50")


def test_receipt_leaves_remaining_amount_pending(client: TestClient) -> None:
    ids = _setup_books(client)
    sale = client.post(
        "/vouchers",
        json={
            "voucher_type": "SALES",
            "voucher_date": "2026-04-01",
            "party_ledger_id": ids["CUST-1"],
            "lines": [{"description": "Consulting", "quantity": "1", "rate": "10000", "affects_stock": False}],
        },
        headers=HEADERS,
    )
    assert sale.status_code == 201

    receipt = client.post(
        "/vouchers",
        json={
            "voucher_type": "RECEIPT",
            "voucher_date": "2026-04-10",
            "party_ledger_id": ids["CUST-1"],
            "bank_ledger_id": ids["BANK"],
            "amount": "6000",
        },
        headers=HEADERS,
    )
    assert receipt.status_code == 201
    assert receipt.json()["bills_affected"] == sale.json()["bills_affected"]

    bills = client.get("/bills/open", params={"party_ledger_id": ids["CUST-1"]}, headers=HEADERS)
    assert bills.status_code == 200
    assert len(bills.json()) == 1
    assert Decimal(bills.json()[0]["pending_amount"]) == Decimal("4000.00")
    assert bills.json()[0]["is_open"] is True


def test_draft_post_and_reverse_flow(client: TestClient) -> None:
    ids = _setup_books(client)

    draft = client.post(
        "/vouchers/drafts",
        json={
            "voucher_type": "CONTRA",
            "voucher_date": "2026-04-03",
            "from_ledger_id": ids["BANK"],
            "to_ledger_id": ids["CUST-1"],
            "amount": "100",
        },
        headers=HEADERS,
    )
    assert draft.status_code == 201
    assert draft.json()["status"] == "DRAFT"
    voucher_id = draft.json()["id"]

    posted = client.post(f"/vouchers/{voucher_id}/post", headers=HEADERS)
    assert posted.status_code == 200
    assert posted.json()["voucher_number"] == "CON-C1-00001"

    again = client.post(f"/vouchers/{voucher_id}/post", headers=HEADERS)
    assert again.status_code == 409
    assert again.json()["detail"]["kind"] == "InvalidVoucherState"

    reversed_response = client.post(f"/vouchers/{voucher_id}/reverse", json={"reason": "posted to wrong ledger"}, headers=HEADERS)
    assert reversed_response.status_code == 201

    bank = client.get(f"/ledgers/{ids['BANK']}", headers=HEADERS)
    assert Decimal(bank.json()["current_balance"]) == Decimal("50000.00")
    assert client.get(f"/vouchers/{voucher_id}", headers=HEADERS).json()["status"] == "REVERSED"

    reverse_twice = client.post(f"/vouchers/{voucher_id}/reverse", json={"reason": "again"}, headers=HEADERS)
    assert reverse_twice.status_code == 409


def test_unknown_references_map_to_not_found(client: TestClient) -> None:
    ids = _setup_books(client)

    missing_voucher = client.get(f"/vouchers/{uuid.uuid4()}", headers=HEADERS)
    assert missing_voucher.status_code == 404
    assert missing_voucher.json()["detail"]["kind"] == "InvalidReference"

    unknown_party = client.post(
        "/vouchers",
        json={
            "voucher_type": "PAYMENT",
            "voucher_date": "2026-04-02",
            "party_ledger_id": str(uuid.uuid4()),
            "bank_ledger_id": ids["BANK"],
            "amount": "10",
        },
        headers=HEADERS,
    )
    assert unknown_party.status_code == 404


def test_missing_system_ledger_maps_to_unprocessable(client: TestClient) -> None:
    supplier = client.post("/ledgers", json={"name": "Supplier", "code": "SUP", "nature": "LIABILITY"}, headers=HEADERS)
    assert supplier.status_code == 201

    response = client.post(
        "/vouchers",
        json={
            "voucher_type": "PURCHASE",
            "voucher_date": "2026-04-01",
            "party_ledger_id": supplier.json()["id"],
            "lines": [{"description": "Freight", "quantity": "1", "rate": "100", "affects_stock": False}],
        },
        headers=HEADERS,
    )

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "ConfigurationError"
    assert response.json()["detail"]["context"]["system_code"] == "PURCHASES"


def test_request_validation_failures(client: TestClient) -> None:
    no_scope = client.post("/vouchers", json={"voucher_type": "JOURNAL"}, headers={"x-tenant-id": "tenant-a"})
    assert no_scope.status_code == 422

    bad_type = client.post("/vouchers", json={"voucher_type": "BARTER", "voucher_date": "2026-04-01"}, headers=HEADERS)
    assert bad_type.status_code == 422

    one_sided = client.post(
        "/vouchers",
        json={
            "voucher_type": "JOURNAL",
            "voucher_date": "2026-04-01",
            "entries": [{"ledger_id": str(uuid.uuid4()), "debit_amount": "5", "credit_amount": "5"}],
        },
        headers=HEADERS,
    )
    assert one_sided.status_code == 422


def test_vouchers_are_isolated_per_company(client: TestClient) -> None:
    ids = _setup_books(client)
    purchase = client.post("/vouchers", json=_purchase_payload(ids, "10", "10", "0"), headers=HEADERS)
    assert purchase.status_code == 201

    other_company = {**HEADERS, "x-company-code": "C2"}
    response = client.get(f"/vouchers/{purchase.json()['voucher_id']}", headers=other_company)
    assert response.status_code == 404
