from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow import audit, events
from ledgerflow.context import bind_scope, reset_correlation_id, reset_scope, set_correlation_id
from ledgerflow.core.auth import AuthUser, get_current_user
from ledgerflow.core.config import get_settings
from ledgerflow.core.database import Base, get_db
from ledgerflow.main import app

HEADERS = {"x-tenant-id": "tenant-a", "x-company-code": "C1"}


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
        return AuthUser(sub="user-1", roles=["user"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_ledger(client: TestClient, code: str, nature: str, correlation_id: str) -> dict:
    response = client.post(
        "/ledgers",
        json={"name": code, "code": code, "nature": nature},
        headers={**HEADERS, "X-Correlation-Id": correlation_id},
    )
    assert response.status_code == 201
    return response.json()


def test_generated_correlation_id_returned_in_header(client: TestClient) -> None:
    response = client.get(f"/vouchers/{uuid.uuid4()}", headers=HEADERS)
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id")


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/vouchers/{uuid.uuid4()}", headers={**HEADERS, "X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"


def test_audit_uses_request_correlation_id(client: TestClient) -> None:
    ledger = _create_ledger(client, "CASH", "ASSET", "corr-audit-1")

    ledger_audits = audit.entries_for("ledger.ledger", ledger["id"])
    assert ledger_audits
    assert ledger_audits[-1]["correlation_id"] == "corr-audit-1"
    assert ledger_audits[-1]["tenant_id"] == "tenant-a"


def test_event_envelope_includes_correlation_id(client: TestClient) -> None:
    cash = _create_ledger(client, "CASH", "ASSET", "corr-setup")
    capital = _create_ledger(client, "CAPITAL", "EQUITY", "corr-setup")

    response = client.post(
        "/vouchers",
        json={
            "voucher_type": "JOURNAL",
            "voucher_date": "2026-04-01",
            "entries": [
                {"ledger_id": cash["id"], "debit_amount": "100"},
                {"ledger_id": capital["id"], "credit_amount": "100"},
            ],
        },
        headers={**HEADERS, "X-Correlation-Id": "corr-event-1"},
    )
    assert response.status_code == 201

    posted_events = [item for item in events.published_events if item.get("event_type") == "voucher.posted"]
    assert posted_events
    assert posted_events[-1].get("correlation_id") == "corr-event-1"
    assert posted_events[-1].get("tenant_id") == "tenant-a"
    assert posted_events[-1].get("company_code") == "C1"


def test_inventory_audit_carries_company_scope(client: TestClient) -> None:
    response = client.post(
        "/inventory/warehouses",
        json={"name": "Main", "code": "W1"},
        headers={**HEADERS, "X-Correlation-Id": "corr-wh-1"},
    )
    assert response.status_code == 201

    books = audit.entries_for_books("tenant-a", "C1")
    assert [item["action"] for item in books] == ["inventory.warehouse.created"]
    assert books[0]["correlation_id"] == "corr-wh-1"
    assert audit.entries_for_books("tenant-a", "C2") == []


def test_event_publish_falls_back_to_bound_scope() -> None:
    correlation_token = set_correlation_id("corr-bound-1")
    scope_tokens = bind_scope("tenant-b", "HQ")
    try:
        events.publish({"event_type": "ledger.reconciled"})
    finally:
        reset_scope(scope_tokens)
        reset_correlation_id(correlation_token)

    envelope = events.events_of_type("ledger.reconciled")[-1]
    assert envelope["correlation_id"] == "corr-bound-1"
    assert envelope["tenant_id"] == "tenant-b"
    assert envelope["company_code"] == "HQ"
