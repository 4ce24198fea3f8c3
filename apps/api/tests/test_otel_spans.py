from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from ledgerflow.core.auth import AuthUser, get_current_user
from ledgerflow.core.config import get_settings
from ledgerflow.core.database import Base, get_db
from ledgerflow.main import app
from ledgerflow.otel import setup_inmemory_otel

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
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


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


def _create_ledger(client: TestClient, code: str, nature: str) -> dict:
    response = client.post("/ledgers", json={"name": code, "code": code, "nature": nature}, headers=HEADERS)
    assert response.status_code == 201
    return response.json()


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/ledgers",
        json={"name": "Cash", "code": "CASH", "nature": "ASSET"},
        headers={**HEADERS, "X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(
        span.attributes.get("correlation_id") == "otel-corr-1" and span.attributes.get("tenant_id") == "tenant-a"
        for span in spans
    )


def test_voucher_span_carries_posting_attributes(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    cash = _create_ledger(client, "CASH", "ASSET")
    capital = _create_ledger(client, "CAPITAL", "EQUITY")

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
        headers={**HEADERS, "X-Correlation-Id": "otel-voucher-1"},
    )
    assert response.status_code == 201

    voucher_spans = [span for span in span_exporter.get_finished_spans() if span.name == "voucher.post"]
    assert voucher_spans
    assert any(
        span.attributes.get("tenant_id") == "tenant-a"
        and span.attributes.get("company_code") == "C1"
        and span.attributes.get("voucher_type") == "JOURNAL"
        and span.attributes.get("attempt") == 1
        and span.attributes.get("correlation_id") == "otel-voucher-1"
        for span in voucher_spans
    )
