from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from ledgerflow.context import get_company_code, get_correlation_id, get_tenant_id

audit_entries: list[dict[str, Any]] = []


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
    tenant_id: str | None = None,
    company_code: str | None = None,
) -> None:
    """Append one change to the audit trail; scope falls back to the bound context."""
    audit_entries.append(
        {
            "id": str(uuid.uuid4()),
            "actor_user_id": actor_user_id,
            "tenant_id": tenant_id or get_tenant_id(),
            "company_code": company_code or get_company_code(),
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "before": before,
            "after": after,
            "correlation_id": correlation_id or get_correlation_id(),
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }
    )


def entries_for(entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    return [
        item
        for item in audit_entries
        if item["entity_type"] == entity_type and item["entity_id"] == entity_id
    ]


def entries_for_books(tenant_id: str, company_code: str) -> list[dict[str, Any]]:
    return [
        item
        for item in audit_entries
        if item["tenant_id"] == tenant_id and item["company_code"] == company_code
    ]
